"""
Unit tests for services/grading_session.py
"""
import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from edugrade.core.exceptions import EvaluationInProgressException, MissingRequiredInputException
from edugrade.models.document import DocumentRole, RawFile, UploadState
from edugrade.services.document_encoder import DocumentEncoder
from edugrade.services.grading_session import GradingSession
from edugrade.services.history_store import HistoryStore
from edugrade.services.request_composer import RequestComposer

from helpers import MB, PNG_MAGIC, make_report


@pytest.fixture
def client():
    c = Mock()
    c.evaluate = AsyncMock(return_value=make_report(70))
    return c


@pytest.fixture
def session(test_settings, client):
    history = HistoryStore(test_settings.HISTORY_PATH)
    history.load()
    return GradingSession(DocumentEncoder(test_settings), RequestComposer(), client, history)


@pytest.mark.unit
class TestFiles:

    @pytest.mark.asyncio
    async def test_add_files_marks_ready_in_upload_order(self, session, png_file, pdf_file):
        rejected = await session.add_files(DocumentRole.STUDENT_SHEET, [png_file, pdf_file])
        docs = session.documents[DocumentRole.STUDENT_SHEET]

        assert rejected == []
        assert [d.filename for d in docs] == ["page.png", "paper.pdf"]
        assert [d.index for d in docs] == [0, 1]
        assert all(d.state == UploadState.READY for d in docs)

    @pytest.mark.asyncio
    async def test_rejected_file_excluded(self, session, png_file):
        big = RawFile(filename="big.png", content=PNG_MAGIC + b"\0" * (4 * MB), media_type="image/png")
        rejected = await session.add_files(DocumentRole.QUESTION_PAPER, [big, png_file])

        assert [e.filename for e in rejected] == ["big.png"]
        assert [d.filename for d in session.documents[DocumentRole.QUESTION_PAPER]] == ["page.png"]

    @pytest.mark.asyncio
    async def test_remove_file_reindexes(self, session, png_file, jpeg_file, pdf_file):
        await session.add_files(DocumentRole.ANSWER_KEY, [png_file, jpeg_file, pdf_file])
        session.remove_file(DocumentRole.ANSWER_KEY, 0)
        docs = session.documents[DocumentRole.ANSWER_KEY]
        assert [(d.index, d.filename) for d in docs] == [(0, "page.jpg"), (1, "paper.pdf")]


@pytest.mark.unit
class TestSubmit:

    @pytest.mark.asyncio
    async def test_submit_stores_report(self, session, client, png_file, pdf_file):
        await session.add_files(DocumentRole.QUESTION_PAPER, [pdf_file])
        await session.add_files(DocumentRole.STUDENT_SHEET, [png_file])

        outcome = await session.submit()

        assert outcome.report.percentage == 70
        assert session.history.items == [outcome.history_item]
        assert outcome.warnings == []
        assert session.busy is False
        request = client.evaluate.await_args.args[0]
        assert len(request.document_parts) == 2

    @pytest.mark.asyncio
    async def test_missing_input_fails_before_call(self, session, client, png_file):
        await session.add_files(DocumentRole.QUESTION_PAPER, [png_file])
        with pytest.raises(MissingRequiredInputException):
            await session.submit()
        client.evaluate.assert_not_called()
        assert session.busy is False

    @pytest.mark.asyncio
    async def test_second_submit_while_busy_rejected(self, session, client, png_file):
        release = asyncio.Event()

        async def slow_evaluate(request):
            await release.wait()
            return make_report(50)

        client.evaluate.side_effect = slow_evaluate
        await session.add_files(DocumentRole.QUESTION_PAPER, [png_file])
        await session.add_files(DocumentRole.STUDENT_SHEET, [png_file])

        first = asyncio.create_task(session.submit())
        await asyncio.sleep(0)
        assert session.busy is True
        with pytest.raises(EvaluationInProgressException):
            await session.submit()

        release.set()
        outcome = await first
        assert outcome is not None
        assert client.evaluate.await_count == 1

    @pytest.mark.asyncio
    async def test_result_discarded_after_reset(self, session, client, png_file):
        release = asyncio.Event()

        async def slow_evaluate(request):
            await release.wait()
            return make_report(50)

        client.evaluate.side_effect = slow_evaluate
        await session.add_files(DocumentRole.QUESTION_PAPER, [png_file])
        await session.add_files(DocumentRole.STUDENT_SHEET, [png_file])

        task = asyncio.create_task(session.submit())
        await asyncio.sleep(0)
        session.reset()
        release.set()

        assert await task is None
        assert len(session.history) == 0
        assert session.busy is False
        assert all(not docs for docs in session.documents.values())

    @pytest.mark.asyncio
    async def test_warnings_reported(self, session, client, png_file):
        report = make_report(50)
        report.max_score = 99
        client.evaluate.return_value = report
        await session.add_files(DocumentRole.QUESTION_PAPER, [png_file])
        await session.add_files(DocumentRole.STUDENT_SHEET, [png_file])

        outcome = await session.submit()
        assert any("maxScore" in w for w in outcome.warnings)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("percentage, pass_mark, qualified", [
        (40, 40, True),
        (39.9, 40, False),
        (55, 60, False),
    ])
    async def test_qualified_uses_pass_mark(self, test_settings, client, png_file, percentage, pass_mark, qualified):
        client.evaluate.return_value = make_report(percentage)
        history = HistoryStore(test_settings.HISTORY_PATH)
        session = GradingSession(
            DocumentEncoder(test_settings), RequestComposer(), client, history, pass_mark=pass_mark,
        )
        await session.add_files(DocumentRole.QUESTION_PAPER, [png_file])
        await session.add_files(DocumentRole.STUDENT_SHEET, [png_file])

        outcome = await session.submit()
        assert outcome.qualified is qualified
