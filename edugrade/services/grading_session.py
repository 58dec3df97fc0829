from __future__ import annotations

import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import Dict, List, Optional, Sequence

from edugrade.core.exceptions import EvaluationException, EvaluationInProgressException
from edugrade.models.document import ROLE_ORDER, DocumentRole, RawFile, UploadedDocument, UploadState
from edugrade.models.history import HistoryItem
from edugrade.models.report import DEFAULT_PASS_MARK, EvaluationReport
from edugrade.services.document_encoder import DocumentEncoder
from edugrade.services.evaluation_client import EvaluationClient
from edugrade.services.history_store import HistoryStore
from edugrade.services.report_parser import check_report
from edugrade.services.request_composer import RequestComposer

logger = logging.getLogger(__name__)


@dataclass
class EvaluationOutcome:
    report: EvaluationReport
    history_item: HistoryItem
    qualified: bool = False
    warnings: List[str] = field(default_factory=list)
    timings: Dict[str, float] = field(default_factory=dict)


class GradingSession:
    """One user's evaluation workflow.

    Flow:
      add_files (per role, concurrent encode) → submit → compose → evaluate
      → check → history append

    ``busy`` guards against a second submit while one is outstanding.
    ``reset`` bumps the generation so a late result is discarded.
    """

    def __init__(
        self,
        encoder: DocumentEncoder,
        composer: RequestComposer,
        client: EvaluationClient,
        history: HistoryStore,
        instructions: Optional[str] = None,
        pass_mark: float = DEFAULT_PASS_MARK,
    ):
        self.encoder = encoder
        self.composer = composer
        self.client = client
        self.history = history
        self.instructions = instructions
        self.pass_mark = pass_mark
        self.documents: Dict[DocumentRole, List[UploadedDocument]] = {role: [] for role in ROLE_ORDER}
        self.busy = False
        self.generation = 0

    async def add_files(self, role: DocumentRole, files: Sequence[RawFile]) -> List[EvaluationException]:
        """Encode and add uploads to a role group; returns the per-file rejections."""
        group = self.documents[role]
        generation = self.generation
        pending = [
            UploadedDocument(role=role, index=len(group) + i, raw=raw, state=UploadState.ENCODING)
            for i, raw in enumerate(files)
        ]

        batch = await self.encoder.encode_batch(files)

        if generation != self.generation:
            logger.info(f"Discarding {len(files)} encoded {role.value} files from a reset session")
            return batch.rejected

        for doc, outcome in zip(pending, batch.outcomes):
            if isinstance(outcome, EvaluationException):
                doc.state = UploadState.ERROR
                doc.error = outcome.message
                continue
            doc.encoded = outcome
            doc.state = UploadState.READY
            doc.index = len(group)
            doc.raw = None  # encoded payload replaces the raw bytes
            group.append(doc)
        return batch.rejected

    def remove_file(self, role: DocumentRole, index: int) -> None:
        group = self.documents[role]
        if 0 <= index < len(group):
            del group[index]
            for i, doc in enumerate(group):
                doc.index = i

    def ready_parts(self, role: DocumentRole):
        return [doc.encoded for doc in self.documents[role] if doc.is_ready]

    def reset(self) -> None:
        self.documents = {role: [] for role in ROLE_ORDER}
        self.generation += 1
        self.busy = False

    async def submit(self) -> Optional[EvaluationOutcome]:
        """Run one evaluation. Returns None when the session was reset meanwhile."""
        if self.busy:
            raise EvaluationInProgressException("An evaluation is already running for this session")

        self.busy = True
        generation = self.generation
        timings: Dict[str, float] = {}
        try:
            t0 = perf_counter()
            request = self.composer.compose(
                self.instructions,
                self.ready_parts(DocumentRole.QUESTION_PAPER),
                self.ready_parts(DocumentRole.ANSWER_KEY),
                self.ready_parts(DocumentRole.STUDENT_SHEET),
                generation=generation,
            )
            t1 = perf_counter()
            timings["compose"] = (t1 - t0) * 1000.0

            report = await self.client.evaluate(request)
            t2 = perf_counter()
            timings["evaluate"] = (t2 - t1) * 1000.0

            if generation != self.generation:
                logger.info(f"Discarding result of generation {generation}; session is at {self.generation}")
                return None

            warnings = check_report(report)
            item = self.history.append(report)
            timings["total"] = (perf_counter() - t0) * 1000.0
            return EvaluationOutcome(
                report=report,
                history_item=item,
                qualified=report.is_qualified(self.pass_mark),
                warnings=warnings,
                timings=timings,
            )
        finally:
            if generation == self.generation:
                self.busy = False
