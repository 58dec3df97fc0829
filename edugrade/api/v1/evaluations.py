import logging
import time
from collections.abc import AsyncIterator
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile, status

from edugrade.core.dependencies import get_history, get_session, get_usage
from edugrade.core.exceptions import EvaluationException
from edugrade.models.document import DocumentRole, RawFile
from edugrade.services.grading_session import GradingSession
from edugrade.services.history_store import HistoryStore
from edugrade.utils.usage_tracker import UsageTracker

logger = logging.getLogger(__name__)


async def route_timer(request: Request) -> AsyncIterator[None]:
    start = time.perf_counter()
    request_id = f"req_{int(time.time() * 1000)}"
    request.state.request_id = request_id
    logger.info(f"[{request_id}] → {request.method} {request.url.path}")
    try:
        yield
    finally:
        dur_ms = (time.perf_counter() - start) * 1000.0
        logger.info(f"[{request_id}] ← {request.method} {request.url.path} {dur_ms:.1f}ms")


router = APIRouter(dependencies=[Depends(route_timer)])


async def _read_uploads(files: Optional[List[UploadFile]]) -> List[RawFile]:
    raws = []
    for upload in files or []:
        raws.append(RawFile(
            filename=upload.filename or "upload",
            content=await upload.read(),
            media_type=upload.content_type,
        ))
        await upload.close()
    return raws


@router.post("/evaluations", status_code=status.HTTP_201_CREATED)
async def create_evaluation(
    question_paper: Optional[List[UploadFile]] = File(None),
    answer_key: Optional[List[UploadFile]] = File(None),
    student_sheets: Optional[List[UploadFile]] = File(None),
    session: GradingSession = Depends(get_session),
) -> Dict[str, Any]:
    """Upload scans, run one evaluation, store it in history."""
    rejected = []
    for role, uploads in (
        (DocumentRole.QUESTION_PAPER, question_paper),
        (DocumentRole.ANSWER_KEY, answer_key),
        (DocumentRole.STUDENT_SHEET, student_sheets),
    ):
        raws = await _read_uploads(uploads)
        if raws:
            rejected.extend(await session.add_files(role, raws))

    try:
        outcome = await session.submit()
    except EvaluationException as e:
        # a required group may be empty only because its files were rejected
        if rejected:
            e.details["rejected_files"] = [exc.to_dict() for exc in rejected]
        raise
    if outcome is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Evaluation was cancelled")

    return {
        "id": outcome.history_item.id,
        "timestamp": outcome.history_item.timestamp,
        "report": outcome.report.to_wire(),
        "qualified": outcome.qualified,
        "warnings": outcome.warnings,
        "rejected_files": [exc.to_dict() for exc in rejected],
        "timings": outcome.timings,
    }


@router.get("/history")
def list_history(history: HistoryStore = Depends(get_history)) -> List[Dict[str, Any]]:
    return [item.to_wire() for item in history.items]


@router.get("/history/stats")
def history_stats(history: HistoryStore = Depends(get_history)) -> Dict[str, Any]:
    stats = history.stats()
    return {
        "count": stats.count,
        "meanPercentage": stats.mean_percentage,
        "mostRecentTimestamp": stats.most_recent_timestamp,
    }


@router.get("/history/{item_id}")
def get_history_item(item_id: str, history: HistoryStore = Depends(get_history)) -> Dict[str, Any]:
    item = history.get(item_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No evaluation with id {item_id}")
    return item.to_wire()


@router.delete("/history/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_history_item(item_id: str, history: HistoryStore = Depends(get_history)) -> Response:
    # absent ids are a no-op, not an error
    history.remove(item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/usage")
def usage_summary(usage: UsageTracker = Depends(get_usage)) -> Dict[str, Any]:
    """Token usage and estimated cost since startup or the last reset."""
    return usage.get_session_summary()


@router.delete("/usage", status_code=status.HTTP_204_NO_CONTENT)
def reset_usage(usage: UsageTracker = Depends(get_usage)) -> Response:
    usage.reset_session()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
