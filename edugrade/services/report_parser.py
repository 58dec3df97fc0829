from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from edugrade.core.exceptions import MalformedReportException
from edugrade.models.report import EvaluationReport

logger = logging.getLogger(__name__)

# Optional string fields: null/missing becomes ""
OPTIONAL_STUDENT_FIELDS = ("rollNumber", "class", "examName", "date")
OPTIONAL_GRADE_FIELDS = ("studentAnswer", "correctAnswer", "feedback")

TOLERANCE = 0.01
PERCENT_TOLERANCE = 0.5


def _drop_nulls(obj: Dict[str, Any], keys) -> Dict[str, Any]:
    return {k: v for k, v in obj.items() if not (k in keys and v is None)}


def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
    """Non-destructive defaulting only. Never adds rows or numbers."""
    out = dict(data)
    info = out.get("studentInfo")
    if isinstance(info, dict):
        out["studentInfo"] = _drop_nulls(info, OPTIONAL_STUDENT_FIELDS)
    grades = out.get("grades")
    if isinstance(grades, list):
        out["grades"] = [
            _drop_nulls(g, OPTIONAL_GRADE_FIELDS) if isinstance(g, dict) else g for g in grades
        ]
    if out.get("generalFeedback") is None:
        out.pop("generalFeedback", None)
    return out


def _describe(err: ValidationError) -> List[str]:
    return [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in err.errors()]


def parse_report(raw_text: str) -> EvaluationReport:
    """Parse the service text into an EvaluationReport.

    One JSON parse attempt; anything that is not a report-shaped object
    raises MalformedReportException carrying the original text.
    """
    try:
        data = json.loads(raw_text)
    except (TypeError, json.JSONDecodeError) as e:
        raise MalformedReportException(f"Service response is not valid JSON: {e}", raw_text=raw_text) from e

    if not isinstance(data, dict):
        raise MalformedReportException(
            f"Service response is a JSON {type(data).__name__}, expected an object", raw_text=raw_text
        )

    try:
        return EvaluationReport.model_validate(_normalize(data))
    except ValidationError as e:
        problems = _describe(e)
        raise MalformedReportException(
            "Service response does not match the report schema",
            raw_text=raw_text,
            details={"errors": problems},
        ) from e


def check_report(report: EvaluationReport) -> List[str]:
    """Data-quality warnings. The report is never modified."""
    warnings: List[str] = []

    if not report.grades:
        warnings.append("Report contains no graded questions")

    for g in report.grades:
        q = g.question_number
        if g.total_marks <= 0:
            warnings.append(f"Question {q}: totalMarks must be positive, got {g.total_marks:g}")
        if g.marks_obtained < 0:
            warnings.append(f"Question {q}: marksObtained is negative ({g.marks_obtained:g})")
        if g.marks_obtained > g.total_marks:
            warnings.append(
                f"Question {q}: marksObtained {g.marks_obtained:g} exceeds totalMarks {g.total_marks:g}"
            )

    sum_total = sum(g.total_marks for g in report.grades)
    sum_obtained = sum(g.marks_obtained for g in report.grades)
    if abs(report.max_score - sum_total) > TOLERANCE:
        warnings.append(f"maxScore {report.max_score:g} != sum of totalMarks {sum_total:g}")
    if abs(report.total_score - sum_obtained) > TOLERANCE:
        warnings.append(f"totalScore {report.total_score:g} != sum of marksObtained {sum_obtained:g}")
    if report.max_score > 0:
        expected = 100.0 * report.total_score / report.max_score
        if abs(report.percentage - expected) > PERCENT_TOLERANCE:
            warnings.append(f"percentage {report.percentage:g} != {expected:.2f} derived from scores")

    for w in warnings:
        logger.warning(f"Report data-quality warning: {w}")
    return warnings
