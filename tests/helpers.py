"""
Test data builders shared across test modules
"""
import io
from typing import Any, Dict

from PIL import Image

from edugrade.models.report import EvaluationReport

MB = 1024 * 1024

MINIMAL_PDF = b"%PDF-1.4\n1 0 obj<</Type/Catalog>>endobj\ntrailer<</Root 1 0 R>>\n%%EOF\n"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def make_image(width: int = 40, height: int = 30, fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 200, 200)).save(buf, format=fmt)
    return buf.getvalue()


def make_report_dict(percentage: float = 100.0, name: str = "A") -> Dict[str, Any]:
    """A self-consistent single-question report in wire format."""
    return {
        "studentInfo": {"name": name, "subject": "Math"},
        "grades": [
            {"questionNumber": "1", "marksObtained": percentage / 10, "totalMarks": 10},
        ],
        "totalScore": percentage / 10,
        "maxScore": 10,
        "percentage": percentage,
        "generalFeedback": "Good",
    }


def make_report(percentage: float = 100.0, name: str = "A") -> EvaluationReport:
    return EvaluationReport.model_validate(make_report_dict(percentage, name))
