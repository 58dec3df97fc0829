# edugrade/models/document.py
import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

_DATA_URL_RE = re.compile(r"^data:(?P<media>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


class DocumentRole(str, Enum):
    QUESTION_PAPER = "question_paper"
    ANSWER_KEY = "answer_key"
    STUDENT_SHEET = "student_sheet"

    @property
    def label(self) -> str:
        return ROLE_LABELS[self]


ROLE_LABELS = {
    DocumentRole.QUESTION_PAPER: "Question Paper",
    DocumentRole.ANSWER_KEY: "Answer Key",
    DocumentRole.STUDENT_SHEET: "Student Answer Sheets",
}

# Fixed role order for request composition
ROLE_ORDER = (DocumentRole.QUESTION_PAPER, DocumentRole.ANSWER_KEY, DocumentRole.STUDENT_SHEET)
REQUIRED_ROLES = (DocumentRole.QUESTION_PAPER, DocumentRole.STUDENT_SHEET)


class UploadState(str, Enum):
    PENDING = "pending"
    ENCODING = "encoding"
    READY = "ready"
    ERROR = "error"


class EncodedPart(BaseModel):
    """Media-type tagged base64 payload, ready for JSON transport."""
    media_type: str
    data: str = Field(description="base64-encoded file content")
    filename: Optional[str] = None

    @property
    def data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.data}"

    @classmethod
    def from_data_url(cls, data_url: str, filename: Optional[str] = None) -> "EncodedPart":
        match = _DATA_URL_RE.match(data_url.strip())
        if not match:
            raise ValueError("Not a base64 data URL")
        return cls(media_type=match.group("media"), data=match.group("data"), filename=filename)


class RawFile(BaseModel):
    """An uploaded file as received, before encoding."""
    filename: str
    content: bytes
    media_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


class UploadedDocument(BaseModel):
    role: DocumentRole
    index: int = Field(ge=0, description="position within its role group")
    raw: Optional[RawFile] = None
    encoded: Optional[EncodedPart] = None
    state: UploadState = UploadState.PENDING
    error: Optional[str] = None

    @property
    def filename(self) -> str:
        if self.raw is not None:
            return self.raw.filename
        return (self.encoded.filename if self.encoded else None) or f"{self.role.value}-{self.index + 1}"

    @property
    def is_ready(self) -> bool:
        return self.state == UploadState.READY and self.encoded is not None
