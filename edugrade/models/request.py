# edugrade/models/request.py
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

from edugrade.models.document import DocumentRole, EncodedPart


class TextPart(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class DocumentPart(BaseModel):
    kind: Literal["document"] = "document"
    role: DocumentRole
    part: EncodedPart


RequestPart = Union[TextPart, DocumentPart]


class EvaluationRequest(BaseModel):
    """Ordered instruction fragments: instructions, then labeled documents per role."""
    parts: List[RequestPart] = Field(default_factory=list)
    generation: Optional[int] = None

    @property
    def document_parts(self) -> List[DocumentPart]:
        return [p for p in self.parts if isinstance(p, DocumentPart)]

    @property
    def text_parts(self) -> List[TextPart]:
        return [p for p in self.parts if isinstance(p, TextPart)]

    def summary(self) -> dict:
        """Request shape without payloads (for logs and traces)."""
        counts = {role.value: 0 for role in DocumentRole}
        for p in self.document_parts:
            counts[p.role.value] += 1
        return {
            "text_parts": len(self.text_parts),
            "document_parts": len(self.document_parts),
            "documents_by_role": counts,
        }
