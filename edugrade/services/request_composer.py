import logging
from typing import Dict, Optional, Sequence

from edugrade.core.exceptions import MissingRequiredInputException
from edugrade.models.document import REQUIRED_ROLES, ROLE_ORDER, DocumentRole, EncodedPart
from edugrade.models.request import DocumentPart, EvaluationRequest, TextPart
from edugrade.utils.prompt_loader import PromptLoader

logger = logging.getLogger(__name__)


class RequestComposer:
    """Builds the ordered part sequence sent to the inference service.

    Layout: instructions, then for question paper / answer key / student
    sheets in that order, a label followed by the document for each upload.
    """

    def __init__(self, loader: Optional[PromptLoader] = None):
        self.loader = loader or PromptLoader()

    def compose(
        self,
        instructions: Optional[str],
        question_paper: Sequence[EncodedPart],
        answer_key: Sequence[EncodedPart],
        student_sheets: Sequence[EncodedPart],
        generation: Optional[int] = None,
    ) -> EvaluationRequest:
        groups: Dict[DocumentRole, Sequence[EncodedPart]] = {
            DocumentRole.QUESTION_PAPER: question_paper or [],
            DocumentRole.ANSWER_KEY: answer_key or [],
            DocumentRole.STUDENT_SHEET: student_sheets or [],
        }

        missing = [role.value for role in REQUIRED_ROLES if not groups[role]]
        if missing:
            raise MissingRequiredInputException(missing)

        request = EvaluationRequest(generation=generation)
        request.parts.append(TextPart(text=instructions or self.loader.instructions))

        for role in ROLE_ORDER:
            for i, part in enumerate(groups[role], start=1):
                request.parts.append(TextPart(text=self.loader.document_label(role.label, i)))
                request.parts.append(DocumentPart(role=role, part=part))

        logger.debug(f"Composed request: {request.summary()}")
        return request
