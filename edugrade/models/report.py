# edugrade/models/report.py
from typing import Annotated, Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


# Numbers must arrive as JSON numbers: no string/bool coercion, no NaN or infinity
Score = Annotated[float, Field(strict=True, allow_inf_nan=False)]


DEFAULT_PASS_MARK = 40.0


class _CamelModel(BaseModel):
    # Wire format is camelCase; accept python names too
    model_config = ConfigDict(populate_by_name=True)


class StudentInfo(_CamelModel):
    name: str
    subject: str
    roll_number: str = Field(default="", alias="rollNumber")
    class_name: str = Field(default="", alias="class")
    exam_name: str = Field(default="", alias="examName")
    date: str = ""


class QuestionGrade(_CamelModel):
    question_number: str = Field(alias="questionNumber")
    student_answer: str = Field(default="", alias="studentAnswer")
    correct_answer: str = Field(default="", alias="correctAnswer")
    marks_obtained: Score = Field(alias="marksObtained")
    total_marks: Score = Field(alias="totalMarks")
    feedback: str = ""


class EvaluationReport(_CamelModel):
    student_info: StudentInfo = Field(alias="studentInfo")
    grades: List[QuestionGrade]
    total_score: Score = Field(alias="totalScore")
    max_score: Score = Field(alias="maxScore")
    percentage: Score
    general_feedback: str = Field(default="", alias="generalFeedback")

    def is_qualified(self, pass_mark: float = DEFAULT_PASS_MARK) -> bool:
        return self.percentage >= pass_mark

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def report_json_schema() -> Dict[str, Any]:
    """Structured-output schema sent with every inference call.

    Hand-written rather than generated: strict structured output requires
    every property listed in ``required``, so the optional fields are typed
    as nullable instead of omitted.
    """
    def nullable_string() -> Dict[str, Any]:
        return {"type": ["string", "null"]}

    student_info = {
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "rollNumber": nullable_string(),
            "subject": {"type": "string"},
            "class": nullable_string(),
            "examName": nullable_string(),
            "date": nullable_string(),
        },
        "required": ["name", "rollNumber", "subject", "class", "examName", "date"],
        "additionalProperties": False,
    }
    grade = {
        "type": "object",
        "properties": {
            "questionNumber": {"type": "string"},
            "studentAnswer": nullable_string(),
            "correctAnswer": nullable_string(),
            "marksObtained": {"type": "number"},
            "totalMarks": {"type": "number"},
            "feedback": nullable_string(),
        },
        "required": [
            "questionNumber", "studentAnswer", "correctAnswer",
            "marksObtained", "totalMarks", "feedback",
        ],
        "additionalProperties": False,
    }
    return {
        "title": "EvaluationReport",
        "type": "object",
        "properties": {
            "studentInfo": student_info,
            "grades": {"type": "array", "items": grade},
            "totalScore": {"type": "number"},
            "maxScore": {"type": "number"},
            "percentage": {"type": "number"},
            "generalFeedback": {"type": "string"},
        },
        "required": ["studentInfo", "grades", "totalScore", "maxScore", "percentage", "generalFeedback"],
        "additionalProperties": False,
    }
