# edugrade/models/history.py
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from edugrade.models.report import EvaluationReport


class HistoryItem(BaseModel):
    """A stored report. Never mutated after creation."""
    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: int = Field(description="milliseconds since epoch")
    report: EvaluationReport

    def to_wire(self) -> dict:
        return {"id": self.id, "timestamp": self.timestamp, "report": self.report.to_wire()}


class HistoryStats(BaseModel):
    count: int = 0
    mean_percentage: float = 0.0
    most_recent_timestamp: Optional[int] = None
