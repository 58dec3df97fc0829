# edugrade/utils/usage_tracker.py
from collections import deque
from typing import Dict, Any
from dataclasses import dataclass, field
from datetime import datetime

# Per-call records kept for inspection; totals cover every call
MAX_CALL_RECORDS = 100


@dataclass
class TokenUsage:
    """Token usage for a single inference call."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: 'TokenUsage') -> 'TokenUsage':
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens
        )

    @classmethod
    def from_response(cls, usage_data: Dict[str, Any]) -> 'TokenUsage':
        return cls(
            prompt_tokens=int(usage_data.get("prompt_tokens") or 0),
            completion_tokens=int(usage_data.get("completion_tokens") or 0),
            total_tokens=int(usage_data.get("total_tokens") or 0),
        )


@dataclass
class UsageTracker:
    """Track inference token usage and estimated cost per session.

    Every evaluation is a billable multimodal call; the per-call records
    make duplicate submissions visible.
    """

    # USD per 1M tokens, multimodal deployment list price
    input_cost_per_1m: float = 2.50
    output_cost_per_1m: float = 10.0

    total_usage: TokenUsage = field(default_factory=TokenUsage)
    session_calls: int = 0
    session_start: datetime = field(default_factory=datetime.now)
    call_history: deque = field(default_factory=lambda: deque(maxlen=MAX_CALL_RECORDS))

    def track_usage(self, usage_data: Dict[str, Any], operation: str = "evaluation") -> Dict[str, Any]:
        """Record usage from one service response and return the call record with costs."""
        call_usage = TokenUsage.from_response(usage_data or {})

        input_cost = (call_usage.prompt_tokens / 1_000_000) * self.input_cost_per_1m
        output_cost = (call_usage.completion_tokens / 1_000_000) * self.output_cost_per_1m

        self.total_usage += call_usage
        self.session_calls += 1

        call_record = {
            "timestamp": datetime.now().isoformat(),
            "operation": operation,
            "usage": call_usage.__dict__,
            "cost": {
                "input_cost": round(input_cost, 9),
                "output_cost": round(output_cost, 9),
                "total_cost": round(input_cost + output_cost, 9)
            }
        }
        self.call_history.append(call_record)
        return call_record

    def get_session_summary(self) -> Dict[str, Any]:
        total_input_cost = (self.total_usage.prompt_tokens / 1_000_000) * self.input_cost_per_1m
        total_output_cost = (self.total_usage.completion_tokens / 1_000_000) * self.output_cost_per_1m
        total_session_cost = total_input_cost + total_output_cost

        return {
            "session_info": {
                "start_time": self.session_start.isoformat(),
                "duration_seconds": (datetime.now() - self.session_start).total_seconds(),
                "total_calls": self.session_calls
            },
            "token_usage": {
                "total_prompt_tokens": self.total_usage.prompt_tokens,
                "total_completion_tokens": self.total_usage.completion_tokens,
                "total_tokens": self.total_usage.total_tokens,
                "avg_tokens_per_call": self.total_usage.total_tokens / max(1, self.session_calls)
            },
            "cost_breakdown": {
                "input_cost": round(total_input_cost, 6),
                "output_cost": round(total_output_cost, 6),
                "total_cost": round(total_session_cost, 6),
                "avg_cost_per_call": round(total_session_cost / max(1, self.session_calls), 6)
            },
            "recent_calls": list(self.call_history)[-10:],
        }

    def reset_session(self) -> None:
        self.total_usage = TokenUsage()
        self.session_calls = 0
        self.session_start = datetime.now()
        self.call_history.clear()
