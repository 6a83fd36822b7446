# models/metric.py
from dataclasses import dataclass
from enum import Enum


class CallOutcome(str, Enum):
    SUCCESS = "success"
    PROVIDER_ERROR = "provider_error"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ExecutionMetric:
    project_id: int
    prompt_id: int | None
    outcome: CallOutcome
    create_time: float
    latency_ms: float = 0.0
    response_tokens: int = 0
    user_agent: str = ""
