from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from .messages import Message
from .parts import Part


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_run_id() -> str:
    return f"run_{uuid4().hex}"


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self != RunStatus.RUNNING


class RunRecord(BaseModel):
    """Durable handle of one tool-loop execution."""

    id: str = Field(default_factory=new_run_id)
    chat_id: str | None = None
    message_id: str | None = None
    status: RunStatus = RunStatus.RUNNING
    error: str | None = None

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def completed(self) -> bool:
        return self.status == RunStatus.COMPLETED


class FinishReason(str, Enum):
    """Terminal classification of one model turn."""

    STOP = "stop"
    TOOL_CALLS = "tool-calls"
    LENGTH = "length"
    CONTENT_FILTER = "content-filter"
    ERROR = "error"
    OTHER = "other"

    @classmethod
    def from_provider(cls, value: str | None) -> "FinishReason":
        if value is None:
            return cls.OTHER
        normalized = value.replace("_", "-")
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER


class StopReason(str, Enum):
    """Why the tool loop stopped."""

    FINISHED = "finished"
    MAX_STEPS = "max-steps"


class StepResult(BaseModel):
    message: Message
    finish_reason: FinishReason

    @property
    def should_continue(self) -> bool:
        return self.finish_reason == FinishReason.TOOL_CALLS


class ToolLoopResult(BaseModel):
    parts: list[Part] = Field(default_factory=list)
    step_count: int = 0
    stop_reason: StopReason = StopReason.FINISHED
    finish_reason: FinishReason | None = None
