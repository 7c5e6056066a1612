from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from .parts import Part


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """One conversation turn. Parts are kept in production order."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    role: MessageRole
    parts: list[Part] = Field(default_factory=list)
    run_id: str | None = None

    @property
    def is_interrupted(self) -> bool:
        """
        Assistant placeholder of a run that never attached any part.

        Its run may still hold events, so callers surface ``run_id`` for
        reconnection instead of feeding the message to the model.
        """
        return self.role == MessageRole.ASSISTANT and bool(self.run_id) and not self.parts
