"""
Message parts.

A Part is one typed unit of message content. Parts form a closed tagged
union discriminated by ``type``; tool parts move through input states while
a step is running and end in exactly one terminal state.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class StreamState(str, Enum):
    STREAMING = "streaming"
    DONE = "done"


class ToolState(str, Enum):
    """Lifecycle of a tool-call part."""

    INPUT_STREAMING = "input-streaming"
    INPUT_AVAILABLE = "input-available"
    OUTPUT_AVAILABLE = "output-available"
    OUTPUT_ERROR = "output-error"
    OUTPUT_DENIED = "output-denied"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_TOOL_STATES


TERMINAL_TOOL_STATES = frozenset(
    {ToolState.OUTPUT_AVAILABLE, ToolState.OUTPUT_ERROR, ToolState.OUTPUT_DENIED}
)


class ToolApproval(BaseModel):
    """Approval decision attached to a tool call."""

    id: str
    approved: bool
    reason: str | None = None


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str = ""
    state: StreamState = StreamState.STREAMING
    provider_metadata: dict[str, Any] | None = None


class ReasoningPart(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    text: str = ""
    state: StreamState = StreamState.STREAMING
    provider_metadata: dict[str, Any] | None = None


class ToolPart(BaseModel):
    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    state: ToolState = ToolState.INPUT_STREAMING
    input: Any = None
    output: Any = None
    error_text: str | None = None
    approval: ToolApproval | None = None
    provider_metadata: dict[str, Any] | None = None

    @property
    def tool_type(self) -> str:
        """UI-facing tag, ``tool-<name>``."""
        return f"tool-{self.tool_name}"


class SourceUrlPart(BaseModel):
    type: Literal["source-url"] = "source-url"
    source_id: str
    url: str
    title: str | None = None
    provider_metadata: dict[str, Any] | None = None


class FilePart(BaseModel):
    type: Literal["file"] = "file"
    media_type: str
    url: str
    filename: str | None = None
    provider_metadata: dict[str, Any] | None = None


class DataProgressPart(BaseModel):
    type: Literal["data-progress"] = "data-progress"
    data: dict[str, Any] = Field(default_factory=dict)


Part = Annotated[
    Union[TextPart, ReasoningPart, ToolPart, SourceUrlPart, FilePart, DataProgressPart],
    Field(discriminator="type"),
]


__all__ = [
    "StreamState",
    "ToolState",
    "TERMINAL_TOOL_STATES",
    "ToolApproval",
    "TextPart",
    "ReasoningPart",
    "ToolPart",
    "SourceUrlPart",
    "FilePart",
    "DataProgressPart",
    "Part",
]
