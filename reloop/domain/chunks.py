"""
Event vocabulary for streamed run output.

Chunks are the normalized incremental units that flow from the step
executor through the stream bridge into the run event log, and from there
to every connected client. The set is closed: transports render exactly
these types.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from .parts import ToolApproval, ToolState


class _Chunk(BaseModel):
    model_config = ConfigDict(frozen=True)


class StartChunk(_Chunk):
    """Opens the stream; carries the assistant message id."""

    type: Literal["start"] = "start"
    message_id: str


class StepStartChunk(_Chunk):
    type: Literal["step-start"] = "step-start"


class TextDeltaChunk(_Chunk):
    type: Literal["text-delta"] = "text-delta"
    id: str
    delta: str


class TextDoneChunk(_Chunk):
    type: Literal["text-done"] = "text-done"
    id: str


class ReasoningDeltaChunk(_Chunk):
    type: Literal["reasoning-delta"] = "reasoning-delta"
    id: str
    delta: str


class ReasoningDoneChunk(_Chunk):
    type: Literal["reasoning-done"] = "reasoning-done"
    id: str


class ToolCallStartChunk(_Chunk):
    type: Literal["tool-call-start"] = "tool-call-start"
    tool_call_id: str
    tool_name: str


class ToolCallDeltaChunk(_Chunk):
    type: Literal["tool-call-delta"] = "tool-call-delta"
    tool_call_id: str
    input_text_delta: str


class ToolCallChunk(_Chunk):
    """Tool input is complete and execution is about to start."""

    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    input: Any = None


class ToolResultChunk(_Chunk):
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    state: ToolState
    output: Any = None
    error_text: str | None = None
    approval: ToolApproval | None = None

    @field_validator("state")
    @classmethod
    def _terminal_only(cls, state: ToolState) -> ToolState:
        if not state.is_terminal:
            raise ValueError(f"tool result state must be terminal, got {state.value}")
        return state


class SourceUrlChunk(_Chunk):
    type: Literal["source-url"] = "source-url"
    source_id: str
    url: str
    title: str | None = None


class FileChunk(_Chunk):
    type: Literal["file"] = "file"
    media_type: str
    url: str
    filename: str | None = None


class DataProgressChunk(_Chunk):
    type: Literal["data-progress"] = "data-progress"
    data: dict[str, Any] = Field(default_factory=dict)


class FinishChunk(_Chunk):
    type: Literal["finish"] = "finish"
    finish_reason: str
    stop_reason: str | None = None


class ErrorChunk(_Chunk):
    """Terminal event for a run that died mid-stream."""

    type: Literal["error"] = "error"
    error_text: str
    error_type: str = "unknown"


Chunk = Annotated[
    Union[
        StartChunk,
        StepStartChunk,
        TextDeltaChunk,
        TextDoneChunk,
        ReasoningDeltaChunk,
        ReasoningDoneChunk,
        ToolCallStartChunk,
        ToolCallDeltaChunk,
        ToolCallChunk,
        ToolResultChunk,
        SourceUrlChunk,
        FileChunk,
        DataProgressChunk,
        FinishChunk,
        ErrorChunk,
    ],
    Field(discriminator="type"),
]

chunk_adapter: TypeAdapter[Chunk] = TypeAdapter(Chunk)


def parse_chunk(data: dict) -> Chunk:
    return chunk_adapter.validate_python(data)


def dump_chunk(chunk: Chunk) -> dict:
    return chunk.model_dump(mode="json", exclude_none=True)
