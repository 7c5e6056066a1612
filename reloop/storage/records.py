"""
Persisted part records.

Parts are stored one record per part, discriminated by ``type``, with a
per-message ``position`` that preserves production order. Only parts that
reached a stable state are written: tool parts must be terminal.
"""

from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from reloop.domain import (
    DataProgressPart,
    FilePart,
    Part,
    ReasoningPart,
    SourceUrlPart,
    StreamState,
    TextPart,
    ToolApproval,
    ToolPart,
    ToolState,
)


class PartRecordType(str, Enum):
    TEXT = "text"
    TOOL = "tool"
    REASONING = "reasoning"
    SOURCE_URL = "source-url"
    DATA = "data"
    FILE = "file"


class PartRecord(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    chat_id: str
    message_id: str
    position: int
    type: PartRecordType
    state: str | None = None

    # text / reasoning
    text: str | None = None

    # tool
    tool_call_id: str | None = None
    tool_type: str | None = None
    input: Any = None
    output: Any = None
    error_text: str | None = None
    approval_id: str | None = None
    approval_reason: str | None = None

    # source-url
    source_id: str | None = None
    url: str | None = None
    title: str | None = None

    # data
    data_type: str | None = None
    data: dict[str, Any] | None = None

    # file
    media_type: str | None = None
    filename: str | None = None

    provider_metadata: dict[str, Any] | None = None


class InvalidPartError(ValueError):
    """Part cannot be persisted in its current state."""


def part_to_record(part: Part, chat_id: str, message_id: str, position: int) -> PartRecord:
    base = {"chat_id": chat_id, "message_id": message_id, "position": position}

    if isinstance(part, TextPart):
        return PartRecord(
            **base,
            type=PartRecordType.TEXT,
            state=part.state.value,
            text=part.text,
            provider_metadata=part.provider_metadata,
        )
    if isinstance(part, ReasoningPart):
        return PartRecord(
            **base,
            type=PartRecordType.REASONING,
            state=part.state.value,
            text=part.text,
            provider_metadata=part.provider_metadata,
        )
    if isinstance(part, ToolPart):
        if not part.state.is_terminal:
            raise InvalidPartError(
                f"Tool part {part.tool_call_id} is not terminal: {part.state.value}"
            )
        if part.state == ToolState.OUTPUT_DENIED and part.approval is None:
            raise InvalidPartError(f"Denied tool part {part.tool_call_id} has no approval")
        return PartRecord(
            **base,
            type=PartRecordType.TOOL,
            state=part.state.value,
            tool_call_id=part.tool_call_id,
            tool_type=part.tool_type,
            input=part.input,
            output=part.output,
            error_text=part.error_text,
            approval_id=part.approval.id if part.approval else None,
            approval_reason=part.approval.reason if part.approval else None,
            provider_metadata=part.provider_metadata,
        )
    if isinstance(part, SourceUrlPart):
        return PartRecord(
            **base,
            type=PartRecordType.SOURCE_URL,
            source_id=part.source_id,
            url=part.url,
            title=part.title,
            provider_metadata=part.provider_metadata,
        )
    if isinstance(part, DataProgressPart):
        return PartRecord(
            **base,
            type=PartRecordType.DATA,
            data_type=part.type,
            data=part.data,
        )
    if isinstance(part, FilePart):
        return PartRecord(
            **base,
            type=PartRecordType.FILE,
            media_type=part.media_type,
            url=part.url,
            filename=part.filename,
            provider_metadata=part.provider_metadata,
        )
    raise InvalidPartError(f"Unknown part {part!r}")


def record_to_part(record: PartRecord) -> Part:
    if record.type == PartRecordType.TEXT:
        return TextPart(
            text=record.text or "",
            state=StreamState(record.state or StreamState.DONE.value),
            provider_metadata=record.provider_metadata,
        )
    if record.type == PartRecordType.REASONING:
        return ReasoningPart(
            text=record.text or "",
            state=StreamState(record.state or StreamState.DONE.value),
            provider_metadata=record.provider_metadata,
        )
    if record.type == PartRecordType.TOOL:
        state = ToolState(record.state)
        approval = None
        if state == ToolState.OUTPUT_DENIED:
            approval = ToolApproval(
                id=record.approval_id or "",
                approved=False,
                reason=record.approval_reason,
            )
        return ToolPart(
            tool_call_id=record.tool_call_id or "",
            tool_name=(record.tool_type or "tool-").removeprefix("tool-"),
            state=state,
            input=record.input,
            output=record.output,
            error_text=record.error_text,
            approval=approval,
            provider_metadata=record.provider_metadata,
        )
    if record.type == PartRecordType.SOURCE_URL:
        return SourceUrlPart(
            source_id=record.source_id or "",
            url=record.url or "",
            title=record.title,
            provider_metadata=record.provider_metadata,
        )
    if record.type == PartRecordType.DATA:
        if record.data_type != "data-progress":
            raise InvalidPartError(f"Unknown data type {record.data_type}")
        return DataProgressPart(data=record.data or {})
    if record.type == PartRecordType.FILE:
        return FilePart(
            media_type=record.media_type or "application/octet-stream",
            url=record.url or "",
            filename=record.filename,
            provider_metadata=record.provider_metadata,
        )
    raise InvalidPartError(f"Unknown part record type {record.type}")


__all__ = [
    "InvalidPartError",
    "PartRecord",
    "PartRecordType",
    "part_to_record",
    "record_to_part",
]
