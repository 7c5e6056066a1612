"""
Domain models: messages and their parts, the streamed event vocabulary,
run records and step results.
"""

from .adapters import MessageAdapter, prepare_history
from .chunks import (
    Chunk,
    DataProgressChunk,
    ErrorChunk,
    FileChunk,
    FinishChunk,
    ReasoningDeltaChunk,
    ReasoningDoneChunk,
    SourceUrlChunk,
    StartChunk,
    StepStartChunk,
    TextDeltaChunk,
    TextDoneChunk,
    ToolCallChunk,
    ToolCallDeltaChunk,
    ToolCallStartChunk,
    ToolResultChunk,
    chunk_adapter,
    dump_chunk,
    parse_chunk,
)
from .messages import Message, MessageRole
from .parts import (
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
from .run import (
    FinishReason,
    RunRecord,
    RunStatus,
    StepResult,
    StopReason,
    ToolLoopResult,
    new_run_id,
)
from .tools import ToolResult

__all__ = [
    # Messages
    "Message",
    "MessageRole",
    "MessageAdapter",
    "prepare_history",
    # Parts
    "Part",
    "TextPart",
    "ReasoningPart",
    "ToolPart",
    "SourceUrlPart",
    "FilePart",
    "DataProgressPart",
    "StreamState",
    "ToolState",
    "ToolApproval",
    # Chunks
    "Chunk",
    "StartChunk",
    "StepStartChunk",
    "TextDeltaChunk",
    "TextDoneChunk",
    "ReasoningDeltaChunk",
    "ReasoningDoneChunk",
    "ToolCallStartChunk",
    "ToolCallDeltaChunk",
    "ToolCallChunk",
    "ToolResultChunk",
    "SourceUrlChunk",
    "FileChunk",
    "DataProgressChunk",
    "FinishChunk",
    "ErrorChunk",
    "chunk_adapter",
    "dump_chunk",
    "parse_chunk",
    # Runs
    "RunRecord",
    "RunStatus",
    "FinishReason",
    "StopReason",
    "StepResult",
    "ToolLoopResult",
    "ToolResult",
    "new_run_id",
]
