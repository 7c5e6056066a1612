"""
MessageAssembler - folds a step's chunk stream into message parts.

Used as a second sink next to the run's wire, so the parts persisted for a
step are built from exactly the chunks clients received.
"""

from reloop.domain import (
    Chunk,
    DataProgressChunk,
    DataProgressPart,
    FileChunk,
    FilePart,
    Message,
    MessageRole,
    Part,
    ReasoningDeltaChunk,
    ReasoningDoneChunk,
    ReasoningPart,
    SourceUrlChunk,
    SourceUrlPart,
    StreamState,
    TextDeltaChunk,
    TextDoneChunk,
    TextPart,
    ToolCallChunk,
    ToolCallDeltaChunk,
    ToolCallStartChunk,
    ToolPart,
    ToolResultChunk,
    ToolState,
)
from reloop.runtime.wire import Sink


class MessageAssembler(Sink):
    def __init__(self) -> None:
        super().__init__()
        self.parts: list[Part] = []
        self._texts: dict[str, TextPart] = {}
        self._reasoning: dict[str, ReasoningPart] = {}
        self._tools: dict[str, ToolPart] = {}
        self._tool_input_text: dict[str, str] = {}

    async def write(self, item: Chunk) -> None:
        self.apply(item)

    def apply(self, chunk: Chunk) -> None:
        if isinstance(chunk, TextDeltaChunk):
            self._text(chunk.id).text += chunk.delta
        elif isinstance(chunk, TextDoneChunk):
            self._text(chunk.id).state = StreamState.DONE
        elif isinstance(chunk, ReasoningDeltaChunk):
            self._reasoning_part(chunk.id).text += chunk.delta
        elif isinstance(chunk, ReasoningDoneChunk):
            self._reasoning_part(chunk.id).state = StreamState.DONE
        elif isinstance(chunk, ToolCallStartChunk):
            self._tool(chunk.tool_call_id, chunk.tool_name)
        elif isinstance(chunk, ToolCallDeltaChunk):
            part = self._tools.get(chunk.tool_call_id)
            if part is None:
                raise ValueError(f"Input delta for unknown tool call {chunk.tool_call_id}")
            self._tool_input_text[chunk.tool_call_id] += chunk.input_text_delta
            part.input = self._tool_input_text[chunk.tool_call_id]
        elif isinstance(chunk, ToolCallChunk):
            part = self._tool(chunk.tool_call_id, chunk.tool_name)
            part.input = chunk.input
            part.state = ToolState.INPUT_AVAILABLE
        elif isinstance(chunk, ToolResultChunk):
            part = self._tools.get(chunk.tool_call_id)
            if part is None:
                raise ValueError(f"Result for unknown tool call {chunk.tool_call_id}")
            if part.state.is_terminal:
                raise ValueError(f"Tool call {chunk.tool_call_id} already has a result")
            part.state = chunk.state
            part.output = chunk.output
            part.error_text = chunk.error_text
            part.approval = chunk.approval
        elif isinstance(chunk, SourceUrlChunk):
            self.parts.append(
                SourceUrlPart(source_id=chunk.source_id, url=chunk.url, title=chunk.title)
            )
        elif isinstance(chunk, FileChunk):
            self.parts.append(
                FilePart(media_type=chunk.media_type, url=chunk.url, filename=chunk.filename)
            )
        elif isinstance(chunk, DataProgressChunk):
            self.parts.append(DataProgressPart(data=dict(chunk.data)))
        # start, step-start, finish and error carry no content

    def message(self, message_id: str | None = None) -> Message:
        parts = [p.model_copy(deep=True) for p in self.parts]
        if message_id is None:
            return Message(role=MessageRole.ASSISTANT, parts=parts)
        return Message(id=message_id, role=MessageRole.ASSISTANT, parts=parts)

    def _text(self, block_id: str) -> TextPart:
        part = self._texts.get(block_id)
        if part is None:
            part = self._texts[block_id] = TextPart()
            self.parts.append(part)
        return part

    def _reasoning_part(self, block_id: str) -> ReasoningPart:
        part = self._reasoning.get(block_id)
        if part is None:
            part = self._reasoning[block_id] = ReasoningPart()
            self.parts.append(part)
        return part

    def _tool(self, tool_call_id: str, tool_name: str) -> ToolPart:
        part = self._tools.get(tool_call_id)
        if part is None:
            part = self._tools[tool_call_id] = ToolPart(
                tool_call_id=tool_call_id, tool_name=tool_name
            )
            self._tool_input_text[tool_call_id] = ""
            self.parts.append(part)
        return part


__all__ = ["MessageAssembler"]
