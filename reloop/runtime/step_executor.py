"""
StepExecutor - one model turn.

Responsibilities:
- Invoke the model with the conversation and the step's tool set
- Normalize provider stream chunks into the run event vocabulary
- Execute requested tools and emit their results
- Fan the normalized stream out to the run sink and the message assembler

Does NOT handle:
- Looping over steps (see tool_loop)
- Run state or persistence of the event log
"""

import asyncio
from dataclasses import dataclass
from typing import Any, AsyncIterator
from uuid import uuid4

from reloop.config import StepConfig
from reloop.domain import (
    Chunk,
    FinishReason,
    ReasoningDeltaChunk,
    ReasoningDoneChunk,
    SourceUrlChunk,
    StepResult,
    StepStartChunk,
    TextDeltaChunk,
    TextDoneChunk,
    ToolCallChunk,
    ToolCallDeltaChunk,
    ToolCallStartChunk,
    ToolResultChunk,
    ToolState,
)
from reloop.llm import Model, ModelRegistry, StreamChunk
from reloop.runtime.assembler import MessageAssembler
from reloop.runtime.bridge import pipe
from reloop.runtime.errors import NoResponseError
from reloop.runtime.wire import Sink
from reloop.tools import Tool, ToolRegistry
from reloop.tools.executor import ApprovalHandler, ToolExecutor, parse_arguments
from reloop.utils.logging import get_logger

logger = get_logger(__name__)


class ToolCallAccumulator:
    """
    Accumulate streaming tool calls.

    OpenAI returns tool calls incrementally, need to accumulate before execution.
    """

    def __init__(self):
        self._calls: dict[int, dict] = {}

    def accumulate(self, delta_calls: list[dict]) -> list[int]:
        """Accumulate incremental tool calls. Returns the touched indices."""
        touched = []
        for tc in delta_calls:
            idx = tc.get("index", 0)

            if idx not in self._calls:
                self._calls[idx] = {
                    "id": None,
                    "type": "function",
                    "function": {"name": "", "arguments": ""},
                }

            acc = self._calls[idx]

            if tc.get("id"):
                acc["id"] = tc["id"]

            if tc.get("type"):
                acc["type"] = tc["type"]

            if tc.get("function"):
                fn = tc["function"]
                if fn.get("name"):
                    acc["function"]["name"] += fn["name"]
                if fn.get("arguments"):
                    acc["function"]["arguments"] += fn["arguments"]

            touched.append(idx)
        return touched

    def get(self, idx: int) -> dict:
        return self._calls[idx]

    def indices(self) -> list[int]:
        return sorted(self._calls)

    def finalize(self) -> list[dict]:
        """Get final complete tool calls, in index order."""
        return [
            self._calls[idx]
            for idx in sorted(self._calls)
            if self._calls[idx]["id"] is not None
        ]


class StreamNormalizer:
    """
    Converts provider StreamChunks into run chunks.

    Text and reasoning each form blocks with a generated id; switching
    between them, or starting tool calls, closes the open block. Tool-call
    input is announced once id and name are known and streamed as deltas.
    """

    def __init__(self):
        self.finish_reason: str | None = None
        self.usage: dict[str, int] | None = None
        self._text_id: str | None = None
        self._reasoning_id: str | None = None
        self._accumulator = ToolCallAccumulator()
        self._announced: dict[int, int] = {}  # index -> announced argument length

    def feed(self, raw: StreamChunk) -> list[Chunk]:
        out: list[Chunk] = []

        if raw.reasoning_content:
            out.extend(self._close_text())
            if self._reasoning_id is None:
                self._reasoning_id = f"reasoning_{uuid4().hex[:12]}"
            out.append(ReasoningDeltaChunk(id=self._reasoning_id, delta=raw.reasoning_content))

        if raw.content:
            out.extend(self._close_reasoning())
            if self._text_id is None:
                self._text_id = f"text_{uuid4().hex[:12]}"
            out.append(TextDeltaChunk(id=self._text_id, delta=raw.content))

        if raw.tool_calls:
            out.extend(self._close_reasoning())
            out.extend(self._close_text())
            for idx in self._accumulator.accumulate(raw.tool_calls):
                out.extend(self._announce(idx))

        for source in raw.sources or []:
            url = source.get("url")
            if not url:
                continue
            out.append(
                SourceUrlChunk(
                    source_id=source.get("id") or f"src_{uuid4().hex[:12]}",
                    url=url,
                    title=source.get("title"),
                )
            )

        if raw.usage:
            self.usage = raw.usage
        if raw.finish_reason:
            self.finish_reason = raw.finish_reason

        return out

    def close(self) -> list[Chunk]:
        """Close open blocks and announce tool calls not yet announced."""
        out = self._close_reasoning() + self._close_text()
        for idx in self._accumulator.indices():
            out.extend(self._announce(idx))
        return out

    def tool_calls(self) -> list[dict]:
        return self._accumulator.finalize()

    def _announce(self, idx: int) -> list[Chunk]:
        call = self._accumulator.get(idx)
        call_id = call["id"]
        name = call["function"]["name"]
        if not call_id or not name:
            return []

        out: list[Chunk] = []
        if idx not in self._announced:
            out.append(ToolCallStartChunk(tool_call_id=call_id, tool_name=name))
            self._announced[idx] = 0

        arguments = call["function"]["arguments"]
        sent = self._announced[idx]
        if len(arguments) > sent:
            out.append(
                ToolCallDeltaChunk(tool_call_id=call_id, input_text_delta=arguments[sent:])
            )
            self._announced[idx] = len(arguments)
        return out

    def _close_text(self) -> list[Chunk]:
        if self._text_id is None:
            return []
        chunk = TextDoneChunk(id=self._text_id)
        self._text_id = None
        return [chunk]

    def _close_reasoning(self) -> list[Chunk]:
        if self._reasoning_id is None:
            return []
        chunk = ReasoningDoneChunk(id=self._reasoning_id)
        self._reasoning_id = None
        return [chunk]


@dataclass
class _StepOutcome:
    finish_reason: FinishReason | None = None
    usage: dict[str, int] | None = None


class StepExecutor:
    """
    Executes one model turn per call.

    Models and tool sets are resolved by key from the registries on every
    call, so the step configuration stays plain serializable data.
    """

    def __init__(
        self,
        models: ModelRegistry,
        tools: ToolRegistry,
        approval_handler: ApprovalHandler | None = None,
        default_timeout: float | None = None,
    ):
        self.models = models
        self.tools = tools
        self.approval_handler = approval_handler
        self.default_timeout = default_timeout

    async def execute(
        self,
        messages: list[dict[str, Any]],
        config: StepConfig,
        sink: Sink,
    ) -> StepResult:
        """
        Run one step, writing every chunk to ``sink`` as it is produced.

        Args:
            messages: Conversation history in OpenAI format
            config: Step configuration
            sink: Live event sink of the run

        Returns:
            StepResult: The step's assistant message and finish reason

        Raises:
            NoResponseError: The model call failed, timed out, or ended
                without a finish reason
        """
        model = self.models.resolve(config.model)
        tools = self.tools.resolve(config.tool_set)

        outcome = _StepOutcome()
        assembler = MessageAssembler()
        await pipe(self._stream(model, tools, messages, config, outcome), sink, assembler)

        result = StepResult(message=assembler.message(), finish_reason=outcome.finish_reason)
        logger.info(
            "step_completed",
            model=config.model,
            finish_reason=result.finish_reason.value,
            parts=len(result.message.parts),
            usage=outcome.usage,
        )
        return result

    async def _stream(
        self,
        model: Model,
        tools: list[Tool],
        messages: list[dict[str, Any]],
        config: StepConfig,
        outcome: _StepOutcome,
    ) -> AsyncIterator[Chunk]:
        yield StepStartChunk()

        request = list(messages)
        if config.system:
            request.insert(0, {"role": "system", "content": config.system})
        tool_schemas = [t.to_openai_schema() for t in tools] or None

        timeout = config.timeout or self.default_timeout
        deadline = asyncio.get_running_loop().time() + timeout if timeout else None

        normalizer = StreamNormalizer()
        stream = model.arun_stream(
            request, tools=tool_schemas, options=dict(config.provider_options) or None
        )
        try:
            while True:
                try:
                    async with asyncio.timeout_at(deadline):
                        raw = await anext(stream)
                except StopAsyncIteration:
                    break
                except TimeoutError as e:
                    logger.error("step_timeout", model=config.model, timeout=timeout)
                    raise NoResponseError(f"Model did not finish within {timeout}s") from e
                except Exception as e:
                    logger.error(
                        "step_model_failed", model=config.model, error=str(e), exc_info=True
                    )
                    raise NoResponseError(f"Model call failed: {e}") from e

                for chunk in normalizer.feed(raw):
                    yield chunk
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        if normalizer.finish_reason is None:
            raise NoResponseError("Model stream ended without a finish reason")

        for chunk in normalizer.close():
            yield chunk

        finish_reason = FinishReason.from_provider(normalizer.finish_reason)
        calls = normalizer.tool_calls()

        for call in calls:
            raw_args = call["function"]["arguments"]
            try:
                tool_input: Any = parse_arguments(raw_args)
            except ValueError:
                tool_input = raw_args
            yield ToolCallChunk(
                tool_call_id=call["id"],
                tool_name=call["function"]["name"],
                input=tool_input,
            )

        if calls:
            # Executed tool calls always hand control back to the model
            if finish_reason == FinishReason.STOP:
                finish_reason = FinishReason.TOOL_CALLS

            executor = ToolExecutor(tools, self.approval_handler)
            results = await executor.execute_batch(calls)
            for r in results:
                state = r.state
                yield ToolResultChunk(
                    tool_call_id=r.tool_call_id,
                    state=state,
                    output=r.output if state == ToolState.OUTPUT_AVAILABLE else None,
                    error_text=r.error if state == ToolState.OUTPUT_ERROR else None,
                    approval=r.approval,
                )

        outcome.finish_reason = finish_reason
        outcome.usage = normalizer.usage


__all__ = ["StepExecutor", "StreamNormalizer", "ToolCallAccumulator"]
