"""
StepExecutor: one model turn, normalized into run chunks.
"""

import asyncio

import pytest

from reloop.config import ModelNotFoundError, StepConfig
from reloop.domain import (
    FinishReason,
    ReasoningPart,
    SourceUrlPart,
    StreamState,
    TextPart,
    ToolPart,
    ToolState,
)
from reloop.llm import ModelRegistry, StreamChunk
from reloop.runtime import NoResponseError, StepExecutor
from tests.mocks import ListSink, ScriptedModel, text_turn, tool_turn

USER = [{"role": "user", "content": "hi"}]


def make_executor(model, tool_registry, **kwargs):
    return StepExecutor(ModelRegistry({"default": model}), tool_registry, **kwargs)


@pytest.mark.asyncio
async def test_text_step(tool_registry):
    model = ScriptedModel(turns=[text_turn("Hel", "lo")])
    sink = ListSink()

    result = await make_executor(model, tool_registry).execute(USER, StepConfig(), sink)

    assert [c.type for c in sink.items] == [
        "step-start",
        "text-delta",
        "text-delta",
        "text-done",
    ]
    assert "".join(c.delta for c in sink.items if c.type == "text-delta") == "Hello"
    assert result.finish_reason == FinishReason.STOP
    assert result.should_continue is False

    [part] = result.message.parts
    assert isinstance(part, TextPart)
    assert part.text == "Hello"
    assert part.state == StreamState.DONE


@pytest.mark.asyncio
async def test_tool_step_executes_tools_and_continues(tool_registry):
    model = ScriptedModel(turns=[tool_turn(("call_1", "echo", {"text": "hi"}))])
    sink = ListSink()

    result = await make_executor(model, tool_registry).execute(
        USER, StepConfig(tool_set="test"), sink
    )

    assert [c.type for c in sink.items] == [
        "step-start",
        "tool-call-start",
        "tool-call-delta",
        "tool-call-delta",
        "tool-call",
        "tool-result",
    ]
    streamed = "".join(c.input_text_delta for c in sink.items if c.type == "tool-call-delta")
    assert streamed == '{"text": "hi"}'

    assert result.finish_reason == FinishReason.TOOL_CALLS
    assert result.should_continue is True

    [part] = result.message.parts
    assert isinstance(part, ToolPart)
    assert part.tool_call_id == "call_1"
    assert part.tool_type == "tool-echo"
    assert part.state == ToolState.OUTPUT_AVAILABLE
    assert part.input == {"text": "hi"}
    assert part.output == {"echo": "hi"}

    tool_names = [t["function"]["name"] for t in model.calls[0]["tools"]]
    assert tool_names == ["echo", "explode", "delete_draft"]


@pytest.mark.asyncio
async def test_tool_exception_becomes_output_error(tool_registry):
    model = ScriptedModel(turns=[tool_turn(("call_1", "explode", {"reason": "kaput"}))])
    sink = ListSink()

    result = await make_executor(model, tool_registry).execute(
        USER, StepConfig(tool_set="test"), sink
    )

    [part] = result.message.parts
    assert part.state == ToolState.OUTPUT_ERROR
    assert part.error_text == "Tool execution failed: kaput"
    assert result.should_continue is True


@pytest.mark.asyncio
async def test_parallel_tool_results_follow_call_order(tool_registry):
    model = ScriptedModel(
        turns=[
            tool_turn(
                ("call_a", "echo", {"text": "a"}),
                ("call_b", "explode", {}),
                ("call_c", "echo", {"text": "c"}),
            )
        ]
    )
    sink = ListSink()

    result = await make_executor(model, tool_registry).execute(
        USER, StepConfig(tool_set="test"), sink
    )

    results = [c for c in sink.items if c.type == "tool-result"]
    assert [c.tool_call_id for c in results] == ["call_a", "call_b", "call_c"]
    assert [p.state for p in result.message.parts] == [
        ToolState.OUTPUT_AVAILABLE,
        ToolState.OUTPUT_ERROR,
        ToolState.OUTPUT_AVAILABLE,
    ]


@pytest.mark.asyncio
async def test_tool_requiring_approval_is_denied_without_handler(tool_registry):
    model = ScriptedModel(turns=[tool_turn(("call_1", "delete_draft", {"draft_id": "d1"}))])

    result = await make_executor(model, tool_registry).execute(
        USER, StepConfig(tool_set="test"), ListSink()
    )

    [part] = result.message.parts
    assert part.state == ToolState.OUTPUT_DENIED
    assert part.approval is not None
    assert part.approval.approved is False
    assert part.approval.reason == "No approval handler configured"


@pytest.mark.asyncio
async def test_tool_requiring_approval_runs_when_approved(tool_registry):
    requests = []

    async def approve(tool_name, args):
        requests.append((tool_name, args))
        return True, None

    model = ScriptedModel(turns=[tool_turn(("call_1", "delete_draft", {"draft_id": "d1"}))])

    result = await make_executor(model, tool_registry, approval_handler=approve).execute(
        USER, StepConfig(tool_set="test"), ListSink()
    )

    [part] = result.message.parts
    assert part.state == ToolState.OUTPUT_AVAILABLE
    assert part.output == "deleted d1"
    assert requests == [("delete_draft", {"draft_id": "d1"})]


@pytest.mark.asyncio
async def test_stop_with_tool_calls_still_continues(tool_registry):
    model = ScriptedModel(
        turns=[tool_turn(("call_1", "echo", {"text": "x"}), finish_reason="stop")]
    )

    result = await make_executor(model, tool_registry).execute(
        USER, StepConfig(tool_set="test"), ListSink()
    )

    assert result.finish_reason == FinishReason.TOOL_CALLS
    assert result.should_continue is True


@pytest.mark.asyncio
async def test_reasoning_block_closes_before_text(tool_registry):
    model = ScriptedModel(
        turns=[
            [
                StreamChunk(reasoning_content="thinking"),
                StreamChunk(content="answer"),
                StreamChunk(finish_reason="stop"),
            ]
        ]
    )
    sink = ListSink()

    result = await make_executor(model, tool_registry).execute(USER, StepConfig(), sink)

    assert [c.type for c in sink.items] == [
        "step-start",
        "reasoning-delta",
        "reasoning-done",
        "text-delta",
        "text-done",
    ]
    reasoning, text = result.message.parts
    assert isinstance(reasoning, ReasoningPart) and reasoning.text == "thinking"
    assert reasoning.state == StreamState.DONE
    assert isinstance(text, TextPart) and text.text == "answer"


@pytest.mark.asyncio
async def test_citations_become_source_parts(tool_registry):
    model = ScriptedModel(
        turns=[
            [
                StreamChunk(content="See docs."),
                StreamChunk(sources=[{"url": "https://example.com/docs", "title": "Docs"}]),
                StreamChunk(finish_reason="stop"),
            ]
        ]
    )

    result = await make_executor(model, tool_registry).execute(USER, StepConfig(), ListSink())

    sources = [p for p in result.message.parts if isinstance(p, SourceUrlPart)]
    assert [(s.url, s.title) for s in sources] == [("https://example.com/docs", "Docs")]


@pytest.mark.asyncio
async def test_system_prompt_is_prepended(tool_registry):
    model = ScriptedModel(turns=[text_turn("ok")])

    await make_executor(model, tool_registry).execute(
        USER, StepConfig(system="Be brief."), ListSink()
    )

    messages = model.calls[0]["messages"]
    assert messages[0] == {"role": "system", "content": "Be brief."}
    assert messages[1:] == USER
    assert model.calls[0]["tools"] is None


@pytest.mark.asyncio
async def test_stream_without_finish_reason_fails(tool_registry):
    model = ScriptedModel(turns=[[StreamChunk(content="partial")]])
    sink = ListSink()

    with pytest.raises(NoResponseError):
        await make_executor(model, tool_registry).execute(USER, StepConfig(), sink)

    # What was produced before the failure was already pushed downstream
    assert [c.type for c in sink.items] == ["step-start", "text-delta"]


@pytest.mark.asyncio
async def test_model_failure_is_wrapped(tool_registry):
    model = ScriptedModel(turns=[ConnectionError("network down")])

    with pytest.raises(NoResponseError) as exc_info:
        await make_executor(model, tool_registry).execute(USER, StepConfig(), ListSink())

    assert isinstance(exc_info.value.__cause__, ConnectionError)


@pytest.mark.asyncio
async def test_step_timeout(tool_registry):
    never = asyncio.Event()
    model = ScriptedModel(turns=[[StreamChunk(content="a"), never, StreamChunk(finish_reason="stop")]])

    with pytest.raises(NoResponseError, match="did not finish"):
        await make_executor(model, tool_registry).execute(
            USER, StepConfig(timeout=0.05), ListSink()
        )


@pytest.mark.asyncio
async def test_unknown_model_key(tool_registry):
    model = ScriptedModel(turns=[text_turn("unused")])
    sink = ListSink()

    with pytest.raises(ModelNotFoundError):
        await make_executor(model, tool_registry).execute(
            USER, StepConfig(model="missing"), sink
        )

    assert sink.items == []
    assert model.calls == []
