"""
Shared test doubles: scripted models, recording sinks, turn builders.
"""

import asyncio
import json
from typing import Any

from pydantic import Field

from reloop.llm import Model, StreamChunk
from reloop.runtime import Sink
from reloop.tools import tool


class ScriptedModel(Model):
    """
    Replays one scripted turn per call.

    A turn is a list of StreamChunks, optionally interleaved with
    asyncio.Event objects the stream waits on, or an Exception raised when
    the turn starts.
    """

    id: str = "test/scripted"
    name: str = "scripted"
    turns: list[Any] = Field(default_factory=list)
    calls: list[dict] = Field(default_factory=list)

    async def arun_stream(self, messages, tools=None, options=None):
        self.calls.append({"messages": messages, "tools": tools, "options": options})
        turn = self.turns[len(self.calls) - 1]
        if isinstance(turn, Exception):
            raise turn
        for item in turn:
            if isinstance(item, asyncio.Event):
                await item.wait()
            elif isinstance(item, Exception):
                raise item
            else:
                yield item


class ListSink(Sink):
    def __init__(self):
        super().__init__()
        self.items: list = []

    async def write(self, item):
        self.items.append(item)


class FailingSink(Sink):
    def __init__(self, fail_at: int):
        super().__init__()
        self.fail_at = fail_at
        self.items: list = []

    async def write(self, item):
        if len(self.items) == self.fail_at:
            raise IOError("sink unavailable")
        self.items.append(item)


def text_turn(*deltas: str, finish_reason: str = "stop") -> list[StreamChunk]:
    return [StreamChunk(content=d) for d in deltas] + [
        StreamChunk(finish_reason=finish_reason, usage={"total_tokens": 10})
    ]


def tool_turn(*calls: tuple[str, str, dict], finish_reason: str = "tool_calls") -> list[StreamChunk]:
    """Each call is (call_id, tool_name, arguments), streamed in two pieces."""
    chunks = []
    for index, (call_id, name, args) in enumerate(calls):
        encoded = json.dumps(args)
        half = len(encoded) // 2
        chunks.append(
            StreamChunk(
                tool_calls=[
                    {
                        "index": index,
                        "id": call_id,
                        "type": "function",
                        "function": {"name": name, "arguments": encoded[:half]},
                    }
                ]
            )
        )
        chunks.append(
            StreamChunk(tool_calls=[{"index": index, "function": {"arguments": encoded[half:]}}])
        )
    chunks.append(StreamChunk(finish_reason=finish_reason))
    return chunks


@tool
def echo(text: str) -> dict:
    """Echo the text back."""
    return {"echo": text}


@tool
def explode(reason: str = "boom") -> str:
    """Always fails."""
    raise RuntimeError(reason)


@tool(requires_approval=True)
def delete_draft(draft_id: str) -> str:
    """Delete a saved draft."""
    return f"deleted {draft_id}"


TEST_TOOLS = [echo, explode, delete_draft]
