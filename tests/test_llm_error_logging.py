"""
OpenAI adapter: request logging, stream mapping, retry of stream creation,
and log redaction.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from openai import APIConnectionError
from openai.types.chat.chat_completion_chunk import (
    ChoiceDeltaToolCall,
    ChoiceDeltaToolCallFunction,
)

from reloop.llm.openai import OpenAIModel


def make_model(**kwargs) -> OpenAIModel:
    return OpenAIModel(
        id="test-model",
        name="test-model",
        model_name="gpt-4",
        api_key="test-key",
        **kwargs,
    )


def chunk(content=None, tool_calls=None, finish_reason=None, usage=None, **delta_extra):
    delta = SimpleNamespace(content=content, tool_calls=tool_calls, **delta_extra)
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason)],
        usage=usage,
    )


def stream_of(*chunks):
    async def _stream():
        for c in chunks:
            yield c

    return _stream()


@pytest.mark.asyncio
async def test_openai_request_logging_on_error():
    """Test that OpenAI request failures are logged with details."""
    model = make_model()
    model.client.chat.completions.create = AsyncMock(
        side_effect=Exception("Bad Request: Invalid parameter")
    )

    messages = [{"role": "user", "content": "test"}]
    tools = [{"type": "function", "function": {"name": "test_tool"}}]

    with patch("reloop.llm.openai.logger") as mock_logger:
        with pytest.raises(Exception, match="Bad Request"):
            async for _ in model.arun_stream(messages, tools):
                pass

        assert mock_logger.error.called
        call_args = mock_logger.error.call_args
        assert call_args[0][0] == "llm_request_failed"

        kwargs = call_args[1]
        assert kwargs["error_type"] == "Exception"
        assert kwargs["messages_count"] == 1
        assert kwargs["tools_count"] == 1
        assert kwargs["exc_info"] is True

    # Non-transient errors are not retried
    assert model.client.chat.completions.create.await_count == 1


@pytest.mark.asyncio
async def test_openai_request_logging_on_success():
    model = make_model()
    model.client.chat.completions.create = AsyncMock(
        return_value=stream_of(chunk(content="test response"))
    )

    with patch("reloop.llm.openai.logger") as mock_logger:
        chunks = [c async for c in model.arun_stream([{"role": "user", "content": "test"}])]

        call_args = mock_logger.info.call_args
        assert call_args[0][0] == "llm_request"
        assert call_args[1]["model"] == "gpt-4"
        assert call_args[1]["messages_count"] == 1

    assert [c.content for c in chunks] == ["test response"]


@pytest.mark.asyncio
async def test_stream_mapping():
    model = make_model()
    model.client.chat.completions.create = AsyncMock(
        return_value=stream_of(
            chunk(reasoning_content="hmm"),
            chunk(content="Hi"),
            chunk(
                tool_calls=[
                    ChoiceDeltaToolCall(
                        index=0,
                        id="call_1",
                        type="function",
                        function=ChoiceDeltaToolCallFunction(name="echo", arguments="{}"),
                    )
                ]
            ),
            chunk(
                annotations=[
                    {
                        "type": "url_citation",
                        "url_citation": {"url": "https://example.com", "title": "Example"},
                    }
                ]
            ),
            chunk(finish_reason="tool_calls"),
            SimpleNamespace(
                choices=[],
                usage=SimpleNamespace(prompt_tokens=3, completion_tokens=4, total_tokens=7),
            ),
        )
    )

    chunks = [c async for c in model.arun_stream([{"role": "user", "content": "hi"}])]

    assert chunks[0].reasoning_content == "hmm"
    assert chunks[1].content == "Hi"
    assert chunks[2].tool_calls == [
        {
            "index": 0,
            "id": "call_1",
            "type": "function",
            "function": {"name": "echo", "arguments": "{}"},
        }
    ]
    assert chunks[3].sources == [{"url": "https://example.com", "title": "Example"}]
    assert chunks[4].finish_reason == "tool_calls"
    assert chunks[5].usage == {"input_tokens": 3, "output_tokens": 4, "total_tokens": 7}

    params = model.client.chat.completions.create.await_args.kwargs
    assert params["stream"] is True
    assert params["model"] == "gpt-4"


@pytest.mark.asyncio
async def test_connection_errors_are_retried_before_streaming():
    model = make_model(max_attempts=2)
    error = APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1"))
    model.client.chat.completions.create = AsyncMock(
        side_effect=[error, stream_of(chunk(content="ok", finish_reason="stop"))]
    )

    chunks = [c async for c in model.arun_stream([{"role": "user", "content": "hi"}])]

    assert [c.content for c in chunks] == ["ok"]
    assert model.client.chat.completions.create.await_count == 2


def test_tokens_not_redacted_in_logs():
    """Test that token-related fields are not redacted in logs."""
    from structlog.testing import CapturingLogger

    from reloop.utils.logging import filter_sensitive_data

    logger = CapturingLogger()

    event_dict = {
        "event": "test",
        "tokens": 100,
        "total_tokens": 150,
        "input_tokens": 50,
        "output_tokens": 100,
        "api_key": "secret-key",
        "password": "secret-pass",
        "access_token": "abc",
        "Authorization": "Bearer abc",
    }

    filtered = filter_sensitive_data(logger, "info", event_dict.copy())

    assert filtered["tokens"] == 100
    assert filtered["total_tokens"] == 150
    assert filtered["input_tokens"] == 50
    assert filtered["output_tokens"] == 100

    assert filtered["api_key"] == "***REDACTED***"
    assert filtered["password"] == "***REDACTED***"
    assert filtered["access_token"] == "***REDACTED***"
    assert filtered["Authorization"] == "***REDACTED***"
