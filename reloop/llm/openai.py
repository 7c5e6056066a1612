"""
OpenAI Model implementation - Pure LLM Interface
"""

import json
import os
from typing import Any, AsyncIterator

from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)
from pydantic import ConfigDict, Field, SecretStr

from reloop.llm.base import Model, StreamChunk
from reloop.utils.logging import get_logger
from reloop.utils.retry import retry_async

logger = get_logger(__name__)

# Only establishing the stream is retried; a stream that already produced
# chunks is never replayed.
OPENAI_RETRYABLE = (
    APIConnectionError,
    RateLimitError,
    InternalServerError,
    APITimeoutError,
)


class OpenAIModel(Model):
    """
    OpenAI Model implementation.

    Supports all OpenAI chat-completions compatible endpoints.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, protected_namespaces=())

    model_name: str | None = Field(
        default=None,
        description="Actual model name for API calls (e.g., gpt-4o-mini)",
    )
    api_key: SecretStr | None = Field(default=None, exclude=True)
    base_url: str | None = Field(default=None)
    client: AsyncOpenAI | None = Field(default=None, exclude=True)
    max_attempts: int = Field(default=3, ge=1)

    frequency_penalty: float = Field(default=0.0, ge=-2.0, le=2.0)
    presence_penalty: float = Field(default=0.0, ge=-2.0, le=2.0)

    def model_post_init(self, __context) -> None:
        """Initialize AsyncOpenAI client after model creation."""
        from reloop.config import settings

        # Resolve API Key: argument > config > env
        if self.api_key:
            resolved_api_key = self.api_key.get_secret_value()
        elif settings.openai_api_key:
            resolved_api_key = settings.openai_api_key.get_secret_value()
        else:
            resolved_api_key = os.getenv("OPENAI_API_KEY")

        resolved_base_url = (
            self.base_url or settings.openai_base_url or os.getenv("OPENAI_BASE_URL")
        )

        if self.client is None:
            self.client = AsyncOpenAI(
                api_key=resolved_api_key,
                base_url=resolved_base_url,
            )

        super().model_post_init(__context)

    async def _create_stream(self, params: dict[str, Any]):
        retrying = retry_async(max_attempts=self.max_attempts, exceptions=OPENAI_RETRYABLE)
        return await retrying(self.client.chat.completions.create)(**params)

    async def arun_stream(
        self,
        messages: list[dict],
        tools: list[dict] | None = None,
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """
        Call OpenAI API and return standardized streaming output.

        Args:
            messages: OpenAI format message list
            tools: OpenAI format tool definitions
            options: Extra request parameters merged into the call

        Yields:
            StreamChunk: Standardized streaming output chunk
        """
        actual_model = self.model_name or self.name
        params: dict[str, Any] = {
            "model": actual_model,
            "messages": messages,
            "temperature": self.temperature,
            "frequency_penalty": self.frequency_penalty,
            "presence_penalty": self.presence_penalty,
            "stream": True,
            "stream_options": {"include_usage": True},
        }

        if self.top_p is not None:
            params["top_p"] = self.top_p

        if self.max_tokens:
            params["max_tokens"] = self.max_tokens

        if tools:
            params["tools"] = tools

        if options:
            params.update(options)

        logger.info(
            "llm_request",
            model=actual_model,
            messages_count=len(messages),
            tools_count=len(tools) if tools else 0,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        logger.debug("llm_request_detail", detail=json.dumps(params, ensure_ascii=False, default=str))

        try:
            stream = await self._create_stream(params)
        except Exception as e:
            logger.error(
                "llm_request_failed",
                model=actual_model,
                error=str(e),
                error_type=type(e).__name__,
                messages_count=len(messages),
                tools_count=len(tools) if tools else 0,
                exc_info=True,
            )
            raise

        async for chunk in stream:
            stream_chunk = StreamChunk()

            if chunk.usage:
                stream_chunk.usage = {
                    "input_tokens": chunk.usage.prompt_tokens,
                    "output_tokens": chunk.usage.completion_tokens,
                    "total_tokens": chunk.usage.total_tokens,
                }

            if chunk.choices:
                choice = chunk.choices[0]
                delta = choice.delta

                if delta.content:
                    stream_chunk.content = delta.content

                # Reasoning models on compatible endpoints
                reasoning = getattr(delta, "reasoning_content", None)
                if reasoning:
                    stream_chunk.reasoning_content = reasoning

                if delta.tool_calls:
                    stream_chunk.tool_calls = [
                        tc.model_dump(exclude_none=True) for tc in delta.tool_calls
                    ]

                annotations = getattr(delta, "annotations", None)
                if annotations:
                    stream_chunk.sources = _extract_sources(annotations)

                if choice.finish_reason:
                    stream_chunk.finish_reason = choice.finish_reason

            if (
                stream_chunk.content is not None
                or stream_chunk.reasoning_content is not None
                or stream_chunk.tool_calls is not None
                or stream_chunk.sources
                or stream_chunk.usage is not None
                or stream_chunk.finish_reason is not None
            ):
                yield stream_chunk


def _extract_sources(annotations: list) -> list[dict]:
    sources = []
    for annotation in annotations:
        data = annotation if isinstance(annotation, dict) else annotation.model_dump()
        citation = data.get("url_citation")
        if data.get("type") == "url_citation" and citation and citation.get("url"):
            sources.append({"url": citation["url"], "title": citation.get("title")})
    return sources


__all__ = ["OpenAIModel"]
