"""
Adapters for converting between domain models and external formats.

This module handles all format conversions, keeping domain models pure.
"""

import json
from typing import Any

from .messages import Message, MessageRole
from .parts import FilePart, ReasoningPart, TextPart, ToolPart, ToolState


def _dump_output(output: Any) -> str:
    if isinstance(output, str):
        return output
    return json.dumps(output, ensure_ascii=False, default=str)


class MessageAdapter:
    """Adapter for converting Messages to LLM message format (OpenAI-compatible)"""

    @staticmethod
    def to_model_messages(messages: list[Message]) -> list[dict[str, Any]]:
        """
        Convert conversation history to LLM messages.

        Assistant messages that span several steps are split back into one
        assistant message per step, each followed by its tool results.

        Args:
            messages: Conversation history in production order

        Returns:
            list: Messages in OpenAI format
        """
        result: list[dict[str, Any]] = []
        for message in messages:
            if message.role == MessageRole.USER:
                user_msg = MessageAdapter._user_message(message)
                if user_msg is not None:
                    result.append(user_msg)
            else:
                result.extend(MessageAdapter._assistant_messages(message))
        return result

    @staticmethod
    def _user_message(message: Message) -> dict[str, Any] | None:
        texts = [p.text for p in message.parts if isinstance(p, TextPart)]
        images = [
            p for p in message.parts
            if isinstance(p, FilePart) and p.media_type.startswith("image/")
        ]

        if not texts and not images:
            return None

        if not images:
            return {"role": "user", "content": "\n".join(texts)}

        content: list[dict[str, Any]] = [{"type": "text", "text": t} for t in texts]
        content.extend(
            {"type": "image_url", "image_url": {"url": img.url}} for img in images
        )
        return {"role": "user", "content": content}

    @staticmethod
    def _assistant_messages(message: Message) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        texts: list[str] = []
        reasoning: list[str] = []
        tools: list[ToolPart] = []

        def flush() -> None:
            if not texts and not reasoning and not tools:
                return
            msg: dict[str, Any] = {"role": "assistant", "content": "".join(texts) or None}
            if reasoning:
                msg["reasoning_content"] = "".join(reasoning)
            if tools:
                msg["tool_calls"] = [
                    {
                        "id": t.tool_call_id,
                        "type": "function",
                        "function": {
                            "name": t.tool_name,
                            "arguments": t.input if isinstance(t.input, str) else json.dumps(t.input or {}),
                        },
                    }
                    for t in tools
                ]
            out.append(msg)
            out.extend(MessageAdapter._tool_message(t) for t in tools)
            texts.clear()
            reasoning.clear()
            tools.clear()

        for part in message.parts:
            # Text after tool results starts the next step
            if isinstance(part, (TextPart, ReasoningPart)) and tools:
                flush()

            if isinstance(part, TextPart):
                texts.append(part.text)
            elif isinstance(part, ReasoningPart):
                reasoning.append(part.text)
            elif isinstance(part, ToolPart) and part.state.is_terminal:
                tools.append(part)
            # source-url, file and data parts are display-only

        flush()
        return out

    @staticmethod
    def _tool_message(part: ToolPart) -> dict[str, Any]:
        if part.state == ToolState.OUTPUT_AVAILABLE:
            content = _dump_output(part.output)
        elif part.state == ToolState.OUTPUT_ERROR:
            content = f"Error: {part.error_text or 'tool execution failed'}"
        else:
            reason = part.approval.reason if part.approval else None
            content = f"Tool call was denied: {reason or 'no reason given'}"

        return {
            "role": "tool",
            "tool_call_id": part.tool_call_id,
            "name": part.tool_name,
            "content": content,
        }


def prepare_history(messages: list[Message]) -> tuple[list[Message], str | None]:
    """
    Drop interrupted assistant placeholders from a persisted conversation.

    Returns:
        The history to feed the model and, when the conversation ends in an
        interrupted placeholder, that placeholder's run id so the caller can
        reconnect to it. Placeholders followed by later turns are left out
        of the history but not offered for resumption.
    """
    history = [m for m in messages if not m.is_interrupted]
    if messages and messages[-1].is_interrupted:
        return history, messages[-1].run_id
    return history, None


__all__ = ["MessageAdapter", "prepare_history"]
