"""
Chat naming.

A chat still carrying the default title is renamed from its first user
message. Naming is best effort: a failure is logged and the chat keeps its
title.
"""

from reloop.domain import Message, TextPart
from reloop.llm import ModelRegistry
from reloop.storage import DEFAULT_CHAT_TITLE, MessageStore
from reloop.utils.logging import get_logger

logger = get_logger(__name__)

NAMING_PROMPT = """You are a chat naming assistant. Given a user's message, generate a short, descriptive title for the conversation.

Rules:
- Keep it under 50 characters
- Be concise and descriptive
- Don't use quotes or special formatting
- Focus on the main topic or intent
- Use title case

Respond with ONLY the title, nothing else."""

MAX_TITLE_LENGTH = 100


class ChatNamer:
    def __init__(
        self,
        models: ModelRegistry,
        messages: MessageStore,
        model: str = "default",
        system_prompt: str = NAMING_PROMPT,
    ):
        self.models = models
        self.messages = messages
        self.model = model
        self.system_prompt = system_prompt

    async def name_chat(self, chat_id: str, user_message: Message) -> str | None:
        """Returns the new title, or None when the chat was left as it was."""
        text = next((p.text for p in user_message.parts if isinstance(p, TextPart)), None)
        if not text:
            return None

        title = await self.messages.get_chat_title(chat_id)
        if title != DEFAULT_CHAT_TITLE:
            logger.debug("chat_already_named", chat_id=chat_id, title=title)
            return None

        try:
            model = self.models.resolve(self.model)
            generated = ""
            async for chunk in model.arun_stream(
                [
                    {"role": "system", "content": self.system_prompt},
                    {"role": "user", "content": text},
                ]
            ):
                if chunk.content:
                    generated += chunk.content

            new_title = generated.strip()[:MAX_TITLE_LENGTH]
            if not new_title:
                return None
            await self.messages.set_chat_title(chat_id, new_title)
        except Exception as e:
            logger.error("chat_naming_failed", chat_id=chat_id, error=str(e), exc_info=True)
            return None

        logger.info("chat_renamed", chat_id=chat_id, title=new_title)
        return new_title


__all__ = ["ChatNamer", "NAMING_PROMPT"]
