"""
Store interfaces and in-memory implementations.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from reloop.domain import (
    Chunk,
    Message,
    MessageRole,
    Part,
    RunRecord,
    RunStatus,
    dump_chunk,
    parse_chunk,
)
from reloop.storage.records import PartRecord, part_to_record, record_to_part


DEFAULT_CHAT_TITLE = "New chat"


class PersistenceError(Exception):
    """Storage backend rejected or failed a write."""

    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageRow(BaseModel):
    id: str
    chat_id: str
    role: MessageRole
    run_id: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class MessageStore(ABC):
    """
    Chat and message persistence.

    Messages are never edited once written; later content is appended as
    new part records.
    """

    @abstractmethod
    async def ensure_chat(self, chat_id: str, user_id: str) -> bool:
        """Create the chat for ``user_id`` if missing. False if another user owns it."""
        pass

    @abstractmethod
    async def verify_chat_ownership(self, chat_id: str, user_id: str) -> bool:
        pass

    @abstractmethod
    async def get_chat_title(self, chat_id: str) -> str | None:
        """Title of the chat, None if the chat does not exist."""
        pass

    @abstractmethod
    async def set_chat_title(self, chat_id: str, title: str) -> None:
        pass

    @abstractmethod
    async def persist_message(
        self, chat_id: str, message: Message, run_id: str | None = None
    ) -> str:
        """Insert the message row and its parts. Returns the message id."""
        pass

    @abstractmethod
    async def insert_parts(self, chat_id: str, message_id: str, parts: list[Part]) -> None:
        """Append parts after any already stored for the message."""
        pass

    @abstractmethod
    async def get_chat_messages(self, chat_id: str) -> list[Message]:
        """Messages of a chat in insertion order, parts in production order."""
        pass

    async def create_message(self, chat_id: str, message_id: str, run_id: str | None) -> str:
        """Create an empty assistant message, the placeholder a run fills in."""
        return await self.persist_message(
            chat_id,
            Message(id=message_id, role=MessageRole.ASSISTANT, parts=[]),
            run_id=run_id,
        )


class RunStore(ABC):
    """
    Run records and their append-only event logs.

    ``append_event`` accepts only the next index, so each log has exactly
    one writer and readers can page through it by offset.
    """

    @abstractmethod
    async def create_run(self, run: RunRecord) -> None:
        pass

    @abstractmethod
    async def get_run(self, run_id: str) -> RunRecord | None:
        pass

    @abstractmethod
    async def update_run(
        self,
        run_id: str,
        status: RunStatus,
        error: str | None = None,
    ) -> None:
        pass

    @abstractmethod
    async def append_event(self, run_id: str, index: int, chunk: Chunk) -> None:
        pass

    @abstractmethod
    async def get_events(self, run_id: str, start_index: int = 0) -> list[Chunk]:
        """Events at ``index >= start_index`` in order."""
        pass

    @abstractmethod
    async def count_events(self, run_id: str) -> int:
        pass


class InMemoryMessageStore(MessageStore):
    """
    In-memory implementation (for testing and development)
    """

    def __init__(self):
        self.chats: dict[str, str] = {}  # chat_id -> owner user_id
        self.titles: dict[str, str] = {}  # chat_id -> title
        self.messages: dict[str, list[MessageRow]] = {}  # chat_id -> rows
        self.parts: dict[str, list[PartRecord]] = {}  # message_id -> records

    async def ensure_chat(self, chat_id: str, user_id: str) -> bool:
        owner = self.chats.setdefault(chat_id, user_id)
        self.titles.setdefault(chat_id, DEFAULT_CHAT_TITLE)
        return owner == user_id

    async def verify_chat_ownership(self, chat_id: str, user_id: str) -> bool:
        return self.chats.get(chat_id) == user_id

    async def get_chat_title(self, chat_id: str) -> str | None:
        return self.titles.get(chat_id)

    async def set_chat_title(self, chat_id: str, title: str) -> None:
        if chat_id not in self.titles:
            raise PersistenceError(f"Chat {chat_id} not found")
        self.titles[chat_id] = title

    async def persist_message(
        self, chat_id: str, message: Message, run_id: str | None = None
    ) -> str:
        if message.id in self.parts:
            raise PersistenceError(f"Message {message.id} already exists")
        # Records first: a part that cannot be stored leaves no row behind
        records = [
            part_to_record(part, chat_id, message.id, i) for i, part in enumerate(message.parts)
        ]
        self.messages.setdefault(chat_id, []).append(
            MessageRow(id=message.id, chat_id=chat_id, role=message.role, run_id=run_id)
        )
        self.parts[message.id] = records
        return message.id

    async def insert_parts(self, chat_id: str, message_id: str, parts: list[Part]) -> None:
        if message_id not in self.parts:
            raise PersistenceError(f"Message {message_id} not found")
        stored = self.parts[message_id]
        records = [
            part_to_record(part, chat_id, message_id, len(stored) + i)
            for i, part in enumerate(parts)
        ]
        stored.extend(records)

    async def get_chat_messages(self, chat_id: str) -> list[Message]:
        return [
            Message(
                id=row.id,
                role=row.role,
                run_id=row.run_id,
                parts=[record_to_part(r) for r in self.parts.get(row.id, [])],
            )
            for row in self.messages.get(chat_id, [])
        ]


class InMemoryRunStore(RunStore):
    """
    In-memory implementation (for testing and development)

    Events are kept in their serialized form so reads exercise the same
    decode path as a real backend.
    """

    def __init__(self):
        self.runs: dict[str, RunRecord] = {}
        self.events: dict[str, list[dict]] = {}

    async def create_run(self, run: RunRecord) -> None:
        if run.id in self.runs:
            raise PersistenceError(f"Run {run.id} already exists")
        self.runs[run.id] = run.model_copy()
        self.events[run.id] = []

    async def get_run(self, run_id: str) -> RunRecord | None:
        run = self.runs.get(run_id)
        return run.model_copy() if run else None

    async def update_run(
        self,
        run_id: str,
        status: RunStatus,
        error: str | None = None,
    ) -> None:
        run = self.runs.get(run_id)
        if run is None:
            raise PersistenceError(f"Run {run_id} not found")
        self.runs[run_id] = run.model_copy(
            update={"status": status, "error": error, "updated_at": _utcnow()}
        )

    async def append_event(self, run_id: str, index: int, chunk: Chunk) -> None:
        log = self.events.get(run_id)
        if log is None:
            raise PersistenceError(f"Run {run_id} not found")
        if index != len(log):
            raise PersistenceError(
                f"Out-of-order append to run {run_id}: index {index}, length {len(log)}"
            )
        log.append(dump_chunk(chunk))

    async def get_events(self, run_id: str, start_index: int = 0) -> list[Chunk]:
        return [parse_chunk(e) for e in self.events.get(run_id, [])[start_index:]]

    async def count_events(self, run_id: str) -> int:
        return len(self.events.get(run_id, []))


__all__ = [
    "DEFAULT_CHAT_TITLE",
    "PersistenceError",
    "MessageRow",
    "MessageStore",
    "RunStore",
    "InMemoryMessageStore",
    "InMemoryRunStore",
]
