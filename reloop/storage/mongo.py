"""
MongoDB implementations of MessageStore and RunStore.
"""

from datetime import datetime, timezone

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from reloop.domain import (
    Chunk,
    Message,
    Part,
    RunRecord,
    RunStatus,
    dump_chunk,
    parse_chunk,
)
from reloop.storage.base import (
    DEFAULT_CHAT_TITLE,
    MessageRow,
    MessageStore,
    PersistenceError,
    RunStore,
)
from reloop.storage.records import PartRecord, part_to_record, record_to_part
from reloop.utils.logging import get_logger

logger = get_logger(__name__)


def to_document(model: BaseModel) -> dict:
    """
    Dump a model for storage, leaving out unset top-level fields.

    Payload fields (tool input/output, data) are stored as they are,
    nulls included.
    """
    return {k: v for k, v in model.model_dump(mode="json").items() if v is not None}


class MongoDatabase:
    """Lazily connected database shared by the Mongo stores."""

    def __init__(self, uri: str = "mongodb://localhost:27017", db_name: str = "reloop"):
        self.uri = uri
        self.db_name = db_name
        self.client: AsyncIOMotorClient | None = None
        self._db: AsyncIOMotorDatabase | None = None

    async def get(self) -> AsyncIOMotorDatabase:
        """Ensure database connection is established."""
        if self._db is None:
            self.client = AsyncIOMotorClient(self.uri)
            db = self.client[self.db_name]

            await db["chats"].create_index("id", unique=True)
            await db["messages"].create_index("id", unique=True)
            await db["messages"].create_index([("chat_id", ASCENDING), ("seq", ASCENDING)])
            await db["message_parts"].create_index(
                [("message_id", ASCENDING), ("position", ASCENDING)], unique=True
            )
            await db["runs"].create_index("id", unique=True)
            await db["run_events"].create_index(
                [("run_id", ASCENDING), ("index", ASCENDING)], unique=True
            )

            self._db = db
            logger.info("mongodb_connected", uri=self.uri, db_name=self.db_name)
        return self._db

    async def next_seq(self, key: str, count: int = 1) -> int:
        """Atomically reserve ``count`` sequence numbers; returns the first."""
        db = await self.get()
        doc = await db["counters"].find_one_and_update(
            {"_id": key},
            {"$inc": {"value": count}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return doc["value"] - count

    async def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None
            self._db = None


class MongoMessageStore(MessageStore):
    """
    Collections:
    - chats: chat ownership and title
    - messages: message rows, ordered per chat by ``seq``
    - message_parts: one document per part, ordered per message by ``position``
    """

    def __init__(self, database: MongoDatabase):
        self.database = database

    async def ensure_chat(self, chat_id: str, user_id: str) -> bool:
        db = await self.database.get()
        try:
            await db["chats"].update_one(
                {"id": chat_id},
                {"$setOnInsert": {"id": chat_id, "user_id": user_id, "title": DEFAULT_CHAT_TITLE}},
                upsert=True,
            )
        except DuplicateKeyError:
            pass
        doc = await db["chats"].find_one({"id": chat_id})
        return doc is not None and doc.get("user_id") == user_id

    async def verify_chat_ownership(self, chat_id: str, user_id: str) -> bool:
        db = await self.database.get()
        doc = await db["chats"].find_one({"id": chat_id, "user_id": user_id})
        return doc is not None

    async def get_chat_title(self, chat_id: str) -> str | None:
        db = await self.database.get()
        doc = await db["chats"].find_one({"id": chat_id})
        if doc is None:
            return None
        return doc.get("title", DEFAULT_CHAT_TITLE)

    async def set_chat_title(self, chat_id: str, title: str) -> None:
        db = await self.database.get()
        result = await db["chats"].update_one({"id": chat_id}, {"$set": {"title": title}})
        if result.matched_count == 0:
            raise PersistenceError(f"Chat {chat_id} not found")

    async def persist_message(
        self, chat_id: str, message: Message, run_id: str | None = None
    ) -> str:
        # Records first: a part that cannot be stored leaves no row behind
        records = self._build_records(chat_id, message.id, message.parts)

        db = await self.database.get()
        row = MessageRow(id=message.id, chat_id=chat_id, role=message.role, run_id=run_id)
        seq = await self.database.next_seq(f"messages:{chat_id}")
        try:
            await db["messages"].insert_one({**row.model_dump(mode="json"), "seq": seq})
        except PyMongoError as e:
            logger.error("persist_message_failed", message_id=message.id, error=str(e))
            raise PersistenceError(f"Failed to persist message {message.id}: {e}") from e

        await self._insert_records(message.id, records)
        return message.id

    async def insert_parts(self, chat_id: str, message_id: str, parts: list[Part]) -> None:
        await self._insert_records(message_id, self._build_records(chat_id, message_id, parts))

    def _build_records(self, chat_id: str, message_id: str, parts: list[Part]) -> list[PartRecord]:
        return [part_to_record(part, chat_id, message_id, i) for i, part in enumerate(parts)]

    async def _insert_records(self, message_id: str, records: list[PartRecord]) -> None:
        if not records:
            return
        db = await self.database.get()
        first = await self.database.next_seq(f"parts:{message_id}", len(records))
        for i, record in enumerate(records):
            record.position = first + i
        try:
            await db["message_parts"].insert_many(
                [to_document(r) for r in records],
                ordered=True,
            )
        except PyMongoError as e:
            logger.error("insert_parts_failed", message_id=message_id, error=str(e))
            raise PersistenceError(f"Failed to insert parts for {message_id}: {e}") from e

    async def get_chat_messages(self, chat_id: str) -> list[Message]:
        db = await self.database.get()
        rows = await db["messages"].find({"chat_id": chat_id}).sort("seq", ASCENDING).to_list(None)
        if not rows:
            return []

        ids = [row["id"] for row in rows]
        parts_by_message: dict[str, list[Part]] = {mid: [] for mid in ids}
        cursor = db["message_parts"].find({"message_id": {"$in": ids}}).sort(
            [("message_id", ASCENDING), ("position", ASCENDING)]
        )
        async for doc in cursor:
            record = PartRecord.model_validate(doc)
            parts_by_message[record.message_id].append(record_to_part(record))

        return [
            Message(
                id=row["id"],
                role=row["role"],
                run_id=row.get("run_id"),
                parts=parts_by_message[row["id"]],
            )
            for row in rows
        ]


class MongoRunStore(RunStore):
    """
    Collections:
    - runs: RunRecord documents
    - run_events: one document per event, unique on (run_id, index)
    """

    def __init__(self, database: MongoDatabase):
        self.database = database

    async def create_run(self, run: RunRecord) -> None:
        db = await self.database.get()
        try:
            await db["runs"].insert_one(to_document(run))
        except PyMongoError as e:
            raise PersistenceError(f"Failed to create run {run.id}: {e}") from e

    async def get_run(self, run_id: str) -> RunRecord | None:
        db = await self.database.get()
        doc = await db["runs"].find_one({"id": run_id})
        if doc:
            return RunRecord.model_validate(doc)
        return None

    async def update_run(
        self,
        run_id: str,
        status: RunStatus,
        error: str | None = None,
    ) -> None:
        db = await self.database.get()
        result = await db["runs"].update_one(
            {"id": run_id},
            {
                "$set": {
                    "status": status.value,
                    "error": error,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                }
            },
        )
        if result.matched_count == 0:
            raise PersistenceError(f"Run {run_id} not found")

    async def append_event(self, run_id: str, index: int, chunk: Chunk) -> None:
        db = await self.database.get()
        expected = await self.count_events(run_id)
        if index != expected:
            raise PersistenceError(
                f"Out-of-order append to run {run_id}: index {index}, length {expected}"
            )
        try:
            await db["run_events"].insert_one(
                {"run_id": run_id, "index": index, "chunk": dump_chunk(chunk)}
            )
        except DuplicateKeyError as e:
            raise PersistenceError(f"Event {index} of run {run_id} already written") from e
        except PyMongoError as e:
            logger.error("append_event_failed", run_id=run_id, index=index, error=str(e))
            raise PersistenceError(f"Failed to append event to run {run_id}: {e}") from e

    async def get_events(self, run_id: str, start_index: int = 0) -> list[Chunk]:
        db = await self.database.get()
        cursor = db["run_events"].find(
            {"run_id": run_id, "index": {"$gte": start_index}}
        ).sort("index", ASCENDING)
        return [parse_chunk(doc["chunk"]) async for doc in cursor]

    async def count_events(self, run_id: str) -> int:
        db = await self.database.get()
        return await db["run_events"].count_documents({"run_id": run_id})


__all__ = ["MongoDatabase", "MongoMessageStore", "MongoRunStore"]
