from reloop.storage.base import (
    DEFAULT_CHAT_TITLE,
    InMemoryMessageStore,
    InMemoryRunStore,
    MessageRow,
    MessageStore,
    PersistenceError,
    RunStore,
)
from reloop.storage.records import PartRecord, PartRecordType, part_to_record, record_to_part

__all__ = [
    "DEFAULT_CHAT_TITLE",
    "MessageStore",
    "RunStore",
    "InMemoryMessageStore",
    "InMemoryRunStore",
    "MessageRow",
    "PersistenceError",
    "PartRecord",
    "PartRecordType",
    "part_to_record",
    "record_to_part",
]
