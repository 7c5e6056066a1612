"""
RunEventLog - durable, replayable event log of one run.

The coordinator's pump is the only writer. Any number of readers replay
from their own offset and then follow live appends until the run reaches a
terminal status. Readers in the writing process are woken on every append;
readers elsewhere fall back to polling the store.
"""

import asyncio
from typing import AsyncIterator

from reloop.domain import Chunk, RunStatus
from reloop.runtime.errors import RunNotFoundError
from reloop.runtime.wire import Sink
from reloop.storage import RunStore
from reloop.utils.logging import get_logger

logger = get_logger(__name__)


class RunEventLog(Sink):
    def __init__(self, run_id: str, store: RunStore, poll_interval: float = 0.25):
        super().__init__()
        self.run_id = run_id
        self.store = store
        self.poll_interval = poll_interval

        self._length = 0
        self._version = 0
        self._changed = asyncio.Condition()
        self._final_status: RunStatus | None = None

    async def write(self, item: Chunk) -> None:
        """Append the next event. Returns once it is durable."""
        await self.store.append_event(self.run_id, self._length, item)
        self._length += 1
        await self._notify()

    async def finish(self, status: RunStatus, error: str | None = None) -> None:
        """Mark the run terminal and release followers."""
        self._final_status = status
        try:
            await self.store.update_run(self.run_id, status, error=error)
        finally:
            await self._notify()

    async def read(self, start_index: int = 0) -> AsyncIterator[Chunk]:
        """
        Replay events from ``start_index``, then follow the run live.

        The status is read before the events, so once a terminal status is
        seen the batch fetched after it is the complete tail.
        """
        index = start_index
        while True:
            seen = self._version
            record = await self.store.get_run(self.run_id)
            if record is None:
                raise RunNotFoundError(f"Run {self.run_id} not found")
            finished = record.status.is_terminal or self._final_status is not None

            events = await self.store.get_events(self.run_id, index)
            for chunk in events:
                yield chunk
            index += len(events)

            if finished:
                return
            await self._wait_for_change(seen)

    async def _notify(self) -> None:
        async with self._changed:
            self._version += 1
            self._changed.notify_all()

    async def _wait_for_change(self, seen: int) -> None:
        async with self._changed:
            try:
                await asyncio.wait_for(
                    self._changed.wait_for(lambda: self._version != seen),
                    timeout=self.poll_interval,
                )
            except TimeoutError:
                pass

    def __len__(self) -> int:
        return self._length


__all__ = ["RunEventLog"]
