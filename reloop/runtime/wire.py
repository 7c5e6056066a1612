"""
Wire - acknowledged single-slot event channel.

A Wire connects exactly one producer to exactly one reader. ``write()``
returns only after the reader has pulled the item *and* finished handling
it (the reader's consumer asked for the next item), so a producer is never
more than one element ahead of its consumer and nothing is buffered
unboundedly.

Usage:
    wire = Wire()
    pump = asyncio.create_task(pipe(wire.read(), event_log))

    async with wire.writer() as w:
        await w.write(chunk)  # returns once event_log holds the chunk

    await wire.close()
    await pump
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from reloop.runtime.errors import WireClosedError


class Sink(ABC):
    """
    Destination of a pipe.

    ``writer()`` grants exclusive write access for the duration of the
    context; plain ``write()`` calls are still allowed for one-off writes.
    """

    def __init__(self) -> None:
        self._write_lock = asyncio.Lock()

    @abstractmethod
    async def write(self, item: Any) -> None:
        pass

    @asynccontextmanager
    async def writer(self):
        async with self._write_lock:
            yield self


class Wire(Sink):
    """
    Event streaming channel between a run's producers and its event log.
    """

    _SENTINEL = object()

    def __init__(self) -> None:
        super().__init__()
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._closed = False
        self._reading = False
        self._reader_gone = False

    async def write(self, item: Any) -> None:
        """
        Write an item and wait until the reader has handled it.

        Raises:
            WireClosedError: If the wire is closed or its reader went away
        """
        if self._closed:
            raise WireClosedError("Wire is closed")
        if self._reader_gone:
            raise WireClosedError("Wire reader was released")

        ack = asyncio.get_running_loop().create_future()
        await self._queue.put((item, ack))
        if self._reader_gone:
            self._fail_pending()
        await ack

    async def close(self) -> None:
        """
        Close the wire, signaling no more items will be written.
        """
        if self._closed:
            return
        self._closed = True
        if not self._reader_gone:
            await self._queue.put((self._SENTINEL, None))

    async def read(self) -> AsyncIterator[Any]:
        """
        Read items until the wire is closed.

        Each item is acknowledged when the consumer asks for the next one.
        """
        if self._reading:
            raise RuntimeError("Wire already has a reader")
        self._reading = True

        ack: asyncio.Future | None = None
        try:
            while True:
                item, ack = await self._queue.get()
                if item is self._SENTINEL:
                    ack = None
                    return
                yield item
                if not ack.done():
                    ack.set_result(None)
                ack = None
        finally:
            self._reader_gone = True
            if ack is not None and not ack.done():
                ack.set_exception(WireClosedError("Wire reader released before acknowledging"))
            self._fail_pending()

    def _fail_pending(self) -> None:
        while not self._queue.empty():
            item, ack = self._queue.get_nowait()
            if ack is not None and not ack.done():
                ack.set_exception(WireClosedError("Wire reader was released"))


__all__ = ["Sink", "Wire"]
