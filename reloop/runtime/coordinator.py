"""
RunCoordinator - durable runs and the reconnect protocol.

Each run executes a workflow body in a background task. The body writes
chunks to the run's Wire; a pump task pipes the wire into the run's event
log, so a write returns only once its chunk is durable. Clients read the
log, never the wire, which makes the live stream and a reconnect the same
operation at different offsets. Disconnecting clients never cancels a run.
"""

import asyncio
from typing import Any, AsyncIterator, Awaitable, Callable

import structlog

from reloop.domain import Chunk, ErrorChunk, RunRecord, RunStatus
from reloop.runtime.bridge import pipe
from reloop.runtime.context import RunContext
from reloop.runtime.errors import InvalidOffsetError, RunNotFoundError, WireClosedError
from reloop.runtime.event_log import RunEventLog
from reloop.runtime.wire import Wire
from reloop.storage import RunStore
from reloop.utils.logging import get_logger

logger = get_logger(__name__)

Workflow = Callable[[RunContext], Awaitable[Any]]


class RunHandle:
    """Access to one run: its record, its event stream and, in-process, its outcome."""

    def __init__(
        self,
        record: RunRecord,
        log: RunEventLog,
        task: asyncio.Task | None = None,
    ):
        self.record = record
        self.log = log
        self._task = task
        self.readable: AsyncIterator[Chunk] | None = None

    @property
    def run_id(self) -> str:
        return self.record.id

    async def get_readable(self, start_index: int = 0) -> AsyncIterator[Chunk]:
        """
        Stream of events at ``index >= start_index``, live until the run ends.

        Raises:
            InvalidOffsetError: Negative offset, or an offset past the end of
                a finished run
        """
        if start_index < 0:
            raise InvalidOffsetError(f"start_index must be >= 0, got {start_index}")

        record = await self.log.store.get_run(self.run_id)
        if record is None:
            raise RunNotFoundError(f"Run {self.run_id} not found")
        if record.status.is_terminal:
            length = await self.log.store.count_events(self.run_id)
            if start_index > length:
                raise InvalidOffsetError(
                    f"start_index {start_index} is past the end of run {self.run_id} ({length} events)"
                )
        return self.log.read(start_index)

    async def result(self) -> Any:
        """
        Wait for the workflow's return value; re-raises the run's error.

        Cancelling the caller does not cancel the run.
        """
        if self._task is None:
            raise RuntimeError(f"Run {self.run_id} is not executing in this process")
        return await asyncio.shield(self._task)

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()


class RunCoordinator:
    def __init__(self, run_store: RunStore, poll_interval: float = 0.25):
        self.run_store = run_store
        self.poll_interval = poll_interval
        self._live: dict[str, RunHandle] = {}

    async def start(
        self,
        workflow: Workflow,
        *,
        chat_id: str | None = None,
        message_id: str | None = None,
    ) -> RunHandle:
        """
        Create a run and execute ``workflow`` in the background.

        Returns immediately; ``handle.readable`` is the live stream from the
        first event.
        """
        record = RunRecord(chat_id=chat_id, message_id=message_id)
        await self.run_store.create_run(record)

        log = RunEventLog(record.id, self.run_store, poll_interval=self.poll_interval)
        task = asyncio.create_task(
            self._execute(record, log, workflow), name=f"run-{record.id}"
        )
        handle = RunHandle(record, log, task)
        handle.readable = log.read(0)

        self._live[record.id] = handle
        task.add_done_callback(lambda t: self._on_run_done(record.id, t))

        logger.info("run_started", run_id=record.id, chat_id=chat_id)
        return handle

    async def get_run(self, run_id: str) -> RunHandle:
        """
        Raises:
            RunNotFoundError: No run with this id exists
        """
        live = self._live.get(run_id)
        if live is not None:
            return RunHandle(live.record, live.log, live._task)

        record = await self.run_store.get_run(run_id)
        if record is None:
            raise RunNotFoundError(f"Run {run_id} not found")
        return RunHandle(
            record, RunEventLog(run_id, self.run_store, poll_interval=self.poll_interval)
        )

    async def shutdown(self) -> None:
        """Cancel runs still executing in this process."""
        tasks = [h._task for h in self._live.values() if h._task is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _execute(self, record: RunRecord, log: RunEventLog, workflow: Workflow) -> Any:
        structlog.contextvars.bind_contextvars(run_id=record.id, chat_id=record.chat_id)

        wire = Wire()
        pump = asyncio.create_task(pipe(wire.read(), log), name=f"run-pump-{record.id}")
        ctx = RunContext(run_id=record.id, chat_id=record.chat_id, wire=wire)

        error: Exception | None = None
        output: Any = None
        try:
            output = await workflow(ctx)
        except asyncio.CancelledError:
            pump.cancel()
            await asyncio.gather(pump, return_exceptions=True)
            await self._mark_failed(log, "Run cancelled")
            logger.warning("run_cancelled")
            raise
        except Exception as e:
            error = e

        await wire.close()
        try:
            await pump
        except Exception as e:
            # A failed append is the root cause of any WireClosedError the body saw
            if error is None or isinstance(error, WireClosedError):
                error = e

        if error is None:
            await log.finish(RunStatus.COMPLETED)
            logger.info("run_completed", events=len(log))
            return output

        logger.error(
            "run_failed",
            error=str(error),
            error_type=type(error).__name__,
            exc_info=error,
        )
        try:
            async with log.writer() as writer:
                await writer.write(
                    ErrorChunk(error_text=str(error), error_type=type(error).__name__)
                )
        except Exception as e:
            logger.error("run_error_event_failed", error=str(e))
        await self._mark_failed(log, str(error))
        raise error

    async def _mark_failed(self, log: RunEventLog, message: str) -> None:
        try:
            await log.finish(RunStatus.FAILED, error=message)
        except Exception as e:
            logger.error("run_status_update_failed", error=str(e), exc_info=True)

    def _on_run_done(self, run_id: str, task: asyncio.Task) -> None:
        self._live.pop(run_id, None)
        if not task.cancelled():
            # Retrieved here so an unobserved failure is not reported twice
            task.exception()


__all__ = ["RunCoordinator", "RunHandle", "Workflow"]
