from dataclasses import dataclass

from reloop.domain import Chunk
from reloop.runtime.wire import Wire


@dataclass
class RunContext:
    """What a workflow body sees of the run executing it."""

    run_id: str
    chat_id: str | None
    wire: Wire

    async def write(self, chunk: Chunk) -> None:
        async with self.wire.writer() as writer:
            await writer.write(chunk)


__all__ = ["RunContext"]
