"""
Stream bridge.

``pipe`` moves elements from one async source to one or more sinks, one
element at a time: element n+1 is not read before every sink has accepted
element n. Both ends are released however the source ends, and failures
propagate to the caller.
"""

from contextlib import AsyncExitStack
from typing import AsyncIterator, TypeVar

from reloop.runtime.wire import Sink

T = TypeVar("T")


async def pipe(source: AsyncIterator[T], *sinks: Sink) -> int:
    """
    Pipe ``source`` into ``sinks``.

    Sinks receive each element in the order given. Sinks are not closed:
    the caller owns their lifecycle.

    Returns:
        int: Number of elements piped
    """
    if not sinks:
        raise ValueError("pipe() needs at least one sink")

    count = 0
    try:
        async with AsyncExitStack() as stack:
            writers = [await stack.enter_async_context(sink.writer()) for sink in sinks]
            async for item in source:
                for writer in writers:
                    await writer.write(item)
                count += 1
    finally:
        aclose = getattr(source, "aclose", None)
        if aclose is not None:
            await aclose()
    return count


__all__ = ["pipe"]
