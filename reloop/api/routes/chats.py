"""
Chat routes with SSE streaming support.

Every stream is read from the run's event log, never from the producer
directly: the live response of a new message and a reconnect are the same
read at different offsets. Each SSE event carries the chunk type as
``event``, the event index as ``id`` and the chunk as JSON ``data``.
"""

import json
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Query
from sse_starlette.sse import EventSourceResponse

from reloop.api.deps import ensure_chat_owner, get_services, require_chat_owner
from reloop.api.schemas.chat import ChatHistoryResponse, SendMessageRequest
from reloop.container import Services
from reloop.domain import Chunk, dump_chunk
from reloop.runtime import InvalidOffsetError, RunNotFoundError
from reloop.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/chats")

SSE_HEADERS = {
    # Disable keep-alive for SSE to release connection immediately after stream ends
    "Connection": "close",
    # Prevent proxy buffering
    "X-Accel-Buffering": "no",
}


@router.post("/{chat_id}/messages")
async def send_message(
    request: SendMessageRequest,
    chat_id: str = Depends(ensure_chat_owner),
    services: Services = Depends(get_services),
):
    """Start a run for a new user message and stream it."""
    handle = await services.workflow.start(
        chat_id, request.message, max_steps=request.max_steps
    )
    return EventSourceResponse(
        stream_run_events(handle.readable, start_index=0),
        sep="\n",  # Use LF instead of CRLF for SSE line separator
        headers={**SSE_HEADERS, "x-run-id": handle.run_id},
    )


@router.get("/{chat_id}/messages/{run_id}/stream")
async def resume_stream(
    run_id: str,
    start_index: int = Query(default=0, description="Index of the first event to send"),
    chat_id: str = Depends(require_chat_owner),
    services: Services = Depends(get_services),
):
    """Reconnect to a run: replay from ``start_index``, then follow it live."""
    try:
        handle = await services.coordinator.get_run(run_id)
    except RunNotFoundError:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")
    if handle.record.chat_id != chat_id:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")

    try:
        events = await handle.get_readable(start_index)
    except InvalidOffsetError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("run_stream_resumed", run_id=run_id, start_index=start_index)
    return EventSourceResponse(
        stream_run_events(events, start_index=start_index),
        sep="\n",
        headers={**SSE_HEADERS, "x-run-id": run_id},
    )


@router.get("/{chat_id}/messages", response_model=ChatHistoryResponse)
async def get_messages(
    chat_id: str = Depends(ensure_chat_owner),
    services: Services = Depends(get_services),
):
    """Chat history without interrupted placeholders, plus the run to resume."""
    messages, resume_run_id = await services.workflow.load_history(chat_id)
    return ChatHistoryResponse(
        title=await services.message_store.get_chat_title(chat_id),
        messages=messages,
        resume_run_id=resume_run_id,
    )


async def stream_run_events(events: AsyncIterator[Chunk], start_index: int):
    """Render run events as SSE. Closing the response never cancels the run."""
    index = start_index
    try:
        async for chunk in events:
            yield {"event": chunk.type, "id": str(index), "data": json.dumps(dump_chunk(chunk))}
            index += 1
    except Exception as e:
        logger.error("run_stream_failed", error=str(e), index=index, exc_info=True)
        yield {
            "event": "error",
            "data": json.dumps({"type": "error", "error_text": str(e), "error_type": "stream"}),
        }
    finally:
        await events.aclose()
