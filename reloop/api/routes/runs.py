"""
Run status routes.
"""

from fastapi import APIRouter, Depends, HTTPException

from reloop.api.deps import get_services, get_user_id
from reloop.api.schemas.chat import RunResponse
from reloop.container import Services
from reloop.runtime import RunNotFoundError

router = APIRouter(prefix="/runs")


@router.get("/{run_id}", response_model=RunResponse)
async def get_run(
    run_id: str,
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services),
):
    """Current status of a run."""
    try:
        handle = await services.coordinator.get_run(run_id)
    except RunNotFoundError:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")

    record = await services.run_store.get_run(run_id) or handle.record
    if record.chat_id and not await services.message_store.verify_chat_ownership(
        record.chat_id, user_id
    ):
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")

    return RunResponse(
        id=record.id,
        chat_id=record.chat_id,
        message_id=record.message_id,
        status=record.status.value,
        error=record.error,
        events=await services.run_store.count_events(run_id),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
