"""
API dependency injection.

Services are attached to ``app.state`` by the lifespan or by ``create_app``.
"""

from fastapi import Depends, Header, HTTPException, Request

from reloop.container import Services


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return services


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity from the ``X-User-Id`` header."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


async def require_chat_owner(
    chat_id: str,
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services),
) -> str:
    if not await services.message_store.verify_chat_ownership(chat_id, user_id):
        raise HTTPException(status_code=403, detail=f"Chat '{chat_id}' is not accessible")
    return chat_id


async def ensure_chat_owner(
    chat_id: str,
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services),
) -> str:
    """Like ``require_chat_owner`` but creates the chat for its first user."""
    if not await services.message_store.ensure_chat(chat_id, user_id):
        raise HTTPException(status_code=403, detail=f"Chat '{chat_id}' is not accessible")
    return chat_id
