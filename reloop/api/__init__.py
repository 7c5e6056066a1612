from reloop.api.app import create_app
from reloop.api.router import create_router

__all__ = ["create_app", "create_router"]
