"""
FastAPI application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reloop import __version__
from reloop.container import Services, build_services
from reloop.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown."""
    logger.info("reloop_api_starting")

    owned = getattr(app.state, "services", None) is None
    if owned:
        from reloop.config import settings

        configure_logging(settings.log_level, json_logs=settings.json_logs)
        try:
            app.state.services = build_services(settings)
        except Exception as e:
            logger.error("reloop_api_init_failed", error=str(e), exc_info=True)
            raise

    yield

    if owned:
        await app.state.services.aclose()
        app.state.services = None
    logger.info("reloop_api_shutdown")


def create_app(services: Services | None = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        services: Pre-built services. When omitted they are built from
            settings at startup.
    """
    from .router import create_router

    app = FastAPI(
        title="Reloop API",
        description="Resumable multi-step tool-calling chat runs.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["x-run-id"],
    )

    app.include_router(create_router())

    return app


app = create_app()
