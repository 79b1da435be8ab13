"""FastAPI application hosting the two-party signaling relay."""
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.logging import configure_logging
from .routers import health, rooms, signaling
from .services.registry import RoomRegistry

logger = logging.getLogger(__name__)


def create_app(registry: RoomRegistry | None = None) -> FastAPI:
    """Build the application around an explicitly owned room registry."""

    configure_logging(settings.log_level)

    app = FastAPI(title="Rendezvous Signaling API", version="0.1.0")
    app.state.registry = registry or RoomRegistry(capacity=settings.room_capacity)

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(health.router, prefix="/api", tags=["meta"])
    app.include_router(rooms.router, prefix="/api", tags=["rooms"])
    app.include_router(signaling.router, prefix="/api", tags=["signaling"])

    logger.info("Signaling relay ready (room capacity: %s)", app.state.registry.capacity or "unlimited")
    return app


app = create_app()
