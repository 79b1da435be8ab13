"""Shared FastAPI dependencies."""
from __future__ import annotations

from fastapi.requests import HTTPConnection

from ..services.registry import RoomRegistry


def get_registry(connection: HTTPConnection) -> RoomRegistry:
    """Return the registry owned by the running application."""

    return connection.app.state.registry
