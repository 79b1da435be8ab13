"""Liveness endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Response

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple liveness probe."""

    return {"status": "ok"}


@router.head("/health")
async def health_head() -> Response:
    """Allow HEAD for uptime monitors that only need the status code."""

    return Response(status_code=200)
