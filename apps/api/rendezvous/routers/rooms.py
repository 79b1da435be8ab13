"""Room introspection and RTC configuration endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ..core.config import settings
from ..schemas.rooms import IceServer, IceServersResponse, RoomListResponse, RoomSummary
from ..services.registry import RoomRegistry, RoomSnapshot
from .deps import get_registry

router = APIRouter()


def _summary(snapshot: RoomSnapshot) -> RoomSummary:
    return RoomSummary(
        room=snapshot.name,
        participant_count=len(snapshot.participants),
        participants=snapshot.participants,
        host=snapshot.host,
    )


@router.get("/rooms", response_model=RoomListResponse)
async def list_rooms(registry: RoomRegistry = Depends(get_registry)) -> RoomListResponse:
    """Return every live room and its occupants."""

    items = [_summary(snapshot) for snapshot in registry.snapshot()]
    return RoomListResponse(items=items, capacity=registry.capacity)


@router.get("/rooms/{room}", response_model=RoomSummary)
async def get_room(room: str, registry: RoomRegistry = Depends(get_registry)) -> RoomSummary:
    snapshot = registry.get_room(room)
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return _summary(snapshot)


@router.get("/rtc/ice-servers", response_model=IceServersResponse)
async def ice_servers() -> IceServersResponse:
    """Expose the STUN/TURN servers clients should hand to their peer connection."""

    username = settings.ice_username or None
    credential = settings.ice_credential or None
    servers = [IceServer(urls=url, username=username, credential=credential) for url in settings.ice_servers]
    return IceServersResponse(ice_servers=servers)
