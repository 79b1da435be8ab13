"""Data contracts for room introspection and RTC config endpoints."""
from __future__ import annotations

from pydantic import BaseModel, Field


class RoomSummary(BaseModel):
    room: str = Field(..., description="Room name")
    participant_count: int = Field(..., ge=0)
    participants: list[str] = Field(default_factory=list, description="Connection ids in arrival order")
    host: str | None = Field(default=None, description="Earliest remaining participant")


class RoomListResponse(BaseModel):
    items: list[RoomSummary]
    capacity: int | None = Field(default=None, description="Admission limit, null when unlimited")


class IceServer(BaseModel):
    urls: str
    username: str | None = None
    credential: str | None = None


class IceServersResponse(BaseModel):
    ice_servers: list[IceServer]
