"""Wire contracts for the signaling channel."""
from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, Field


class SignalKind(str, enum.Enum):
    JOIN = "join"
    CREATED = "created"
    JOINED = "joined"
    FULL = "full"
    READY = "ready"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    LEAVE = "leave"


# Kinds whose payload is forwarded verbatim to the other occupant.
RELAYED_KINDS = frozenset({SignalKind.OFFER, SignalKind.ANSWER, SignalKind.ICE_CANDIDATE})

# Kinds only the relay may emit.
SERVER_KINDS = frozenset({SignalKind.CREATED, SignalKind.JOINED, SignalKind.FULL})


class SignalingMessage(BaseModel):
    type: SignalKind
    room: str | None = Field(default=None, description="Room name the message is scoped to")
    payload: Any = Field(default=None, description="Opaque session description or candidate")

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready envelope, omitting empty fields."""

        return self.model_dump(mode="json", exclude_none=True)
