"""In-memory room registry and signaling relay.

A ``RoomRegistry`` lives for the lifetime of the process that constructs it.
``create_app`` builds one and stores it on ``app.state``; nothing here is a
module-level singleton.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict

from ..schemas.signaling import RELAYED_KINDS, SERVER_KINDS, SignalingMessage, SignalKind

SendCallable = Callable[[dict], Awaitable[None]]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Participant:
    """Connection wrapper for signaling participants."""

    connection_id: str
    send: SendCallable


@dataclass(slots=True)
class RoomSnapshot:
    name: str
    participants: list[str] = field(default_factory=list)

    @property
    def host(self) -> str | None:
        return self.participants[0] if self.participants else None


class JoinResult(str, enum.Enum):
    CREATED = "created"
    JOINED = "joined"
    FULL = "full"


class RoomRegistry:
    """Admit participants into named rooms and fan out messages between them."""

    def __init__(self, capacity: int | None = 2) -> None:
        self.capacity = capacity or None
        # Dict keeps arrival order, the first key is the room's creator.
        self._rooms: Dict[str, Dict[str, Participant]] = {}
        self._membership: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def dispatch(self, participant: Participant, message: SignalingMessage) -> None:
        """Route one inbound client message to the matching registry operation."""

        kind = message.type
        if kind in SERVER_KINDS:
            logger.warning("Ignoring server-only %r from %s", kind.value, participant.connection_id)
            return
        if not message.room:
            logger.warning("Dropping %r from %s without a room", kind.value, participant.connection_id)
            return

        if kind is SignalKind.JOIN:
            await self.join(participant, message.room)
        elif kind is SignalKind.READY:
            await self.ready(participant.connection_id, message.room)
        elif kind in RELAYED_KINDS:
            await self.relay(participant.connection_id, message.room, kind, message.payload)
        elif kind is SignalKind.LEAVE:
            await self.leave(participant.connection_id, message.room)

    async def join(self, participant: Participant, room: str) -> JoinResult:
        """Admit a connection to the room and reply with created, joined or full."""

        previous = self._membership.get(participant.connection_id)
        if previous is not None and previous != room:
            # A participant occupies at most one room.
            await self.leave(participant.connection_id, previous)

        async with self._lock:
            participants = self._rooms.get(room)
            if participants is None:
                participants = self._rooms[room] = {}
                result = JoinResult.CREATED
            elif participant.connection_id in participants:
                first = next(iter(participants))
                result = JoinResult.CREATED if first == participant.connection_id else JoinResult.JOINED
            elif self.capacity is not None and len(participants) >= self.capacity:
                result = JoinResult.FULL
            else:
                result = JoinResult.JOINED

            if result is not JoinResult.FULL:
                participants[participant.connection_id] = participant
                self._membership[participant.connection_id] = room
            size = len(participants)

        if result is JoinResult.FULL:
            logger.info("Room %r is full, rejected %s", room, participant.connection_id)
        else:
            logger.info(
                "Participant %s %s room %r. Room has %d participants",
                participant.connection_id,
                result.value,
                room,
                size,
            )

        reply = SignalingMessage(type=SignalKind(result.value), room=room)
        await self._deliver(participant, reply.to_wire())
        return result

    async def ready(self, connection_id: str, room: str) -> None:
        """Tell the other occupant that the sender has local media and is ready."""

        if not self.is_member(connection_id, room):
            logger.warning("Dropping ready from %s, not a member of %r", connection_id, room)
            return
        await self.broadcast(room, connection_id, SignalingMessage(type=SignalKind.READY, room=room).to_wire())

    async def relay(self, connection_id: str, room: str, kind: SignalKind, payload: Any) -> None:
        """Forward an offer, answer or candidate without looking inside it."""

        if kind not in RELAYED_KINDS:
            raise ValueError(f"{kind.value!r} is not a relayed message kind")
        if not self.is_member(connection_id, room):
            logger.warning("Dropping %r from %s, not a member of %r", kind.value, connection_id, room)
            return
        message = SignalingMessage(type=kind, room=room, payload=payload)
        await self.broadcast(room, connection_id, message.to_wire())

    async def leave(self, connection_id: str, room: str) -> None:
        """Remove a connection from the room and notify whoever remains."""

        async with self._lock:
            participants = self._rooms.get(room)
            if not participants or connection_id not in participants:
                return
            participants.pop(connection_id)
            self._membership.pop(connection_id, None)
            if not participants:
                self._rooms.pop(room, None)
                logger.info("Room %r deleted (empty)", room)
                return
            remaining = len(participants)

        logger.info("Participant %s left room %r. Room has %d participants", connection_id, room, remaining)
        await self.broadcast(room, connection_id, SignalingMessage(type=SignalKind.LEAVE, room=room).to_wire())

    async def disconnect(self, connection_id: str) -> None:
        """Treat a dropped transport as an explicit leave."""

        room = self._membership.get(connection_id)
        if room is None:
            return
        logger.info("Participant %s disconnected without leaving %r", connection_id, room)
        await self.leave(connection_id, room)

    async def broadcast(self, room: str, sender_id: str, message: dict) -> None:
        """Send a message to all participants in the room except the sender."""

        async with self._lock:
            participants = list(self._rooms.get(room, {}).values())

        recipients = [participant for participant in participants if participant.connection_id != sender_id]
        if not recipients:
            return

        results = await asyncio.gather(
            *(participant.send(message) for participant in recipients),
            return_exceptions=True,
        )
        for participant, result in zip(recipients, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Failed delivering %r to %s: %s",
                    message.get("type"),
                    participant.connection_id,
                    result,
                )

    def is_member(self, connection_id: str, room: str) -> bool:
        return self._membership.get(connection_id) == room

    def room_of(self, connection_id: str) -> str | None:
        return self._membership.get(connection_id)

    def room_size(self, room: str) -> int:
        return len(self._rooms.get(room, {}))

    def get_room(self, room: str) -> RoomSnapshot | None:
        participants = self._rooms.get(room)
        if participants is None:
            return None
        return RoomSnapshot(name=room, participants=list(participants))

    def snapshot(self) -> list[RoomSnapshot]:
        """Return every live room with its occupants in arrival order."""

        return [RoomSnapshot(name=name, participants=list(participants)) for name, participants in self._rooms.items()]

    async def _deliver(self, participant: Participant, message: dict) -> None:
        try:
            await participant.send(message)
        except Exception as exc:
            logger.warning("Failed delivering %r to %s: %s", message.get("type"), participant.connection_id, exc)
