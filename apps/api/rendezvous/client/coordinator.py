"""Client-side negotiation state machine for a two-party room.

The coordinator turns relayed signaling messages into peer-connection calls:

* the first joiner (``created``) becomes host and waits with its media open;
* the second joiner (``joined``) opens media and announces ``ready``;
* only the host answers ``ready`` with an offer, so the two sides never race
  to offer at the same time;
* the guest answers the offer, and candidates trickle both ways.

Every handler runs to completion before the next message is dispatched. The
only suspension points are awaits on the media source and the peer
connection; after each one the handler re-checks that the connection it
started with is still the live one, since ``leave_room`` may have torn it down
in the meantime.
"""
from __future__ import annotations

import enum
import logging
from functools import partial
from typing import Any, Callable, Protocol

from ..schemas.signaling import SignalingMessage, SignalKind
from .media import MediaController, MediaSource, MediaStream, MediaUnavailableError
from .peer import CandidateDescriptor, PeerConnection, PeerConnectionFactory, SessionDescription

logger = logging.getLogger(__name__)

LOBBY_LOCATION = "/"

Navigate = Callable[[str], None]


class Phase(str, enum.Enum):
    IDLE = "idle"
    AWAITING_ROOM_RESULT = "awaiting_room_result"
    CREATOR = "creator"
    JOINER = "joiner"
    AWAITING_LOCAL_MEDIA = "awaiting_local_media"
    HOST_WAITING_FOR_PEER = "host_waiting_for_peer"
    GUEST_READY = "guest_ready"
    NEGOTIATING = "negotiating"
    CONNECTED = "connected"
    CLOSED = "closed"


class SignalingChannel(Protocol):
    async def send(self, message: SignalingMessage) -> None: ...


class NegotiationAborted(RuntimeError):
    """The peer connection was discarded while a negotiation step was in flight."""


class NegotiationCoordinator:
    """Drive one participant from an empty room to a live peer connection and back."""

    def __init__(
        self,
        room: str,
        channel: SignalingChannel,
        media_source: MediaSource,
        peer_factory: PeerConnectionFactory,
        navigate: Navigate | None = None,
    ) -> None:
        self.room = room
        self.phase = Phase.IDLE
        self.is_host = False
        self.local_stream: MediaStream | None = None
        self.remote_stream = MediaStream()
        self.media = MediaController()

        self._channel = channel
        self._media_source = media_source
        self._peer_factory = peer_factory
        self._navigate = navigate

        self._peer: PeerConnection | None = None
        self._remote_description_set = False
        self._pending_candidates: list[CandidateDescriptor | None] = []

    @property
    def peer(self) -> PeerConnection | None:
        return self._peer

    @property
    def mic_active(self) -> bool:
        return self.media.mic_active

    @property
    def camera_active(self) -> bool:
        return self.media.camera_active

    async def enter_room(self) -> None:
        """Ask the relay to admit us; the reply decides host or guest."""

        if self.phase is not Phase.IDLE:
            raise RuntimeError(f"Room {self.room!r} already entered (phase {self.phase.value})")
        self.phase = Phase.AWAITING_ROOM_RESULT
        await self._channel.send(SignalingMessage(type=SignalKind.JOIN, room=self.room))

    async def handle(self, message: SignalingMessage) -> None:
        """Apply one relayed message to the state machine."""

        if self.phase is Phase.CLOSED:
            logger.debug("Ignoring %r for closed room %r", message.type.value, self.room)
            return
        if message.room is not None and message.room != self.room:
            logger.warning("Ignoring %r addressed to room %r", message.type.value, message.room)
            return

        kind = message.type
        if kind is SignalKind.CREATED:
            await self._on_created()
        elif kind is SignalKind.JOINED:
            await self._on_joined()
        elif kind is SignalKind.FULL:
            await self._on_full()
        elif kind is SignalKind.READY:
            await self._on_ready()
        elif kind is SignalKind.OFFER:
            await self._on_offer(message.payload)
        elif kind is SignalKind.ANSWER:
            await self._on_answer(message.payload)
        elif kind is SignalKind.ICE_CANDIDATE:
            await self._on_remote_candidate(message.payload)
        elif kind is SignalKind.LEAVE:
            await self._on_peer_left()
        else:
            logger.warning("Unexpected %r from relay", kind.value)

    def toggle_audio(self) -> bool:
        return self.media.toggle_audio()

    def toggle_video(self) -> bool:
        return self.media.toggle_video()

    async def leave_room(self) -> None:
        """Voluntary exit: tell the peer, release every track and connection, go back to the lobby."""

        if self.phase is Phase.CLOSED:
            return
        if self.phase is not Phase.IDLE:
            await self._send(SignalKind.LEAVE)
        await self._teardown()
        self._redirect()

    async def _on_created(self) -> None:
        if self.phase is not Phase.AWAITING_ROOM_RESULT:
            logger.warning("Ignoring created in phase %s", self.phase.value)
            return
        self.is_host = True
        self.phase = Phase.CREATOR
        if await self._acquire_local_media():
            self.phase = Phase.HOST_WAITING_FOR_PEER
            logger.info("Created room %r, waiting for a peer", self.room)

    async def _on_joined(self) -> None:
        if self.phase is not Phase.AWAITING_ROOM_RESULT:
            logger.warning("Ignoring joined in phase %s", self.phase.value)
            return
        self.is_host = False
        self.phase = Phase.JOINER
        if not await self._acquire_local_media():
            return
        if await self._send(SignalKind.READY):
            self.phase = Phase.GUEST_READY
            logger.info("Joined room %r, announced ready", self.room)

    async def _on_full(self) -> None:
        logger.warning("Room %r is full, leaving", self.room)
        await self._teardown()
        self._redirect()

    async def _on_ready(self) -> None:
        if not self.is_host:
            logger.debug("Guest ignores ready in room %r", self.room)
            return
        if self._peer is not None:
            logger.warning("Ignoring ready in room %r, a negotiation is already live", self.room)
            return
        if self.local_stream is None:
            logger.warning("Peer is ready in room %r but local media is unavailable, not offering", self.room)
            return

        pc = self._open_peer()
        try:
            offer = await pc.create_offer()
            self._ensure_live(pc)
            await pc.set_local_description(offer)
            self._ensure_live(pc)
        except NegotiationAborted:
            logger.info("Offer for room %r abandoned, connection was closed", self.room)
            return
        except Exception:
            logger.exception("Failed creating offer for room %r", self.room)
            await self._discard_peer(pc)
            return

        self.phase = Phase.NEGOTIATING
        await self._send(SignalKind.OFFER, pc.local_description or offer)

    async def _on_offer(self, offer: SessionDescription | None) -> None:
        if self.is_host:
            logger.warning("Host ignores offer in room %r", self.room)
            return
        if self._peer is not None:
            logger.warning("Ignoring offer in room %r, a negotiation is already live", self.room)
            return
        if self.local_stream is None:
            logger.warning("Offer received in room %r but local media is unavailable", self.room)
            return
        if not offer:
            logger.warning("Ignoring empty offer in room %r", self.room)
            return

        pc = self._open_peer()
        try:
            await pc.set_remote_description(offer)
            self._ensure_live(pc)
            self._remote_description_set = True
            await self._flush_candidates(pc)
            answer = await pc.create_answer()
            self._ensure_live(pc)
            await pc.set_local_description(answer)
            self._ensure_live(pc)
        except NegotiationAborted:
            logger.info("Answer for room %r abandoned, connection was closed", self.room)
            return
        except Exception:
            logger.exception("Failed answering offer in room %r", self.room)
            await self._discard_peer(pc)
            return

        self.phase = Phase.NEGOTIATING
        if await self._send(SignalKind.ANSWER, pc.local_description or answer):
            # Both descriptions are in place on this side once the answer is out.
            self.phase = Phase.CONNECTED

    async def _on_answer(self, answer: SessionDescription | None) -> None:
        pc = self._peer
        if pc is None:
            logger.warning("Answer received in room %r without a pending offer", self.room)
            return
        if self._remote_description_set:
            logger.warning("Ignoring duplicate answer in room %r", self.room)
            return
        if not answer:
            logger.warning("Ignoring empty answer in room %r", self.room)
            return

        try:
            await pc.set_remote_description(answer)
            self._ensure_live(pc)
        except NegotiationAborted:
            return
        except Exception:
            logger.exception("Failed applying answer in room %r", self.room)
            await self._discard_peer(pc)
            return

        self._remote_description_set = True
        self.phase = Phase.CONNECTED
        logger.info("Connected in room %r", self.room)
        await self._flush_candidates(pc)

    async def _on_remote_candidate(self, candidate: CandidateDescriptor | None) -> None:
        pc = self._peer
        if pc is None and self.phase is not Phase.GUEST_READY:
            logger.debug("Dropping ICE candidate in room %r, no negotiation under way", self.room)
            return
        if pc is None or not self._remote_description_set:
            # Trickled ahead of the description; applied once it lands.
            self._pending_candidates.append(candidate)
            return
        await self._apply_candidate(pc, candidate)

    async def _on_peer_left(self) -> None:
        if self.phase in (Phase.IDLE, Phase.AWAITING_ROOM_RESULT):
            logger.warning("Ignoring leave in phase %s", self.phase.value)
            return
        logger.info("Peer left room %r, now hosting", self.room)
        self.remote_stream.clear()
        await self._close_peer()
        # Whoever stays behind hosts the next joiner.
        self.is_host = True
        if self.local_stream is not None:
            self.phase = Phase.HOST_WAITING_FOR_PEER

    async def _on_local_candidate(self, pc: PeerConnection, candidate: CandidateDescriptor | None) -> None:
        if not self._is_live(pc) or candidate is None:
            return
        await self._send(SignalKind.ICE_CANDIDATE, candidate)

    async def _on_remote_track(self, pc: PeerConnection, track: Any) -> None:
        if not self._is_live(pc):
            return
        self.remote_stream.add_track(track)

    async def _acquire_local_media(self) -> bool:
        self.phase = Phase.AWAITING_LOCAL_MEDIA
        try:
            stream = await self._media_source.acquire()
        except MediaUnavailableError as exc:
            logger.warning("Local media unavailable for room %r: %s", self.room, exc)
            return False
        except Exception:
            logger.exception("Failed acquiring local media for room %r", self.room)
            return False

        if self.phase is not Phase.AWAITING_LOCAL_MEDIA:
            # Left the room while the devices were opening.
            stream.stop()
            return False

        self.local_stream = stream
        self.media.attach(stream)
        return True

    def _open_peer(self) -> PeerConnection:
        pc = self._peer_factory()
        pc.on_ice_candidate = partial(self._on_local_candidate, pc)
        pc.on_track = partial(self._on_remote_track, pc)
        if self.local_stream is not None:
            for track in self.local_stream.get_tracks():
                pc.add_track(track, self.local_stream)
        self._peer = pc
        self._remote_description_set = False
        return pc

    def _is_live(self, pc: PeerConnection) -> bool:
        return self._peer is pc

    def _ensure_live(self, pc: PeerConnection) -> None:
        if self._peer is not pc:
            raise NegotiationAborted(self.room)

    async def _flush_candidates(self, pc: PeerConnection) -> None:
        pending, self._pending_candidates = self._pending_candidates, []
        for candidate in pending:
            if not self._is_live(pc):
                return
            await self._apply_candidate(pc, candidate)

    async def _apply_candidate(self, pc: PeerConnection, candidate: CandidateDescriptor | None) -> None:
        try:
            await pc.add_ice_candidate(candidate)
        except Exception as exc:
            logger.warning("Dropping ICE candidate in room %r: %s", self.room, exc)

    async def _discard_peer(self, pc: PeerConnection) -> None:
        if self._is_live(pc):
            await self._close_peer()

    async def _close_peer(self) -> None:
        pc, self._peer = self._peer, None
        self._remote_description_set = False
        self._pending_candidates = []
        if pc is None:
            return
        pc.on_ice_candidate = None
        pc.on_track = None
        try:
            await pc.close()
        except Exception:
            logger.exception("Error closing peer connection for room %r", self.room)

    async def _teardown(self) -> None:
        self.phase = Phase.CLOSED
        if self.local_stream is not None:
            self.local_stream.stop()
        self.media.detach()
        self.remote_stream.clear()
        await self._close_peer()

    def _redirect(self) -> None:
        if self._navigate is not None:
            self._navigate(LOBBY_LOCATION)

    async def _send(self, kind: SignalKind, payload: Any = None) -> bool:
        try:
            await self._channel.send(SignalingMessage(type=kind, room=self.room, payload=payload))
        except Exception:
            logger.exception("Failed sending %r for room %r", kind.value, self.room)
            return False
        return True
