"""Interface the negotiation coordinator expects from a peer connection."""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

SessionDescription = dict[str, Any]
CandidateDescriptor = dict[str, Any]

CandidateHandler = Callable[[CandidateDescriptor | None], Awaitable[None]]
TrackHandler = Callable[[Any], Awaitable[None]]


class PeerConnection(Protocol):
    """Real-time transport performing media exchange and NAT traversal.

    ``on_ice_candidate`` fires with each locally gathered candidate (``None``
    once gathering completes) and ``on_track`` with each inbound media track.
    The owner clears both before calling ``close``.
    """

    on_ice_candidate: CandidateHandler | None
    on_track: TrackHandler | None

    @property
    def local_description(self) -> SessionDescription | None: ...

    def add_track(self, track: Any, stream: Any) -> None: ...

    async def create_offer(self) -> SessionDescription: ...

    async def create_answer(self) -> SessionDescription: ...

    async def set_local_description(self, description: SessionDescription) -> None: ...

    async def set_remote_description(self, description: SessionDescription) -> None: ...

    async def add_ice_candidate(self, candidate: CandidateDescriptor | None) -> None: ...

    async def close(self) -> None: ...


PeerConnectionFactory = Callable[[], PeerConnection]
