"""Wire a coordinator to a live signaling connection."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from .coordinator import Navigate, NegotiationCoordinator, Phase
from .media import MediaSource
from .peer import PeerConnectionFactory
from .signaling import connect_signaling


@asynccontextmanager
async def open_room(
    room: str,
    media_source: MediaSource,
    peer_factory: PeerConnectionFactory | None = None,
    *,
    url: str | None = None,
    navigate: Navigate | None = None,
) -> AsyncIterator[NegotiationCoordinator]:
    """Join ``room`` and yield its coordinator; leaves the room on exit.

    Defaults to aiortc for the peer connection when no factory is given.
    """

    if peer_factory is None:
        from .rtc import AiortcPeerConnection

        peer_factory = AiortcPeerConnection

    async with connect_signaling(url) as client:
        coordinator = NegotiationCoordinator(
            room,
            channel=client,
            media_source=media_source,
            peer_factory=peer_factory,
            navigate=navigate,
        )
        client.on_message = coordinator.handle
        await coordinator.enter_room()
        try:
            yield coordinator
        finally:
            if coordinator.phase is not Phase.CLOSED:
                await coordinator.leave_room()
