"""Client-side room negotiation."""
from .coordinator import NegotiationCoordinator, Phase, SignalingChannel
from .media import MediaController, MediaSource, MediaStream, MediaUnavailableError
from .peer import PeerConnection, PeerConnectionFactory
from .room import open_room
from .signaling import SignalingClient, connect_signaling

__all__ = [
    "MediaController",
    "MediaSource",
    "MediaStream",
    "MediaUnavailableError",
    "NegotiationCoordinator",
    "PeerConnection",
    "PeerConnectionFactory",
    "Phase",
    "SignalingChannel",
    "SignalingClient",
    "connect_signaling",
    "open_room",
]
