"""Local media streams and mute control.

Muting disables a track instead of removing it, so toggling never forces a
renegotiation with the peer.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Protocol
from uuid import uuid4

AUDIO = "audio"
VIDEO = "video"


class MediaUnavailableError(RuntimeError):
    """Raised when camera or microphone access is denied or no device exists."""


class Track(Protocol):
    kind: str

    def stop(self) -> None: ...


class LocalTrack(Track, Protocol):
    enabled: bool


class MediaSource(Protocol):
    """Anything able to open the local camera and microphone."""

    async def acquire(self) -> "MediaStream": ...


@dataclass
class MediaStream:
    """An ordered bundle of tracks, local or remote."""

    tracks: list = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid4()))

    def add_track(self, track: Track) -> None:
        if track not in self.tracks:
            self.tracks.append(track)

    def get_tracks(self, kind: str | None = None) -> list:
        if kind is None:
            return list(self.tracks)
        return [track for track in self.tracks if track.kind == kind]

    def stop(self) -> None:
        for track in self.tracks:
            track.stop()

    def clear(self) -> None:
        """Stop every track and forget them, keeping the stream object itself."""

        self.stop()
        self.tracks.clear()


class MediaController:
    """Flip local audio/video tracks on and off and mirror the state for the UI."""

    def __init__(self) -> None:
        self.stream: MediaStream | None = None
        self.mic_active = True
        self.camera_active = True

    def attach(self, stream: MediaStream) -> None:
        """Adopt a freshly acquired stream, applying any mute chosen before it arrived."""

        self.stream = stream
        _set_enabled(stream.get_tracks(AUDIO), self.mic_active)
        _set_enabled(stream.get_tracks(VIDEO), self.camera_active)

    def detach(self) -> None:
        self.stream = None

    def toggle_audio(self) -> bool:
        self.mic_active = not self.mic_active
        self._flip(AUDIO)
        return self.mic_active

    def toggle_video(self) -> bool:
        self.camera_active = not self.camera_active
        self._flip(VIDEO)
        return self.camera_active

    def _flip(self, kind: str) -> None:
        if self.stream is None:
            return
        for track in self.stream.get_tracks(kind):
            track.enabled = not track.enabled


def _set_enabled(tracks: Iterable, enabled: bool) -> None:
    for track in tracks:
        track.enabled = enabled
