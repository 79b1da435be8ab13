"""aiortc-backed peer connection and local device media.

aiortc gathers all ICE candidates during ``setLocalDescription`` and writes
them into the SDP instead of trickling them, so the description to send is the
connection's ``localDescription`` after it has been set, not the raw result of
``createOffer``/``createAnswer``.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from aiortc import (
    MediaStreamTrack,
    RTCConfiguration,
    RTCIceCandidate,
    RTCIceServer,
    RTCPeerConnection,
    RTCSessionDescription,
)
from aiortc.contrib.media import MediaPlayer
from aiortc.sdp import candidate_from_sdp, candidate_to_sdp
from av import AudioFrame, VideoFrame

from ..core.config import settings
from .media import AUDIO, VIDEO, MediaStream, MediaUnavailableError
from .peer import CandidateDescriptor, CandidateHandler, SessionDescription, TrackHandler

logger = logging.getLogger(__name__)

CANDIDATE_PREFIX = "candidate:"


def candidate_from_dict(data: CandidateDescriptor) -> RTCIceCandidate:
    """Parse a browser-style ``{"candidate", "sdpMid", "sdpMLineIndex"}`` descriptor."""

    sdp = data["candidate"]
    if sdp.startswith(CANDIDATE_PREFIX):
        sdp = sdp[len(CANDIDATE_PREFIX):]
    candidate = candidate_from_sdp(sdp)
    candidate.sdpMid = data.get("sdpMid")
    candidate.sdpMLineIndex = data.get("sdpMLineIndex")
    return candidate


def candidate_to_dict(candidate: RTCIceCandidate) -> CandidateDescriptor:
    return {
        "candidate": CANDIDATE_PREFIX + candidate_to_sdp(candidate),
        "sdpMid": candidate.sdpMid,
        "sdpMLineIndex": candidate.sdpMLineIndex,
    }


def build_configuration(urls: list[str] | None = None) -> RTCConfiguration:
    servers = settings.ice_servers if urls is None else urls
    username = settings.ice_username or None
    credential = settings.ice_credential or None
    return RTCConfiguration(
        iceServers=[RTCIceServer(urls=url, username=username, credential=credential) for url in servers]
    )


class AiortcPeerConnection:
    """Peer connection capability over ``aiortc.RTCPeerConnection``."""

    def __init__(self, ice_servers: list[str] | None = None) -> None:
        self.on_ice_candidate: CandidateHandler | None = None
        self.on_track: TrackHandler | None = None
        self._pc = RTCPeerConnection(configuration=build_configuration(ice_servers))
        self._pc.on("track", self._handle_track)
        self._pc.on("icecandidate", self._handle_ice_candidate)
        self._pc.on("connectionstatechange", self._handle_state_change)

    @property
    def local_description(self) -> SessionDescription | None:
        description = self._pc.localDescription
        if description is None:
            return None
        return {"type": description.type, "sdp": description.sdp}

    def add_track(self, track: Any, stream: Any) -> None:
        self._pc.addTrack(track)

    async def create_offer(self) -> SessionDescription:
        offer = await self._pc.createOffer()
        return {"type": offer.type, "sdp": offer.sdp}

    async def create_answer(self) -> SessionDescription:
        answer = await self._pc.createAnswer()
        return {"type": answer.type, "sdp": answer.sdp}

    async def set_local_description(self, description: SessionDescription) -> None:
        await self._pc.setLocalDescription(RTCSessionDescription(sdp=description["sdp"], type=description["type"]))

    async def set_remote_description(self, description: SessionDescription) -> None:
        await self._pc.setRemoteDescription(RTCSessionDescription(sdp=description["sdp"], type=description["type"]))

    async def add_ice_candidate(self, candidate: CandidateDescriptor | None) -> None:
        if not candidate or not candidate.get("candidate"):
            # End-of-candidates marker.
            await self._pc.addIceCandidate(None)
            return
        await self._pc.addIceCandidate(candidate_from_dict(candidate))

    async def close(self) -> None:
        self._pc.remove_all_listeners()
        await self._pc.close()

    async def _handle_track(self, track: MediaStreamTrack) -> None:
        logger.info("Receiving remote %s track", track.kind)
        if self.on_track is not None:
            await self.on_track(track)

    async def _handle_ice_candidate(self, candidate: RTCIceCandidate | None) -> None:
        if self.on_ice_candidate is not None:
            await self.on_ice_candidate(candidate_to_dict(candidate) if candidate else None)

    async def _handle_state_change(self) -> None:
        logger.info("Peer connection state: %s", self._pc.connectionState)


class ToggleableTrack(MediaStreamTrack):
    """Forward a device track, replacing frames with silence or black while disabled."""

    def __init__(self, source: MediaStreamTrack) -> None:
        super().__init__()
        self.kind = source.kind
        self.enabled = True
        self._source = source

    async def recv(self):
        frame = await self._source.recv()
        if self.enabled:
            return frame
        if self.kind == AUDIO:
            return _silence(frame)
        return _black(frame)

    def stop(self) -> None:
        super().stop()
        self._source.stop()


def _silence(frame: AudioFrame) -> AudioFrame:
    blank = AudioFrame(format=frame.format.name, layout=frame.layout.name, samples=frame.samples)
    for plane in blank.planes:
        plane.update(bytes(plane.buffer_size))
    blank.pts = frame.pts
    blank.sample_rate = frame.sample_rate
    blank.time_base = frame.time_base
    return blank


def _black(frame: VideoFrame) -> VideoFrame:
    blank = VideoFrame(width=frame.width, height=frame.height, format="yuv420p")
    luma, *chroma = blank.planes
    luma.update(b"\x10" * luma.buffer_size)
    for plane in chroma:
        plane.update(b"\x80" * plane.buffer_size)
    blank.pts = frame.pts
    blank.time_base = frame.time_base
    return blank


class DeviceMediaSource:
    """Open the local microphone and camera through ffmpeg devices."""

    def __init__(
        self,
        audio_device: str | None = None,
        video_device: str | None = None,
        input_format: str | None = None,
    ) -> None:
        self.audio_device = audio_device if audio_device is not None else settings.media_audio_device
        self.video_device = video_device if video_device is not None else settings.media_video_device
        self.input_format = input_format if input_format is not None else settings.media_format

    async def acquire(self) -> MediaStream:
        loop = asyncio.get_running_loop()
        stream = MediaStream()
        video_options = {"video_size": f"{settings.media_video_width}x{settings.media_video_height}"}

        try:
            if self.video_device:
                player = await loop.run_in_executor(None, self._open, self.video_device, video_options)
                if player.video is not None:
                    stream.add_track(ToggleableTrack(player.video))
                # Devices such as avfoundation "0:0" carry both kinds.
                if self.audio_device == self.video_device and player.audio is not None:
                    stream.add_track(ToggleableTrack(player.audio))

            if self.audio_device and self.audio_device != self.video_device:
                player = await loop.run_in_executor(None, self._open, self.audio_device, {})
                if player.audio is not None:
                    stream.add_track(ToggleableTrack(player.audio))
        except MediaUnavailableError:
            stream.stop()
            raise

        if not stream.get_tracks():
            raise MediaUnavailableError("No camera or microphone configured")

        logger.info(
            "Opened local media: %d audio, %d video",
            len(stream.get_tracks(AUDIO)),
            len(stream.get_tracks(VIDEO)),
        )
        return stream

    def _open(self, device: str, options: dict[str, str]) -> MediaPlayer:
        try:
            return MediaPlayer(device, format=self.input_format or None, options=options)
        except Exception as exc:
            raise MediaUnavailableError(f"Could not open {device!r}: {exc}") from exc
