"""Tests for the aiortc adapters."""
from __future__ import annotations

import pytest
from av import AudioFrame

from rendezvous.client.media import MediaUnavailableError
from rendezvous.client.rtc import (
    DeviceMediaSource,
    ToggleableTrack,
    build_configuration,
    candidate_from_dict,
    candidate_to_dict,
)

BROWSER_CANDIDATE = {
    "candidate": "candidate:842163049 1 udp 1677729535 203.0.113.7 46154 typ srflx raddr 192.168.1.20 rport 46154",
    "sdpMid": "0",
    "sdpMLineIndex": 0,
}


class ToneTrack:
    kind = "audio"

    def __init__(self) -> None:
        self.stopped = False

    async def recv(self) -> AudioFrame:
        frame = AudioFrame(format="s16", layout="mono", samples=160)
        for plane in frame.planes:
            plane.update(b"\x01" * plane.buffer_size)
        frame.sample_rate = 16000
        frame.pts = 320
        return frame

    def stop(self) -> None:
        self.stopped = True


def test_browser_candidate_parses_into_aiortc_candidate() -> None:
    candidate = candidate_from_dict(BROWSER_CANDIDATE)

    assert candidate.ip == "203.0.113.7"
    assert candidate.port == 46154
    assert candidate.type == "srflx"
    assert candidate.sdpMid == "0"
    assert candidate.sdpMLineIndex == 0
    assert candidate_to_dict(candidate)["candidate"].startswith("candidate:842163049 1 udp")


def test_configuration_uses_given_ice_servers() -> None:
    configuration = build_configuration(["stun:stun.example.org:3478"])

    assert [server.urls for server in configuration.iceServers] == ["stun:stun.example.org:3478"]


@pytest.mark.asyncio
async def test_disabled_audio_track_sends_silence() -> None:
    source = ToneTrack()
    track = ToggleableTrack(source)

    live = await track.recv()
    track.enabled = False
    muted = await track.recv()

    assert track.kind == "audio"
    assert set(bytes(live.planes[0])) == {1}
    assert set(bytes(muted.planes[0])) == {0}
    assert muted.samples == live.samples
    assert muted.pts == 320

    track.stop()
    assert source.stopped


@pytest.mark.asyncio
async def test_device_source_without_devices_is_unavailable() -> None:
    source = DeviceMediaSource(audio_device="", video_device="", input_format="")

    with pytest.raises(MediaUnavailableError):
        await source.acquire()
