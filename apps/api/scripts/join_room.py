"""Join a room from the command line with the configured camera and microphone.

Usage: python scripts/join_room.py ROOM [SIGNALING_URL]
"""
from __future__ import annotations

import asyncio
import logging
import sys

from rendezvous.client import open_room
from rendezvous.client.rtc import DeviceMediaSource
from rendezvous.core.config import settings
from rendezvous.core.logging import configure_logging

logger = logging.getLogger("join_room")


async def main(room: str, url: str | None) -> None:
    left = asyncio.Event()

    def navigate(location: str) -> None:
        logger.info("Leaving room, heading to %s", location)
        left.set()

    async with open_room(room, DeviceMediaSource(), url=url, navigate=navigate) as coordinator:
        logger.info("Waiting in room %r (phase %s)", room, coordinator.phase.value)
        await left.wait()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        sys.exit(__doc__)
    configure_logging(settings.log_level)
    try:
        asyncio.run(main(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None))
    except KeyboardInterrupt:
        pass
