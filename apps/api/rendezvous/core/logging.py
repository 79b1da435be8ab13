"""Logging setup shared by the relay and the room client."""
from __future__ import annotations

import logging
import sys

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str | int = logging.INFO, fmt: str | None = None) -> None:
    """Install a stdout handler on the root logger unless one is already present."""

    if logging.getLogger().handlers:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        level=level,
        format=fmt or DEFAULT_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
