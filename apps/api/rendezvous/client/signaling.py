"""WebSocket client for the signaling relay."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Any, AsyncIterator, Awaitable, Callable

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed

from ..core.config import settings
from ..schemas.signaling import SignalingMessage

MessageHandler = Callable[[SignalingMessage], Awaitable[None]]

logger = logging.getLogger(__name__)


class SignalingClient:
    """Handle lifespan of one signaling connection.

    Inbound messages are parsed and handed to ``on_message`` one at a time, in
    arrival order; the next message is not read until the handler returns.
    """

    def __init__(self, ws: Any, on_message: MessageHandler | None = None) -> None:
        self._ws = ws
        self.on_message = on_message
        self._receive_task: asyncio.Task[None] | None = None
        self.closed = asyncio.Event()

    async def __aenter__(self) -> "SignalingClient":
        self._receive_task = asyncio.create_task(self._receive_loop())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._receive_task:
            self._receive_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._receive_task
        await self._ws.close()
        self.closed.set()

    async def send(self, message: SignalingMessage) -> None:
        await self._ws.send(message.model_dump_json(exclude_none=True))

    async def _receive_loop(self) -> None:
        try:
            async for raw in self._ws:
                if isinstance(raw, bytes):
                    logger.warning("Ignoring binary signaling frame (%d bytes)", len(raw))
                    continue
                try:
                    message = SignalingMessage.model_validate_json(raw)
                except ValidationError as exc:
                    logger.warning("Ignoring malformed signaling frame: %s", exc.errors()[:1])
                    continue
                if self.on_message is None:
                    continue
                try:
                    await self.on_message(message)
                except Exception:
                    logger.exception("Signaling handler failed on %r", message.type.value)
        except asyncio.CancelledError:
            raise
        except ConnectionClosed as exc:
            logger.info("Signaling connection closed: %s", exc)
        finally:
            self.closed.set()


@asynccontextmanager
async def connect_signaling(
    url: str | None = None,
    on_message: MessageHandler | None = None,
) -> AsyncIterator[SignalingClient]:
    """Open a connection to the relay's signaling endpoint."""

    target = url or settings.signaling_url
    async with websockets.connect(target) as ws:
        logger.info("Connected to signaling relay at %s", target)
        client = SignalingClient(ws, on_message=on_message)
        async with client:
            yield client
