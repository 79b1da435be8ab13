"""Signaling WebSocket endpoint."""
from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ..schemas.signaling import SignalingMessage
from ..services.registry import Participant, RoomRegistry
from .deps import get_registry

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/signaling")
async def signaling_endpoint(websocket: WebSocket, registry: RoomRegistry = Depends(get_registry)) -> None:
    """One transport session per participant; room choice arrives in the join message."""

    await websocket.accept()

    connection_id = str(uuid4())
    participant = Participant(connection_id=connection_id, send=websocket.send_json)
    logger.info("Signaling connection %s opened", connection_id)

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            raw = frame.get("text")
            if raw is None:
                logger.warning("Ignoring binary frame from %s", connection_id)
                continue
            try:
                message = SignalingMessage.model_validate_json(raw)
            except ValidationError as exc:
                logger.warning("Ignoring malformed frame from %s: %s", connection_id, exc.errors()[:1])
                continue
            await registry.dispatch(participant, message)
    except WebSocketDisconnect:
        pass
    finally:
        await registry.disconnect(connection_id)
        logger.info("Signaling connection %s closed", connection_id)
