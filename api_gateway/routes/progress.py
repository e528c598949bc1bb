"""
Progress WebSocket endpoint.

Real-time pipeline progress for one session per subscription.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from shared.errors import PipelineError, error_payload
from shared.logging import get_logger
from shared.models.video import PipelineStep, ProgressEvent
from api_gateway.dependencies import get_broadcaster, get_settings
from api_gateway.services.progress_broadcaster import ProgressBroadcaster, SubscriberHandle

logger = get_logger(__name__)

router = APIRouter()


def _rejection(session_id: str, error: PipelineError) -> dict:
    """Error-type message for a refused subscription."""
    return ProgressEvent(
        session_id=session_id,
        step=PipelineStep.ERROR,
        progress=0,
        message=f"Error: {error.message}",
        payload=error_payload(error)
    ).to_message()


async def _receive_loop(
    websocket: WebSocket,
    broadcaster: ProgressBroadcaster,
    handle: SubscriberHandle
) -> None:
    """Handle client control messages until the socket closes."""
    subscribed: Optional[str] = None

    while True:
        raw = await websocket.receive_text()
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            await websocket.send_json({"type": "invalid", "message": "Message must be valid JSON"})
            continue

        if not isinstance(message, dict):
            await websocket.send_json({"type": "invalid", "message": "Message must be a JSON object"})
            continue

        message_type = message.get("type")

        if message_type == "subscribe":
            session_id = message.get("sessionId")
            if not isinstance(session_id, str) or not session_id:
                await websocket.send_json({"type": "invalid", "message": "subscribe requires a sessionId"})
                continue

            # One session per socket; switching drops the previous one
            if subscribed and subscribed != session_id:
                broadcaster.unsubscribe(handle, close=False)
                subscribed = None

            try:
                broadcaster.subscribe(session_id, handle)
            except PipelineError as e:
                logger.info(
                    "Subscription refused",
                    extra={"session_id": session_id, "code": e.code}
                )
                await websocket.send_json(_rejection(session_id, e))
                continue

            subscribed = session_id
            await websocket.send_json({"type": "subscribed", "sessionId": session_id})
            logger.info("Progress subscription started", extra={"session_id": session_id})

        elif message_type == "unsubscribe":
            broadcaster.unsubscribe(handle, close=False)
            subscribed = None
            await websocket.send_json({"type": "unsubscribed"})

        else:
            await websocket.send_json({"type": "invalid", "message": f"Unknown message type: {message_type}"})


async def _send_loop(websocket: WebSocket, handle: SubscriberHandle, heartbeat_interval: float) -> None:
    """Forward queued events and send heartbeats while idle."""
    loop = asyncio.get_running_loop()
    last_heartbeat = loop.time()

    while True:
        timeout = max(0.1, heartbeat_interval - (loop.time() - last_heartbeat))
        try:
            event = await asyncio.wait_for(handle.get(), timeout=timeout)
            await websocket.send_json(event.to_message())
        except asyncio.TimeoutError:
            await websocket.send_json({
                "type": "heartbeat",
                "timestamp": datetime.now(timezone.utc).isoformat()
            })
            last_heartbeat = loop.time()


@router.websocket("/ws/progress")
async def progress_socket(websocket: WebSocket):
    """
    Progress channel.

    Clients send `{"type": "subscribe", "sessionId": ...}` and then receive
    progress, completed and error messages for that session, plus heartbeats.
    """
    broadcaster = get_broadcaster(websocket)
    settings = get_settings(websocket)
    handle = SubscriberHandle()

    await websocket.accept()
    logger.info("Progress socket connected")

    receiver = asyncio.create_task(_receive_loop(websocket, broadcaster, handle))
    sender = asyncio.create_task(_send_loop(websocket, handle, settings.heartbeat_interval_seconds))

    try:
        done, pending = await asyncio.wait({receiver, sender}, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            error = task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                logger.error("Error in progress socket", exc_info=error)
    finally:
        # Unregister before awaiting; the handler itself may already be cancelled
        broadcaster.unsubscribe(handle)
        logger.info("Progress socket closed")
        for task in (receiver, sender):
            task.cancel()
        await asyncio.gather(receiver, sender, return_exceptions=True)
