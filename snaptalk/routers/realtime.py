"""WebSocket channel for presence and live message delivery.

Frames are JSON objects ``{"event", "data", "ack"?}``. A frame carrying an
``ack`` id gets exactly one ``ack`` frame back with the outcome.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ..database import create_session
from ..schemas import MessageSendRequest
from ..services import connection_registry, push_new_message, resolve_token_user, send_direct_message, set_presence
from ..services.realtime import build_frame
from .messages import to_message_response

router = APIRouter()
logger = logging.getLogger(__name__)


def _parse_frame(raw: str) -> dict[str, Any] | None:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        payload = {"event": raw.strip()}
    if not isinstance(payload, dict) or not isinstance(payload.get("event"), str):
        return None
    if not isinstance(payload.get("data"), dict):
        payload["data"] = {}
    return payload


async def _reply(websocket: WebSocket, ack: Any, *, success: bool, message: str | None = None, **extra: Any) -> None:
    if ack is None:
        return
    data: dict[str, Any] = {"success": success, "message": message}
    data.update(extra)
    await connection_registry.send(websocket, build_frame("ack", data, ack=str(ack)))


async def _handle_join(websocket: WebSocket, data: dict[str, Any], ack: Any) -> None:
    token = data.get("token")
    if not isinstance(token, str) or not token.strip():
        await _reply(websocket, ack, success=False, message="Token is required")
        return

    db = create_session()
    try:
        user = resolve_token_user(db, token.strip())
        user_id = user.id
        set_presence(db, user_id=user_id, online=True)
    except HTTPException as exc:
        await _reply(websocket, ack, success=False, message=str(exc.detail))
        return
    finally:
        db.close()

    replaced = await connection_registry.register(user_id, websocket)
    if replaced is not None:
        logger.info("User %s joined from a new socket; previous socket replaced", user_id)
    else:
        logger.info("User %s joined", user_id)

    await connection_registry.broadcast("userOnline", {"user_id": str(user_id)}, exclude=websocket)
    await _reply(websocket, ack, success=True, message="Joined", user_id=str(user_id))


async def _handle_send_message(websocket: WebSocket, data: dict[str, Any], ack: Any) -> None:
    sender_id = await connection_registry.user_for(websocket)
    if sender_id is None:
        await _reply(websocket, ack, success=False, message="Not joined")
        return

    try:
        payload = MessageSendRequest.model_validate(data)
    except ValidationError:
        await _reply(websocket, ack, success=False, message="Receiver and non-empty content are required")
        return

    db = create_session()
    try:
        message, created = send_direct_message(db, sender_id=sender_id, payload=payload)
        response = to_message_response(message).model_dump(mode="json")
    except HTTPException as exc:
        await _reply(websocket, ack, success=False, message=str(exc.detail))
        return
    except Exception:
        logger.exception("Socket message from %s could not be stored", sender_id)
        await _reply(websocket, ack, success=False, message="Failed to send message")
        return
    finally:
        db.close()

    if created:
        await push_new_message(response)
    await _reply(websocket, ack, success=True, message="Message sent", data=response)


async def _handle_disconnect(websocket: WebSocket) -> None:
    user_id, was_active = await connection_registry.unregister(websocket)
    if user_id is None or not was_active:
        return

    db = create_session()
    try:
        set_presence(db, user_id=user_id, online=False)
    except HTTPException:
        logger.warning("Could not mark %s offline", user_id)
    finally:
        db.close()

    await connection_registry.broadcast("userOffline", {"user_id": str(user_id)})
    logger.info("User %s went offline", user_id)


@router.websocket("/ws")
async def realtime_channel(websocket: WebSocket) -> None:
    """Long-lived connection for presence events and message delivery."""

    await websocket.accept()
    logger.info("Socket connected from %s", websocket.client)
    try:
        while True:
            try:
                raw = await websocket.receive_text()
            except WebSocketDisconnect:
                break

            frame = _parse_frame(raw)
            if frame is None:
                continue

            event = frame["event"]
            ack = frame.get("ack")
            if event == "ping":
                await connection_registry.send(websocket, build_frame("pong"))
            elif event == "join":
                await _handle_join(websocket, frame["data"], ack)
            elif event == "sendMessage":
                await _handle_send_message(websocket, frame["data"], ack)
            else:
                await _reply(websocket, ack, success=False, message=f"Unknown event {event}")
    finally:
        await _handle_disconnect(websocket)
        logger.info("Socket disconnected from %s", websocket.client)


__all__ = ["router"]
