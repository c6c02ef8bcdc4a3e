"""Connection registry mapping users to their live WebSocket."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any
from uuid import UUID

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def build_frame(event: str, data: Any = None, *, ack: str | None = None) -> dict[str, Any]:
    frame: dict[str, Any] = {"event": event, "data": data}
    if ack is not None:
        frame["ack"] = ack
    return frame


class ConnectionRegistry:
    """Track one active socket per user and push JSON events to them.

    A second ``register`` for the same user replaces the earlier socket; the
    replaced socket stays open but no longer receives pushes and its
    disconnect does not mark the user offline.
    """

    def __init__(self) -> None:
        self._sockets: dict[UUID, WebSocket] = {}
        self._users: dict[WebSocket, UUID] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: UUID, websocket: WebSocket) -> WebSocket | None:
        """Bind ``websocket`` to ``user_id``; returns the socket it replaced, if any."""

        async with self._lock:
            previous_user = self._users.pop(websocket, None)
            if previous_user is not None and self._sockets.get(previous_user) is websocket:
                self._sockets.pop(previous_user, None)

            replaced = self._sockets.get(user_id)
            if replaced is not None and replaced is not websocket:
                self._users.pop(replaced, None)
            else:
                replaced = None

            self._sockets[user_id] = websocket
            self._users[websocket] = user_id
        return replaced

    async def unregister(self, websocket: WebSocket) -> tuple[UUID | None, bool]:
        """Forget ``websocket``; returns its user and whether it was that user's active socket."""

        async with self._lock:
            user_id = self._users.pop(websocket, None)
            if user_id is None:
                return None, False
            active = self._sockets.get(user_id) is websocket
            if active:
                self._sockets.pop(user_id, None)
        return user_id, active

    async def user_for(self, websocket: WebSocket) -> UUID | None:
        async with self._lock:
            return self._users.get(websocket)

    async def lookup(self, user_id: UUID) -> WebSocket | None:
        async with self._lock:
            return self._sockets.get(user_id)

    async def online_user_ids(self) -> set[UUID]:
        async with self._lock:
            return set(self._sockets)

    async def send(self, websocket: WebSocket, frame: dict[str, Any]) -> bool:
        try:
            await websocket.send_text(json.dumps(frame, default=str))
        except Exception:
            logger.warning("Dropping socket after failed send of %s", frame.get("event"))
            await self.unregister(websocket)
            return False
        return True

    async def send_to_user(self, user_id: UUID, event: str, data: Any = None) -> bool:
        """Push an event to the user's active socket; false when they are not connected."""

        websocket = await self.lookup(user_id)
        if websocket is None:
            return False
        return await self.send(websocket, build_frame(event, data))

    async def broadcast(self, event: str, data: Any = None, *, exclude: WebSocket | None = None) -> int:
        async with self._lock:
            targets = [socket for socket in self._users if socket is not exclude]
        frame = build_frame(event, data)
        delivered = 0
        for connection in targets:
            if await self.send(connection, frame):
                delivered += 1
        return delivered

    def clear(self) -> None:
        self._sockets.clear()
        self._users.clear()


connection_registry = ConnectionRegistry()


async def push_new_message(message: dict[str, Any]) -> None:
    """Announce a stored message: ``receiveMessage`` to the receiver, ``messageSent`` to the sender."""

    sender_id = UUID(str(message["sender"]["id"]))
    receiver_id = UUID(str(message["receiver"]["id"]))
    await connection_registry.send_to_user(receiver_id, "receiveMessage", message)
    await connection_registry.send_to_user(sender_id, "messageSent", message)


async def push_message_deleted(*, message_id: UUID, sender_id: UUID, receiver_id: UUID) -> None:
    payload = {"message_id": str(message_id), "sender_id": str(sender_id), "receiver_id": str(receiver_id)}
    await connection_registry.send_to_user(receiver_id, "messageDeleted", payload)


__all__ = [
    "ConnectionRegistry",
    "build_frame",
    "connection_registry",
    "push_new_message",
    "push_message_deleted",
]
