"""
WebSocket realtime delivery for per-user events (notifications, shared messages).

- One Redis pub/sub channel per user (``bh:user:{user_id}``), so a publish
  from any process reaches that user's sockets on every process
- Local sockets tracked in-memory per user
- Connection limit per user
- Closing sockets whose JWT has been revoked
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any
from uuid import UUID

from fastapi import WebSocket
from redis.exceptions import RedisError

from app.core.redis import get_redis

logger = logging.getLogger(__name__)

REDIS_USER_CHANNEL_PREFIX = "bh:user:"
REDIS_ONLINE_KEY = "bh:ws:online"
MAX_CONNECTIONS_PER_USER = 5


def user_channel(user_id: UUID | str) -> str:
    return f"{REDIS_USER_CHANNEL_PREFIX}{user_id}"


class ConnectionInfo:
    """Tracks a single WebSocket connection's metadata."""

    __slots__ = ("websocket", "user_id", "jti")

    def __init__(self, websocket: WebSocket, user_id: UUID, jti: str | None = None):
        self.websocket = websocket
        self.user_id = user_id
        self.jti = jti


class ConnectionManager:
    """
    Manages per-user WebSocket connections with Redis-backed pub/sub.

    Local connections are tracked in-memory; each user with at least one
    local socket gets one Redis listener task for their channel.
    """

    def __init__(self) -> None:
        # user_id_str -> list[ConnectionInfo]
        self._connections: dict[str, list[ConnectionInfo]] = {}
        # user_id_str -> asyncio.Task (Redis listener)
        self._redis_tasks: dict[str, asyncio.Task] = {}

    @property
    def connections(self) -> dict[str, list[ConnectionInfo]]:
        return self._connections

    async def connect(
        self,
        websocket: WebSocket,
        user_id: UUID,
        jti: str | None = None,
    ) -> ConnectionInfo | None:
        """
        Accept a WebSocket connection and register it.

        Returns ConnectionInfo on success, None if the per-user limit is reached.
        """
        user_str = str(user_id)

        if len(self._connections.get(user_str, [])) >= MAX_CONNECTIONS_PER_USER:
            return None

        await websocket.accept()

        info = ConnectionInfo(websocket, user_id, jti)

        if user_str not in self._connections:
            self._connections[user_str] = []
            self._redis_tasks[user_str] = asyncio.create_task(self._listen_redis(user_str))

        self._connections[user_str].append(info)

        redis = await get_redis()
        await redis.sadd(REDIS_ONLINE_KEY, user_str)

        logger.info(
            "WebSocket connected: user=%s total=%d",
            user_str,
            len(self._connections[user_str]),
        )
        return info

    async def disconnect(self, info: ConnectionInfo) -> None:
        user_str = str(info.user_id)

        if user_str in self._connections:
            try:
                self._connections[user_str].remove(info)
            except ValueError:
                pass

            if not self._connections[user_str]:
                task = self._redis_tasks.pop(user_str, None)
                if task:
                    task.cancel()
                del self._connections[user_str]
                redis = await get_redis()
                await redis.srem(REDIS_ONLINE_KEY, user_str)

        logger.info("WebSocket disconnected: user=%s", user_str)

    async def send_to_user(self, user_id: UUID | str, message: dict[str, Any]) -> int:
        """Deliver to this process's sockets for a user. Returns sockets reached."""
        user_str = str(user_id)
        if user_str not in self._connections:
            return 0

        msg_text = json.dumps(message, default=str)

        delivered = 0
        dead_connections = []
        for conn_info in list(self._connections[user_str]):
            try:
                await conn_info.websocket.send_text(msg_text)
                delivered += 1
            except (RuntimeError, OSError):
                dead_connections.append(conn_info)

        for dead in dead_connections:
            await self.disconnect(dead)
        return delivered

    async def publish_to_user(self, user_id: UUID | str, message: dict[str, Any]) -> None:
        """Publish to Redis so every process delivers to its local sockets."""
        redis = await get_redis()
        await redis.publish(user_channel(user_id), json.dumps(message, default=str))

    async def close_for_revoked_jwt(self, jti: str) -> None:
        to_close = [
            c for conns in self._connections.values() for c in conns if c.jti == jti
        ]
        for conn_info in to_close:
            try:
                await conn_info.websocket.close(code=4001, reason="credential_revoked")
            except (RuntimeError, OSError):
                pass
            await self.disconnect(conn_info)

    async def is_online(self, user_id: UUID | str) -> bool:
        redis = await get_redis()
        return bool(await redis.sismember(REDIS_ONLINE_KEY, str(user_id)))

    # --- Redis Pub/Sub Listener ---

    async def _listen_redis(self, user_id_str: str) -> None:
        """Listen to the user's Redis channel and deliver locally."""
        redis = await get_redis()
        pubsub = redis.pubsub()
        channel = user_channel(user_id_str)
        await pubsub.subscribe(channel)

        try:
            async for message in pubsub.listen():
                if message["type"] == "message":
                    await self.send_to_user(user_id_str, json.loads(message["data"]))
        except asyncio.CancelledError:
            logger.info("Redis WS listener cancelled for user %s", user_id_str)
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()


# Singleton
manager = ConnectionManager()


async def push_event(user_id: UUID | str, event_type: str, data: dict[str, Any]) -> None:
    """Best-effort realtime push; used from background tasks after commit."""
    try:
        await manager.publish_to_user(user_id, {"type": event_type, "data": data})
    except (RedisError, OSError) as exc:
        logger.warning("Realtime push failed: user=%s type=%s error=%s", user_id, event_type, exc)
