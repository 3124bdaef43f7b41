"""
Realtime WebSocket endpoint.

- WS /api/v1/realtime/ws — per-user event stream (notifications, collaborative messages)

Authenticated by the session cookie or a ``token`` query parameter. Clients
only send ``ping`` frames; everything else flows server → client.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect

from app.core.auth import get_authenticated_user_ws
from app.core.database import get_session_context
from app.core.realtime import manager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def realtime_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
):
    # The session is only needed to authenticate, not for the life of the socket.
    try:
        async with get_session_context() as session:
            auth = await get_authenticated_user_ws(websocket, token, session)
    except HTTPException:
        await websocket.close(code=4001, reason="authentication_failed")
        return

    conn_info = await manager.connect(websocket, auth.user_id, jti=auth.jti)
    if conn_info is None:
        await websocket.close(code=4029, reason="connection_limit_exceeded")
        return

    await websocket.send_text(json.dumps({"type": "connected", "user_id": str(auth.user_id)}))

    try:
        while True:
            data = await websocket.receive_text()
            try:
                frame = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_text(json.dumps({
                    "type": "error",
                    "code": "INVALID_JSON",
                    "message": "Could not parse message as JSON.",
                }))
                continue

            if frame.get("type") == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
                continue

            await websocket.send_text(json.dumps({
                "type": "error",
                "code": "UNSUPPORTED_FRAME",
                "message": "Only ping frames are accepted.",
            }))
    except WebSocketDisconnect:
        await manager.disconnect(conn_info)
    except (RuntimeError, OSError) as e:
        logger.error("WebSocket error: %s", e)
        await manager.disconnect(conn_info)
