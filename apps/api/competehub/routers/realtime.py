"""WebSocket endpoints for chat and WebRTC signaling."""
from __future__ import annotations

import json
from typing import Union
from uuid import uuid4

import anyio
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from ..schemas.realtime import Frame
from ..services import socket_auth
from ..services.chat import ChatGateway
from ..services.connections import Connection
from ..services.signaling import SignalingRelay

router = APIRouter()

_Gateway = Union[ChatGateway, SignalingRelay]


@router.websocket("/ws/chat")
async def chat_endpoint(websocket: WebSocket) -> None:
    """Chat namespace: global room plus team rooms."""

    await _serve(websocket, websocket.app.state.chat_gateway)


@router.websocket("/ws/webrtc")
async def signaling_endpoint(websocket: WebSocket) -> None:
    """Signaling namespace: SDP and ICE relay between room peers."""

    await _serve(websocket, websocket.app.state.signaling_relay)


async def _serve(websocket: WebSocket, gateway: _Gateway) -> None:
    user = await socket_auth.authenticate(websocket, gateway.session_factory)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Authentication error")
        return

    await websocket.accept()
    connection = Connection(connection_id=str(uuid4()), user=user, send=websocket.send_json)
    try:
        await gateway.connect(connection)
        while True:
            raw = await websocket.receive_text()
            try:
                frame = Frame.model_validate(json.loads(raw))
            except (ValueError, ValidationError):
                await connection.emit("error", {"message": "Malformed frame"})
                continue
            await gateway.dispatch(connection, frame.event, frame.data)
    except WebSocketDisconnect:
        pass
    finally:
        # Shielded so cleanup still runs when the handler task is cancelled.
        with anyio.CancelScope(shield=True):
            await gateway.disconnect(connection)
