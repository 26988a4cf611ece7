"""
/agent/ws — WebSocket held open by each page-resident enforcement agent.

The engine pushes {"action": "blockVideo" | "unblockVideo"} down the socket;
the agent may send {"action": "checkMyStatus"} at any time and gets the
handshake answer back on the same socket.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ...api.dispatch import dispatch, message_adapter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agent", tags=["agent"])


@router.websocket("/ws/{surface_id}")
async def agent_websocket(websocket: WebSocket, surface_id: int):
    engine = websocket.app.state.engine
    cfg = websocket.app.state.config

    await websocket.accept()
    engine.agents.register(surface_id, websocket)
    await websocket.send_json({"pollIntervalS": cfg.agent_poll_interval_s})
    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = message_adapter.validate_json(data)
            except ValidationError as exc:
                await websocket.send_json({
                    "error": "invalid message",
                    "detail": exc.errors(include_url=False, include_context=False),
                })
                continue
            reply = await dispatch(message, surface_id, engine)
            await websocket.send_json(reply.model_dump())
    except WebSocketDisconnect:
        pass
    finally:
        engine.agents.unregister(surface_id, websocket)
