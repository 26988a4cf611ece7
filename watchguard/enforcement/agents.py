"""
Agent Registry — the push channel to page-resident enforcement agents.

Each agent holds a WebSocket to /agent/ws/{surface_id}. Commands are
fire-and-forget: a missing, closed or slow socket is logged and reported as
an undelivered command, never raised. The pull handshake covers the gap.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, Protocol

logger = logging.getLogger(__name__)


class AgentCommand(str, Enum):
    BLOCK = "blockVideo"
    UNBLOCK = "unblockVideo"


class AgentSocket(Protocol):
    async def send_json(self, data: Any) -> None: ...


class AgentRegistry:

    def __init__(self, send_timeout_s: float = 2.0):
        self._send_timeout_s = send_timeout_s
        self._sockets: Dict[int, AgentSocket] = {}

    def register(self, surface: int, socket: AgentSocket) -> None:
        # a reloaded page replaces the socket of its previous incarnation
        self._sockets[surface] = socket
        logger.info("Agent connected for surface %s", surface)

    def unregister(self, surface: int, socket: AgentSocket | None = None) -> None:
        current = self._sockets.get(surface)
        if current is None or (socket is not None and current is not socket):
            return
        del self._sockets[surface]
        logger.info("Agent disconnected for surface %s", surface)

    def is_connected(self, surface: int) -> bool:
        return surface in self._sockets

    async def send(self, surface: int, command: AgentCommand) -> bool:
        """Deliver *command* to the agent of *surface*. Returns False if undelivered."""
        socket = self._sockets.get(surface)
        if socket is None:
            logger.warning(
                "Could not send %r to surface %s: no agent connected (it may be reloading)",
                command.value, surface,
            )
            return False
        try:
            await asyncio.wait_for(
                socket.send_json({"action": command.value}), timeout=self._send_timeout_s
            )
        except Exception as exc:
            logger.warning("Could not send %r to surface %s: %s", command.value, surface, exc)
            self.unregister(surface, socket)
            return False
        logger.debug("Sent %r to surface %s", command.value, surface)
        return True
