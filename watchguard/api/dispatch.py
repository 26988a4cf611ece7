"""
Inbound message dispatch — one handler per request variant.

Shared by the HTTP /message endpoint and the agent WebSocket. A handler that
fails is logged and answered with a degraded response of the same shape, so
a caller is never left without an answer.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel, TypeAdapter

from ..engine import WatchGuardEngine
from ..tracking.stats import empty_totals
from .schemas import (
    CheckMyStatusRequest,
    ClassifyTitleOut,
    ClassifyTitleRequest,
    GetLiveStatsRequest,
    GetTabStatusRequest,
    InboundMessage,
    LiveStatsOut,
    StartTimerOut,
    StartTimerRequest,
    StatusOut,
    TabStatusOut,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Any, Optional[int], WatchGuardEngine], Awaitable[BaseModel]]

message_adapter: TypeAdapter = TypeAdapter(InboundMessage)


async def _start_timer(msg: StartTimerRequest, sender: Optional[int], engine: WatchGuardEngine):
    outcome = await engine.controller.start_timer(msg.surface_id, msg.bucket.value)
    return StartTimerOut(
        success=outcome.success,
        blocked=outcome.blocked,
        reason=outcome.reason or None,
    )


async def _live_stats(msg: GetLiveStatsRequest, sender: Optional[int], engine: WatchGuardEngine):
    await engine.settings.ensure_loaded()
    return LiveStatsOut(
        stats=await engine.stats.todays_totals(),
        limits=engine.settings.limits,
    )


async def _check_my_status(msg: CheckMyStatusRequest, sender: Optional[int], engine: WatchGuardEngine):
    command = await engine.enforcement.check_status(sender)
    return StatusOut(action=command.value)


async def _tab_status(msg: GetTabStatusRequest, sender: Optional[int], engine: WatchGuardEngine):
    if msg.surface_id is None:
        return TabStatusOut(bucket=None)
    state = await engine.timers.get(msg.surface_id)
    return TabStatusOut(bucket=state.bucket if state else None)


async def _classify_title(msg: ClassifyTitleRequest, sender: Optional[int], engine: WatchGuardEngine):
    if engine.classifier is None:
        return ClassifyTitleOut(bucket=None)
    await engine.settings.ensure_loaded()
    bucket = await engine.classifier.classify(msg.title, engine.settings.keywords)
    return ClassifyTitleOut(bucket=bucket)


_HANDLERS: Dict[type, Handler] = {
    StartTimerRequest: _start_timer,
    GetLiveStatsRequest: _live_stats,
    CheckMyStatusRequest: _check_my_status,
    GetTabStatusRequest: _tab_status,
    ClassifyTitleRequest: _classify_title,
}

# degraded answers; checkMyStatus fails open
_FALLBACKS: Dict[type, Callable[[WatchGuardEngine], BaseModel]] = {
    StartTimerRequest: lambda engine: StartTimerOut(success=False, reason="Internal error."),
    GetLiveStatsRequest: lambda engine: LiveStatsOut(stats=empty_totals(), limits=engine.settings.limits),
    CheckMyStatusRequest: lambda engine: StatusOut(action="unblockVideo"),
    GetTabStatusRequest: lambda engine: TabStatusOut(bucket=None),
    ClassifyTitleRequest: lambda engine: ClassifyTitleOut(bucket=None),
}


async def dispatch(message: BaseModel, sender: Optional[int], engine: WatchGuardEngine) -> BaseModel:
    handler = _HANDLERS[type(message)]
    try:
        return await handler(message, sender, engine)
    except Exception:
        logger.exception("Handler for %r failed (sender=%s)", message.action, sender)
        return _FALLBACKS[type(message)](engine)
