"""
/message — request/response channel used by the popup and page agents.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from ...api.dispatch import dispatch
from ...api.schemas import InboundMessage

router = APIRouter(tags=["messages"])


def _get_engine(request: Request):
    return request.app.state.engine


@router.post("/message")
async def handle_message(
    message: InboundMessage,
    x_surface_id: Optional[int] = Header(default=None, description="Sender's surface id"),
    engine=Depends(_get_engine),
):
    """Dispatch a tagged request (startTimer, getLiveStats, checkMyStatus, getTabStatus, classifyTitle)."""
    return await dispatch(message, x_surface_id, engine)
