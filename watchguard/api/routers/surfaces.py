"""
/surfaces — lifecycle events for viewing surfaces (browser tabs).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ...api.schemas import NavigationIn, SurfaceEventOut
from ...tracking.controller import is_watch_page

router = APIRouter(prefix="/surfaces", tags=["surfaces"])


def _get_engine(request: Request):
    return request.app.state.engine


async def _running(engine, surface_id: int) -> bool:
    state = await engine.timers.get(surface_id)
    return state is not None and state.running


@router.post("/{surface_id}/activated", response_model=SurfaceEventOut)
async def surface_activated(surface_id: int, engine=Depends(_get_engine)):
    """User switched to this surface: pause every other timer, resume this one if within budget."""
    await engine.controller.surface_activated(surface_id)
    return SurfaceEventOut(surface_id=surface_id, running=await _running(engine, surface_id))


@router.post("/{surface_id}/closed", response_model=SurfaceEventOut)
async def surface_closed(surface_id: int, engine=Depends(_get_engine)):
    saved = await engine.controller.surface_closed(surface_id)
    return SurfaceEventOut(surface_id=surface_id, running=False, saved_ms=saved)


@router.post("/{surface_id}/navigated", response_model=SurfaceEventOut)
async def surface_navigated(surface_id: int, nav: NavigationIn, engine=Depends(_get_engine)):
    """A URL change finishes the tracked item; watch_page tells the UI to prompt for a bucket."""
    saved = await engine.controller.surface_navigated(surface_id, nav.url)
    return SurfaceEventOut(
        surface_id=surface_id,
        running=False,
        saved_ms=saved,
        watch_page=is_watch_page(nav.url),
    )
