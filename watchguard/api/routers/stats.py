"""
/stats — today's live totals and saved per-day history.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, Request

from ...api.schemas import DailyTotalsOut, LiveStatsOut

router = APIRouter(prefix="/stats", tags=["stats"])


def _get_engine(request: Request):
    return request.app.state.engine


@router.get("/today", response_model=LiveStatsOut)
async def today(engine=Depends(_get_engine)):
    await engine.settings.ensure_loaded()
    return LiveStatsOut(
        stats=await engine.stats.todays_totals(),
        limits=engine.settings.limits,
    )


@router.get("/daily", response_model=List[DailyTotalsOut])
async def daily(
    days: int = Query(default=7, ge=1, le=366, description="Number of most recent days"),
    engine=Depends(_get_engine),
):
    history = await engine.stats.history(days=days)
    return [
        DailyTotalsOut(date=d.date, totals=d.totals, total_ms=d.total_ms)
        for d in history
    ]
