"""
/settings — read and update per-bucket budgets and classifier keywords.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ...api.schemas import SettingsOut, SettingsPatch
from ...settings import DEFAULT_KEYWORDS, DEFAULT_LIMITS

router = APIRouter(prefix="/settings", tags=["settings"])


def _get_engine(request: Request):
    return request.app.state.engine


@router.get("")
async def read_settings(engine=Depends(_get_engine)):
    """Return current settings with their defaults for reference."""
    await engine.settings.ensure_loaded()
    return {
        "settings": SettingsOut(**engine.settings.snapshot()),
        "defaults": SettingsOut(limits=DEFAULT_LIMITS, keywords=DEFAULT_KEYWORDS),
    }


@router.put("")
async def write_settings(patch: SettingsPatch, engine=Depends(_get_engine)):
    """Apply a partial update; budgets are minutes per day. Running engines hot-reload."""
    try:
        saved = await engine.settings.save(limits=patch.limits, keywords=patch.keywords)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return {"settings": SettingsOut(**saved)}
