"""
Pydantic schemas for the FastAPI local API.
"""

from __future__ import annotations

from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from ..settings import Bucket

# ── Inbound messages (one variant per action) ──────────────────────────────

class StartTimerRequest(BaseModel):
    action: Literal["startTimer"]
    surface_id: int
    bucket: Bucket


class GetLiveStatsRequest(BaseModel):
    action: Literal["getLiveStats"]


class CheckMyStatusRequest(BaseModel):
    """Sent by a page agent; its surface id is the sender's, not part of the body."""
    action: Literal["checkMyStatus"]


class GetTabStatusRequest(BaseModel):
    action: Literal["getTabStatus"]
    surface_id: Optional[int] = None


class ClassifyTitleRequest(BaseModel):
    action: Literal["classifyTitle"]
    title: str = Field(..., min_length=1, max_length=500)


InboundMessage = Annotated[
    Union[
        StartTimerRequest,
        GetLiveStatsRequest,
        CheckMyStatusRequest,
        GetTabStatusRequest,
        ClassifyTitleRequest,
    ],
    Field(discriminator="action"),
]


# ── Responses ──────────────────────────────────────────────────────────────

class StartTimerOut(BaseModel):
    success: bool
    blocked: bool = False
    reason: Optional[str] = None


class LiveStatsOut(BaseModel):
    stats: Dict[str, int] = Field(..., description="bucket → ms spent today")
    limits: Dict[str, float] = Field(..., description="bucket → budget in minutes")


class StatusOut(BaseModel):
    action: Literal["blockVideo", "unblockVideo"]


class TabStatusOut(BaseModel):
    bucket: Optional[str] = None


class ClassifyTitleOut(BaseModel):
    bucket: Optional[str] = None


# ── Surface lifecycle ──────────────────────────────────────────────────────

class NavigationIn(BaseModel):
    url: str = ""


class SurfaceEventOut(BaseModel):
    surface_id: int
    running: bool
    saved_ms: int = 0
    watch_page: Optional[bool] = None


# ── Settings ───────────────────────────────────────────────────────────────

class SettingsPatch(BaseModel):
    limits: Optional[Dict[Bucket, float]] = None
    keywords: Optional[Dict[Bucket, List[str]]] = None


class SettingsOut(BaseModel):
    limits: Dict[str, float]
    keywords: Dict[str, List[str]]


# ── Stats ──────────────────────────────────────────────────────────────────

class DailyTotalsOut(BaseModel):
    date: str
    totals: Dict[str, int]
    total_ms: int
