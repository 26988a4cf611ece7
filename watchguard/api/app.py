"""
FastAPI application — local WatchGuard engine API.
Runs on http://127.0.0.1:8766 by default.

Per-app objects (store, engine, agent registry, tick task) live on app.state
so that each call to create_app() produces a fully independent instance with
no shared module-level globals. This makes test isolation straightforward.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from ..classifier.title_classifier import TitleClassifier
from ..clock import Clock
from ..config import Config, config as default_config
from ..enforcement.agents import AgentRegistry
from ..engine import WatchGuardEngine
from ..store import KeyValueStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Periodic tick: day rollover, then proactive sweep
# ---------------------------------------------------------------------------

async def _tick_loop(engine: WatchGuardEngine, interval_s: float) -> None:
    while True:
        await asyncio.sleep(interval_s)
        try:
            await engine.tick()
        except Exception:
            logger.exception("Periodic tick failed")


# ---------------------------------------------------------------------------
# Lifespan: initialises and tears down all per-app state
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    cfg: Config = app.state.config
    store = KeyValueStore(app.state.db_path or cfg.store_path)
    classifier = TitleClassifier(
        api_key=cfg.classifier_api_key,
        model=cfg.classifier_model,
        timeout_s=cfg.classifier_timeout_s,
    )
    engine = WatchGuardEngine(
        store,
        AgentRegistry(send_timeout_s=cfg.agent_send_timeout_s),
        clock=app.state.clock,
        classifier=classifier,
    )
    await engine.start()
    app.state.store = store
    app.state.engine = engine

    tick_task = asyncio.create_task(_tick_loop(engine, cfg.tick_interval_s))

    yield

    tick_task.cancel()
    try:
        await tick_task
    except asyncio.CancelledError:
        pass


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(
    cfg: Optional[Config] = None,
    db_path: Optional[Path] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    app = FastAPI(
        title="WatchGuard",
        description="Local engine tracking per-bucket viewing time and enforcing daily budgets",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = cfg or default_config
    app.state.db_path = db_path
    app.state.clock = clock

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["null"],
        allow_origin_regex=r"chrome-extension://.*",
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from .routers import agent, messages, settings, stats, surfaces

    app.include_router(messages.router)
    app.include_router(surfaces.router)
    app.include_router(settings.router)
    app.include_router(stats.router)
    app.include_router(agent.router)

    @app.get("/health")
    def health(request: Request):
        engine = getattr(request.app.state, "engine", None)
        today = engine.clock.today() if engine else None
        return {"status": "ok", "version": "0.1.0", "date": today}

    return app


app = create_app()
