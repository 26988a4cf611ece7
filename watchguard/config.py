"""
Central configuration for the WatchGuard engine.
All values can be overridden via environment variables or a local config.json.

User budgets and keyword lists are not configuration: they live in the
durable store and are edited through the /settings API.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

_ROOT = Path(__file__).parent.parent
_CONFIG_FILE = _ROOT / "config.json"


@dataclass
class Config:
    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8766

    # Enforcement
    tick_interval_s: int = 60                # rollover + proactive sweep
    agent_poll_interval_s: int = 5           # advertised to page agents
    agent_send_timeout_s: float = 2.0        # bound on a single push delivery

    # Storage
    data_dir: Path = field(default_factory=lambda: _ROOT / "data")
    store_db: str = "watchguard.db"

    # Title classifier
    classifier_api_key: str = ""
    classifier_model: str = "gemini-2.5-flash-preview-09-2025"
    classifier_timeout_s: float = 10.0

    log_level: str = "info"

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def store_path(self) -> Path:
        return self.data_dir / self.store_db

    @classmethod
    def load(cls) -> "Config":
        cfg = cls()
        if _CONFIG_FILE.exists():
            overrides = json.loads(_CONFIG_FILE.read_text())
            for k, v in overrides.items():
                if hasattr(cfg, k):
                    setattr(cfg, k, v)
        # environment variable overrides (WG_*)
        for k in cfg.__dataclass_fields__:  # type: ignore[attr-defined]
            env_key = f"WG_{k.upper()}"
            if env_key in os.environ:
                setattr(cfg, k, type(getattr(cfg, k))(os.environ[env_key]))
        cfg.data_dir = Path(cfg.data_dir)
        cfg.data_dir.mkdir(parents=True, exist_ok=True)
        return cfg


# Module-level singleton
config = Config.load()
