"""
duecycle configuration management.

Supports loading from YAML files, environment variables, and keyword overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class EngineConfig(BaseModel):
    """Materialization settings."""

    default_horizon_days: int = Field(
        default=90,
        ge=1,
        description="Horizon used when a caller does not pass one (days after the clock's today)",
    )


class BudgetConfig(BaseModel):
    """Budget utilization and alerting settings."""

    warning_threshold: float = Field(default=0.8, ge=0.0, le=1.0, description="Alert at this share used")
    include_subcategories: bool = Field(default=True, description="Budget tags also match descendant tags")
    expiring_within_days: int = Field(default=7, ge=0)


class StoreConfig(BaseModel):
    """Configuration for the obligation store backend."""

    type: str = Field(default="memory", description="Store type: memory, sql, or a dotted class path")
    url: str | None = Field(default=None, description="SQLAlchemy URL for the sql store")
    options: dict[str, Any] = Field(default_factory=dict)


class DuecycleConfig(BaseModel):
    """Root configuration for duecycle."""

    engine: EngineConfig = Field(default_factory=EngineConfig)
    budgets: BudgetConfig = Field(default_factory=BudgetConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    log_level: str = Field(default="INFO")

    @classmethod
    def load(cls, config_path: str | None = None, **overrides: Any) -> DuecycleConfig:
        """Load configuration from file, env vars, and overrides.

        Priority: overrides > env vars > config file > defaults.
        """
        data: dict[str, Any] = {}

        # 1. Load from YAML file if provided
        if config_path:
            path = Path(config_path)
            if path.exists():
                with open(path) as f:
                    data = yaml.safe_load(f) or {}

        # 2. Override from environment variables
        env_url = os.environ.get("DUECYCLE_STORE_URL")
        env_horizon = os.environ.get("DUECYCLE_HORIZON_DAYS")
        env_level = os.environ.get("DUECYCLE_LOG_LEVEL")

        if env_url:
            store = data.get("store", {})
            store["url"] = env_url
            store.setdefault("type", "sql")
            data["store"] = store

        if env_horizon:
            engine = data.get("engine", {})
            engine["default_horizon_days"] = int(env_horizon)
            data["engine"] = engine

        if env_level:
            data["log_level"] = env_level.upper()

        # 3. Apply keyword overrides
        data.update(overrides)

        return cls.model_validate(data)
