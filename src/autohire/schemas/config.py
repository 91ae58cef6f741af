"""Pydantic configuration schema for YAML input."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from ..errors import ConfigurationError


class DatabaseConfig(BaseModel):
    url: str = "sqlite:///autohire.db"
    echo: bool = False

    model_config = ConfigDict(extra="forbid")


class ScoringServiceConfig(BaseModel):
    base_url: str | None = None
    api_key: str | None = None
    timeout: float = Field(default=30.0, gt=0)

    model_config = ConfigDict(extra="forbid")


class ReconciliationConfig(BaseModel):
    progress_every: int = Field(default=5, ge=1)

    model_config = ConfigDict(extra="forbid")


class RunConfig(BaseModel):
    stale_after_minutes: float = Field(default=30.0, gt=0)
    max_workers: int = Field(default=2, ge=1)

    model_config = ConfigDict(extra="forbid")


class AppConfig(BaseModel):
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    scoring: ScoringServiceConfig = Field(default_factory=ScoringServiceConfig)
    reconciliation: ReconciliationConfig = Field(default_factory=ReconciliationConfig)
    runs: RunConfig = Field(default_factory=RunConfig)

    model_config = ConfigDict(extra="forbid")

    def to_settings(self) -> dict[str, Any]:
        return self.model_dump(mode="python")


def load_config(raw: Any) -> AppConfig:
    if raw is None:
        return AppConfig()
    if not isinstance(raw, dict):
        raise ConfigurationError("Config must be a mapping")
    return AppConfig.model_validate(raw)


def load_config_file(path: str | Path) -> AppConfig:
    """Load and validate a YAML configuration file."""
    with Path(path).open("r", encoding="utf-8") as handle:
        return load_config(yaml.safe_load(handle))
