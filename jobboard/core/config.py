"""Configuration models and YAML loader for the job board core."""

from datetime import time
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/jobboard.db"


class LifecycleConfig(BaseModel):
    """Elapsed-time thresholds for automatic transitions."""

    dump_after_days: int = Field(default=7, ge=1)
    inactive_after_days: int = Field(default=30, ge=1)


class SchedulerConfig(BaseModel):
    """When the daily transition pass runs (UTC)."""

    enabled: bool = True
    run_at: time = time(0, 0)
    run_on_startup: bool = True

    @field_validator("run_at", mode="before")
    @classmethod
    def run_at_from_string(cls, v: Any) -> Any:
        # Unquoted 12:30 in YAML 1.1 is the sexagesimal integer 750.
        if isinstance(v, int):
            msg = "run_at must be a quoted 'HH:MM' string"
            raise ValueError(msg)
        if isinstance(v, str):
            return time.fromisoformat(v.strip())
        return v


class AnalyticsConfig(BaseModel):
    """Defaults for reporting queries."""

    dashboard_days: int = Field(default=7, ge=1)
    report_limit: int = Field(default=10, ge=1)


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
