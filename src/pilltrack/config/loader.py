"""
Configuration loader for pilltrack.

What it does:
- Reads static settings from `config/config.yaml` (path overridable through
  the `PILLTRACK_CONFIG` environment variable). A missing file yields defaults.
- Resolves remote mirror credentials from environment variables
  (`SUPABASE_URL`, `SUPABASE_ANON_KEY`); secrets never live in YAML.
- Validates the resulting configuration using Pydantic models.

Where it is used:
- Called by `pilltrack.main`, the HTTP API and the report generator to build
  a `Settings` object for runtime.
"""

import os
import pathlib
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from ..ledger.forecast import RefillPolicy, refill_policy_from_config

DEFAULT_CONFIG_PATH = "config/config.yaml"


class StorageConfig(BaseModel):
    """Where ledger state is kept."""
    path: str = "data/pilltrack.sqlite"
    user_id: str = "default"


class ForecastConfig(BaseModel):
    horizon_days: int = 30
    refill: Optional[Dict[str, Any]] = None

    @field_validator("horizon_days")
    @classmethod
    def non_negative(cls, v):
        if v < 0:
            raise ValueError("horizon_days must be >= 0")
        return v

    def refill_policy(self) -> Optional[RefillPolicy]:
        return refill_policy_from_config(self.refill)


class ReportConfig(BaseModel):
    out_dir: str = "reports"


class MetricsConfig(BaseModel):
    enabled: bool = False
    port: int = 8000


class RemoteConfig(BaseModel):
    url: str = ""
    anon_key: str = ""
    timeout_s: float = 10.0


class Settings(BaseModel):
    """Runtime settings assembled from YAML + environment variables."""
    storage: StorageConfig = Field(default_factory=StorageConfig)
    forecast: ForecastConfig = Field(default_factory=ForecastConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)


def load_settings(path: Optional[str] = None) -> Settings:
    """Load YAML config, resolve env-var credentials, and return Settings."""
    path = path or os.getenv("PILLTRACK_CONFIG", DEFAULT_CONFIG_PATH)
    p = pathlib.Path(path)
    config: Dict[str, Any] = {}
    if p.exists():
        with open(p, "r") as f:
            config = yaml.safe_load(f) or {}
    remote = dict(config.get("remote") or {})
    remote["url"] = os.getenv("SUPABASE_URL", "")
    remote["anon_key"] = os.getenv("SUPABASE_ANON_KEY", "")
    config["remote"] = remote
    return Settings(**config)
