"""
Typed Settings Schema (Pydantic)
================================

Provides typed, validated configuration for the dashboard: poll cadences,
the lag banding policy, event feed query shapes and the strategy summary
size. Secrets (upstream URL, API key) are NOT here; see config/gateway.py.

Usage:
    from config.settings_schema import load_validated_settings

    settings = load_validated_settings()
    settings.polling.events_sec      # 10.0
    settings.lag.policy              # "seconds"
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from core.exceptions import SettingsValidationError
from dashboard.lag import LagPolicy, get_lag_policy

logger = logging.getLogger(__name__)


# ============================================================================
# Schema Definitions
# ============================================================================

class PollingConfig(BaseModel):
    """Independent poll intervals, in seconds."""
    stats_sec: float = Field(default=600.0, gt=0, description="Stats are slow to compute upstream")
    stream_lag_sec: float = Field(default=30.0, gt=0)
    strategies_sec: float = Field(default=15.0, gt=0)
    events_sec: float = Field(default=10.0, gt=0)
    clock_tick_sec: float = Field(default=1.0, gt=0)


class LagConfig(BaseModel):
    """Lag banding policy selection and optional threshold overrides."""
    policy: Literal["seconds", "milliseconds"] = "seconds"
    warn_at_sec: Optional[float] = Field(default=None, gt=0)
    bad_at_sec: Optional[float] = Field(default=None, gt=0)

    def resolve(self) -> LagPolicy:
        """The named policy with any threshold overrides applied."""
        return get_lag_policy(self.policy, self.warn_at_sec, self.bad_at_sec)

    @model_validator(mode="after")
    def _check_order(self) -> "LagConfig":
        # A single override must still sit on the right side of the policy's other threshold
        self.resolve()
        return self


class EventsConfig(BaseModel):
    """Market-event feed query shapes."""
    limit: int = Field(default=20, ge=1, le=500)
    price_jump_min_ret: float = Field(default=0.05, ge=0)


class StrategiesConfig(BaseModel):
    """Strategy summary configuration."""
    top_n: int = Field(default=2, ge=1)


class GatewaySettings(BaseModel):
    """Non-secret gateway tuning."""
    timeout_sec: float = Field(default=10.0, gt=0)
    api_key_header: str = "X-API-Key"


class Settings(BaseModel):
    """Complete settings schema."""
    model_config = ConfigDict(extra="allow")

    polling: PollingConfig = Field(default_factory=PollingConfig)
    lag: LagConfig = Field(default_factory=LagConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)
    strategies: StrategiesConfig = Field(default_factory=StrategiesConfig)
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)


# ============================================================================
# Loading
# ============================================================================

def get_config_path() -> Path:
    """Return path to base.yaml (MARKETPULSE_CONFIG_PATH wins)."""
    env_path = os.getenv("MARKETPULSE_CONFIG_PATH")
    if env_path:
        return Path(env_path)
    return Path(__file__).parent / "base.yaml"


def _load_yaml_config() -> Dict[str, Any]:
    """Load raw YAML configuration."""
    path = get_config_path()

    if not path.exists():
        logger.warning(f"Config file not found: {path}")
        return {}

    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_validated_settings() -> Settings:
    """
    Load and validate settings from base.yaml.

    Raises:
        SettingsValidationError: If settings are invalid
    """
    raw = _load_yaml_config()
    try:
        return Settings(**raw)
    except ValidationError as e:
        logger.error(f"Settings validation failed: {e}")
        raise SettingsValidationError(
            "Settings validation failed",
            context={"path": str(get_config_path()), "errors": len(e.errors())},
            cause=e,
        ) from e
