"""
Gateway credentials, read once at process start.

The upstream base URL and static API key are modelled as an immutable
configuration object built at startup and handed to the gateway, instead of
module-level globals read on every request.

Usage:
    from config.gateway import load_gateway_config

    config = load_gateway_config()      # raises MissingConfigError if unset
    gateway = ProxyGateway(config)
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.exceptions import MissingConfigError

BASE_URL_ENV = "API_BASE_URL"
API_KEY_ENV = "API_KEY"


class GatewayConfig(BaseModel):
    """Immutable upstream connection settings."""
    model_config = ConfigDict(frozen=True)

    base_url: str = Field(min_length=1)
    api_key: str = Field(min_length=1, repr=False)
    api_key_header: str = "X-API-Key"
    timeout_sec: float = Field(default=10.0, gt=0)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def upstream_url(self, path: str) -> str:
        """Join an ``/api/...`` path onto the base URL."""
        return f"{self.base_url}/{path.lstrip('/')}"

    def auth_headers(self) -> dict[str, str]:
        return {self.api_key_header: self.api_key}


def load_gateway_config(
    environ: Optional[Mapping[str, str]] = None,
    env_file: Optional[str | Path] = ".env",
    api_key_header: str = "X-API-Key",
    timeout_sec: float = 10.0,
) -> GatewayConfig:
    """
    Build the gateway config from the environment.

    Args:
        environ: Mapping to read from (defaults to os.environ after loading .env)
        env_file: Optional .env file loaded into os.environ first
        api_key_header: Header that carries the credential
        timeout_sec: Upstream request timeout

    Raises:
        MissingConfigError: If the base URL or API key is absent/blank
    """
    if environ is None:
        if env_file and Path(env_file).exists():
            load_dotenv(env_file, override=False)
        environ = os.environ

    base_url = (environ.get(BASE_URL_ENV) or "").strip()
    api_key = (environ.get(API_KEY_ENV) or "").strip()

    missing = [name for name, value in ((BASE_URL_ENV, base_url), (API_KEY_ENV, api_key)) if not value]
    if missing:
        raise MissingConfigError(
            f"Missing {' or '.join(missing)}",
            context={"missing": ",".join(missing)},
        )

    return GatewayConfig(
        base_url=base_url,
        api_key=api_key,
        api_key_header=api_key_header,
        timeout_sec=timeout_sec,
    )
