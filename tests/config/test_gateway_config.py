"""
Tests for config/gateway.py - startup credentials.
"""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from config.gateway import GatewayConfig, load_gateway_config
from core.exceptions import MissingConfigError


class TestLoadGatewayConfig:
    def test_reads_mapping(self):
        config = load_gateway_config({"API_BASE_URL": "https://up.test/", "API_KEY": "abc"})
        assert config.base_url == "https://up.test"
        assert config.api_key == "abc"
        assert config.api_key_header == "X-API-Key"

    @pytest.mark.parametrize(
        "environ,missing",
        [
            ({}, "Missing API_BASE_URL or API_KEY"),
            ({"API_BASE_URL": "https://up.test"}, "Missing API_KEY"),
            ({"API_BASE_URL": " ", "API_KEY": "abc"}, "Missing API_BASE_URL"),
        ],
    )
    def test_missing_values_are_fatal(self, environ, missing):
        with pytest.raises(MissingConfigError) as exc_info:
            load_gateway_config(environ)
        assert exc_info.value.message == missing
        assert exc_info.value.is_recoverable is False

    def test_loads_dotenv_file(self, tmp_path, monkeypatch):
        # setenv first so monkeypatch also undoes what load_dotenv writes
        for name in ("API_BASE_URL", "API_KEY"):
            monkeypatch.setenv(name, "")
            monkeypatch.delenv(name)
        env_file = tmp_path / ".env"
        env_file.write_text("API_BASE_URL=https://from-file.test\nAPI_KEY=file-key\n", encoding="utf-8")

        config = load_gateway_config(env_file=env_file)

        assert config.base_url == "https://from-file.test"
        assert config.api_key == "file-key"

    def test_process_env_wins_over_dotenv(self, tmp_path, mock_env_vars):
        env_file = tmp_path / ".env"
        env_file.write_text("API_KEY=file-key\n", encoding="utf-8")

        assert load_gateway_config(env_file=env_file).api_key == "test_api_key"


class TestGatewayConfig:
    def test_frozen(self):
        config = GatewayConfig(base_url="https://up.test", api_key="k")
        with pytest.raises(ValidationError):
            config.api_key = "other"

    def test_key_hidden_from_repr(self):
        assert "sekrit" not in repr(GatewayConfig(base_url="https://up.test", api_key="sekrit"))

    def test_upstream_url_and_headers(self):
        config = GatewayConfig(base_url="https://up.test/", api_key="k", api_key_header="X-Key")
        assert config.upstream_url("/api/stats") == "https://up.test/api/stats"
        assert config.auth_headers() == {"X-Key": "k"}
