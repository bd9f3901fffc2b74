"""
Pytest configuration and shared fixtures for dashboard tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core import structured_log  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_event_log(tmp_path, monkeypatch):
    """Send structured log lines to a temp dir and keep the console quiet."""
    logs_dir = tmp_path / "logs"
    monkeypatch.setattr(structured_log, "LOG_DIR", logs_dir)
    monkeypatch.setattr(structured_log, "LOG_FILE", logs_dir / "events.jsonl")
    monkeypatch.setattr(structured_log, "_file_handler", None)
    monkeypatch.setattr(structured_log, "_echo_console", False)
    yield logs_dir
    if structured_log._file_handler is not None:
        structured_log._file_handler.close()


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set gateway environment variables for testing."""
    monkeypatch.setenv("API_BASE_URL", "https://upstream.test")
    monkeypatch.setenv("API_KEY", "test_api_key")


@pytest.fixture
def sample_market_events():
    """Raw market-event payload as the upstream returns it."""
    return [
        {
            "token_id": "tok-1",
            "event_type": "state_extreme",
            "old_value": 0.50,
            "new_value": 0.55,
            "detected_at": "2026-10-19T12:00:00Z",
            "question": "Will it rain in Paris tomorrow?",
            "metadata": {"ret_1m": 0.1, "zscore_5m": 3.4},
        },
        {
            "token_id": "tok-2",
            "event_type": "state_extreme",
            "detected_at": "2026-10-19T12:03:00Z",
            "metadata": {"ret_1m": -0.07, "zscore_5m": -4.2, "mean_revert_hint": "likely to revert"},
        },
        {
            "token_id": "tok-3",
            "event_type": "new_market",
            "detected_at": "2026-10-19T12:04:00Z",
            "question": "Brand new market",
            "metadata": None,
        },
    ]


@pytest.fixture
def sample_strategies():
    """Raw strategies payload as the upstream returns it."""
    return [
        {"name": "momentum", "realized_pnl": 4.0, "unrealized_pnl": 1.0, "total_pnl": 5.0,
         "fills_24h": 12, "last_trade_at": "2026-10-19T11:58:00Z"},
        {"name": "fade", "realized_pnl": -3.0, "unrealized_pnl": 0.0, "total_pnl": -3.0,
         "fills_24h": 0, "last_trade_at": None},
        {"name": "arb", "realized_pnl": 5.0, "unrealized_pnl": 0.0, "total_pnl": 5.0,
         "fills_24h": 3},
    ]


@pytest.fixture
def sample_stats():
    return {
        "active_markets": 1234,
        "events_24h": 5678,
        "open_positions": 3,
        "total_pnl": 12.5,
        "strategies_count": 3,
        "ingest_quotes_per_min": 45210.7,
        "ingest_trades_per_min": 812.2,
        "features_per_minute": 9999.6,
        "db_size": "12 GB",
        "generated_at": "2026-10-19T12:05:00Z",
    }
