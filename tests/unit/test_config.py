"""
Unit tests for settings.
"""

import pytest
from pydantic import ValidationError

from pqbus.config import Settings, get_settings
from pqbus.constants import WorkerMode


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("PQBUS_BUS_NAME", raising=False)
        settings = Settings(_env_file=None)

        assert settings.bus_name == "pqbus"
        assert settings.connect_max_attempts == 10
        assert settings.worker_mode == WorkerMode.CONSUMER
        assert settings.claimant_id is None
        assert settings.prometheus_port is None

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PQBUS_BUS_NAME", "orders")
        monkeypatch.setenv("PQBUS_WORKER_MODE", "publisher")
        monkeypatch.setenv("PQBUS_CONNECT_MAX_ATTEMPTS", "3")

        settings = get_settings()

        assert settings.bus_name == "orders"
        assert settings.worker_mode == WorkerMode.PUBLISHER
        assert settings.connect_max_attempts == 3

    def test_cached(self):
        assert get_settings() is get_settings()

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, connect_max_attempts=0)
