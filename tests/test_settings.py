"""Tests for environment-driven settings (revtrail.settings)."""

import pytest
from pydantic import ValidationError

from revtrail.settings import Settings, get_settings


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.enabled is True
    assert settings.has_one_lookback == 3.0
    assert settings.database_url == "sqlite://"
    assert settings.echo_sql is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("REVTRAIL_HAS_ONE_LOOKBACK", "1.5")
    monkeypatch.setenv("REVTRAIL_ENABLED", "false")
    get_settings.cache_clear()

    settings = get_settings()

    assert settings.has_one_lookback == 1.5
    assert settings.enabled is False
    assert get_settings() is settings


def test_negative_lookback_is_rejected(monkeypatch):
    monkeypatch.setenv("REVTRAIL_HAS_ONE_LOOKBACK", "-1")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
