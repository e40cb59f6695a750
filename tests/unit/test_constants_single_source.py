"""Test that runtime constants come from Settings."""

import pytest

from backend.app.config import Settings, get_settings


def test_settings_cached() -> None:
    assert get_settings() is get_settings()


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.session_ttl_seconds == 2_592_000
    assert settings.budget_tolerance == pytest.approx(0.3)
    assert settings.pipeline_deadline_seconds == 90.0
    assert settings.allow_stub_providers is False
    assert settings.rank_by_rating is False
    assert settings.preview_location_limit == 2


def test_timeouts_and_jitter_are_positive() -> None:
    settings = Settings(_env_file=None)

    for timeout in (
        settings.narrative_timeout_ms,
        settings.places_timeout_ms,
        settings.photos_timeout_ms,
        settings.catalog_timeout_ms,
    ):
        assert timeout > 0
    assert 0 < settings.retry_jitter_min_ms < settings.retry_jitter_max_ms


def test_circuit_breaker_constants() -> None:
    settings = Settings(_env_file=None)
    assert settings.circuit_breaker_failures > 0
    assert settings.circuit_breaker_window_sec > 0
    assert settings.circuit_breaker_half_open_sec > 0


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GOOGLE_MAPS_KEY", "maps-key")
    monkeypatch.setenv("BUDGET_TOLERANCE", "0.2")
    monkeypatch.setenv("ALLOW_STUB_PROVIDERS", "true")

    settings = Settings(_env_file=None)

    assert settings.google_maps_key is not None
    assert settings.google_maps_key.get_secret_value() == "maps-key"
    assert "maps-key" not in repr(settings)
    assert settings.budget_tolerance == pytest.approx(0.2)
    assert settings.allow_stub_providers is True
