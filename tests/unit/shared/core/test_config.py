from __future__ import annotations

import pytest
from pydantic import ValidationError

from govengine.shared.core.config import Settings, get_settings


def test_defaults() -> None:
    settings = Settings()

    assert settings.INACTIVE_USER_DAYS == 90
    assert settings.STALE_USER_HIGH_SEVERITY_DAYS == 180
    assert settings.MAX_ENTITY_FINDINGS == 10
    assert settings.GRAPH_API_BASE_URL == "https://graph.microsoft.com/v1.0"
    assert settings.is_production is False


def test_get_settings_is_cached_and_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INACTIVE_USER_DAYS", "30")
    monkeypatch.setenv("ENVIRONMENT", "production")

    settings = get_settings()

    assert settings is get_settings()
    assert settings.INACTIVE_USER_DAYS == 30
    assert settings.is_production is True


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"ANALYZER_TIMEOUT_SECONDS": 0}, "ANALYZER_TIMEOUT_SECONDS must be greater than zero"),
        ({"MAX_FILTER_EXAMPLES": -1}, "MAX_FILTER_EXAMPLES must be greater than zero"),
        ({"NAMING_CONSISTENCY_THRESHOLD": 120}, "between 0 and 100"),
        ({"GRAPH_MAX_RETRIES": 0}, "GRAPH_MAX_RETRIES must be at least 1"),
        (
            {"INACTIVE_USER_DAYS": 200, "STALE_USER_HIGH_SEVERITY_DAYS": 100},
            "must not be lower than INACTIVE_USER_DAYS",
        ),
    ],
)
def test_invalid_values_are_rejected(overrides: dict[str, float], message: str) -> None:
    with pytest.raises(ValidationError, match=message):
        Settings(**overrides)
