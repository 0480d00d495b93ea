import pytest
from pydantic import ValidationError

from loro.config import Settings

from conftest import make_settings


def test_load_settings_requires_api_keys(monkeypatch):
    monkeypatch.delenv("SMALL_MODEL_API_KEY", raising=False)
    monkeypatch.delenv("LARGE_MODEL_API_KEY", raising=False)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_defaults(monkeypatch):
    for key in ("HTTP_TIMEOUT_SECS", "SMALL_MODEL_TIMEOUT_SECS", "MAX_RETRIES", "STATS_MAX_ENTRIES", "PORT"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("SMALL_MODEL_API_KEY", "test-small-key")
    monkeypatch.setenv("LARGE_MODEL_API_KEY", "test-large-key")

    s = Settings(_env_file=None)
    assert s.PORT == 8000
    assert s.HTTP_TIMEOUT_SECS == 30
    assert s.SMALL_MODEL_TIMEOUT_SECS == 5
    assert s.MAX_RETRIES == 3
    assert s.STATS_MAX_ENTRIES == 10000
    assert s.SMALL_MODEL_API_KEY.get_secret_value() == "test-small-key"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SMALL_MODEL_API_KEY", "test-small-key")
    monkeypatch.setenv("LARGE_MODEL_API_KEY", "test-large-key")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("HTTP_TIMEOUT_SECS", "60")
    monkeypatch.setenv("MAX_RETRIES", "5")

    s = Settings(_env_file=None)
    assert (s.PORT, s.HTTP_TIMEOUT_SECS, s.MAX_RETRIES) == (9000, 60, 5)


def test_api_keys_are_not_leaked_in_repr():
    s = make_settings(SMALL_MODEL_API_KEY="sk-secret-value")
    assert "sk-secret-value" not in repr(s)


def test_none_key_is_allowed():
    assert make_settings(LARGE_MODEL_API_KEY="none").LARGE_MODEL_API_KEY.get_secret_value() == "none"


def test_base_url_trailing_slash_is_stripped():
    assert make_settings(LARGE_MODEL_BASE_URL="http://localhost:11434/").LARGE_MODEL_BASE_URL == (
        "http://localhost:11434"
    )


@pytest.mark.parametrize(
    "overrides",
    [
        {"SMALL_MODEL_API_KEY": "  "},
        {"LARGE_MODEL_BASE_URL": "not-a-url"},
        {"SMALL_MODEL_NAME": ""},
        {"HTTP_TIMEOUT_SECS": 400},
        {"HTTP_TIMEOUT_SECS": 2},
        {"SMALL_MODEL_TIMEOUT_SECS": 0},
        {"SMALL_MODEL_TIMEOUT_SECS": 31},
        {"MAX_RETRIES": 11},
        {"STATS_MAX_ENTRIES": 50},
        {"STATS_MAX_ENTRIES": 200000},
    ],
)
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ValidationError):
        make_settings(**overrides)
