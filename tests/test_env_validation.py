import os

import pytest

from engines.settings import EngineSettings
from env_validation import (
    ConfigurationError,
    get_env_float,
    get_env_int,
    validate_environment,
)

_VARS = (
    "DB_PATH",
    "CHALLENGE_BANK_PATH",
    "ECHO_TIMEZONE",
    "ECHO_WEAK_AREA_PROBABILITY",
    "ECHO_WEAK_AREA_THRESHOLD",
    "ECHO_BIAS_SWAP_THRESHOLD",
    "ECHO_FREE_TEXT_MIN_WORDS",
    "ECHO_SCORE_TRIGGER_MIN_SUBMISSIONS",
    "ECHO_SCORE_TRIGGER_MIN_SOURCES",
    "ECHO_SWITCHING_TYPES",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # setenv first so the values validate_environment() writes are undone too
    for name in _VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_defaults_are_applied():
    validate_environment()
    assert os.environ["DB_PATH"] == "data.db"
    assert os.environ["CHALLENGE_BANK_PATH"] == "challenges.json"
    assert os.environ["ECHO_TIMEZONE"] == "UTC"


def test_existing_values_are_kept(monkeypatch):
    monkeypatch.setenv("DB_PATH", "/tmp/echo.db")
    validate_environment()
    assert os.environ["DB_PATH"] == "/tmp/echo.db"


@pytest.mark.parametrize(
    "name, value",
    [
        ("ECHO_WEAK_AREA_PROBABILITY", "1.5"),
        ("ECHO_BIAS_SWAP_THRESHOLD", "-0.1"),
        ("ECHO_WEAK_AREA_THRESHOLD", "often"),
        ("ECHO_FREE_TEXT_MIN_WORDS", "0"),
        ("ECHO_SCORE_TRIGGER_MIN_SOURCES", "three"),
        ("ECHO_TIMEZONE", "Mars/Olympus_Mons"),
    ],
)
def test_invalid_values_raise(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigurationError):
        validate_environment()


def test_env_helpers(monkeypatch):
    monkeypatch.setenv("ECHO_NUMBER", " ")
    assert get_env_float("ECHO_NUMBER", 0.25) == 0.25
    assert get_env_int("ECHO_MISSING") is None


def test_engine_settings_from_env(monkeypatch):
    monkeypatch.setenv("ECHO_WEAK_AREA_PROBABILITY", "0.9")
    monkeypatch.setenv("ECHO_BIAS_SWAP_THRESHOLD", "0.5")
    monkeypatch.setenv("ECHO_SWITCHING_TYPES", "Bias_Swap, synthesis")
    monkeypatch.setenv("ECHO_TIMEZONE", "Europe/Berlin")
    settings = EngineSettings.from_env()
    assert settings.weak_area_probability == 0.9
    assert settings.bias_swap_threshold == 0.5
    assert settings.switching_types == ("bias_swap", "synthesis")
    assert settings.free_text_min_words == 50
    assert settings.timezone_name == "Europe/Berlin"


def test_settings_reject_inverted_rates():
    with pytest.raises(ValueError):
        EngineSettings(advance_success_rate=0.3, regress_success_rate=0.5)
    with pytest.raises(ValueError):
        EngineSettings(weak_area_probability=2.0)


def test_local_day_boundaries():
    from datetime import date, datetime, timezone

    settings = EngineSettings(timezone_name="America/New_York")
    late_evening = datetime(2026, 3, 11, 2, 30, tzinfo=timezone.utc)
    assert settings.today(late_evening) == date(2026, 3, 10)
    # EST before the 2026-03-08 switch, EDT after
    assert settings.day_start(date(2026, 3, 1)) == datetime(2026, 3, 1, 5, 0, tzinfo=timezone.utc)
    assert settings.day_start(date(2026, 3, 10)) == datetime(2026, 3, 10, 4, 0, tzinfo=timezone.utc)
