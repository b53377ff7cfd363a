"""Environment variable validation and management."""

import os
import logging
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

class ConfigurationError(Exception):
    """Raised when environment variables hold invalid values."""
    pass

# Probabilities and similarity thresholds must stay inside [0, 1].
_UNIT_INTERVAL_VARS = {
    "ECHO_WEAK_AREA_PROBABILITY": "Chance of restricting the daily pick to the weak challenge type",
    "ECHO_WEAK_AREA_THRESHOLD": "Per-type success rate below which a type counts as weak",
    "ECHO_BIAS_SWAP_THRESHOLD": "Jaccard similarity a bias-swap answer must exceed",
}

_POSITIVE_INT_VARS = {
    "ECHO_FREE_TEXT_MIN_WORDS": "Minimum word count for free-text answers without keyword criteria",
    "ECHO_SCORE_TRIGGER_MIN_SUBMISSIONS": "Submissions per day before a snapshot is saved automatically",
    "ECHO_SCORE_TRIGGER_MIN_SOURCES": "Distinct sources read per day before a snapshot is saved automatically",
}


def validate_environment() -> None:
    """Validate critical environment variables.

    Raises ConfigurationError if validation fails.
    """
    defaults = {
        "DB_PATH": os.getenv("DB_PATH") or "data.db",
        "CHALLENGE_BANK_PATH": os.getenv("CHALLENGE_BANK_PATH") or "challenges.json",
        "ECHO_TIMEZONE": os.getenv("ECHO_TIMEZONE") or "UTC",
    }

    # Apply defaults before validation so dependent modules see consistent values.
    for var, value in defaults.items():
        if not os.getenv(var):
            os.environ[var] = value
            logger.info("Environment variable %s not set; using default '%s'", var, value)

    for var in _UNIT_INTERVAL_VARS:
        value = get_env_float(var)
        if value is not None and not 0.0 <= value <= 1.0:
            raise ConfigurationError(f"{var} must be between 0 and 1, got {value}")

    for var in _POSITIVE_INT_VARS:
        value = get_env_int(var)
        if value is not None and value <= 0:
            raise ConfigurationError(f"{var} must be a positive integer, got {value}")

    tz_name = os.environ["ECHO_TIMEZONE"]
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unknown timezone for ECHO_TIMEZONE: {tz_name}") from exc

    for var, description in {**_UNIT_INTERVAL_VARS, **_POSITIVE_INT_VARS}.items():
        if os.getenv(var):
            logger.info("Tuning override %s=%s (%s)", var, os.getenv(var), description)

def get_env_float(name: str, default: Optional[float] = None) -> Optional[float]:
    """Get a float from the environment, raising ConfigurationError on junk."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid number for {name}: {value}") from exc


def get_env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid integer for {name}: {value}") from exc
