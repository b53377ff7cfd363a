"""Tunable constants for answer evaluation, challenge selection and scoring."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from env_validation import get_env_float, get_env_int


def _env_tuple(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name, "")
    values = tuple(part.strip().lower() for part in raw.split(",") if part.strip())
    return values or default


@dataclass(frozen=True)
class EngineSettings:
    """Knobs shared by the evaluator, selector, streak tracker and score calculator.

    The weak-area probability and the bias-swap similarity threshold are
    product tuning values rather than derived quantities, so both can be
    overridden per deployment through the environment or per engine
    instance in tests.
    """

    weak_area_probability: float = 0.6
    weak_area_threshold: float = 0.6
    bias_swap_threshold: float = 0.7
    free_text_min_words: int = 50
    advance_success_rate: float = 0.8
    regress_success_rate: float = 0.4
    advance_min_recent_submissions: int = 3
    recent_window_days: int = 7
    switching_types: Tuple[str, ...] = ("bias_swap", "counter_argument")
    score_trigger_min_submissions: int = 3
    score_trigger_min_sources: int = 3
    timezone_name: str = "UTC"
    _zone: ZoneInfo = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for name in ("weak_area_probability", "weak_area_threshold", "bias_swap_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1]")
        if not 0.0 <= self.regress_success_rate < self.advance_success_rate <= 1.0:
            raise ValueError("regress_success_rate must be lower than advance_success_rate")
        if self.free_text_min_words <= 0:
            raise ValueError("free_text_min_words must be positive")
        if self.recent_window_days <= 0:
            raise ValueError("recent_window_days must be positive")
        object.__setattr__(self, "_zone", ZoneInfo(self.timezone_name))

    @classmethod
    def from_env(cls) -> "EngineSettings":
        defaults = cls()
        return cls(
            weak_area_probability=get_env_float(
                "ECHO_WEAK_AREA_PROBABILITY", defaults.weak_area_probability
            ),
            weak_area_threshold=get_env_float("ECHO_WEAK_AREA_THRESHOLD", defaults.weak_area_threshold),
            bias_swap_threshold=get_env_float("ECHO_BIAS_SWAP_THRESHOLD", defaults.bias_swap_threshold),
            free_text_min_words=get_env_int("ECHO_FREE_TEXT_MIN_WORDS", defaults.free_text_min_words),
            switching_types=_env_tuple("ECHO_SWITCHING_TYPES", defaults.switching_types),
            score_trigger_min_submissions=get_env_int(
                "ECHO_SCORE_TRIGGER_MIN_SUBMISSIONS", defaults.score_trigger_min_submissions
            ),
            score_trigger_min_sources=get_env_int(
                "ECHO_SCORE_TRIGGER_MIN_SOURCES", defaults.score_trigger_min_sources
            ),
            timezone_name=os.getenv("ECHO_TIMEZONE") or defaults.timezone_name,
        )

    # ----- calendar helpers -------------------------------------------
    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def local_date(self, moment: datetime) -> date:
        """Calendar day of ``moment`` in the configured timezone."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(self._zone).date()

    def today(self, now: Optional[datetime] = None) -> date:
        return self.local_date(now or self.now())

    def day_start(self, day: date) -> datetime:
        """UTC instant at which ``day`` begins in the configured timezone."""
        local = datetime(day.year, day.month, day.day, tzinfo=self._zone)
        return local.astimezone(timezone.utc)
