"""Adaptive daily challenge selection."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import db
from engines.models import (
    Challenge,
    ChallengeType,
    DifficultyLevel,
    SubmissionRecord,
    UserChallengeStats,
)
from engines.settings import EngineSettings
from engines.validation import NoChallengeAvailableError

logger = logging.getLogger(__name__)

ADAPTIVE_DIFFICULTY = "adaptive_difficulty"


def weak_area_reason(challenge_type: ChallengeType) -> str:
    return f"weak_area_{challenge_type.value}"


@dataclass(frozen=True)
class Selection:
    challenge: Challenge
    selection_reason: str
    difficulty_adjustment: int
    selection_date: date
    relaxation: str = "none"

    def to_view(self) -> Dict[str, Any]:
        view = self.challenge.to_view()
        view["selection_reason"] = self.selection_reason
        view["difficulty_adjustment"] = self.difficulty_adjustment
        view["selection_date"] = self.selection_date.isoformat()
        return view


def target_difficulty(
    stats: UserChallengeStats,
    recent_submission_count: int,
    settings: Optional[EngineSettings] = None,
) -> Tuple[DifficultyLevel, int]:
    """Difficulty tier for the next pick and its adjustment (-1, 0, +1)."""
    settings = settings or EngineSettings()
    if stats.total_completed <= 0:
        return DifficultyLevel.BEGINNER, 0
    success_rate = stats.total_correct / stats.total_completed
    if (
        success_rate > settings.advance_success_rate
        and recent_submission_count >= settings.advance_min_recent_submissions
    ):
        return DifficultyLevel.ADVANCED, 1
    if success_rate < settings.regress_success_rate:
        return DifficultyLevel.BEGINNER, -1
    return DifficultyLevel.INTERMEDIATE, 0


def weakest_type(
    stats: UserChallengeStats,
    settings: Optional[EngineSettings] = None,
) -> Optional[ChallengeType]:
    """Type with the lowest success rate, if that rate is below the weak threshold."""
    settings = settings or EngineSettings()
    weakest: Optional[ChallengeType] = None
    weakest_rate = 1.0
    # enum order breaks ties deterministically
    for challenge_type in ChallengeType:
        bucket = stats.type_performance.get(challenge_type)
        if bucket is None or bucket.completed <= 0:
            continue
        rate = bucket.correct / bucket.completed
        if weakest is None or rate < weakest_rate:
            weakest, weakest_rate = challenge_type, rate
    if weakest is not None and weakest_rate < settings.weak_area_threshold:
        return weakest
    return None


def choose(
    pool: Sequence[Challenge],
    *,
    difficulty: DifficultyLevel,
    recent_ids: Set[int],
    weak_type: Optional[ChallengeType],
    use_weak_filter: bool,
    rng: random.Random,
) -> Tuple[Challenge, str, bool]:
    """Pick from ``pool`` relaxing filters until something remains.

    Returns the challenge, the name of the filter level that produced it and
    whether the weak-type filter was in force at that level.
    """
    active = [c for c in pool if c.is_active]
    if not active:
        raise NoChallengeAvailableError("No active challenges available")

    fresh = [c for c in active if c.id not in recent_ids]
    at_difficulty = [c for c in fresh if c.difficulty is difficulty]

    levels: List[Tuple[str, List[Challenge], bool]] = []
    if use_weak_filter and weak_type is not None:
        levels.append(("none", [c for c in at_difficulty if c.type is weak_type], True))
        levels.append(("weak_type", at_difficulty, False))
    else:
        levels.append(("none", at_difficulty, False))
    levels.append(("difficulty", fresh, False))
    levels.append(("recent_history", active, False))

    for relaxation, candidates, weak_applied in levels:
        if candidates:
            ordered = sorted(candidates, key=lambda c: c.id)
            return rng.choice(ordered), relaxation, weak_applied
    raise NoChallengeAvailableError("No active challenges available")  # pragma: no cover


class ChallengeSelector:
    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or EngineSettings()
        self.rng = rng or random.Random()

    def select(
        self,
        stats: UserChallengeStats,
        recent: Iterable[SubmissionRecord],
        pool: Sequence[Challenge],
        today: date,
    ) -> Selection:
        """Pure selection over already loaded inputs."""
        recent = list(recent)
        difficulty, adjustment = target_difficulty(stats, len(recent), self.settings)
        weak = weakest_type(stats, self.settings)
        use_weak = weak is not None and self.rng.random() < self.settings.weak_area_probability
        challenge, relaxation, weak_applied = choose(
            pool,
            difficulty=difficulty,
            recent_ids={r.challenge_id for r in recent},
            weak_type=weak,
            use_weak_filter=use_weak,
            rng=self.rng,
        )
        reason = weak_area_reason(weak) if weak_applied and weak is not None else ADAPTIVE_DIFFICULTY
        return Selection(
            challenge=challenge,
            selection_reason=reason,
            difficulty_adjustment=adjustment,
            selection_date=today,
            relaxation=relaxation,
        )

    def todays_challenge(self, user_id: str, now: Optional[datetime] = None) -> Selection:
        """Return the user's challenge for today, creating it on first request."""
        now = now or self.settings.now()
        today = self.settings.today(now)

        stored = db.get_daily_selection(user_id, today)
        if stored is None:
            stats = UserChallengeStats.from_mapping(user_id, db.get_user_stats(user_id))
            since = now - timedelta(days=self.settings.recent_window_days)
            recent = [SubmissionRecord.from_row(row) for row in db.list_submissions_between(user_id, since)]
            pool = [Challenge.from_row(row) for row in db.list_challenges(is_active=True)]
            picked = self.select(stats, recent, pool, today)
            stored, created = db.insert_daily_selection_if_absent(
                user_id,
                today,
                challenge_id=picked.challenge.id,
                selection_reason=picked.selection_reason,
                difficulty_adjustment=picked.difficulty_adjustment,
            )
            if created:
                logger.info(
                    "Selected challenge %s for user %s on %s (%s, adjustment %s, relaxed %s)",
                    picked.challenge.id,
                    user_id,
                    today,
                    picked.selection_reason,
                    picked.difficulty_adjustment,
                    picked.relaxation,
                )
                return picked

        row = db.get_challenge(stored["challenge_id"])
        if row is None:
            raise NoChallengeAvailableError(
                f"Stored selection for {user_id} on {today} points at a missing challenge"
            )
        return Selection(
            challenge=Challenge.from_row(row),
            selection_reason=stored["selection_reason"],
            difficulty_adjustment=int(stored["difficulty_adjustment"]),
            selection_date=today,
        )


__all__ = [
    "ADAPTIVE_DIFFICULTY",
    "ChallengeSelector",
    "Selection",
    "choose",
    "target_difficulty",
    "weak_area_reason",
    "weakest_type",
]
