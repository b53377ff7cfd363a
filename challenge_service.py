"""Submission, daily challenge and score operations wired to storage."""
from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import db
from engines.echo_score import EchoScoreCalculator
from engines.evaluator import SubmissionEvaluator
from engines.models import Challenge, UserChallengeStats
from engines.score_triggers import ScoreTriggers
from engines.selector import ChallengeSelector
from engines.settings import EngineSettings
from engines.streak import StreakTracker
from engines.validation import (
    ChallengeNotFoundError,
    ValidationError,
    validate_submission_payload,
)

logger = logging.getLogger(__name__)

LEADERBOARD_WINDOWS = {"daily": timedelta(days=1), "weekly": timedelta(days=7), "alltime": None}
LEADERBOARD_LIMIT = 100
# SQLite binds OFFSET as a signed 64-bit integer.
MAX_HISTORY_OFFSET = 2**63 - 1


class ChallengeService:
    """Entry points used by the HTTP layer and the scripts."""

    def __init__(self, settings: Optional[EngineSettings] = None, rng: Optional[random.Random] = None):
        self.settings = settings or EngineSettings.from_env()
        self.evaluator = SubmissionEvaluator(self.settings)
        self.streaks = StreakTracker()
        self.selector = ChallengeSelector(self.settings, rng=rng)
        self.scores = EchoScoreCalculator(self.settings)
        self.triggers = ScoreTriggers(self.scores, self.settings)

    # ------------------------------------------------------------------
    # submissions
    # ------------------------------------------------------------------
    def _load_challenge(self, challenge_id: Any) -> Challenge:
        try:
            ident = int(challenge_id)
        except (TypeError, ValueError) as exc:
            raise ChallengeNotFoundError(challenge_id) from exc
        row = db.get_challenge(ident)
        if row is None:
            raise ChallengeNotFoundError(challenge_id)
        return Challenge.from_row(row)

    def submit_answer(
        self,
        user_id: str,
        challenge_id: Any,
        answer: Any,
        time_spent_seconds: Any,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Grade an answer, append it to the log and advance the streak.

        Nothing is written when the payload or the challenge reference is
        invalid.
        """
        time_spent = validate_submission_payload(user_id, answer, time_spent_seconds)
        challenge = self._load_challenge(challenge_id)
        result = self.evaluator.evaluate(challenge, answer, time_spent)

        now = now or self.settings.now()
        today = self.settings.today(now)
        with db.transaction() as con:
            submission_id = db.insert_submission(
                con,
                user_id=user_id,
                challenge_id=challenge.id,
                answer=answer,
                is_correct=result["is_correct"],
                time_spent_seconds=time_spent,
                xp_earned=result["xp_earned"],
                feedback=result["feedback"],
                created_at=now,
            )
            streak = self.streaks.record_completion(user_id, today, con=con)
            db.refresh_user_stats(con, user_id)

        logger.info(
            "User %s submitted challenge %s: correct=%s xp=%s streak=%s",
            user_id,
            challenge.id,
            result["is_correct"],
            result["xp_earned"],
            streak.current_streak,
        )
        return {
            "submission_id": submission_id,
            "is_correct": result["is_correct"],
            "feedback": result["feedback"],
            "xp_earned": result["xp_earned"],
            "streak_info": streak.to_dict(),
        }

    # ------------------------------------------------------------------
    # daily challenge
    # ------------------------------------------------------------------
    def todays_challenge(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        if not user_id or not user_id.strip():
            raise ValidationError("user_id required")
        return self.selector.todays_challenge(user_id, now=now).to_view()

    # ------------------------------------------------------------------
    # stats and history
    # ------------------------------------------------------------------
    def user_stats(self, user_id: str) -> Dict[str, Any]:
        stats = UserChallengeStats.from_mapping(user_id, db.get_user_stats(user_id))
        payload = stats.to_dict()
        rate = stats.success_rate
        payload["success_rate"] = round(rate, 4) if rate is not None else None
        return payload

    def submission_history(self, user_id: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")
        limit = min(limit, LEADERBOARD_LIMIT)
        offset = (page - 1) * limit
        if offset > MAX_HISTORY_OFFSET:
            raise ValidationError("page is out of range")
        entries = db.list_submission_history(user_id, limit=limit, offset=offset)
        return {"user_id": user_id, "page": page, "limit": limit, "submissions": entries}

    def leaderboard(self, timeframe: str = "weekly", now: Optional[datetime] = None) -> Dict[str, Any]:
        key = (timeframe or "weekly").strip().lower()
        if key not in LEADERBOARD_WINDOWS:
            raise ValidationError("timeframe must be one of daily, weekly, allTime")
        window = LEADERBOARD_WINDOWS[key]
        since = None
        if window is not None:
            now = now or self.settings.now()
            since = now - window
        entries: List[Dict[str, Any]] = db.leaderboard(since=since, limit=LEADERBOARD_LIMIT)
        for rank, entry in enumerate(entries, start=1):
            entry["rank"] = rank
        return {"timeframe": timeframe, "entries": entries}

    # ------------------------------------------------------------------
    # scores
    # ------------------------------------------------------------------
    def echo_score(self, user_id: str, mode: str = "current", now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        if not user_id or not user_id.strip():
            raise ValidationError("user_id required")
        return self.scores.score(user_id, mode, now=now)

    # ------------------------------------------------------------------
    # reading activity
    # ------------------------------------------------------------------
    def register_content(
        self,
        content_id: str,
        *,
        title: Optional[str] = None,
        source: Optional[str] = None,
        bias_rating: Optional[float] = None,
    ) -> Dict[str, Any]:
        if not content_id or not str(content_id).strip():
            raise ValidationError("content_id required")
        db.upsert_content_item(content_id, title=title, source=source, bias_rating=bias_rating)
        return {"id": content_id, "title": title, "source": source, "bias_rating": bias_rating}

    def record_reading(self, user_id: str, content_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        if not user_id or not user_id.strip():
            raise ValidationError("user_id required")
        if not content_id or not str(content_id).strip():
            raise ValidationError("content_id required")
        if db.get_content_item(content_id) is None:
            # unknown items are still tracked; their bias rating counts as 0
            db.upsert_content_item(content_id)
        reading_id = db.record_reading(user_id, content_id, at=now)
        return {"reading_id": reading_id, "user_id": user_id, "content_id": content_id}

    def run_challenge_trigger(self, user_id: str, now: Optional[datetime] = None) -> None:
        try:
            self.triggers.after_challenge(user_id, now=now)
        except Exception:
            logger.exception("Echo score trigger after challenge failed for user %s", user_id)

    def run_reading_trigger(self, user_id: str, now: Optional[datetime] = None) -> None:
        try:
            self.triggers.after_reading(user_id, now=now)
        except Exception:
            logger.exception("Echo score trigger after reading failed for user %s", user_id)


_DEFAULT_SERVICE: Optional[ChallengeService] = None


def get_default_service() -> ChallengeService:
    global _DEFAULT_SERVICE
    if _DEFAULT_SERVICE is None:
        _DEFAULT_SERVICE = ChallengeService()
    return _DEFAULT_SERVICE
