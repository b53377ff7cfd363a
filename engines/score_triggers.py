"""When to persist Echo Score snapshots automatically."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional

import db
from engines.echo_score import EchoScoreCalculator
from engines.settings import EngineSettings

logger = logging.getLogger("echo.score.triggers")


class ScoreTriggers:
    """Snapshot triggers run after submissions, after reading, and daily."""

    def __init__(
        self,
        calculator: Optional[EchoScoreCalculator] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self.settings = settings or (calculator.settings if calculator else EngineSettings())
        self.calculator = calculator or EchoScoreCalculator(self.settings)

    def _day_bounds(self, day: date) -> tuple[datetime, datetime]:
        return self.settings.day_start(day), self.settings.day_start(day + timedelta(days=1))

    def after_challenge(self, user_id: str, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        """Save today's snapshot once the user has enough submissions today."""
        now = now or self.settings.now()
        today = self.settings.today(now)
        if db.get_echo_score(user_id, today) is not None:
            return None
        start, end = self._day_bounds(today)
        count = len(db.list_submissions_between(user_id, start, end))
        if count < self.settings.score_trigger_min_submissions:
            return None
        logger.info("User %s reached %s submissions today; saving echo score", user_id, count)
        return self.calculator.calculate_and_save(user_id, now=now)

    def after_reading(self, user_id: str, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        """Save today's snapshot once the user has read from enough distinct sources."""
        now = now or self.settings.now()
        today = self.settings.today(now)
        if db.get_echo_score(user_id, today) is not None:
            return None
        start, end = self._day_bounds(today)
        sources = {
            row["source"] or row["content_id"]
            for row in db.list_reading_between(user_id, start, end)
        }
        if len(sources) < self.settings.score_trigger_min_sources:
            return None
        logger.info("User %s read from %s sources today; saving echo score", user_id, len(sources))
        return self.calculator.calculate_and_save(user_id, now=now)

    def calculate_daily_scores(self, day: Optional[date] = None) -> Dict[str, Any]:
        """Back-fill snapshots for every user active on ``day`` without one."""
        day = day or self.settings.today() - timedelta(days=1)
        start, end = self._day_bounds(day)
        active = db.list_active_user_ids(start, end)
        already = db.users_with_snapshot(active, day)
        saved, failed = [], []
        for user_id in active:
            if user_id in already:
                continue
            try:
                self.calculator.calculate_and_save(user_id, day=day)
            except Exception:
                logger.exception("Failed to calculate echo score for user %s on %s", user_id, day)
                failed.append(user_id)
            else:
                saved.append(user_id)
        logger.info(
            "Daily echo scores for %s: %s saved, %s skipped, %s failed",
            day,
            len(saved),
            len(already),
            len(failed),
        )
        return {"date": day.isoformat(), "saved": saved, "skipped": sorted(already), "failed": failed}


__all__ = ["ScoreTriggers"]
