"""Daily completion streaks."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Dict, Optional

import db

logger = logging.getLogger(__name__)


class StreakState(str, Enum):
    NO_PRIOR_SUBMISSION = "no_prior_submission"
    LAST_WAS_TODAY = "last_was_today"
    LAST_WAS_YESTERDAY = "last_was_yesterday"
    OLDER_THAN_YESTERDAY = "older_than_yesterday"


@dataclass(frozen=True)
class StreakInfo:
    current_streak: int
    longest_streak: int
    maintained: bool
    is_new_record: bool
    state: StreakState

    def to_dict(self) -> Dict[str, object]:
        return {
            "current_streak": self.current_streak,
            "maintained": self.maintained,
            "is_new_record": self.is_new_record,
        }


def classify(last_activity: Optional[date], today: date) -> StreakState:
    if last_activity is None:
        return StreakState.NO_PRIOR_SUBMISSION
    # a stored day ahead of today (clock skew, timezone change) counts as today
    if last_activity >= today:
        return StreakState.LAST_WAS_TODAY
    if last_activity == today - timedelta(days=1):
        return StreakState.LAST_WAS_YESTERDAY
    return StreakState.OLDER_THAN_YESTERDAY


def advance(
    current_streak: int,
    longest_streak: int,
    last_activity: Optional[date],
    today: date,
) -> StreakInfo:
    """Apply one completion on ``today`` to the stored streak."""
    state = classify(last_activity, today)
    if state is StreakState.LAST_WAS_TODAY:
        current = max(current_streak, 1)
        maintained = True
    elif state is StreakState.LAST_WAS_YESTERDAY:
        current = current_streak + 1
        maintained = True
    elif state is StreakState.NO_PRIOR_SUBMISSION:
        current = 1
        maintained = True
    else:
        current = 1
        maintained = False

    is_new_record = current > longest_streak
    return StreakInfo(
        current_streak=current,
        longest_streak=current if is_new_record else longest_streak,
        maintained=maintained,
        is_new_record=is_new_record,
        state=state,
    )


class StreakTracker:
    """Serializes streak updates per user.

    A per-user lock covers callers in this process; the ``BEGIN IMMEDIATE``
    transaction covers other processes sharing the database file.
    """

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._registry_lock = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks[user_id]

    def apply(self, con: sqlite3.Connection, user_id: str, today: date) -> StreakInfo:
        """Read, advance and write the streak on an open transaction."""
        stored = db.read_streak_state(con, user_id)
        info = advance(
            stored["current_streak"],
            stored["longest_streak"],
            stored["last_activity_date"],
            today,
        )
        last_day = stored["last_activity_date"]
        db.write_streak_state(
            con,
            user_id,
            current_streak=info.current_streak,
            longest_streak=info.longest_streak,
            last_activity_date=max(today, last_day) if last_day else today,
        )
        if not info.maintained:
            logger.info("Streak reset for user %s (last activity %s)", user_id, last_day)
        elif info.is_new_record:
            logger.info("New streak record for user %s: %s days", user_id, info.current_streak)
        return info

    def record_completion(
        self,
        user_id: str,
        today: date,
        con: Optional[sqlite3.Connection] = None,
    ) -> StreakInfo:
        if con is None:
            with db.transaction() as tx:
                return self.record_completion(user_id, today, con=tx)
        # database lock first, then the per-user lock
        with self._lock_for(user_id):
            return self.apply(con, user_id, today)


__all__ = ["StreakInfo", "StreakState", "StreakTracker", "advance", "classify"]
