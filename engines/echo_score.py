"""Echo Score: five weighted engagement components and their snapshots."""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

import db
from engines.models import SubmissionRecord
from engines.settings import EngineSettings
from engines.stats import clamp, gini_index, median, trend_slope
from engines.validation import ValidationError

logger = logging.getLogger("echo.score")

COMPONENT_WEIGHTS: "OrderedDict[str, float]" = OrderedDict(
    [
        ("diversity", 0.25),
        ("accuracy", 0.25),
        ("switch_speed", 0.20),
        ("consistency", 0.15),
        ("improvement", 0.15),
    ]
)

DIVERSITY_WINDOW_DAYS = 7
ACCURACY_WINDOW_DAYS = 30
SWITCH_SPEED_WINDOW_DAYS = 30
CONSISTENCY_WINDOW_DAYS = 14
IMPROVEMENT_WINDOW_DAYS = 30

SWITCH_SPEED_FLOOR_SECONDS = 30.0
SWITCH_SPEED_CEILING_SECONDS = 300.0
IMPROVEMENT_MIN_POINTS = 5
NEUTRAL_SCORE = 50.0

SCORE_MODES = ("current", "latest", "save")
PROGRESS_PERIODS = {"daily": 30, "weekly": 84}
MAX_HISTORY_DAYS = 3650

Component = Tuple[float, Dict[str, Any]]


# ---------------------------------------------------------------------------
# components
# ---------------------------------------------------------------------------
def diversity_component(bias_ratings: Sequence[Optional[float]]) -> Component:
    ratings = [float(r) if r is not None else 0.0 for r in bias_ratings]
    if not ratings:
        return 0.0, {"content_count": 0, "gini": 0.0}
    gini = gini_index(ratings)
    return clamp(gini * 100), {"content_count": len(ratings), "gini": round(gini, 4)}


def accuracy_component(records: Sequence[SubmissionRecord]) -> Component:
    total = len(records)
    if total == 0:
        return 0.0, {"submissions": 0, "correct": 0}
    correct = sum(1 for r in records if r.is_correct)
    return clamp(correct / total * 100), {"submissions": total, "correct": correct}


def switch_speed_component(times: Sequence[float]) -> Component:
    if not times:
        return NEUTRAL_SCORE, {"responses": 0, "median_seconds": None}
    mid = median(times)
    bounded = clamp(mid, SWITCH_SPEED_FLOOR_SECONDS, SWITCH_SPEED_CEILING_SECONDS)
    span = SWITCH_SPEED_CEILING_SECONDS - SWITCH_SPEED_FLOOR_SECONDS
    score = (SWITCH_SPEED_CEILING_SECONDS - bounded) / span * 100
    return clamp(score), {"responses": len(times), "median_seconds": mid}


def consistency_component(active_days: Iterable[date], today: date, window_days: int = CONSISTENCY_WINDOW_DAYS) -> Component:
    first = today - timedelta(days=window_days - 1)
    days = {d for d in active_days if first <= d <= today}
    return clamp(len(days) / window_days * 100), {"active_days": len(days), "window_days": window_days}


def improvement_component(records: Sequence[SubmissionRecord]) -> Component:
    """Trend of correctness and of response speed over time-ordered responses."""
    ordered = sorted(records, key=lambda r: r.created_at)
    if len(ordered) < IMPROVEMENT_MIN_POINTS:
        return NEUTRAL_SCORE, {"data_points": len(ordered), "accuracy_slope": 0.0, "speed_slope": 0.0}
    accuracy_series = [1.0 if r.is_correct else 0.0 for r in ordered]
    speed_series = [1.0 / r.time_spent_seconds if r.time_spent_seconds > 0 else 0.0 for r in ordered]
    accuracy_slope = trend_slope(accuracy_series)
    speed_slope = trend_slope(speed_series)
    score = clamp(NEUTRAL_SCORE + 25 * (accuracy_slope + speed_slope))
    return score, {
        "data_points": len(ordered),
        "accuracy_slope": round(accuracy_slope, 6),
        "speed_slope": round(speed_slope, 6),
    }


def composite(components: Mapping[str, float], weights: Mapping[str, float] = COMPONENT_WEIGHTS) -> float:
    return round(sum(weights[name] * components[name] for name in weights), 2)


@dataclass(frozen=True)
class EchoScore:
    user_id: str
    score_date: date
    total_score: float
    diversity_score: float
    accuracy_score: float
    switch_speed_score: float
    consistency_score: float
    improvement_score: float
    calculation_details: Dict[str, Any] = field(default_factory=dict)

    def components(self) -> Dict[str, float]:
        return {
            "diversity": self.diversity_score,
            "accuracy": self.accuracy_score,
            "switch_speed": self.switch_speed_score,
            "consistency": self.consistency_score,
            "improvement": self.improvement_score,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "score_date": self.score_date.isoformat(),
            "total_score": self.total_score,
            "diversity_score": self.diversity_score,
            "accuracy_score": self.accuracy_score,
            "switch_speed_score": self.switch_speed_score,
            "consistency_score": self.consistency_score,
            "improvement_score": self.improvement_score,
            "calculation_details": self.calculation_details,
        }


def compute(
    user_id: str,
    *,
    today: date,
    reading_ratings: Sequence[Optional[float]],
    submissions: Sequence[SubmissionRecord],
    switch_times: Sequence[float],
    active_days: Set[date],
) -> EchoScore:
    """Pure composite over pre-windowed inputs."""
    diversity, diversity_details = diversity_component(reading_ratings)
    accuracy, accuracy_details = accuracy_component(submissions)
    switch_speed, switch_details = switch_speed_component(switch_times)
    consistency, consistency_details = consistency_component(active_days, today)
    improvement, improvement_details = improvement_component(submissions)

    raw = {
        "diversity": diversity,
        "accuracy": accuracy,
        "switch_speed": switch_speed,
        "consistency": consistency,
        "improvement": improvement,
    }
    return EchoScore(
        user_id=user_id,
        score_date=today,
        total_score=composite(raw),
        diversity_score=round(diversity, 2),
        accuracy_score=round(accuracy, 2),
        switch_speed_score=round(switch_speed, 2),
        consistency_score=round(consistency, 2),
        improvement_score=round(improvement, 2),
        calculation_details={
            "diversity": diversity_details,
            "accuracy": accuracy_details,
            "switch_speed": switch_details,
            "consistency": consistency_details,
            "improvement": improvement_details,
            "weights": dict(COMPONENT_WEIGHTS),
        },
    )


def _stored_to_dict(row: Mapping[str, Any]) -> Dict[str, Any]:
    keys = (
        "user_id",
        "score_date",
        "total_score",
        "diversity_score",
        "accuracy_score",
        "switch_speed_score",
        "consistency_score",
        "improvement_score",
        "calculation_details",
    )
    return {key: row.get(key) for key in keys}


class EchoScoreCalculator:
    """Loads windowed history and computes, stores and reports Echo Scores."""

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or EngineSettings()

    # ----- loading ----------------------------------------------------
    def _gather(self, user_id: str, as_of: datetime, today: date) -> Dict[str, Any]:
        longest = max(ACCURACY_WINDOW_DAYS, SWITCH_SPEED_WINDOW_DAYS, IMPROVEMENT_WINDOW_DAYS)
        submission_rows = db.list_submissions_between(user_id, as_of - timedelta(days=longest), as_of)
        submissions = [SubmissionRecord.from_row(row) for row in submission_rows]

        consistency_start = self.settings.day_start(today - timedelta(days=CONSISTENCY_WINDOW_DAYS - 1))
        reading_start = min(consistency_start, as_of - timedelta(days=DIVERSITY_WINDOW_DAYS))
        readings = db.list_reading_between(user_id, reading_start, as_of)

        diversity_start = as_of - timedelta(days=DIVERSITY_WINDOW_DAYS)
        ratings: List[Optional[float]] = []
        active_days: Set[date] = set()
        for row in readings:
            read_at = db.parse_timestamp(row["created_at"])
            if read_at >= diversity_start:
                ratings.append(row["bias_rating"])
            active_days.add(self.settings.local_date(read_at))
        for record in submissions:
            active_days.add(self.settings.local_date(record.created_at))

        accuracy_start = as_of - timedelta(days=ACCURACY_WINDOW_DAYS)
        switch_start = as_of - timedelta(days=SWITCH_SPEED_WINDOW_DAYS)
        switching = set(self.settings.switching_types)
        return {
            "reading_ratings": ratings,
            "submissions": [r for r in submissions if r.created_at >= accuracy_start],
            "switch_times": [
                float(r.time_spent_seconds)
                for r in submissions
                if r.created_at >= switch_start
                and r.challenge_type is not None
                and r.challenge_type.value in switching
            ],
            "active_days": active_days,
        }

    def _as_of(self, now: Optional[datetime], day: Optional[date]) -> Tuple[datetime, date]:
        if day is not None:
            # a past day is scored as it stood at its local midnight
            end = self.settings.day_start(day + timedelta(days=1))
            if now is not None and now < end:
                end = now
            return end, day
        now = now or self.settings.now()
        return now, self.settings.today(now)

    # ----- modes ------------------------------------------------------
    def current(self, user_id: str, now: Optional[datetime] = None, day: Optional[date] = None) -> EchoScore:
        as_of, today = self._as_of(now, day)
        data = self._gather(user_id, as_of, today)
        score = compute(user_id, today=today, **data)
        score.calculation_details["calculated_at"] = as_of.isoformat()
        return score

    def calculate_and_save(
        self,
        user_id: str,
        now: Optional[datetime] = None,
        day: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Compute and upsert the snapshot for the user's calendar day."""
        score = self.current(user_id, now=now, day=day)
        stored = db.upsert_echo_score(
            user_id,
            score.score_date,
            {
                "total_score": score.total_score,
                "diversity_score": score.diversity_score,
                "accuracy_score": score.accuracy_score,
                "switch_speed_score": score.switch_speed_score,
                "consistency_score": score.consistency_score,
                "improvement_score": score.improvement_score,
            },
            score.calculation_details,
        )
        logger.info("Saved echo score %.2f for user %s on %s", score.total_score, user_id, score.score_date)
        return _stored_to_dict(stored)

    def latest(self, user_id: str) -> Optional[Dict[str, Any]]:
        row = db.get_latest_echo_score(user_id)
        return _stored_to_dict(row) if row else None

    def score(self, user_id: str, mode: str = "current", now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        mode = (mode or "current").strip().lower()
        if mode == "current":
            return self.current(user_id, now=now).to_dict()
        if mode == "save":
            return self.calculate_and_save(user_id, now=now)
        if mode == "latest":
            return self.latest(user_id)
        raise ValidationError(f"mode must be one of {', '.join(SCORE_MODES)}")

    # ----- reporting --------------------------------------------------
    def history(self, user_id: str, days: int = 30, today: Optional[date] = None) -> List[Dict[str, Any]]:
        if days <= 0 or days > MAX_HISTORY_DAYS:
            raise ValidationError(f"days must be between 1 and {MAX_HISTORY_DAYS}")
        today = today or self.settings.today()
        since = today - timedelta(days=days - 1)
        return [_stored_to_dict(row) for row in db.list_echo_scores(user_id, since)]

    def progress(self, user_id: str, period: str = "daily", today: Optional[date] = None) -> Dict[str, Any]:
        """Stored snapshots averaged per day or ISO week, with per-component trends."""
        period = (period or "daily").strip().lower()
        if period not in PROGRESS_PERIODS:
            raise ValidationError('period must be either "daily" or "weekly"')
        today = today or self.settings.today()
        since = today - timedelta(days=PROGRESS_PERIODS[period] - 1)
        rows = db.list_echo_scores(user_id, since)

        columns = ["total_score"] + [f"{name}_score" for name in COMPONENT_WEIGHTS]
        groups: "OrderedDict[str, List[Mapping[str, Any]]]" = OrderedDict()
        for row in rows:
            day = date.fromisoformat(row["score_date"])
            if period == "weekly":
                year, week, _ = day.isocalendar()
                key = f"{year}-W{week:02d}"
            else:
                key = day.isoformat()
            groups.setdefault(key, []).append(row)

        scores = []
        for key, members in groups.items():
            entry: Dict[str, Any] = {"period_start": members[0]["score_date"], "label": key, "count": len(members)}
            for column in columns:
                entry[column] = round(sum(float(m[column]) for m in members) / len(members), 2)
            scores.append(entry)

        trends = {
            column[: -len("_score")]: round(trend_slope([s[column] for s in scores]), 4)
            for column in columns
        }
        return {"user_id": user_id, "period": period, "scores": scores, "trends": trends}

    def weekly_summary(self, user_id: str, today: Optional[date] = None) -> Optional[Dict[str, Any]]:
        today = today or self.settings.today()
        rows = db.list_echo_scores(user_id, today - timedelta(days=7))
        if not rows:
            return None
        count = len(rows)
        summary: Dict[str, Any] = {"user_id": user_id, "period": "weekly", "scores_count": count}
        summary["average_total"] = round(sum(float(r["total_score"]) for r in rows) / count, 2)
        for name in COMPONENT_WEIGHTS:
            column = f"{name}_score"
            summary[f"average_{name}"] = round(sum(float(r[column]) for r in rows) / count, 2)
        return summary


__all__ = [
    "COMPONENT_WEIGHTS",
    "EchoScore",
    "EchoScoreCalculator",
    "accuracy_component",
    "composite",
    "compute",
    "consistency_component",
    "diversity_component",
    "improvement_component",
    "switch_speed_component",
]
