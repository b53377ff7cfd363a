"""Domain records shared by the challenge engines."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple, Union

from db import parse_timestamp
from engines.validation import ChallengeValidationError


class ChallengeType(str, Enum):
    BIAS_SWAP = "bias_swap"
    LOGIC_PUZZLE = "logic_puzzle"
    DATA_LITERACY = "data_literacy"
    COUNTER_ARGUMENT = "counter_argument"
    SYNTHESIS = "synthesis"
    ETHICAL_DILEMMA = "ethical_dilemma"


class DifficultyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


STRUCTURED_TYPES: FrozenSet[ChallengeType] = frozenset(
    {ChallengeType.LOGIC_PUZZLE, ChallengeType.DATA_LITERACY}
)
FREE_TEXT_TYPES: FrozenSet[ChallengeType] = frozenset(
    {ChallengeType.COUNTER_ARGUMENT, ChallengeType.SYNTHESIS, ChallengeType.ETHICAL_DILEMMA}
)


@dataclass(frozen=True)
class KeywordCriteria:
    """Keyword rubric for free-text challenges."""

    keywords: Tuple[str, ...]
    min_keywords: int = 1

    def to_json(self) -> Dict[str, Any]:
        return {"keywords": list(self.keywords), "minKeywords": self.min_keywords}


# exact string | indicator tag set | keyword rubric | None (length heuristic)
AnswerKey = Union[str, FrozenSet[str], KeywordCriteria, None]


def parse_challenge_type(value: Any) -> ChallengeType:
    try:
        return ChallengeType(str(value).strip().lower())
    except ValueError as exc:
        raise ChallengeValidationError(f"Unknown challenge type: {value}") from exc


def parse_difficulty(value: Any) -> DifficultyLevel:
    try:
        return DifficultyLevel(str(value).strip().lower())
    except ValueError as exc:
        raise ChallengeValidationError(f"Unknown difficulty level: {value}") from exc


def parse_answer_key(challenge_type: ChallengeType, raw: Any) -> AnswerKey:
    """Normalize a stored ``correct_answer`` into the shape its type expects."""
    if challenge_type in STRUCTURED_TYPES:
        if not isinstance(raw, str) or not raw:
            raise ChallengeValidationError(
                f"{challenge_type.value} challenges need a non-empty string correct_answer"
            )
        return raw

    if challenge_type is ChallengeType.BIAS_SWAP:
        if not isinstance(raw, (list, tuple)) or not raw:
            raise ChallengeValidationError("bias_swap challenges need a list of indicator tags")
        if not all(isinstance(tag, str) for tag in raw):
            raise ChallengeValidationError("bias_swap indicator tags must be strings")
        return frozenset(raw)

    # free-text types
    if raw is None:
        return None
    if not isinstance(raw, Mapping) or "keywords" not in raw:
        raise ChallengeValidationError(
            f"{challenge_type.value} correct_answer must be omitted or carry keywords"
        )
    keywords = raw.get("keywords")
    if not isinstance(keywords, list) or not all(isinstance(k, str) and k.strip() for k in keywords):
        raise ChallengeValidationError("keywords must be a list of non-empty strings")
    min_keywords = raw.get("minKeywords", raw.get("min_keywords", 1))
    if min_keywords is None:
        min_keywords = 1
    if isinstance(min_keywords, bool) or not isinstance(min_keywords, int) or min_keywords < 0:
        raise ChallengeValidationError("minKeywords must be a non-negative integer")
    # 0 means "unset"; at least one keyword is always required.
    return KeywordCriteria(keywords=tuple(keywords), min_keywords=min_keywords or 1)


def answer_key_to_json(key: AnswerKey) -> Any:
    if isinstance(key, KeywordCriteria):
        return key.to_json()
    if isinstance(key, frozenset):
        return sorted(key)
    return key


def _decode(value: Any, default: Any = None) -> Any:
    if value is None:
        return default
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


@dataclass(frozen=True)
class Challenge:
    id: int
    type: ChallengeType
    difficulty: DifficultyLevel
    correct_answer: AnswerKey
    xp_reward: int
    estimated_time_minutes: int
    is_active: bool = True
    title: str = ""
    prompt: str = ""
    explanation: Optional[str] = None
    options: Tuple[Any, ...] = ()
    content: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Challenge":
        challenge_type = parse_challenge_type(row["type"])
        return cls(
            id=int(row["id"]),
            type=challenge_type,
            difficulty=parse_difficulty(row["difficulty"]),
            correct_answer=parse_answer_key(challenge_type, _decode(row["correct_answer"])),
            xp_reward=int(row["xp_reward"]),
            estimated_time_minutes=int(row["estimated_time_minutes"]),
            is_active=bool(row["is_active"]),
            title=row["title"] or "",
            prompt=row["prompt"] or "",
            explanation=row["explanation"],
            options=tuple(_decode(row["options"], []) or []),
            content=_decode(row["content"], {}) or {},
        )

    def to_view(self) -> Dict[str, Any]:
        """Client-facing representation; never includes the answer key."""
        return {
            "id": self.id,
            "type": self.type.value,
            "difficulty": self.difficulty.value,
            "title": self.title,
            "prompt": self.prompt,
            "options": list(self.options),
            "content": dict(self.content),
            "xp_reward": self.xp_reward,
            "estimated_time_minutes": self.estimated_time_minutes,
        }


@dataclass
class PerformanceBucket:
    completed: int = 0
    correct: int = 0
    average_time_seconds: float = 0.0

    @property
    def success_rate(self) -> Optional[float]:
        if self.completed <= 0:
            return None
        return self.correct / self.completed


@dataclass
class UserChallengeStats:
    user_id: str
    total_completed: int = 0
    total_correct: int = 0
    total_xp_earned: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: Optional[str] = None
    difficulty_performance: Dict[DifficultyLevel, PerformanceBucket] = field(default_factory=dict)
    type_performance: Dict[ChallengeType, PerformanceBucket] = field(default_factory=dict)

    @property
    def success_rate(self) -> Optional[float]:
        if self.total_completed <= 0:
            return None
        return self.total_correct / self.total_completed

    @classmethod
    def from_mapping(cls, user_id: str, data: Optional[Mapping[str, Any]]) -> "UserChallengeStats":
        """Build from a stored stats row; a missing row means a brand-new user."""
        if not data:
            return cls(user_id=user_id)

        def _buckets(raw: Any, parse) -> Dict[Any, PerformanceBucket]:
            out = {}
            for key, value in (raw or {}).items():
                try:
                    bucket_key = parse(key)
                except ChallengeValidationError:
                    continue
                out[bucket_key] = PerformanceBucket(
                    completed=int(value.get("completed", 0)),
                    correct=int(value.get("correct", 0)),
                    average_time_seconds=float(value.get("average_time_seconds", 0.0)),
                )
            return out

        return cls(
            user_id=user_id,
            total_completed=int(data.get("total_completed") or 0),
            total_correct=int(data.get("total_correct") or 0),
            total_xp_earned=int(data.get("total_xp_earned") or 0),
            current_streak=int(data.get("current_streak") or 0),
            longest_streak=int(data.get("longest_streak") or 0),
            last_activity_date=data.get("last_activity_date"),
            difficulty_performance=_buckets(data.get("difficulty_performance"), parse_difficulty),
            type_performance=_buckets(data.get("type_performance"), parse_challenge_type),
        )

    def to_dict(self) -> Dict[str, Any]:
        def _buckets(source: Mapping[Any, PerformanceBucket], keys) -> Dict[str, Any]:
            out = {}
            for key in keys:
                bucket = source.get(key) or PerformanceBucket()
                out[key.value] = {
                    "completed": bucket.completed,
                    "correct": bucket.correct,
                    "average_time_seconds": round(bucket.average_time_seconds, 2),
                }
            return out

        return {
            "user_id": self.user_id,
            "total_completed": self.total_completed,
            "total_correct": self.total_correct,
            "total_xp_earned": self.total_xp_earned,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_activity_date": self.last_activity_date,
            "difficulty_performance": _buckets(self.difficulty_performance, DifficultyLevel),
            "type_performance": _buckets(self.type_performance, ChallengeType),
        }


@dataclass(frozen=True)
class SubmissionRecord:
    challenge_id: int
    is_correct: bool
    time_spent_seconds: int
    created_at: datetime
    challenge_type: Optional[ChallengeType] = None
    xp_earned: int = 0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SubmissionRecord":
        raw_type = row["challenge_type"] if "challenge_type" in row.keys() else None
        try:
            challenge_type = parse_challenge_type(raw_type) if raw_type else None
        except ChallengeValidationError:
            challenge_type = None
        return cls(
            challenge_id=int(row["challenge_id"]),
            is_correct=bool(row["is_correct"]),
            time_spent_seconds=int(row["time_spent_seconds"]),
            created_at=parse_timestamp(row["created_at"]),
            challenge_type=challenge_type,
            xp_earned=int(row["xp_earned"]) if "xp_earned" in row.keys() else 0,
        )
