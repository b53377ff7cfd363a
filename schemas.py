"""Pydantic request and response schemas for the HTTP layer."""

from __future__ import annotations

from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field

__all__ = [
    "SubmitAnswerBody",
    "StreakInfoModel",
    "SubmitAnswerResponse",
    "ChallengeView",
    "DailyChallengeResponse",
    "ChallengeCreateBody",
    "EchoScoreResponse",
    "ContentItemBody",
    "ReadingBody",
]


class SubmitAnswerBody(BaseModel):
    """Answer payload; shape of ``answer`` depends on the challenge type."""
    user_id: str = Field(description="Identifier of the submitting user.")
    answer: Any = Field(
        default=None,
        description="Option id (structured types), list of indicator tags (bias_swap) or free text.",
    )
    time_spent_seconds: Any = Field(
        default=None,
        description="Whole seconds spent on the challenge; must be non-negative.",
    )


class StreakInfoModel(BaseModel):
    current_streak: int
    maintained: bool
    is_new_record: bool


class SubmitAnswerResponse(BaseModel):
    submission_id: int
    is_correct: bool
    feedback: str
    xp_earned: int = Field(ge=0)
    streak_info: StreakInfoModel


class ChallengeView(BaseModel):
    id: int
    type: str
    difficulty: Literal["beginner", "intermediate", "advanced"]
    title: str = ""
    prompt: str = ""
    options: List[Any] = Field(default_factory=list)
    content: Dict[str, Any] = Field(default_factory=dict)
    xp_reward: int
    estimated_time_minutes: int


class DailyChallengeResponse(ChallengeView):
    selection_reason: str = Field(description="weak_area_<type> or adaptive_difficulty.")
    difficulty_adjustment: Literal[-1, 0, 1]
    selection_date: str


class ChallengeCreateBody(BaseModel):
    id: int | None = Field(default=None, description="Explicit id; omitted ids are assigned by storage.")
    type: str
    difficulty: str
    title: str = ""
    prompt: str = ""
    content: Dict[str, Any] | None = None
    options: List[Any] | None = None
    correct_answer: Any = Field(
        default=None,
        description="String, list of indicator tags, or {keywords, minKeywords} depending on type.",
    )
    explanation: str | None = None
    xp_reward: int
    estimated_time_minutes: int
    is_active: bool = True


class EchoScoreResponse(BaseModel):
    user_id: str
    score_date: str
    total_score: float = Field(ge=0, le=100)
    diversity_score: float = Field(ge=0, le=100)
    accuracy_score: float = Field(ge=0, le=100)
    switch_speed_score: float = Field(ge=0, le=100)
    consistency_score: float = Field(ge=0, le=100)
    improvement_score: float = Field(ge=0, le=100)
    calculation_details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Counts, rates, medians and slopes each component was derived from.",
    )


class ContentItemBody(BaseModel):
    id: str
    title: str | None = None
    source: str | None = None
    bias_rating: float | None = Field(default=None, description="Numeric bias rating from the labelling pipeline.")


class ReadingBody(BaseModel):
    user_id: str
    content_id: str
