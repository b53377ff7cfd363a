"""Answer checking, XP reward and feedback for challenge submissions."""

from __future__ import annotations

import logging
import math
import re
from fractions import Fraction
from typing import Any, Callable, Dict, Iterable, Optional

from engines.models import (
    STRUCTURED_TYPES,
    Challenge,
    ChallengeType,
    KeywordCriteria,
)
from engines.settings import EngineSettings
from engines.stats import jaccard_similarity
from engines.validation import SubmissionValidationError

logger = logging.getLogger(__name__)

PARTIAL_CREDIT = Fraction(3, 10)
SPEED_BONUS = Fraction(6, 5)

DEFAULT_SUCCESS_FEEDBACK = "Great job! You've correctly completed this challenge."
DEFAULT_FAILURE_FEEDBACK = "Not quite right. Let's review the concept."

FAILURE_HINTS: Dict[ChallengeType, str] = {
    ChallengeType.LOGIC_PUZZLE: "Remember to carefully analyze each option and look for logical flaws.",
    ChallengeType.BIAS_SWAP: (
        "Try to identify specific language that indicates bias, such as loaded words "
        "or one-sided framing."
    ),
    ChallengeType.DATA_LITERACY: (
        "When analyzing data, look for misleading scales, cherry-picked data points, "
        "or missing context."
    ),
    ChallengeType.COUNTER_ARGUMENT: (
        "Steelman the opposing view first, then address its strongest point directly."
    ),
    ChallengeType.SYNTHESIS: (
        "Draw on each source you were given and show where they agree and where they differ."
    ),
    ChallengeType.ETHICAL_DILEMMA: (
        "Weigh the interests of every stakeholder and name the trade-off you are accepting."
    ),
}

_WORD_RE = re.compile(r"\S+")


def _word_count(text: str) -> int:
    return len(_WORD_RE.findall(text))


def _answer_text(answer: Any) -> str:
    if isinstance(answer, str):
        return answer
    if isinstance(answer, dict):
        for key in ("text", "answer", "response"):
            value = answer.get(key)
            if isinstance(value, str):
                return value
    return ""


# ---------------------------------------------------------------------------
# one pure check per challenge variant
# ---------------------------------------------------------------------------
def _check_exact(challenge: Challenge, answer: Any, settings: EngineSettings) -> bool:
    return answer == challenge.correct_answer


def _check_bias_swap(challenge: Challenge, answer: Any, settings: EngineSettings) -> bool:
    expected = challenge.correct_answer or frozenset()
    similarity = jaccard_similarity(expected, answer)
    return similarity > settings.bias_swap_threshold


def _check_free_text(challenge: Challenge, answer: Any, settings: EngineSettings) -> bool:
    text = _answer_text(answer)
    criteria = challenge.correct_answer
    if isinstance(criteria, KeywordCriteria):
        lowered = text.lower()
        matches = sum(1 for keyword in criteria.keywords if keyword.lower() in lowered)
        return matches >= criteria.min_keywords
    return _word_count(text) >= settings.free_text_min_words


_CHECKS: Dict[ChallengeType, Callable[[Challenge, Any, EngineSettings], bool]] = {
    ChallengeType.LOGIC_PUZZLE: _check_exact,
    ChallengeType.DATA_LITERACY: _check_exact,
    ChallengeType.BIAS_SWAP: _check_bias_swap,
    ChallengeType.COUNTER_ARGUMENT: _check_free_text,
    ChallengeType.SYNTHESIS: _check_free_text,
    ChallengeType.ETHICAL_DILEMMA: _check_free_text,
}


class SubmissionEvaluator:
    """Grades a single answer against its challenge."""

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or EngineSettings()

    def normalize_answer(self, challenge: Challenge, answer: Any) -> Any:
        """Coerce ``answer`` into the shape its challenge type grades.

        Raises SubmissionValidationError when the shape is wrong for the type.
        """
        if challenge.type in STRUCTURED_TYPES:
            if isinstance(answer, bool) or not isinstance(answer, (str, int)):
                raise SubmissionValidationError(
                    f"{challenge.type.value} answers must be a single option"
                )
            return answer if isinstance(answer, str) else str(answer)

        if challenge.type is ChallengeType.BIAS_SWAP:
            if isinstance(answer, str) or not isinstance(answer, Iterable) or isinstance(answer, dict):
                raise SubmissionValidationError("bias_swap answers must be a list of indicator tags")
            tags = list(answer)
            if not all(isinstance(tag, str) for tag in tags):
                raise SubmissionValidationError("bias_swap indicator tags must be strings")
            return frozenset(tags)

        if isinstance(answer, dict):
            text = _answer_text(answer)
            if not text and not any(k in answer for k in ("text", "answer", "response")):
                raise SubmissionValidationError(
                    f"{challenge.type.value} answers must be text or carry a 'text' field"
                )
            return text
        if not isinstance(answer, str):
            raise SubmissionValidationError(f"{challenge.type.value} answers must be text")
        return answer

    def check_answer(self, challenge: Challenge, answer: Any) -> bool:
        check = _CHECKS[challenge.type]
        return bool(check(challenge, answer, self.settings))

    def calculate_xp(self, challenge: Challenge, is_correct: bool, time_spent_seconds: int) -> int:
        base = challenge.xp_reward
        if not is_correct:
            return math.floor(base * PARTIAL_CREDIT)
        # time < 0.5 * minutes * 60, kept in integers
        if time_spent_seconds * 2 < challenge.estimated_time_minutes * 60:
            return math.floor(base * SPEED_BONUS)
        return base

    def generate_feedback(self, challenge: Challenge, answer: Any, is_correct: bool) -> str:
        if is_correct:
            return challenge.explanation or DEFAULT_SUCCESS_FEEDBACK
        lead = challenge.explanation or DEFAULT_FAILURE_FEEDBACK
        hint = FAILURE_HINTS.get(challenge.type)
        return f"{lead} {hint}" if hint else lead

    def evaluate(self, challenge: Challenge, answer: Any, time_spent_seconds: int) -> Dict[str, Any]:
        """Validate, grade and reward one answer without touching storage."""
        normalized = self.normalize_answer(challenge, answer)
        is_correct = self.check_answer(challenge, normalized)
        xp = self.calculate_xp(challenge, is_correct, time_spent_seconds)
        feedback = self.generate_feedback(challenge, normalized, is_correct)
        logger.debug(
            "Evaluated challenge %s (%s): correct=%s xp=%s",
            challenge.id,
            challenge.type.value,
            is_correct,
            xp,
        )
        return {"is_correct": is_correct, "xp_earned": xp, "feedback": feedback}


__all__ = [
    "DEFAULT_FAILURE_FEEDBACK",
    "DEFAULT_SUCCESS_FEEDBACK",
    "FAILURE_HINTS",
    "SubmissionEvaluator",
]
