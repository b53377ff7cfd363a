"""Validation errors and payload checks for submissions and challenges."""

from typing import Any, Dict, Optional


class ValidationError(Exception):
    """Base class for validation errors."""
    pass


class SubmissionValidationError(ValidationError):
    """Raised when a submission payload is malformed for its challenge."""
    pass


class ChallengeValidationError(ValidationError):
    """Raised when challenge definitions fail validation."""
    pass


class ChallengeNotFoundError(LookupError):
    """Raised when a challenge id does not resolve to a stored challenge."""

    def __init__(self, challenge_id: Any):
        super().__init__(f"Challenge not found: {challenge_id}")
        self.challenge_id = challenge_id


class NoChallengeAvailableError(LookupError):
    """Raised when no active challenge exists to select from."""
    pass


def validate_submission_payload(
    user_id: Any,
    answer: Any,
    time_spent_seconds: Any,
) -> int:
    """Validate the transport-level fields of a submission.

    Returns the normalized ``time_spent_seconds``. Answer shape checks that
    depend on the challenge type happen in the evaluator.
    """
    if not isinstance(user_id, str) or not user_id.strip():
        raise SubmissionValidationError("user_id required")
    if answer is None:
        raise SubmissionValidationError("answer required")
    if time_spent_seconds is None:
        raise SubmissionValidationError("time_spent_seconds required")
    if isinstance(time_spent_seconds, bool):
        raise SubmissionValidationError("time_spent_seconds must be an integer")
    if isinstance(time_spent_seconds, float):
        if not time_spent_seconds.is_integer():
            raise SubmissionValidationError("time_spent_seconds must be an integer")
        time_spent_seconds = int(time_spent_seconds)
    if not isinstance(time_spent_seconds, int):
        raise SubmissionValidationError("time_spent_seconds must be an integer")
    if time_spent_seconds < 0:
        raise SubmissionValidationError("time_spent_seconds cannot be negative")
    return time_spent_seconds


def validate_challenge_definition(data: Dict[str, Any]) -> None:
    """Validate the scalar fields of a challenge definition.

    Raises ChallengeValidationError if validation fails.
    """
    required_fields = {
        "type": str,
        "difficulty": str,
        "xp_reward": int,
        "estimated_time_minutes": int,
    }

    ident = data.get("id", "<new>")
    for field, expected_type in required_fields.items():
        if field not in data or data[field] is None:
            raise ChallengeValidationError(f"Challenge {ident} missing required field '{field}'")
        value = data[field]
        if isinstance(value, bool) or not isinstance(value, expected_type):
            raise ChallengeValidationError(
                f"Challenge {ident} field {field} has wrong type. Expected {expected_type.__name__}, "
                f"got {type(value).__name__}"
            )

    if data["xp_reward"] <= 0:
        raise ChallengeValidationError(f"Challenge {ident} xp_reward must be positive")
    if data["estimated_time_minutes"] <= 0:
        raise ChallengeValidationError(f"Challenge {ident} estimated_time_minutes must be positive")

    options: Optional[Any] = data.get("options")
    if options is not None and not isinstance(options, list):
        raise ChallengeValidationError(f"Challenge {ident} options must be a list")

    is_active = data.get("is_active", True)
    if not isinstance(is_active, bool):
        raise ChallengeValidationError(f"Challenge {ident} is_active must be a boolean")
