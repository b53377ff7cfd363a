"""Challenge catalog loading and validation from the JSON seed file."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import db
from engines.models import (
    Challenge,
    answer_key_to_json,
    parse_answer_key,
    parse_challenge_type,
    parse_difficulty,
)
from engines.validation import ChallengeValidationError, validate_challenge_definition

logger = logging.getLogger(__name__)

DEFAULT_BANK_PATH = "challenges.json"


def normalize_challenge(entry: Dict[str, Any]) -> Dict[str, Any]:
    """Validate one challenge definition and return its storable form.

    Raises ChallengeValidationError if validation fails.
    """
    if not isinstance(entry, dict):
        raise ChallengeValidationError("Each challenge must be an object")
    validate_challenge_definition(entry)

    ident = entry.get("id", "<new>")
    challenge_type = parse_challenge_type(entry["type"])
    difficulty = parse_difficulty(entry["difficulty"])
    try:
        key = parse_answer_key(challenge_type, entry.get("correct_answer"))
    except ChallengeValidationError as exc:
        raise ChallengeValidationError(f"Challenge {ident}: {exc}") from exc

    content = entry.get("content") or {}
    if not isinstance(content, dict):
        raise ChallengeValidationError(f"Challenge {ident} content must be an object")

    normalized: Dict[str, Any] = {
        "type": challenge_type.value,
        "difficulty": difficulty.value,
        "title": str(entry.get("title") or ""),
        "prompt": str(entry.get("prompt") or ""),
        "content": content,
        "options": list(entry.get("options") or []),
        "correct_answer": answer_key_to_json(key),
        "explanation": entry.get("explanation"),
        "xp_reward": entry["xp_reward"],
        "estimated_time_minutes": entry["estimated_time_minutes"],
        "is_active": entry.get("is_active", True),
    }
    if "id" in entry and entry["id"] is not None:
        try:
            normalized["id"] = int(entry["id"])
        except (TypeError, ValueError) as exc:
            raise ChallengeValidationError(f"Challenge id must be an integer: {entry['id']!r}") from exc
    return normalized


class ChallengeBank:
    """Loads, validates and syncs the challenge catalog."""

    def __init__(self, path: str | Path | None = None, *, auto_sync: bool = True) -> None:
        self.path = Path(path or os.getenv("CHALLENGE_BANK_PATH", DEFAULT_BANK_PATH))
        self._challenges: List[Dict[str, Any]] = []
        self._load(auto_sync=auto_sync)

    def _load(self, *, auto_sync: bool) -> None:
        if not self.path.exists():
            raise FileNotFoundError(f"Challenge bank file not found: {self.path}")

        with self.path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)

        if not isinstance(raw, list):
            raise ChallengeValidationError("Challenge bank root must be a JSON list")

        challenges: List[Dict[str, Any]] = []
        seen_ids: set[int] = set()
        for entry in raw:
            normalized = normalize_challenge(entry)
            if "id" not in normalized:
                raise ChallengeValidationError("Seeded challenges need an explicit id")
            if normalized["id"] in seen_ids:
                raise ChallengeValidationError(f"Duplicate challenge id detected: {normalized['id']}")
            seen_ids.add(normalized["id"])
            challenges.append(normalized)

        self._challenges = challenges
        logger.debug("Loaded %s challenges from %s", len(challenges), self.path)

        if auto_sync and challenges:
            db.upsert_challenges(challenges)

    @property
    def challenges(self) -> List[Dict[str, Any]]:
        return list(self._challenges)

    def coverage(self) -> Dict[str, Dict[str, int]]:
        """Active challenge count per type and difficulty."""
        table: Dict[str, Dict[str, int]] = {}
        for challenge in self._challenges:
            if not challenge["is_active"]:
                continue
            row = table.setdefault(challenge["type"], {})
            row[challenge["difficulty"]] = row.get(challenge["difficulty"], 0) + 1
        return table


def load_challenges(path: str | Path | None = None) -> List[Dict[str, Any]]:
    """Return validated challenges from disk and sync them into the database."""
    return ChallengeBank(path, auto_sync=True).challenges


def create_challenge(entry: Dict[str, Any]) -> Challenge:
    """Validate and store a new catalog entry, returning the stored challenge."""
    normalized = normalize_challenge(entry)
    if "id" in normalized:
        db.upsert_challenges([normalized])
        challenge_id = normalized["id"]
    else:
        challenge_id = db.create_challenge(normalized)
    logger.info("Stored %s challenge %s", normalized["type"], challenge_id)
    return Challenge.from_row(db.get_challenge(challenge_id))


def list_catalog(
    *,
    type: Optional[str] = None,
    difficulty: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> List[Challenge]:
    if type:
        type = parse_challenge_type(type).value
    if difficulty:
        difficulty = parse_difficulty(difficulty).value
    return [
        Challenge.from_row(row)
        for row in db.list_challenges(type=type, difficulty=difficulty, is_active=is_active)
    ]


def iter_views(challenges: Iterable[Challenge]) -> List[Dict[str, Any]]:
    return [challenge.to_view() for challenge in challenges]
