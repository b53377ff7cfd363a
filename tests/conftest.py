import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_db(monkeypatch, tmp_path):
    import db

    db_path = tmp_path / "test.db"
    monkeypatch.setattr(db, "DB_PATH", str(db_path))
    # Reset the global pool reference
    monkeypatch.setattr(db, "_pool", db.SQLiteConnectionPool(str(db_path), max_connections=10))
    db.init()
    return str(db_path)


@pytest.fixture
def seeded_db(temp_db):
    import challenge_bank

    challenge_bank.load_challenges(ROOT / "challenges.json")
    return temp_db


@pytest.fixture
def add_challenge(temp_db):
    """Store a challenge with sensible defaults and return its id."""
    import db

    counter = {"next": 1000}

    def _add(**overrides):
        counter["next"] += 1
        entry = {
            "id": counter["next"],
            "type": "logic_puzzle",
            "difficulty": "beginner",
            "title": "Test challenge",
            "prompt": "Pick one",
            "options": ["A", "B"],
            "correct_answer": "A",
            "explanation": "A is right.",
            "xp_reward": 10,
            "estimated_time_minutes": 2,
            "is_active": True,
        }
        entry.update(overrides)
        db.upsert_challenges([entry])
        return entry["id"]

    return _add


@pytest.fixture
def record_submission(temp_db):
    """Append a submission and refresh the user's stats in one transaction."""
    import db

    def _record(**kwargs):
        with db.transaction() as con:
            submission_id = db.insert_submission(con, **kwargs)
            db.refresh_user_stats(con, kwargs["user_id"])
            return submission_id

    return _record
