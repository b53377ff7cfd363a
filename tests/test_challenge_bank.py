import json
from pathlib import Path

import pytest

import db
from challenge_bank import ChallengeBank, create_challenge, list_catalog, load_challenges
from engines.models import ChallengeType, DifficultyLevel, KeywordCriteria
from engines.validation import ChallengeValidationError

ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def sample_challenges(tmp_path: Path) -> Path:
    challenges = [
        {
            "id": 1,
            "type": "logic_puzzle",
            "difficulty": "beginner",
            "title": "Syllogism",
            "prompt": "All A are B. Some B are C. Must some A be C?",
            "options": ["A: Yes", "B: No"],
            "correct_answer": "B",
            "xp_reward": 10,
            "estimated_time_minutes": 2,
        },
        {
            "id": 2,
            "type": "bias_swap",
            "difficulty": "advanced",
            "correct_answer": ["loaded verb", "anonymous source"],
            "xp_reward": 25,
            "estimated_time_minutes": 6,
        },
        {
            "id": 3,
            "type": "synthesis",
            "difficulty": "intermediate",
            "correct_answer": {"keywords": ["both", "agree"], "minKeywords": 2},
            "xp_reward": 15,
            "estimated_time_minutes": 10,
            "is_active": False,
        },
    ]
    path = tmp_path / "challenges.json"
    path.write_text(json.dumps(challenges), encoding="utf-8")
    return path


def _write(tmp_path: Path, payload) -> Path:
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_challenge_bank_loads_and_syncs(temp_db, sample_challenges: Path):
    bank = ChallengeBank(sample_challenges)
    assert len(bank.challenges) == 3
    assert [c["id"] for c in bank.challenges if c["difficulty"] == "advanced"] == [2]

    row = db.get_challenge(2)
    assert row is not None
    assert json.loads(row["correct_answer"]) == ["anonymous source", "loaded verb"]
    assert db.get_challenge(3)["is_active"] == 0


def test_reloading_refreshes_existing_rows(temp_db, sample_challenges: Path, tmp_path: Path):
    load_challenges(sample_challenges)
    data = json.loads(sample_challenges.read_text(encoding="utf-8"))
    data[0]["xp_reward"] = 40
    sample_challenges.write_text(json.dumps(data), encoding="utf-8")
    load_challenges(sample_challenges)
    assert db.get_challenge(1)["xp_reward"] == 40
    assert len(db.list_challenges()) == 3


def test_coverage_counts_active_only(sample_challenges: Path):
    bank = ChallengeBank(sample_challenges, auto_sync=False)
    assert bank.coverage() == {"logic_puzzle": {"beginner": 1}, "bias_swap": {"advanced": 1}}


@pytest.mark.parametrize(
    "entry, message",
    [
        ({"id": 9, "type": "riddle", "difficulty": "beginner", "xp_reward": 5, "estimated_time_minutes": 1}, "Unknown challenge type"),
        ({"id": 9, "type": "logic_puzzle", "difficulty": "expert", "correct_answer": "A", "xp_reward": 5, "estimated_time_minutes": 1}, "Unknown difficulty"),
        ({"id": 9, "type": "logic_puzzle", "difficulty": "beginner", "correct_answer": ["A"], "xp_reward": 5, "estimated_time_minutes": 1}, "non-empty string"),
        ({"id": 9, "type": "bias_swap", "difficulty": "beginner", "correct_answer": "tag", "xp_reward": 5, "estimated_time_minutes": 1}, "indicator tags"),
        ({"id": 9, "type": "synthesis", "difficulty": "beginner", "correct_answer": "essay", "xp_reward": 5, "estimated_time_minutes": 1}, "keywords"),
        ({"id": 9, "type": "logic_puzzle", "difficulty": "beginner", "correct_answer": "A", "xp_reward": 0, "estimated_time_minutes": 1}, "xp_reward"),
        ({"id": 9, "type": "logic_puzzle", "difficulty": "beginner", "correct_answer": "A", "xp_reward": 5}, "estimated_time_minutes"),
    ],
)
def test_challenge_bank_validation(tmp_path: Path, entry, message):
    with pytest.raises(ChallengeValidationError, match=message):
        ChallengeBank(_write(tmp_path, [entry]), auto_sync=False)


def test_duplicate_and_missing_ids_rejected(tmp_path: Path):
    base = {"type": "logic_puzzle", "difficulty": "beginner", "correct_answer": "A", "xp_reward": 5, "estimated_time_minutes": 1}
    with pytest.raises(ChallengeValidationError, match="Duplicate"):
        ChallengeBank(_write(tmp_path, [dict(base, id=1), dict(base, id=1)]), auto_sync=False)
    with pytest.raises(ChallengeValidationError, match="explicit id"):
        ChallengeBank(_write(tmp_path, [base]), auto_sync=False)
    with pytest.raises(ChallengeValidationError, match="JSON list"):
        ChallengeBank(_write(tmp_path, {"challenges": []}), auto_sync=False)


def test_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        ChallengeBank(tmp_path / "absent.json", auto_sync=False)


def test_create_and_list_catalog(temp_db):
    created = create_challenge(
        {
            "type": "Ethical_Dilemma",
            "difficulty": "advanced",
            "title": "Whistleblower",
            "correct_answer": {"keywords": ["harm", "duty"]},
            "xp_reward": 30,
            "estimated_time_minutes": 12,
        }
    )
    assert created.type is ChallengeType.ETHICAL_DILEMMA
    assert created.correct_answer == KeywordCriteria(keywords=("harm", "duty"), min_keywords=1)

    create_challenge(
        {"type": "data_literacy", "difficulty": "beginner", "correct_answer": "B", "xp_reward": 10, "estimated_time_minutes": 3}
    )
    listed = list_catalog(difficulty="ADVANCED")
    assert [c.id for c in listed] == [created.id]
    assert listed[0].difficulty is DifficultyLevel.ADVANCED
    assert len(list_catalog()) == 2


def test_shipped_catalog_covers_every_type_and_difficulty():
    bank = ChallengeBank(ROOT / "challenges.json", auto_sync=False)
    coverage = bank.coverage()
    for challenge_type in ChallengeType:
        for difficulty in DifficultyLevel:
            assert coverage.get(challenge_type.value, {}).get(difficulty.value, 0) >= 1, (
                challenge_type.value,
                difficulty.value,
            )
