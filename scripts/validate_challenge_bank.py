"""Report challenge catalog coverage and flag sparse type/difficulty cells."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, Sequence

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from challenge_bank import ChallengeBank
from engines.models import ChallengeType, DifficultyLevel
from engines.validation import ChallengeValidationError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--challenges",
        type=str,
        default="challenges.json",
        help="Path to the challenge bank JSON file (default: challenges.json)",
    )
    parser.add_argument(
        "--min-per-cell",
        type=int,
        default=1,
        help="Minimum active challenges per type and difficulty (default: 1)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Optional path to write the JSON coverage report",
    )
    return parser


def _build_report(bank: ChallengeBank) -> dict:
    coverage = bank.coverage()
    grid: Dict[str, Dict[str, int]] = {}
    for challenge_type in ChallengeType:
        row = coverage.get(challenge_type.value, {})
        grid[challenge_type.value] = {level.value: row.get(level.value, 0) for level in DifficultyLevel}
    challenges = bank.challenges
    totals = {
        "count": len(challenges),
        "active": sum(1 for c in challenges if c["is_active"]),
        "xp_range": {
            "min": min((c["xp_reward"] for c in challenges), default=None),
            "max": max((c["xp_reward"] for c in challenges), default=None),
        },
    }
    return {"totals": totals, "coverage": grid}


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        bank = ChallengeBank(args.challenges, auto_sync=False)
    except (ChallengeValidationError, FileNotFoundError) as exc:
        print(f"Invalid challenge bank: {exc}")
        return 2
    report = _build_report(bank)

    min_per_cell = max(1, int(args.min_per_cell))
    flagged: list[str] = []
    for challenge_type, row in report["coverage"].items():
        for difficulty, count in row.items():
            if count < min_per_cell:
                flagged.append(f"{challenge_type}/{difficulty}: only {count} active (min {min_per_cell})")

    payload = json.dumps(report, indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
    print(payload)

    if flagged:
        for issue in flagged:
            print(f"WARNING {issue}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
