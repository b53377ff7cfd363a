import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from scripts import validate_challenge_bank


def test_shipped_bank_passes(capsys, tmp_path):
    report_path = tmp_path / "report.json"
    exit_code = validate_challenge_bank.main(
        ["--challenges", str(ROOT / "challenges.json"), "--output", str(report_path)]
    )
    captured = capsys.readouterr()
    assert exit_code == 0
    assert "WARNING" not in captured.out
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["totals"]["count"] == 20
    assert set(report["coverage"]) == {
        "bias_swap",
        "logic_puzzle",
        "data_literacy",
        "counter_argument",
        "synthesis",
        "ethical_dilemma",
    }


def test_sparse_cells_are_flagged(capsys):
    exit_code = validate_challenge_bank.main(
        ["--challenges", str(ROOT / "challenges.json"), "--min-per-cell", "2"]
    )
    captured = capsys.readouterr()
    assert exit_code == 1
    assert "WARNING bias_swap/beginner: only 1 active (min 2)" in captured.out


def test_invalid_bank_reports_error(capsys, tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps([{"id": 1, "type": "riddle"}]), encoding="utf-8")
    exit_code = validate_challenge_bank.main(["--challenges", str(bad)])
    assert exit_code == 2
    assert "Invalid challenge bank" in capsys.readouterr().out
