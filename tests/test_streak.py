import threading
from datetime import date, timedelta

import pytest

import db
from engines.streak import StreakState, StreakTracker, advance, classify

TODAY = date(2026, 3, 10)


def test_first_submission_starts_streak():
    info = advance(0, 0, None, TODAY)
    assert info.state is StreakState.NO_PRIOR_SUBMISSION
    assert (info.current_streak, info.maintained, info.is_new_record) == (1, True, True)
    assert info.longest_streak == 1


def test_yesterday_extends_streak():
    info = advance(4, 6, TODAY - timedelta(days=1), TODAY)
    assert info.state is StreakState.LAST_WAS_YESTERDAY
    assert (info.current_streak, info.maintained, info.is_new_record) == (5, True, False)
    assert info.longest_streak == 6


def test_same_day_leaves_streak_unchanged():
    info = advance(3, 3, TODAY, TODAY)
    assert info.state is StreakState.LAST_WAS_TODAY
    assert (info.current_streak, info.maintained, info.is_new_record) == (3, True, False)


def test_one_missed_day_resets_streak():
    info = advance(7, 7, TODAY - timedelta(days=2), TODAY)
    assert info.state is StreakState.OLDER_THAN_YESTERDAY
    assert (info.current_streak, info.maintained, info.is_new_record) == (1, False, False)
    assert info.longest_streak == 7


def test_future_last_day_is_treated_as_today():
    assert classify(TODAY + timedelta(days=1), TODAY) is StreakState.LAST_WAS_TODAY


def test_new_record_raises_longest():
    info = advance(5, 5, TODAY - timedelta(days=1), TODAY)
    assert info.is_new_record is True
    assert info.longest_streak == 6


@pytest.mark.usefixtures("temp_db")
class TestStreakTracker:
    def test_consecutive_days_persist(self):
        tracker = StreakTracker()
        for offset in range(3):
            info = tracker.record_completion("alice", TODAY + timedelta(days=offset))
        assert info.current_streak == 3
        stats = db.get_user_stats("alice")
        assert stats["current_streak"] == 3
        assert stats["longest_streak"] == 3
        assert stats["last_activity_date"] == (TODAY + timedelta(days=2)).isoformat()

    def test_twice_same_day_does_not_change_streak(self):
        tracker = StreakTracker()
        tracker.record_completion("bob", TODAY - timedelta(days=1))
        first = tracker.record_completion("bob", TODAY)
        second = tracker.record_completion("bob", TODAY)
        assert first.current_streak == second.current_streak == 2
        assert second.maintained is True
        assert second.is_new_record is False

    def test_gap_resets_but_longest_is_kept(self):
        tracker = StreakTracker()
        for offset in range(4):
            tracker.record_completion("carol", TODAY + timedelta(days=offset))
        info = tracker.record_completion("carol", TODAY + timedelta(days=5))
        assert (info.current_streak, info.maintained) == (1, False)
        stats = db.get_user_stats("carol")
        assert stats["longest_streak"] == 4
        assert stats["current_streak"] == 1

    def test_concurrent_submissions_increment_once(self):
        tracker = StreakTracker()
        tracker.record_completion("dave", TODAY - timedelta(days=1))

        results = []
        barrier = threading.Barrier(4)

        def _submit():
            barrier.wait()
            results.append(tracker.record_completion("dave", TODAY))

        threads = [threading.Thread(target=_submit) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(r.current_streak for r in results) == [2, 2, 2, 2]
        assert sum(1 for r in results if r.is_new_record) == 1
        stats = db.get_user_stats("dave")
        assert stats["current_streak"] == 2
        assert stats["longest_streak"] == 2

    def test_users_do_not_share_streaks(self):
        tracker = StreakTracker()
        tracker.record_completion("erin", TODAY - timedelta(days=1))
        tracker.record_completion("erin", TODAY)
        info = tracker.record_completion("frank", TODAY)
        assert info.current_streak == 1
