import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Sequence

from db_pool import SQLiteConnectionPool

DB_PATH = os.getenv("DB_PATH", "data.db")

# Initialize connection pool
_pool = SQLiteConnectionPool(DB_PATH, max_connections=10)

CHALLENGE_TYPES = (
    "bias_swap",
    "logic_puzzle",
    "data_literacy",
    "counter_argument",
    "synthesis",
    "ethical_dilemma",
)
DIFFICULTY_LEVELS = ("beginner", "intermediate", "advanced")


def _conn():
    """Return a context manager for acquiring a pooled SQLite connection."""
    return _pool.get_connection()


@contextmanager
def transaction() -> Iterator[sqlite3.Connection]:
    """Pooled connection inside an immediate (write-locked) transaction."""
    with _pool.transaction() as con:
        yield con


def _exec(sql: str, params: Iterable = ()):
    with _pool.get_connection() as con:
        cur = con.execute(sql, params)
        con.commit()
        return cur

def _query(sql: str, params: Iterable = ()) -> list[sqlite3.Row]:
    with _pool.get_connection() as con:
        cur = con.execute(sql, params)
        return cur.fetchall()


def json_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, default=str)


def _decode_json_field(value: Optional[str]) -> Any:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    value = value.strip()
    if not value:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def _ts(moment: Optional[datetime] = None) -> str:
    """Serialize ``moment`` as fixed-width UTC ISO text so string order is time order."""
    if moment is None:
        moment = datetime.now(timezone.utc)
    elif moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        raise ValueError("empty timestamp")
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = datetime.strptime(text, "%Y-%m-%d %H:%M:%S")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _day(value: date) -> str:
    return value.isoformat()


def init():
    types_sql = ", ".join(f"'{t}'" for t in CHALLENGE_TYPES)
    levels_sql = ", ".join(f"'{lvl}'" for lvl in DIFFICULTY_LEVELS)
    with _conn() as con:
        con.executescript(
            f"""
            CREATE TABLE IF NOT EXISTS challenges (
              id                     INTEGER PRIMARY KEY AUTOINCREMENT,
              type                   TEXT NOT NULL CHECK (type IN ({types_sql})),
              difficulty             TEXT NOT NULL CHECK (difficulty IN ({levels_sql})),
              title                  TEXT NOT NULL DEFAULT '',
              prompt                 TEXT NOT NULL DEFAULT '',
              content                TEXT,
              options                TEXT,
              correct_answer         TEXT,
              explanation            TEXT,
              xp_reward              INTEGER NOT NULL CHECK (xp_reward > 0),
              estimated_time_minutes INTEGER NOT NULL CHECK (estimated_time_minutes > 0),
              is_active              INTEGER NOT NULL DEFAULT 1,
              created_at             TEXT NOT NULL,
              updated_at             TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_challenges_active
              ON challenges(is_active, type, difficulty);

            CREATE TABLE IF NOT EXISTS challenge_submissions (
              id                 INTEGER PRIMARY KEY AUTOINCREMENT,
              user_id            TEXT NOT NULL,
              challenge_id       INTEGER NOT NULL,
              answer             TEXT NOT NULL,
              is_correct         INTEGER NOT NULL,
              time_spent_seconds INTEGER NOT NULL CHECK (time_spent_seconds >= 0),
              xp_earned          INTEGER NOT NULL CHECK (xp_earned >= 0),
              feedback           TEXT,
              created_at         TEXT NOT NULL,
              FOREIGN KEY(challenge_id) REFERENCES challenges(id)
            );

            CREATE INDEX IF NOT EXISTS idx_submissions_user_time
              ON challenge_submissions(user_id, created_at DESC);

            CREATE TABLE IF NOT EXISTS user_challenge_stats (
              user_id                TEXT PRIMARY KEY,
              total_completed        INTEGER NOT NULL DEFAULT 0,
              total_correct          INTEGER NOT NULL DEFAULT 0,
              total_xp_earned        INTEGER NOT NULL DEFAULT 0,
              current_streak         INTEGER NOT NULL DEFAULT 0,
              longest_streak         INTEGER NOT NULL DEFAULT 0,
              last_activity_date     TEXT,
              difficulty_performance TEXT NOT NULL DEFAULT '{{}}',
              type_performance       TEXT NOT NULL DEFAULT '{{}}',
              updated_at             TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS daily_challenge_selections (
              id                    INTEGER PRIMARY KEY AUTOINCREMENT,
              user_id               TEXT NOT NULL,
              challenge_id          INTEGER NOT NULL,
              selection_date        TEXT NOT NULL,
              selection_reason      TEXT NOT NULL,
              difficulty_adjustment INTEGER NOT NULL DEFAULT 0
                CHECK (difficulty_adjustment IN (-1, 0, 1)),
              created_at            TEXT NOT NULL,
              UNIQUE(user_id, selection_date),
              FOREIGN KEY(challenge_id) REFERENCES challenges(id)
            );

            CREATE TABLE IF NOT EXISTS echo_score_history (
              id                  INTEGER PRIMARY KEY AUTOINCREMENT,
              user_id             TEXT NOT NULL,
              score_date          TEXT NOT NULL,
              total_score         REAL NOT NULL,
              diversity_score     REAL NOT NULL,
              accuracy_score      REAL NOT NULL,
              switch_speed_score  REAL NOT NULL,
              consistency_score   REAL NOT NULL,
              improvement_score   REAL NOT NULL,
              calculation_details TEXT,
              created_at          TEXT NOT NULL,
              updated_at          TEXT NOT NULL,
              UNIQUE(user_id, score_date)
            );

            CREATE TABLE IF NOT EXISTS content_items (
              id          TEXT PRIMARY KEY,
              title       TEXT,
              source      TEXT,
              bias_rating REAL,
              created_at  TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS user_reading_activity (
              id         INTEGER PRIMARY KEY AUTOINCREMENT,
              user_id    TEXT NOT NULL,
              content_id TEXT NOT NULL,
              created_at TEXT NOT NULL,
              FOREIGN KEY(content_id) REFERENCES content_items(id)
            );

            CREATE INDEX IF NOT EXISTS idx_reading_user_time
              ON user_reading_activity(user_id, created_at DESC);
            """
        )
        con.commit()


# -------------- challenges --------------
_CHALLENGE_COLUMNS = (
    "id, type, difficulty, title, prompt, content, options, correct_answer, "
    "explanation, xp_reward, estimated_time_minutes, is_active, created_at, updated_at"
)


def _challenge_params(entry: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "type": entry["type"],
        "difficulty": entry["difficulty"],
        "title": entry.get("title") or "",
        "prompt": entry.get("prompt") or "",
        "content": json_dumps(entry.get("content") or {}),
        "options": json_dumps(entry.get("options") or []),
        "correct_answer": json_dumps(entry.get("correct_answer")),
        "explanation": entry.get("explanation"),
        "xp_reward": int(entry["xp_reward"]),
        "estimated_time_minutes": int(entry["estimated_time_minutes"]),
        "is_active": 1 if entry.get("is_active", True) else 0,
    }


def upsert_challenges(entries: Iterable[Mapping[str, Any]]) -> None:
    """Insert or refresh challenges keyed by their explicit ``id``."""
    now = _ts()
    with transaction() as con:
        for entry in entries:
            params = _challenge_params(entry)
            params["id"] = int(entry["id"])
            params["now"] = now
            con.execute(
                """
                INSERT INTO challenges (
                  id, type, difficulty, title, prompt, content, options, correct_answer,
                  explanation, xp_reward, estimated_time_minutes, is_active, created_at, updated_at
                ) VALUES (
                  :id, :type, :difficulty, :title, :prompt, :content, :options, :correct_answer,
                  :explanation, :xp_reward, :estimated_time_minutes, :is_active, :now, :now
                )
                ON CONFLICT(id) DO UPDATE SET
                  type = excluded.type,
                  difficulty = excluded.difficulty,
                  title = excluded.title,
                  prompt = excluded.prompt,
                  content = excluded.content,
                  options = excluded.options,
                  correct_answer = excluded.correct_answer,
                  explanation = excluded.explanation,
                  xp_reward = excluded.xp_reward,
                  estimated_time_minutes = excluded.estimated_time_minutes,
                  is_active = excluded.is_active,
                  updated_at = excluded.updated_at
                """,
                params,
            )


def create_challenge(entry: Mapping[str, Any]) -> int:
    params = _challenge_params(entry)
    params["now"] = _ts()
    with transaction() as con:
        cur = con.execute(
            """
            INSERT INTO challenges (
              type, difficulty, title, prompt, content, options, correct_answer,
              explanation, xp_reward, estimated_time_minutes, is_active, created_at, updated_at
            ) VALUES (
              :type, :difficulty, :title, :prompt, :content, :options, :correct_answer,
              :explanation, :xp_reward, :estimated_time_minutes, :is_active, :now, :now
            )
            """,
            params,
        )
        return int(cur.lastrowid)


def get_challenge(challenge_id: int) -> Optional[sqlite3.Row]:
    rows = _query(f"SELECT {_CHALLENGE_COLUMNS} FROM challenges WHERE id = ?", (int(challenge_id),))
    return rows[0] if rows else None


def list_challenges(
    *,
    type: Optional[str] = None,
    difficulty: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> list[sqlite3.Row]:
    sql = f"SELECT {_CHALLENGE_COLUMNS} FROM challenges WHERE 1 = 1"
    params: list[Any] = []
    if type:
        sql += " AND type = ?"
        params.append(type)
    if difficulty:
        sql += " AND difficulty = ?"
        params.append(difficulty)
    if is_active is not None:
        sql += " AND is_active = ?"
        params.append(1 if is_active else 0)
    sql += " ORDER BY id"
    return _query(sql, params)


# -------------- submissions --------------
def insert_submission(
    con: sqlite3.Connection,
    *,
    user_id: str,
    challenge_id: int,
    answer: Any,
    is_correct: bool,
    time_spent_seconds: int,
    xp_earned: int,
    feedback: Optional[str],
    created_at: datetime,
) -> int:
    cur = con.execute(
        """
        INSERT INTO challenge_submissions
          (user_id, challenge_id, answer, is_correct, time_spent_seconds, xp_earned, feedback, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            user_id,
            int(challenge_id),
            json_dumps(answer),
            1 if is_correct else 0,
            int(time_spent_seconds),
            int(xp_earned),
            feedback,
            _ts(created_at),
        ),
    )
    return int(cur.lastrowid)


def list_submissions_between(
    user_id: str,
    start: datetime,
    end: Optional[datetime] = None,
) -> list[sqlite3.Row]:
    """Submissions for ``user_id`` in ``[start, end)``, oldest first, with challenge type."""
    sql = (
        "SELECT s.id, s.challenge_id, s.is_correct, s.time_spent_seconds, s.xp_earned, "
        "s.created_at, c.type AS challenge_type, c.difficulty AS difficulty "
        "FROM challenge_submissions s JOIN challenges c ON c.id = s.challenge_id "
        "WHERE s.user_id = ? AND s.created_at >= ?"
    )
    params: list[Any] = [user_id, _ts(start)]
    if end is not None:
        sql += " AND s.created_at < ?"
        params.append(_ts(end))
    sql += " ORDER BY s.created_at ASC, s.id ASC"
    return _query(sql, params)


def list_submission_history(user_id: str, limit: int = 20, offset: int = 0) -> list[Dict[str, Any]]:
    rows = _query(
        """
        SELECT s.id, s.challenge_id, s.answer, s.is_correct, s.time_spent_seconds, s.xp_earned,
               s.feedback, s.created_at, c.type AS challenge_type, c.difficulty, c.title
        FROM challenge_submissions s JOIN challenges c ON c.id = s.challenge_id
        WHERE s.user_id = ?
        ORDER BY s.created_at DESC, s.id DESC
        LIMIT ? OFFSET ?
        """,
        (user_id, max(1, int(limit)), max(0, int(offset))),
    )
    history: list[Dict[str, Any]] = []
    for row in rows:
        history.append(
            {
                "submission_id": int(row["id"]),
                "challenge_id": int(row["challenge_id"]),
                "challenge_type": row["challenge_type"],
                "difficulty": row["difficulty"],
                "title": row["title"],
                "answer": _decode_json_field(row["answer"]),
                "is_correct": bool(row["is_correct"]),
                "time_spent_seconds": int(row["time_spent_seconds"]),
                "xp_earned": int(row["xp_earned"]),
                "feedback": row["feedback"],
                "created_at": row["created_at"],
            }
        )
    return history


def leaderboard(since: Optional[datetime] = None, limit: int = 100) -> list[Dict[str, Any]]:
    sql = (
        "SELECT user_id, COUNT(id) AS challenges_completed, "
        "COALESCE(SUM(xp_earned), 0) AS total_xp, "
        "COALESCE(SUM(is_correct), 0) AS correct_answers "
        "FROM challenge_submissions"
    )
    params: list[Any] = []
    if since is not None:
        sql += " WHERE created_at >= ?"
        params.append(_ts(since))
    sql += " GROUP BY user_id ORDER BY total_xp DESC, user_id ASC LIMIT ?"
    params.append(max(1, int(limit)))
    return [
        {
            "user_id": row["user_id"],
            "challenges_completed": int(row["challenges_completed"]),
            "total_xp": int(row["total_xp"]),
            "correct_answers": int(row["correct_answers"]),
        }
        for row in _query(sql, params)
    ]


# -------------- aggregated stats / streak --------------
def ensure_user_stats(con: sqlite3.Connection, user_id: str) -> None:
    con.execute(
        "INSERT INTO user_challenge_stats (user_id, updated_at) VALUES (?, ?) "
        "ON CONFLICT(user_id) DO NOTHING",
        (user_id, _ts()),
    )


def read_streak_state(con: sqlite3.Connection, user_id: str) -> Dict[str, Any]:
    ensure_user_stats(con, user_id)
    row = con.execute(
        "SELECT current_streak, longest_streak, last_activity_date "
        "FROM user_challenge_stats WHERE user_id = ?",
        (user_id,),
    ).fetchone()
    return {
        "current_streak": int(row["current_streak"]),
        "longest_streak": int(row["longest_streak"]),
        "last_activity_date": date.fromisoformat(row["last_activity_date"])
        if row["last_activity_date"]
        else None,
    }


def write_streak_state(
    con: sqlite3.Connection,
    user_id: str,
    *,
    current_streak: int,
    longest_streak: int,
    last_activity_date: date,
) -> None:
    # MAX() keeps longest_streak monotonic even if a caller passes a stale value.
    con.execute(
        """
        UPDATE user_challenge_stats
        SET current_streak = ?,
            longest_streak = MAX(longest_streak, ?),
            last_activity_date = ?,
            updated_at = ?
        WHERE user_id = ?
        """,
        (int(current_streak), int(longest_streak), _day(last_activity_date), _ts(), user_id),
    )


def refresh_user_stats(con: sqlite3.Connection, user_id: str) -> None:
    """Recompute totals and per-difficulty/per-type breakdowns from the submission log."""
    ensure_user_stats(con, user_id)
    totals = con.execute(
        "SELECT COUNT(*) AS completed, COALESCE(SUM(is_correct), 0) AS correct, "
        "COALESCE(SUM(xp_earned), 0) AS xp FROM challenge_submissions WHERE user_id = ?",
        (user_id,),
    ).fetchone()

    def _breakdown(column: str) -> Dict[str, Dict[str, Any]]:
        rows = con.execute(
            f"""
            SELECT c.{column} AS bucket, COUNT(*) AS completed,
                   COALESCE(SUM(s.is_correct), 0) AS correct,
                   AVG(s.time_spent_seconds) AS average_time_seconds
            FROM challenge_submissions s JOIN challenges c ON c.id = s.challenge_id
            WHERE s.user_id = ?
            GROUP BY c.{column}
            """,
            (user_id,),
        ).fetchall()
        return {
            row["bucket"]: {
                "completed": int(row["completed"]),
                "correct": int(row["correct"]),
                "average_time_seconds": float(row["average_time_seconds"] or 0.0),
            }
            for row in rows
        }

    con.execute(
        """
        UPDATE user_challenge_stats
        SET total_completed = ?,
            total_correct = ?,
            total_xp_earned = ?,
            difficulty_performance = ?,
            type_performance = ?,
            updated_at = ?
        WHERE user_id = ?
        """,
        (
            int(totals["completed"]),
            int(totals["correct"]),
            int(totals["xp"]),
            json_dumps(_breakdown("difficulty")),
            json_dumps(_breakdown("type")),
            _ts(),
            user_id,
        ),
    )


def get_user_stats(user_id: str) -> Optional[Dict[str, Any]]:
    rows = _query(
        """
        SELECT user_id, total_completed, total_correct, total_xp_earned, current_streak,
               longest_streak, last_activity_date, difficulty_performance, type_performance
        FROM user_challenge_stats WHERE user_id = ?
        """,
        (user_id,),
    )
    if not rows:
        return None
    row = rows[0]
    data = dict(row)
    data["difficulty_performance"] = _decode_json_field(row["difficulty_performance"]) or {}
    data["type_performance"] = _decode_json_field(row["type_performance"]) or {}
    return data


# -------------- daily challenge selection --------------
def _selection_dict(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "user_id": row["user_id"],
        "challenge_id": int(row["challenge_id"]),
        "selection_date": row["selection_date"],
        "selection_reason": row["selection_reason"],
        "difficulty_adjustment": int(row["difficulty_adjustment"]),
        "created_at": row["created_at"],
    }


def get_daily_selection(user_id: str, day: date) -> Optional[Dict[str, Any]]:
    rows = _query(
        "SELECT user_id, challenge_id, selection_date, selection_reason, difficulty_adjustment, created_at "
        "FROM daily_challenge_selections WHERE user_id = ? AND selection_date = ?",
        (user_id, _day(day)),
    )
    return _selection_dict(rows[0]) if rows else None


def insert_daily_selection_if_absent(
    user_id: str,
    day: date,
    *,
    challenge_id: int,
    selection_reason: str,
    difficulty_adjustment: int,
) -> tuple[Dict[str, Any], bool]:
    """Atomically create the (user, day) selection unless one exists.

    Returns the stored selection and whether this call created it. The
    stored row may belong to a concurrent caller that won the race.
    """
    with transaction() as con:
        cur = con.execute(
            """
            INSERT INTO daily_challenge_selections
              (user_id, challenge_id, selection_date, selection_reason, difficulty_adjustment, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, selection_date) DO NOTHING
            """,
            (user_id, int(challenge_id), _day(day), selection_reason, int(difficulty_adjustment), _ts()),
        )
        created = cur.rowcount == 1
        row = con.execute(
            "SELECT user_id, challenge_id, selection_date, selection_reason, difficulty_adjustment, created_at "
            "FROM daily_challenge_selections WHERE user_id = ? AND selection_date = ?",
            (user_id, _day(day)),
        ).fetchone()
    return _selection_dict(row), created


# -------------- echo score snapshots --------------
_SCORE_COLUMNS = (
    "user_id, score_date, total_score, diversity_score, accuracy_score, switch_speed_score, "
    "consistency_score, improvement_score, calculation_details, created_at, updated_at"
)


def _score_dict(row: sqlite3.Row) -> Dict[str, Any]:
    data = dict(row)
    data["calculation_details"] = _decode_json_field(row["calculation_details"]) or {}
    return data


def upsert_echo_score(user_id: str, day: date, scores: Mapping[str, float], details: Mapping[str, Any]) -> Dict[str, Any]:
    """Write the single snapshot for (user, day); a later call that day refreshes it."""
    now = _ts()
    with transaction() as con:
        con.execute(
            f"""
            INSERT INTO echo_score_history ({_SCORE_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, score_date) DO UPDATE SET
              total_score = excluded.total_score,
              diversity_score = excluded.diversity_score,
              accuracy_score = excluded.accuracy_score,
              switch_speed_score = excluded.switch_speed_score,
              consistency_score = excluded.consistency_score,
              improvement_score = excluded.improvement_score,
              calculation_details = excluded.calculation_details,
              updated_at = excluded.updated_at
            """,
            (
                user_id,
                _day(day),
                float(scores["total_score"]),
                float(scores["diversity_score"]),
                float(scores["accuracy_score"]),
                float(scores["switch_speed_score"]),
                float(scores["consistency_score"]),
                float(scores["improvement_score"]),
                json_dumps(details),
                now,
                now,
            ),
        )
        row = con.execute(
            f"SELECT {_SCORE_COLUMNS} FROM echo_score_history WHERE user_id = ? AND score_date = ?",
            (user_id, _day(day)),
        ).fetchone()
    return _score_dict(row)


def get_echo_score(user_id: str, day: date) -> Optional[Dict[str, Any]]:
    rows = _query(
        f"SELECT {_SCORE_COLUMNS} FROM echo_score_history WHERE user_id = ? AND score_date = ?",
        (user_id, _day(day)),
    )
    return _score_dict(rows[0]) if rows else None


def get_latest_echo_score(user_id: str) -> Optional[Dict[str, Any]]:
    rows = _query(
        f"SELECT {_SCORE_COLUMNS} FROM echo_score_history WHERE user_id = ? "
        "ORDER BY score_date DESC LIMIT 1",
        (user_id,),
    )
    return _score_dict(rows[0]) if rows else None


def list_echo_scores(user_id: str, since: Optional[date] = None) -> list[Dict[str, Any]]:
    sql = f"SELECT {_SCORE_COLUMNS} FROM echo_score_history WHERE user_id = ?"
    params: list[Any] = [user_id]
    if since is not None:
        sql += " AND score_date >= ?"
        params.append(_day(since))
    sql += " ORDER BY score_date ASC"
    return [_score_dict(row) for row in _query(sql, params)]


# -------------- content / reading activity --------------
def upsert_content_item(
    content_id: str,
    *,
    title: Optional[str] = None,
    source: Optional[str] = None,
    bias_rating: Optional[float] = None,
) -> None:
    _exec(
        """
        INSERT INTO content_items (id, title, source, bias_rating, created_at)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
          title = excluded.title,
          source = excluded.source,
          bias_rating = excluded.bias_rating
        """,
        (content_id, title, source, bias_rating, _ts()),
    )


def get_content_item(content_id: str) -> Optional[sqlite3.Row]:
    rows = _query("SELECT id, title, source, bias_rating FROM content_items WHERE id = ?", (content_id,))
    return rows[0] if rows else None


def record_reading(user_id: str, content_id: str, at: Optional[datetime] = None) -> int:
    cur = _exec(
        "INSERT INTO user_reading_activity (user_id, content_id, created_at) VALUES (?, ?, ?)",
        (user_id, content_id, _ts(at)),
    )
    return int(cur.lastrowid)


def list_reading_between(
    user_id: str,
    start: datetime,
    end: Optional[datetime] = None,
) -> list[sqlite3.Row]:
    """Reading events with the content's bias rating and source, oldest first."""
    sql = (
        "SELECT r.content_id, r.created_at, c.bias_rating, c.source "
        "FROM user_reading_activity r LEFT JOIN content_items c ON c.id = r.content_id "
        "WHERE r.user_id = ? AND r.created_at >= ?"
    )
    params: list[Any] = [user_id, _ts(start)]
    if end is not None:
        sql += " AND r.created_at < ?"
        params.append(_ts(end))
    sql += " ORDER BY r.created_at ASC, r.id ASC"
    return _query(sql, params)


def list_active_user_ids(start: datetime, end: datetime) -> list[str]:
    """Users with a submission or a reading event in ``[start, end)``."""
    rows = _query(
        """
        SELECT user_id FROM challenge_submissions WHERE created_at >= ? AND created_at < ?
        UNION
        SELECT user_id FROM user_reading_activity WHERE created_at >= ? AND created_at < ?
        ORDER BY user_id
        """,
        (_ts(start), _ts(end), _ts(start), _ts(end)),
    )
    return [row["user_id"] for row in rows]


def users_with_snapshot(user_ids: Sequence[str], day: date) -> set[str]:
    if not user_ids:
        return set()
    placeholders = ",".join("?" for _ in user_ids)
    rows = _query(
        f"SELECT user_id FROM echo_score_history WHERE score_date = ? AND user_id IN ({placeholders})",
        [_day(day), *user_ids],
    )
    return {row["user_id"] for row in rows}
