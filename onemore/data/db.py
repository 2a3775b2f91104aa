from __future__ import annotations
import json
import logging
import sqlite3
from pathlib import Path
from typing import List, Optional, Union

from onemore.challenge.models import Baselines, ChallengeState, DailyProgress
from onemore.challenge.progress import ProgressState

logger = logging.getLogger(__name__)

SCHEMA = r"""
CREATE TABLE IF NOT EXISTS challenge (
  id INTEGER PRIMARY KEY CHECK (id = 1),
  is_active INTEGER NOT NULL,
  start_date TEXT,
  current_day INTEGER NOT NULL,
  baselines_json TEXT NOT NULL,
  current_streak INTEGER NOT NULL,
  best_streak INTEGER NOT NULL,
  total_days_completed INTEGER NOT NULL,
  last_completed_date TEXT,
  challenge_completed INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS daily_progress (
  date TEXT PRIMARY KEY,
  day INTEGER NOT NULL,
  exercises_json TEXT NOT NULL,
  all_completed INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS progress (
  id INTEGER PRIMARY KEY CHECK (id = 1),
  payload_json TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sessions (
  id TEXT PRIMARY KEY,
  exercise TEXT NOT NULL,
  started_at REAL NOT NULL,
  stopped_at REAL,
  target INTEGER,
  total INTEGER
);

CREATE TABLE IF NOT EXISTS events (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  session_id TEXT NOT NULL,
  t REAL NOT NULL,
  count INTEGER NOT NULL,
  delta INTEGER NOT NULL,
  is_valid INTEGER NOT NULL,
  feedback TEXT,
  FOREIGN KEY(session_id) REFERENCES sessions(id)
);
"""


class ChallengeDB:
    """
    Date-keyed persistence for the challenge plus the counter's session log.
    Pass ":memory:" for a throwaway database.
    """
    def __init__(self, path: Union[str, Path] = "./onemore.db"):
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if self.path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA foreign_keys=ON;")
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    def close(self):
        self._conn.close()

    # Challenge state

    def load_challenge(self) -> Optional[ChallengeState]:
        row = self._conn.execute("SELECT * FROM challenge WHERE id=1").fetchone()
        if row is None:
            return None
        state = ChallengeState(
            is_active=bool(row["is_active"]),
            start_date=row["start_date"],
            current_day=row["current_day"],
            baselines=Baselines.from_dict(json.loads(row["baselines_json"])),
            current_streak=row["current_streak"],
            best_streak=row["best_streak"],
            total_days_completed=row["total_days_completed"],
            last_completed_date=row["last_completed_date"],
            challenge_completed=bool(row["challenge_completed"]),
        )
        for r in self._conn.execute("SELECT * FROM daily_progress ORDER BY date"):
            state.daily_progress[r["date"]] = DailyProgress.from_dict({
                "date": r["date"],
                "day": r["day"],
                "exercises": json.loads(r["exercises_json"]),
                "all_completed": bool(r["all_completed"]),
            })
        return state

    def save_challenge(self, state: ChallengeState):
        data = state.to_dict()
        with self._conn:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO challenge (
                  id, is_active, start_date, current_day, baselines_json, current_streak,
                  best_streak, total_days_completed, last_completed_date, challenge_completed
                ) VALUES (1,?,?,?,?,?,?,?,?,?)
                """,
                (
                    int(state.is_active),
                    state.start_date,
                    state.current_day,
                    json.dumps(data["baselines"]),
                    state.current_streak,
                    state.best_streak,
                    state.total_days_completed,
                    state.last_completed_date,
                    int(state.challenge_completed),
                ),
            )
            # a reset drops days, so rewrite the whole date map
            self._conn.execute("DELETE FROM daily_progress")
            self._conn.executemany(
                "INSERT INTO daily_progress (date, day, exercises_json, all_completed) VALUES (?,?,?,?)",
                [
                    (d, p["day"], json.dumps(p["exercises"]), int(p["all_completed"]))
                    for d, p in data["daily_progress"].items()
                ],
            )
        logger.debug("saved challenge state (%d days)", len(state.daily_progress))

    def load_progress(self) -> Optional[ProgressState]:
        row = self._conn.execute("SELECT payload_json FROM progress WHERE id=1").fetchone()
        if row is None:
            return None
        return ProgressState.from_dict(json.loads(row["payload_json"]))

    def save_progress(self, progress: ProgressState):
        with self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO progress (id, payload_json) VALUES (1, ?)",
                (json.dumps(progress.to_dict()),),
            )

    # Session-level writes

    def insert_session(self, session_id: str, exercise: str, started_at: float, target: Optional[int]):
        with self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO sessions (id, exercise, started_at, target) VALUES (?,?,?,?)",
                (session_id, exercise, started_at, target),
            )

    def stop_session(self, session_id: str, stopped_at: float, total: int):
        with self._conn:
            self._conn.execute(
                "UPDATE sessions SET stopped_at=?, total=? WHERE id=?",
                (stopped_at, total, session_id),
            )

    # Event writes

    def insert_event(self, session_id: str, t: float, count: int, delta: int, is_valid: bool, feedback: str = ""):
        with self._conn:
            self._conn.execute(
                "INSERT INTO events (session_id, t, count, delta, is_valid, feedback) VALUES (?,?,?,?,?,?)",
                (session_id, t, count, delta, int(is_valid), feedback),
            )

    def session(self, session_id: str) -> Optional[dict]:
        row = self._conn.execute("SELECT * FROM sessions WHERE id=?", (session_id,)).fetchone()
        return dict(row) if row else None

    def session_events(self, session_id: str) -> List[dict]:
        rows = self._conn.execute(
            "SELECT * FROM events WHERE session_id=? ORDER BY id", (session_id,)
        ).fetchall()
        return [dict(r) for r in rows]
