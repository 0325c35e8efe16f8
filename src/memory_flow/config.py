"""User settings and runtime configuration."""
import json
import logging
import os
import sqlite3
from datetime import datetime

from memory_flow.db import get_connection
from memory_flow.scheduler import DEFAULT_INTERVALS, MASTERED_CUTOFF, mastered_stage

logger = logging.getLogger(__name__)

INTERVALS_KEY = "review_intervals"


class ConfigError(ValueError):
    """A stored or environment setting has an unusable value."""


def get_log_level() -> int:
    name = os.environ.get("MEMORY_FLOW_LOG_LEVEL", "WARNING").upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ConfigError(f"unknown log level: {name}")
    return level


def get_setting(db_path: str, key: str, default: str = None) -> str | None:
    conn = get_connection(db_path)
    try:
        row = conn.execute("SELECT value FROM user_settings WHERE key = ?", (key,)).fetchone()
    finally:
        conn.close()
    return default if row is None else row["value"]


def _write_setting(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        """INSERT INTO user_settings (key, value) VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value""",
        (key, value),
    )


def set_setting(db_path: str, key: str, value: str) -> None:
    conn = get_connection(db_path)
    try:
        with conn:
            _write_setting(conn, key, value)
    finally:
        conn.close()
    logger.info("setting %s updated", key)


def _parse_intervals(raw: str) -> tuple:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"{INTERVALS_KEY} is not valid JSON: {raw!r}") from e
    if not isinstance(data, list) or not data:
        raise ConfigError(f"{INTERVALS_KEY} must be a non-empty list of days")
    for days in data:
        if isinstance(days, bool) or not isinstance(days, int) or not 0 < days < MASTERED_CUTOFF.days:
            raise ConfigError(f"{INTERVALS_KEY} holds an invalid entry: {days!r}")
    return tuple(data)


def get_intervals(db_path: str) -> tuple:
    """Interval table in days; the stored override wins over the default."""
    raw = get_setting(db_path, INTERVALS_KEY)
    if raw is None:
        return DEFAULT_INTERVALS
    intervals = _parse_intervals(raw)
    logger.debug("using custom intervals %s", intervals)
    return intervals


def set_intervals(db_path: str, intervals, now: datetime) -> None:
    """Store a new interval table and carry existing notes over to it.

    Mastered notes are moved to the new top stage. A note still being learned
    must fit the new table, otherwise ConfigError is raised and nothing
    changes.
    """
    raw = json.dumps(list(intervals))
    intervals = _parse_intervals(raw)
    top = mastered_stage(intervals)
    conn = get_connection(db_path)
    try:
        with conn:
            conn.execute("BEGIN IMMEDIATE")
            rows = conn.execute("SELECT id, review_stage, next_review_at FROM notes").fetchall()
            for row in rows:
                if datetime.fromisoformat(row["next_review_at"]) - now >= MASTERED_CUTOFF:
                    if row["review_stage"] != top:
                        conn.execute("UPDATE notes SET review_stage = ? WHERE id = ?", (top, row["id"]))
                elif row["review_stage"] >= top:
                    raise ConfigError(
                        f"note {row['id']} is at stage {row['review_stage']}; "
                        f"{INTERVALS_KEY} needs at least {row['review_stage']} intervals"
                    )
            _write_setting(conn, INTERVALS_KEY, raw)
    finally:
        conn.close()
    logger.info("interval table set to %s", intervals)
