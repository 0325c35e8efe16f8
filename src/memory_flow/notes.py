"""Note storage and review recording on top of the scheduler."""
import json
import logging
import sqlite3
from datetime import datetime

from memory_flow.config import get_intervals
from memory_flow.db import get_connection
from memory_flow.models import MemoryItem, StudyLogEntry
from memory_flow.scheduler import Review, forget, remember

logger = logging.getLogger(__name__)


class NoteNotFound(LookupError):
    """No note with the requested id exists."""


def _row_to_item(row: sqlite3.Row) -> MemoryItem:
    return MemoryItem(
        id=row["id"],
        review_stage=row["review_stage"],
        next_review_at=datetime.fromisoformat(row["next_review_at"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        content=row["content"],
        title=row["title"],
        body=row["body"],
        image_path=row["image_path"],
        mask=json.loads(row["mask"]) if row["mask"] else None,
    )


def _update_schedule(conn: sqlite3.Connection, item: MemoryItem) -> int:
    cur = conn.execute(
        "UPDATE notes SET review_stage=?, next_review_at=? WHERE id=?",
        (item.review_stage, item.next_review_at.isoformat(), item.id),
    )
    return cur.rowcount


def _insert_log(conn: sqlite3.Connection, entry: StudyLogEntry) -> None:
    conn.execute(
        "INSERT INTO study_logs (note_id, created_at) VALUES (?, ?)",
        (entry.item_id, entry.timestamp.isoformat()),
    )


def create_note(
    db_path: str,
    content: str,
    now: datetime,
    title: str | None = None,
    body: str | None = None,
    image_path: str | None = None,
    mask: list | None = None,
) -> MemoryItem:
    """Insert a new note at stage 0, due immediately."""
    if not content or not content.strip():
        raise ValueError("note content must not be blank")
    conn = get_connection(db_path)
    try:
        with conn:
            cur = conn.execute(
                """INSERT INTO notes (content, title, body, image_path, mask, review_stage, next_review_at, created_at)
                VALUES (?, ?, ?, ?, ?, 0, ?, ?)""",
                (
                    content, title, body, image_path,
                    json.dumps(mask) if mask is not None else None,
                    now.isoformat(), now.isoformat(),
                ),
            )
    finally:
        conn.close()
    note_id = cur.lastrowid
    logger.info("created note %s", note_id)
    return MemoryItem(
        id=note_id, review_stage=0, next_review_at=now, created_at=now,
        content=content, title=title, body=body, image_path=image_path, mask=mask,
    )


def get_note(db_path: str, note_id: int) -> MemoryItem:
    conn = get_connection(db_path)
    try:
        row = conn.execute("SELECT * FROM notes WHERE id = ?", (note_id,)).fetchone()
    finally:
        conn.close()
    if row is None:
        raise NoteNotFound(f"note {note_id} does not exist")
    return _row_to_item(row)


def load_items(db_path: str) -> list[MemoryItem]:
    """All notes, newest first."""
    conn = get_connection(db_path)
    try:
        rows = conn.execute("SELECT * FROM notes ORDER BY created_at DESC, id DESC").fetchall()
    finally:
        conn.close()
    logger.debug("loaded %d notes", len(rows))
    return [_row_to_item(r) for r in rows]


def save_item(db_path: str, item: MemoryItem) -> None:
    """Persist an item's schedule fields."""
    conn = get_connection(db_path)
    try:
        with conn:
            updated = _update_schedule(conn, item)
    finally:
        conn.close()
    if not updated:
        raise NoteNotFound(f"note {item.id} does not exist")


def append_log(db_path: str, entry: StudyLogEntry) -> None:
    conn = get_connection(db_path)
    try:
        with conn:
            _insert_log(conn, entry)
    finally:
        conn.close()


def get_log_entries(db_path: str) -> list[StudyLogEntry]:
    conn = get_connection(db_path)
    try:
        rows = conn.execute("SELECT note_id, created_at FROM study_logs ORDER BY id").fetchall()
    finally:
        conn.close()
    return [StudyLogEntry(r["note_id"], datetime.fromisoformat(r["created_at"])) for r in rows]


def delete_note(db_path: str, note_id: int) -> None:
    conn = get_connection(db_path)
    try:
        with conn:
            cur = conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
    finally:
        conn.close()
    if not cur.rowcount:
        raise NoteNotFound(f"note {note_id} does not exist")
    logger.info("deleted note %s", note_id)


def record_review(
    db_path: str,
    note_id: int,
    remembered: bool,
    now: datetime,
    intervals=None,
) -> Review:
    """Apply remember/forget to one note and commit it in a single transaction.

    The note is re-read under a write lock, so two concurrent reviews of the
    same note are applied one after the other rather than overwriting each
    other.
    """
    if intervals is None:
        intervals = get_intervals(db_path)
    conn = get_connection(db_path)
    try:
        with conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute("SELECT * FROM notes WHERE id = ?", (note_id,)).fetchone()
            if row is None:
                raise NoteNotFound(f"note {note_id} does not exist")
            item = _row_to_item(row)
            if remembered:
                review = remember(item, now, intervals)
            else:
                review = Review(forget(item, now, intervals))
            _update_schedule(conn, review.item)
            if review.log_entry is not None:
                _insert_log(conn, review.log_entry)
    finally:
        conn.close()
    logger.info(
        "note %s %s: stage %d -> %d",
        note_id, "remembered" if remembered else "forgotten",
        item.review_stage, review.item.review_stage,
    )
    return review
