# tests/test_activity.py
from datetime import date, datetime, timedelta

from memory_flow.activity import (
    active_dates, get_study_stats, month_progress, notes_created_on, shift_month,
)
from memory_flow.db import init_db, get_connection
from memory_flow.models import MemoryItem, StudyLogEntry
from memory_flow.notes import create_note, record_review

NOW = datetime(2024, 3, 15, 14, 30)


def _item(id, created_at):
    return MemoryItem(id=id, review_stage=0, next_review_at=created_at, created_at=created_at)


def test_active_dates_merges_notes_and_logs():
    items = [_item(1, datetime(2024, 3, 1, 8)), _item(2, datetime(2024, 3, 1, 22))]
    entries = [StudyLogEntry(1, datetime(2024, 3, 2, 9)), StudyLogEntry(2, datetime(2024, 3, 5, 9))]
    assert active_dates(items, entries) == {date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 5)}


def test_active_dates_empty():
    assert active_dates([], []) == set()


def test_month_progress_current_month():
    active = {date(2024, 3, 1), date(2024, 3, 10), date(2024, 2, 28)}
    assert month_progress(active, date(2024, 3, 1), date(2024, 3, 15)) == (2, 15)


def test_month_progress_past_month_counts_whole_month():
    active = {date(2024, 2, 28), date(2024, 2, 29)}
    assert month_progress(active, date(2024, 2, 1), date(2024, 3, 15)) == (2, 29)


def test_month_progress_future_month():
    assert month_progress(set(), date(2024, 4, 1), date(2024, 3, 15)) == (0, 0)


def test_month_progress_other_year():
    active = {date(2023, 3, 3)}
    assert month_progress(active, date(2024, 3, 1), date(2024, 3, 15)) == (0, 15)


def test_get_study_stats(tmp_db):
    init_db(tmp_db)
    create_note(tmp_db, "new note", NOW - timedelta(hours=1))
    b = create_note(tmp_db, "reviewed", NOW - timedelta(days=3))
    c = create_note(tmp_db, "expired", NOW - timedelta(days=40))
    record_review(tmp_db, b.id, True, NOW - timedelta(days=3))
    conn = get_connection(tmp_db)
    conn.execute(
        "UPDATE notes SET review_stage = 3, next_review_at = ? WHERE id = ?",
        ((NOW - timedelta(days=20)).isoformat(), c.id),
    )
    conn.commit()
    conn.close()

    stats = get_study_stats(tmp_db, NOW)
    assert stats["notes"] == 3
    assert stats["new"] == 1
    assert stats["expired"] == 1
    assert stats["due"] == 1  # b: stage 1, two whole days overdue is not expired
    assert stats["upcoming"] == 0
    assert stats["mastered"] == 0
    assert stats["reviews_logged"] == 1
    # Mar 12 (b created + reviewed) and Mar 15 (a created); c is from February
    assert stats["days_active_this_month"] == 2
    assert stats["days_this_month"] == 15


def test_shift_month_wraps_years():
    assert shift_month(date(2024, 1, 1), -1) == date(2023, 12, 1)
    assert shift_month(date(2023, 12, 1), 1) == date(2024, 1, 1)
    assert shift_month(date(2024, 3, 1), 0) == date(2024, 3, 1)
    assert shift_month(date(2024, 3, 1), -15) == date(2022, 12, 1)


def test_notes_created_on_picks_one_day_oldest_first():
    items = [
        _item(3, datetime(2024, 3, 10, 21)),
        _item(1, datetime(2024, 3, 9, 23, 59)),
        _item(2, datetime(2024, 3, 10, 7)),
        _item(4, datetime(2024, 3, 11, 0)),
    ]
    assert [i.id for i in notes_created_on(items, date(2024, 3, 10))] == [2, 3]
    assert notes_created_on(items, date(2024, 3, 12)) == []
