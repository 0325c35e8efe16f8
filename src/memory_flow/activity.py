"""Study activity calendar and statistics."""
import calendar
from collections import Counter
from datetime import date, datetime
from typing import Iterable

from memory_flow.config import get_intervals
from memory_flow.models import MemoryItem, StudyLogEntry
from memory_flow.notes import get_log_entries, load_items
from memory_flow.scheduler import Status, classify


def active_dates(items: Iterable[MemoryItem], entries: Iterable[StudyLogEntry]) -> set[date]:
    """Days on which a note was created or a review was completed."""
    days = {item.created_at.date() for item in items}
    days.update(entry.timestamp.date() for entry in entries)
    return days


def month_progress(active: set[date], month: date, today: date) -> tuple[int, int]:
    """Return (active days in month, days counted so far in month).

    A future month counts no days yet, the current month counts up to today,
    and a past month counts all of its days.
    """
    year, mon = month.year, month.month
    length = calendar.monthrange(year, mon)[1]
    active_days = sum(1 for d in active if d.year == year and d.month == mon)
    if (year, mon) > (today.year, today.month):
        total = 0
    elif (year, mon) == (today.year, today.month):
        total = today.day
    else:
        total = length
    return active_days, total


def get_study_stats(db_path: str, now: datetime) -> dict:
    items = load_items(db_path)
    entries = get_log_entries(db_path)
    intervals = get_intervals(db_path)
    counts = Counter(classify(item, now, intervals).status for item in items)
    days_active, days_total = month_progress(active_dates(items, entries), now.date(), now.date())
    return {
        "notes": len(items),
        "new": counts[Status.NEW],
        "due": counts[Status.DUE],
        "expired": counts[Status.EXPIRED],
        "upcoming": counts[Status.UPCOMING],
        "mastered": counts[Status.MASTERED],
        "reviews_logged": len(entries),
        "days_active_this_month": days_active,
        "days_this_month": days_total,
    }


def shift_month(month: date, months: int) -> date:
    """First day of the month ``months`` away from ``month``."""
    index = month.year * 12 + month.month - 1 + months
    return date(index // 12, index % 12 + 1, 1)


def notes_created_on(items: Iterable[MemoryItem], day: date) -> list[MemoryItem]:
    """Notes created on ``day``, oldest first."""
    created = [item for item in items if item.created_at.date() == day]
    return sorted(created, key=lambda item: (item.created_at, item.id))
