"""Fixed-interval spaced repetition scheduler.

Every function here is pure: it takes a MemoryItem snapshot plus an explicit
``now`` and returns new values for the caller to persist. Nothing reads the
system clock and nothing touches the database.
"""
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Optional, Sequence

from memory_flow.models import MemoryItem, StudyLogEntry

# Days until the next review, indexed by the stage reached after a review.
DEFAULT_INTERVALS = (1, 2, 4, 7, 15, 30)
MASTERED_STAGE = len(DEFAULT_INTERVALS) + 1
MASTERED_HORIZON = timedelta(days=36500)
# No interval may reach this far; a review date beyond it is the mastered sentinel.
MASTERED_CUTOFF = timedelta(days=3650)

# Upcoming items are grouped as "1 day", "2 days" and "3+ days".
UPCOMING_GROUPS = 3

ONE_DAY = timedelta(days=1)


class SchedulerError(ValueError):
    """Base class for scheduler contract violations."""


class InvalidItemState(SchedulerError):
    """The item snapshot is malformed."""


class IllegalTransition(SchedulerError):
    """A review transition was requested for an item that cannot take it."""


class Status(Enum):
    NEW = "new"
    DUE = "due"
    EXPIRED = "expired"
    UPCOMING = "upcoming"
    MASTERED = "mastered"


@dataclass(frozen=True)
class Classification:
    status: Status
    days_until: Optional[int] = None
    days_overdue: Optional[int] = None

    @property
    def is_due(self) -> bool:
        return self.status in (Status.NEW, Status.DUE, Status.EXPIRED)

    @property
    def label(self) -> str:
        if self.status is Status.UPCOMING:
            unit = "day" if self.days_until == 1 else "days"
            return f"In {self.days_until} {unit}"
        return self.status.name.title()


@dataclass(frozen=True)
class Review:
    item: MemoryItem
    log_entry: Optional[StudyLogEntry] = None


@dataclass
class Partition:
    due: list = field(default_factory=list)
    upcoming: dict = field(default_factory=dict)
    mastered: list = field(default_factory=list)


def mastered_stage(intervals: Sequence[int] = DEFAULT_INTERVALS) -> int:
    return len(intervals) + 1


def is_mastered(item: MemoryItem, now: datetime, intervals: Sequence[int] = DEFAULT_INTERVALS) -> bool:
    """True for the top stage, or for the far-future review date mastery sets.

    The date check keeps a note mastered after the interval table grows.
    """
    return (
        item.review_stage >= mastered_stage(intervals)
        or item.next_review_at - now >= MASTERED_CUTOFF
    )


def start_of_day(ts: datetime) -> datetime:
    """Midnight of the day containing ``ts``, keeping its tzinfo."""
    return ts.replace(hour=0, minute=0, second=0, microsecond=0)


def _check_intervals(intervals: Sequence[int]) -> None:
    if not intervals:
        raise SchedulerError("interval table must not be empty")
    for days in intervals:
        if isinstance(days, bool) or not isinstance(days, int) or not 0 < days < MASTERED_CUTOFF.days:
            raise SchedulerError(f"interval table holds an invalid entry: {days!r}")


def _validate(item: MemoryItem, now: datetime, intervals: Sequence[int]) -> None:
    _check_intervals(intervals)
    if not isinstance(now, datetime):
        raise SchedulerError(f"now must be a datetime, got {now!r}")
    stage = item.review_stage
    if isinstance(stage, bool) or not isinstance(stage, int):
        raise InvalidItemState(f"item {item.id!r}: review_stage must be an int, got {stage!r}")
    if stage < 0:
        raise InvalidItemState(f"item {item.id!r}: negative review_stage {stage}")
    if stage > mastered_stage(intervals):
        raise InvalidItemState(
            f"item {item.id!r}: review_stage {stage} is beyond mastered stage {mastered_stage(intervals)}"
        )
    for name in ("next_review_at", "created_at"):
        value = getattr(item, name)
        if not isinstance(value, datetime):
            raise InvalidItemState(f"item {item.id!r}: {name} is missing")
        if (value.tzinfo is None) != (now.tzinfo is None):
            raise InvalidItemState(f"item {item.id!r}: {name} and now mix naive and aware datetimes")
    if stage == mastered_stage(intervals) and item.next_review_at <= now:
        raise InvalidItemState(f"item {item.id!r}: mastered but next_review_at is not in the future")


def classify(
    item: MemoryItem,
    now: datetime,
    intervals: Sequence[int] = DEFAULT_INTERVALS,
) -> Classification:
    """Classify an item for display and for choosing a transition.

    A due item that has sat unreviewed for more than twice its last assigned
    interval (in whole days) is EXPIRED. Stage 0 items are never expired.

    Raises:
        InvalidItemState: if the item snapshot is malformed.
    """
    _validate(item, now, intervals)
    stage = item.review_stage
    if is_mastered(item, now, intervals):
        return Classification(Status.MASTERED)
    if item.next_review_at > now:
        days_until = math.ceil((item.next_review_at - now) / ONE_DAY)
        return Classification(Status.UPCOMING, days_until=days_until)

    days_overdue = (now - item.next_review_at) // ONE_DAY
    if stage == 0:
        return Classification(Status.NEW, days_overdue=days_overdue)
    if days_overdue > 2 * intervals[stage - 1]:
        return Classification(Status.EXPIRED, days_overdue=days_overdue)
    return Classification(Status.DUE, days_overdue=days_overdue)


def remember(
    item: MemoryItem,
    now: datetime,
    intervals: Sequence[int] = DEFAULT_INTERVALS,
    strict: bool = False,
) -> Review:
    """Credit a successful recall.

    Args:
        item: Current snapshot; it is not modified.
        now: Time of the review.
        intervals: Interval table in days.
        strict: Raise IllegalTransition instead of returning the item
            unchanged when it is upcoming or mastered.

    Returns:
        Review with the advanced item and the study log entry to append.
        ``log_entry`` is None when the call was a no-op.
    """
    verdict = classify(item, now, intervals)
    if not verdict.is_due:
        if strict:
            raise IllegalTransition(f"cannot remember item {item.id!r}: it is {verdict.status.value}")
        return Review(item)

    # Expired items restart the curve and this recall counts as the first rep.
    new_stage = 1 if verdict.status is Status.EXPIRED else item.review_stage + 1

    top = mastered_stage(intervals)
    if new_stage >= top:
        updated = replace(item, review_stage=top, next_review_at=now + MASTERED_HORIZON)
    else:
        next_review_at = start_of_day(now) + timedelta(days=intervals[new_stage - 1])
        updated = replace(item, review_stage=new_stage, next_review_at=next_review_at)
    return Review(updated, StudyLogEntry(item.id, now))


def forget(
    item: MemoryItem,
    now: datetime,
    intervals: Sequence[int] = DEFAULT_INTERVALS,
    strict: bool = False,
) -> MemoryItem:
    """Record a lapse and pull the item back into the due pool.

    An upcoming item drops one stage; a due item restarts at stage 0.
    Mastered items are left alone (or rejected when ``strict``).
    """
    verdict = classify(item, now, intervals)
    if verdict.status is Status.MASTERED:
        if strict:
            raise IllegalTransition(f"cannot forget item {item.id!r}: it is mastered")
        return item
    if verdict.status is Status.UPCOMING:
        return replace(item, review_stage=max(0, item.review_stage - 1), next_review_at=now)
    return replace(item, review_stage=0, next_review_at=now)


def _by_schedule(item: MemoryItem):
    return (item.next_review_at, item.id)


def partition_and_sort(
    items: Iterable[MemoryItem],
    now: datetime,
    intervals: Sequence[int] = DEFAULT_INTERVALS,
) -> Partition:
    """Split items into due, upcoming-by-day and mastered buckets.

    ``upcoming`` maps 1, 2 and 3 (meaning three days or more) to item lists,
    in ascending key order with empty groups left out.
    """
    due, mastered = [], []
    groups: dict = {}
    for item in items:
        if item.deleted:
            continue
        verdict = classify(item, now, intervals)
        if verdict.is_due:
            due.append(item)
        elif verdict.status is Status.UPCOMING:
            groups.setdefault(min(verdict.days_until, UPCOMING_GROUPS), []).append(item)
        else:
            mastered.append(item)

    due.sort(key=_by_schedule)
    mastered.sort(key=lambda i: i.id)
    upcoming = {days: sorted(groups[days], key=_by_schedule) for days in sorted(groups)}
    return Partition(due=due, upcoming=upcoming, mastered=mastered)
