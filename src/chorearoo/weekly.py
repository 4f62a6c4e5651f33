"""Weekly earning cap tracking."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from enum import IntEnum
from typing import Any, Iterable, Mapping, Optional

from .clock import as_aware, now as current_time
from .config import WEEK_START_DAY
from .ledger import classify
from .models import CompletionStatus, TransactionKind, WeeklyProgress
from .money import ZERO


class Weekday(IntEnum):
    """Days of the week, numbered like :meth:`datetime.weekday`."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def parse(cls, value: "Weekday | int | str") -> "Weekday":
        if isinstance(value, Weekday):
            return value
        if isinstance(value, int):
            return cls(value)
        try:
            return cls[str(value).strip().upper()]
        except KeyError as exc:
            raise ValueError(f"Unknown weekday '{value}'.") from exc


DEFAULT_FIRST_WEEKDAY = Weekday.parse(WEEK_START_DAY)


def start_of_week(now: datetime, *, first_weekday: Weekday | int | str | None = None) -> datetime:
    """Return midnight of the first day of the week containing ``now``.

    Weeks start on Sunday unless configured otherwise. Every week start stored
    on a completion or used in a cap query comes from here.
    """

    first = DEFAULT_FIRST_WEEKDAY if first_weekday is None else Weekday.parse(first_weekday)
    offset = (now.weekday() - first) % 7
    start = now - timedelta(days=offset)
    return start.replace(hour=0, minute=0, second=0, microsecond=0)


def _in_week(completion: Any, week_start: datetime) -> bool:
    stored = completion.week_start_date
    return stored is not None and as_aware(stored) == as_aware(week_start)


def _counts_toward_cap(completion: Any, chore: Any) -> bool:
    if completion.status == CompletionStatus.REJECTED.value:
        return False
    return classify(completion, chore) is TransactionKind.CHORE


def week_earnings(
    completions: Iterable[Any],
    week_start: datetime,
    *,
    chores: Optional[Mapping[str, Any]] = None,
) -> Decimal:
    """Sum the chore earnings of ``week_start``'s week.

    Pending and approved chore completions both count, so a queued claim
    reserves capacity before a parent gets to it. Rejected rows, bonuses,
    expenses and purchases never count.
    """

    lookup = chores or {}
    total = ZERO
    for completion in completions:
        if not _in_week(completion, week_start):
            continue
        chore = lookup.get(completion.chore_id) if completion.chore_id else None
        if not _counts_toward_cap(completion, chore):
            continue
        total += chore.amount if chore is not None else completion.split.total
    return total


def bonus_earnings(completions: Iterable[Any], week_start: datetime) -> Decimal:
    total = ZERO
    for completion in completions:
        if not _in_week(completion, week_start):
            continue
        if completion.status != CompletionStatus.APPROVED.value:
            continue
        if classify(completion) is TransactionKind.BONUS:
            total += completion.split.total
    return total


def would_exceed_cap(
    child: Any,
    chore: Any,
    completions: Iterable[Any],
    *,
    now: Optional[datetime] = None,
    chores: Optional[Mapping[str, Any]] = None,
) -> bool:
    """True when ``chore`` would push this week's earnings past the child's cap."""

    week_start = start_of_week(now or current_time())
    earned = week_earnings(completions, week_start, chores=chores)
    return earned + chore.amount > child.weekly_cap


def remaining_capacity(
    child: Any,
    completions: Iterable[Any],
    *,
    now: Optional[datetime] = None,
    chores: Optional[Mapping[str, Any]] = None,
) -> Decimal:
    """Return how much more the child may earn from chores this week."""

    return weekly_progress(child, completions, now=now, chores=chores).remaining


def weekly_progress(
    child: Any,
    completions: Iterable[Any],
    *,
    now: Optional[datetime] = None,
    chores: Optional[Mapping[str, Any]] = None,
) -> WeeklyProgress:
    week_start = start_of_week(now or current_time())
    rows = list(completions)
    return WeeklyProgress(
        week_start=week_start,
        chore_earnings=week_earnings(rows, week_start, chores=chores),
        bonus_earnings=bonus_earnings(rows, week_start),
        weekly_cap=child.weekly_cap,
    )


__all__ = [
    "Weekday",
    "DEFAULT_FIRST_WEEKDAY",
    "start_of_week",
    "week_earnings",
    "bonus_earnings",
    "would_exceed_cap",
    "remaining_capacity",
    "weekly_progress",
]
