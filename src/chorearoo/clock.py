"""Wall-clock helpers shared by the engine."""

from __future__ import annotations

from datetime import date, datetime

from .config import TIMEZONE


def now() -> datetime:
    """Current time, aware, in the household time zone."""

    return datetime.now(TIMEZONE)


def as_aware(value: datetime) -> datetime:
    """Attach the household zone to naive values, e.g. rows from older files."""

    if value.tzinfo is None:
        return value.replace(tzinfo=TIMEZONE)
    return value


def local_date(value: datetime) -> date:
    return as_aware(value).astimezone(TIMEZONE).date()


__all__ = ["now", "as_aware", "local_date"]
