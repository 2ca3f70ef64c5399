"""Calendar-day arithmetic for the ledger.

Every function works on :class:`datetime.date` values.  ISO ``YYYY-MM-DD``
strings are accepted wherever a date is expected and are produced only by
:func:`to_iso`, so string formatting stays at the serialisation boundary.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, List, Union

from dateutil.relativedelta import relativedelta

DateLike = Union[date, datetime, str]


def today() -> date:
    """Return the current calendar day in the local timezone."""

    return date.today()


def utc_now() -> datetime:
    """Return the current moment as a timezone-aware UTC datetime."""

    return datetime.now(timezone.utc)


def parse_date(value: DateLike) -> date:
    """Coerce ``value`` to a :class:`date`."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValueError(f"Invalid ISO date: {value!r}") from exc
    raise TypeError(f"Unsupported date type: {type(value)!r}")


def to_iso(value: DateLike) -> str:
    return parse_date(value).isoformat()


def add_days(value: DateLike, days: int) -> date:
    return parse_date(value) + timedelta(days=days)


def add_months(value: DateLike, months: int) -> date:
    """Shift ``value`` by calendar months, clamping to the last day of short months."""

    return parse_date(value) + relativedelta(months=months)


def is_weekend(value: DateLike) -> bool:
    return parse_date(value).weekday() >= 5


def days_between(start: DateLike, end: DateLike) -> int:
    """Return the signed number of days from ``start`` to ``end``."""

    return (parse_date(end) - parse_date(start)).days


def iter_days(start: DateLike, end: DateLike) -> Iterator[date]:
    """Yield every day from ``start`` to ``end`` inclusive (nothing when end < start)."""

    current = parse_date(start)
    last = parse_date(end)
    step = timedelta(days=1)
    while current <= last:
        yield current
        current += step


def month_dates(year: int, month: int) -> List[date]:
    _, length = calendar.monthrange(year, month)
    return [date(year, month, day) for day in range(1, length + 1)]


__all__ = [
    "DateLike",
    "add_days",
    "add_months",
    "days_between",
    "is_weekend",
    "iter_days",
    "month_dates",
    "parse_date",
    "to_iso",
    "today",
    "utc_now",
]
