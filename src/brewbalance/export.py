"""CSV export of the daily history."""

from __future__ import annotations

import csv
from datetime import date
from io import StringIO
from typing import Mapping

from . import dates
from .dates import DateLike
from .models import DailyStats

CSV_HEADERS = (
    "Date",
    "Daily Base Budget",
    "Rollover from Previous Day",
    "Daily Actual Spent",
    "Note",
    "Daily Current Balance",
    "Challenge Saved",
)


def export_history_csv(timeline: Mapping[date, DailyStats], *, today: DateLike) -> str:
    """Return the history as CSV, newest day first.

    Days after ``today`` are only included when they already have entries.
    """

    cutoff = dates.parse_date(today)
    buffer = StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for day in sorted(timeline, reverse=True):
        stats = timeline[day]
        if day > cutoff and not stats.entries:
            continue
        notes = "; ".join(entry.note for entry in stats.entries if entry.note.strip())
        writer.writerow(
            [
                stats.date.isoformat(),
                f"{stats.base_budget:.2f}",
                f"{stats.rollover:.2f}",
                f"{stats.spent:.2f}",
                notes,
                f"{stats.remaining:.2f}",
                f"{stats.challenge_saved_so_far:.2f}" if stats.is_challenge_day else "",
            ]
        )
    return buffer.getvalue()


__all__ = ["CSV_HEADERS", "export_history_csv"]
