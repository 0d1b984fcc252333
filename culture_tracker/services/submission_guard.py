"""
At most one submission per name per civil day.

The check runs against the log as read at the start of the request; the
store's compare-and-swap write is what makes it hold across concurrent
submitters.
"""
from __future__ import annotations

from datetime import date, tzinfo
from typing import Iterable

from culture_tracker.models.record import Record
from culture_tracker.services.clock import civil_day


def has_submitted_today(records: Iterable[Record], name: str, today: date, tz: tzinfo) -> bool:
    """True if `name` (exact, case-sensitive) already has a record on civil day `today`."""
    return any(
        r.name == name and civil_day(r.timestamp, tz) == today
        for r in records
    )
