"""
Rolling rating statistics.

Window
------
For reference civil day D and window N the window is [D - N + 1, D]
inclusive. Every day in the window gets a bucket, oldest first, even when
nobody submitted (count 0, average 0).

Ratings
-------
Only records with a parseable rating are counted. `average` is
sum / count, or 0.0 for an empty window so clients can always render a
number.

Public API
----------
windowed_stats(records, reference_day, window_days, tz) -> WindowStats
group_by_identity_role(records, role_of)                -> dict[role, list[Record]]
submitted_on(records, day, tz)                          -> list[name]
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta, tzinfo
from typing import Iterable, Mapping

from culture_tracker.models.record import Record
from culture_tracker.services.clock import civil_day

UNASSIGNED_ROLE = "Unassigned"


# ---------------------------------------------------------------------------
# Result types (plain dataclasses — no Pydantic)
# ---------------------------------------------------------------------------

@dataclass
class DayStats:
    day: date
    count: int
    average: float


@dataclass
class WindowStats:
    reference_day: date      # last day of the window
    start_day: date          # first day of the window
    window_days: int
    count: int
    average: float
    per_day: list[DayStats]


def _average(total: int, count: int) -> float:
    return total / count if count else 0.0


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def window_bounds(reference_day: date, window_days: int) -> tuple[date, date]:
    if window_days < 1:
        raise ValueError(f"window_days must be at least 1, got {window_days}")
    return reference_day - timedelta(days=window_days - 1), reference_day


def windowed_stats(
    records: Iterable[Record],
    reference_day: date,
    window_days: int,
    tz: tzinfo,
) -> WindowStats:
    start, end = window_bounds(reference_day, window_days)
    days = [start + timedelta(days=i) for i in range(window_days)]  # oldest → newest

    totals = {d: 0 for d in days}
    counts = {d: 0 for d in days}
    for record in records:
        if record.rating is None:
            continue
        day = civil_day(record.timestamp, tz)
        if day in counts:
            totals[day] += record.rating
            counts[day] += 1

    count = sum(counts.values())
    return WindowStats(
        reference_day=end,
        start_day=start,
        window_days=window_days,
        count=count,
        average=_average(sum(totals.values()), count),
        per_day=[DayStats(day=d, count=counts[d], average=_average(totals[d], counts[d])) for d in days],
    )


def group_by_identity_role(
    records: Iterable[Record],
    role_of: Mapping[str, str],
) -> dict[str, list[Record]]:
    """Partition records by the submitter's role; unknown or blank roles go to `Unassigned`."""
    groups: dict[str, list[Record]] = {}
    for record in records:
        role = role_of.get(record.name) or UNASSIGNED_ROLE
        groups.setdefault(role, []).append(record)
    return groups


def submitted_on(records: Iterable[Record], day: date, tz: tzinfo) -> list[str]:
    """Distinct names with a record on civil `day`, in first-submission order."""
    names: dict[str, None] = {}
    for record in records:
        if civil_day(record.timestamp, tz) == day:
            names.setdefault(record.name, None)
    return list(names)
