"""
Civil-day helpers.

Instants are stored in UTC. Every "which day is this?" question is answered
in one configured civil timezone, so the duplicate guard, the aggregation
window and the date/time CSV schema always agree.
"""
from __future__ import annotations

from datetime import date, datetime, timezone, tzinfo
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def to_utc(instant: datetime, assume: tzinfo = timezone.utc) -> datetime:
    """Normalise to aware UTC. Naive values are interpreted in `assume`."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=assume)
    return instant.astimezone(timezone.utc)


def civil_day(instant: datetime, tz: tzinfo) -> date:
    return to_utc(instant).astimezone(tz).date()


def civil_today(tz: tzinfo, now: Optional[datetime] = None) -> date:
    return civil_day(now or utc_now(), tz)
