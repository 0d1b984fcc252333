"""
Query service: read-only rolling statistics over the rating log.

A missing log reads as an empty one; a missing roles file simply leaves
the role breakdown out. Nothing here ever writes to the store.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, tzinfo
from typing import Optional

from culture_tracker.models.record import Record, RosterEntry
from culture_tracker.services.aggregation import (
    UNASSIGNED_ROLE,
    WindowStats,
    group_by_identity_role,
    submitted_on,
    windowed_stats,
)
from culture_tracker.services.clock import Clock, civil_today, utc_now
from culture_tracker.services.csv_codec import CsvCodec
from culture_tracker.services.file_store import RemoteFileStore

logger = logging.getLogger(__name__)


@dataclass
class RoleStats:
    role: str
    members: list[str]
    stats: WindowStats


@dataclass
class TeamStats:
    stats: WindowStats
    submitted_today: list[str]
    roster: Optional[list[RosterEntry]] = None
    roles: list[RoleStats] = field(default_factory=list)


class QueryService:

    def __init__(
        self,
        store: RemoteFileStore,
        codec: CsvCodec,
        path: str,
        tz: tzinfo,
        window_days: int = 7,
        roles_path: Optional[str] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.codec = codec
        self.path = path
        self.tz = tz
        self.window_days = window_days
        self.roles_path = roles_path or None
        self.clock = clock

    def _load(self) -> list[Record]:
        current = self.store.read(self.path)
        if current is None:
            logger.info("%s not found; reporting an empty log", self.path)
            return []
        return self.codec.decode(current.content)

    def _load_roster(self) -> Optional[list[RosterEntry]]:
        if not self.roles_path:
            return None
        current = self.store.read(self.roles_path)
        if current is None:
            logger.info("%s not found; skipping role breakdown", self.roles_path)
            return None
        return self.codec.decode_roster(current.content)

    def _resolve(self, reference_day: Optional[date], window_days: Optional[int]) -> tuple[date, int]:
        return (
            reference_day or civil_today(self.tz, self.clock()),
            self.window_days if window_days is None else window_days,
        )

    def stats(self, reference_day: Optional[date] = None, window_days: Optional[int] = None) -> WindowStats:
        day, window = self._resolve(reference_day, window_days)
        return windowed_stats(self._load(), day, window, self.tz)

    def team_stats(
        self,
        reference_day: Optional[date] = None,
        window_days: Optional[int] = None,
    ) -> TeamStats:
        """Window stats plus who submitted on the reference day and, when a roster exists, per-role stats."""
        day, window = self._resolve(reference_day, window_days)
        records = self._load()
        result = TeamStats(
            stats=windowed_stats(records, day, window, self.tz),
            submitted_today=submitted_on(records, day, self.tz),
        )

        roster = self._load_roster()
        if roster is None:
            return result
        result.roster = roster

        role_of = {member.name: member.role for member in roster}
        groups = group_by_identity_role(records, role_of)
        # roster order, Unassigned last
        roles = [r for r in dict.fromkeys(m.role or UNASSIGNED_ROLE for m in roster) if r != UNASSIGNED_ROLE]
        if UNASSIGNED_ROLE in groups or any((m.role or UNASSIGNED_ROLE) == UNASSIGNED_ROLE for m in roster):
            roles.append(UNASSIGNED_ROLE)

        for role in roles:
            members = [m.name for m in roster if (m.role or UNASSIGNED_ROLE) == role]
            result.roles.append(RoleStats(
                role=role,
                members=members,
                stats=windowed_stats(groups.get(role, []), day, window, self.tz),
            ))
        return result
