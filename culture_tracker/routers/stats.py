"""
Stats router.

GET /stats        — rolling count/average with a per-day breakdown
GET /stats/team   — the same plus who submitted today and per-role stats
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from culture_tracker.core.dependencies import get_query_service
from culture_tracker.schemas.common import ErrorResponse
from culture_tracker.schemas.stats import (
    DayStatsOut,
    RoleStatsOut,
    RosterMemberOut,
    StatsResponse,
    TeamStatsResponse,
)
from culture_tracker.services.aggregation import WindowStats
from culture_tracker.services.query_service import QueryService, TeamStats

router = APIRouter(prefix="/stats", tags=["stats"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _per_day(w: WindowStats) -> list[DayStatsOut]:
    return [DayStatsOut(day=str(d.day), count=d.count, average=d.average) for d in w.per_day]


def _window_fields(w: WindowStats) -> dict:
    return dict(
        count=w.count,
        average=w.average,
        per_day=_per_day(w),
        reference_day=str(w.reference_day),
        start=str(w.start_day),
        end=str(w.reference_day),
        window_days=w.window_days,
    )


def _team_to_response(t: TeamStats) -> TeamStatsResponse:
    roster = roles = None
    if t.roster is not None:
        roster = [RosterMemberOut(name=m.name, role=m.role) for m in t.roster]
        roles = [
            RoleStatsOut(
                role=r.role,
                members=r.members,
                count=r.stats.count,
                average=r.stats.average,
                per_day=_per_day(r.stats),
            )
            for r in t.roles
        ]
    return TeamStatsResponse(
        **_window_fields(t.stats),
        submitted_today=t.submitted_today,
        roster=roster,
        roles=roles,
    )


# ---------------------------------------------------------------------------
# GET /stats
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=StatsResponse,
    summary="Rolling culture rating average",
    responses={500: {"model": ErrorResponse, "description": "Backing store or configuration failure."}},
)
def stats(
    reference_day: Optional[date] = Query(
        default=None,
        description="Last day (inclusive) of the window. Defaults to today in the configured timezone.",
        examples=["2024-01-05"],
    ),
    window_days: Optional[int] = Query(
        default=None,
        ge=1,
        le=366,
        description="Window length in days. Defaults to WINDOW_DAYS (7).",
    ),
    service: QueryService = Depends(get_query_service),
):
    """
    Count and average of ratings over the window ending on `reference_day`,
    plus one `perDay` entry for every day of the window (oldest first).
    Days without ratings report `count: 0, average: 0`.
    """
    result = service.stats(reference_day=reference_day, window_days=window_days)
    return StatsResponse(**_window_fields(result))


# ---------------------------------------------------------------------------
# GET /stats/team
# ---------------------------------------------------------------------------

@router.get(
    "/team",
    response_model=TeamStatsResponse,
    response_model_exclude_none=True,
    summary="Rolling statistics with roster and per-role breakdown",
    responses={500: {"model": ErrorResponse, "description": "Backing store or configuration failure."}},
)
def team_stats(
    reference_day: Optional[date] = Query(
        default=None,
        description="Last day (inclusive) of the window. Defaults to today in the configured timezone.",
        examples=["2024-01-05"],
    ),
    window_days: Optional[int] = Query(
        default=None,
        ge=1,
        le=366,
        description="Window length in days. Defaults to WINDOW_DAYS (7).",
    ),
    service: QueryService = Depends(get_query_service),
):
    """
    Everything `/stats` returns, plus `submittedToday`. When the roles file
    exists, also `roster` and one `roles` entry per role, with anyone not on
    the roster counted under `Unassigned`.
    """
    result = service.team_stats(reference_day=reference_day, window_days=window_days)
    return _team_to_response(result)
