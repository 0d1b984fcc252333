"""
Statistics schemas.

GET /stats       → StatsResponse
GET /stats/team  → TeamStatsResponse

Field names are camelCase on the wire to match the existing dashboard.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DayStatsOut(BaseModel):
    day: str = Field(description="Civil date (YYYY-MM-DD).")
    count: int
    average: float = Field(description="0 when nobody rated that day.")


class StatsResponse(BaseModel):
    """Rolling statistics for the window ending on referenceDay."""
    model_config = ConfigDict(populate_by_name=True)

    count: int = Field(description="Ratings in the window.")
    average: float = Field(description="Mean rating in the window; 0 when count is 0.", examples=[3.5])
    per_day: list[DayStatsOut] = Field(alias="perDay", description="One entry per day, oldest first.")
    reference_day: str = Field(alias="referenceDay", description="Last day (inclusive) of the window.")
    start: str = Field(alias="from", description="First day (inclusive) of the window.")
    end: str = Field(alias="to", description="Same as referenceDay.")
    window_days: int = Field(alias="windowDays")


class RosterMemberOut(BaseModel):
    name: str
    role: str


class RoleStatsOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    role: str
    members: list[str]
    count: int
    average: float
    per_day: list[DayStatsOut] = Field(alias="perDay")


class TeamStatsResponse(StatsResponse):
    submitted_today: list[str] = Field(
        alias="submittedToday",
        description="Names with a rating on referenceDay.",
    )
    roster: Optional[list[RosterMemberOut]] = None
    roles: Optional[list[RoleStatsOut]] = None
