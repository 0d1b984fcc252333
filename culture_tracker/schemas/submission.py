"""
Submission schemas.

POST /submit → SubmitRequest → SubmitResponse

Only types are checked here; the content rules (rating range, delimiter-free
name, required reason) live in the submit service so every caller gets them.
"""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class SubmitRequest(BaseModel):
    name: str = Field(description="Who is submitting. Must not contain commas.", examples=["Alice"])
    rating: int = Field(description="Culture rating, 1 (poor) to 5 (great).", examples=[4])
    reason: Optional[str] = Field(
        default=None,
        description="Optional free-text reason. Commas and line breaks are replaced with spaces.",
        examples=["Great retro today"],
    )

    @field_validator("rating", mode="before")
    @classmethod
    def reject_bool(cls, v):
        if isinstance(v, bool):
            raise ValueError("rating must be an integer, not a boolean")
        return v


class RecordOut(BaseModel):
    timestamp: str = Field(description="UTC instant of the submission (ISO-8601).")
    name: str
    rating: int
    reason: str = ""


class SubmitResponse(BaseModel):
    ok: Literal[True] = True
    record: RecordOut
