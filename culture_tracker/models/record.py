from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Record:
    """One culture-rating submission. `timestamp` is always timezone-aware UTC."""

    timestamp: datetime
    name: str
    rating: Optional[int]
    reason: str = ""


@dataclass(frozen=True)
class VersionedFile:
    """Content of the backing file plus the opaque version token it was read at."""

    content: str
    version: str


@dataclass(frozen=True)
class RosterEntry:
    name: str
    role: str
