from .record import Record, RosterEntry, VersionedFile

__all__ = [
    "Record",
    "RosterEntry",
    "VersionedFile",
]
