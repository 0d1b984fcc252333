"""
CSV codec for the rating log and the team roster.

Two log layouts exist in deployed repositories; the one in use is a
configuration choice and is never sniffed from the header:

  timestamp   timestamp,name,rating,reason
              timestamp is ISO-8601 UTC with a trailing "Z".
  datetime    date,time,name,rating
              date/time are written in the configured civil timezone.
              There is no reason column, so reasons are dropped.

Decoding is forgiving (a bad row is logged and skipped, a bad rating becomes
None). Encoding is strict: a value that would shift the columns raises
CsvEncodeError instead of corrupting the file.
"""
from __future__ import annotations

import csv
import io
import logging
import unicodedata
from datetime import date, datetime, time, timezone, tzinfo
from typing import Iterable, Optional, Sequence

from culture_tracker.models.record import Record, RosterEntry
from culture_tracker.services.clock import to_utc

logger = logging.getLogger(__name__)

DELIMITER = ","

SCHEMA_COLUMNS: dict[str, tuple[str, ...]] = {
    "timestamp": ("timestamp", "name", "rating", "reason"),
    "datetime": ("date", "time", "name", "rating"),
}


class CsvEncodeError(ValueError):
    """A record field cannot be written without breaking the column layout."""


def _breaks_layout(ch: str) -> bool:
    # a plain space is the only whitespace a field may carry
    if ch == DELIMITER:
        return True
    if ch == " ":
        return False
    return ch.isspace() or unicodedata.category(ch) in ("Cc", "Zl", "Zp")


def sanitize_free_text(value: Optional[str]) -> str:
    """Replace delimiters, line breaks and control characters with spaces and collapse whitespace."""
    if not value:
        return ""
    cleaned = "".join(" " if _breaks_layout(ch) else ch for ch in value)
    return " ".join(cleaned.split())


def has_forbidden_chars(value: str) -> bool:
    return any(_breaks_layout(ch) for ch in value)


def _lines(text: str) -> list[str]:
    """Non-blank physical lines. Only CR, LF and CRLF end a line."""
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    return [line for line in normalized.split("\n") if line.strip()]


def parse_rating(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        as_float = float(raw)
    except ValueError:
        return None
    return int(as_float) if as_float.is_integer() else None


def parse_timestamp(raw: str) -> datetime:
    raw = raw.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(raw))


def format_timestamp(instant: datetime) -> str:
    return to_utc(instant).isoformat().replace("+00:00", "Z")


class CsvCodec:
    """Encode/decode the append-only rating log for one schema."""

    def __init__(self, schema: str = "timestamp", tz: tzinfo = timezone.utc):
        if schema not in SCHEMA_COLUMNS:
            raise ValueError(f"Unknown CSV schema {schema!r}; expected one of {sorted(SCHEMA_COLUMNS)}")
        self.schema = schema
        self.tz = tz
        self.columns = SCHEMA_COLUMNS[schema]

    def header(self) -> str:
        return DELIMITER.join(self.columns) + "\n"

    # ------------------------------------------------------------------
    # decode
    # ------------------------------------------------------------------

    def decode(self, text: Optional[str]) -> list[Record]:
        if not text or not text.strip():
            return []
        lines = _lines(text)
        # lines[0] is the header; columns are mapped positionally.
        records: list[Record] = []
        reader = csv.reader(lines[1:], delimiter=DELIMITER)
        try:
            for row in reader:
                record = self._decode_row(row)
                if record is None:
                    logger.warning("Skipping malformed CSV row %d: %r", reader.line_num + 1, DELIMITER.join(row))
                    continue
                records.append(record)
        except csv.Error as exc:
            logger.warning("Stopped decoding at CSV row %d: %s", reader.line_num + 1, exc)
        return records

    def _decode_row(self, row: Sequence[str]) -> Optional[Record]:
        cells = [cell.strip() for cell in row]
        if self.schema == "timestamp":
            return self._decode_timestamp_row(cells)
        return self._decode_datetime_row(cells)

    def _decode_timestamp_row(self, cells: list[str]) -> Optional[Record]:
        if len(cells) < 2 or not cells[0] or not cells[1]:
            return None
        try:
            stamp = parse_timestamp(cells[0])
        except ValueError:
            return None
        return Record(
            timestamp=stamp,
            name=cells[1],
            rating=parse_rating(cells[2]) if len(cells) > 2 else None,
            reason=cells[3] if len(cells) > 3 else "",
        )

    def _decode_datetime_row(self, cells: list[str]) -> Optional[Record]:
        if len(cells) < 3 or not cells[0] or not cells[2]:
            return None
        try:
            day = date.fromisoformat(cells[0])
            clock = time.fromisoformat(cells[1]) if cells[1] else time(0, 0)
        except ValueError:
            return None
        local = datetime.combine(day, clock).replace(tzinfo=self.tz)
        return Record(
            timestamp=to_utc(local),
            name=cells[2],
            rating=parse_rating(cells[3]) if len(cells) > 3 else None,
        )

    # ------------------------------------------------------------------
    # encode
    # ------------------------------------------------------------------

    def encode(self, records: Iterable[Record]) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf, delimiter=DELIMITER, lineterminator="\n")
        writer.writerow(self.columns)
        for record in records:
            writer.writerow(self._encode_row(record))
        return buf.getvalue()

    def _encode_row(self, record: Record) -> list[str]:
        if not record.name:
            raise CsvEncodeError("Record name must not be empty.")
        for field, value in (("name", record.name), ("reason", record.reason or "")):
            if has_forbidden_chars(value):
                raise CsvEncodeError(f"Record {field} contains a delimiter, line break or control character: {value!r}")

        rating = "" if record.rating is None else str(record.rating)
        if self.schema == "timestamp":
            return [format_timestamp(record.timestamp), record.name, rating, record.reason or ""]

        local = to_utc(record.timestamp).astimezone(self.tz)
        return [
            local.date().isoformat(),
            local.time().replace(microsecond=0).isoformat(),
            record.name,
            rating,
        ]

    # ------------------------------------------------------------------
    # roster
    # ------------------------------------------------------------------

    @staticmethod
    def decode_roster(text: Optional[str]) -> list[RosterEntry]:
        """Read `name,role` rows by header name. Rows without a name are skipped."""
        if not text or not text.strip():
            return []
        lines = _lines(text)
        reader = csv.DictReader(lines, delimiter=DELIMITER)
        if reader.fieldnames:
            reader.fieldnames = [h.strip().lower() for h in reader.fieldnames]
        roster: list[RosterEntry] = []
        try:
            for row in reader:
                name = (row.get("name") or "").strip()
                if not name:
                    continue
                roster.append(RosterEntry(name=name, role=(row.get("role") or "").strip()))
        except csv.Error as exc:
            logger.warning("Stopped decoding roster at row %d: %s", reader.line_num + 1, exc)
        return roster
