"""
Submit service: append one validated rating to the log.

Flow (one attempt)
------------------
IDLE → LOADING → VALIDATING → GUARDING → APPENDING → COMMITTED
  LOADING     ensure the log exists, read content + version
  VALIDATING  name / rating / reason rules        → REJECTED (400)
  GUARDING    one record per name per civil day   → REJECTED (409)
  APPENDING   encode existing + new, CAS write    → FAILED on store errors

A lost compare-and-swap race is reported as WriteConflictError unless
`max_attempts` > 1, in which case the whole attempt (re-read, re-guard,
re-append) is repeated up to that many times. Nothing else is retried.
"""
from __future__ import annotations

import enum
import logging
from datetime import tzinfo
from typing import Optional

from culture_tracker.core.errors import (
    DuplicateSubmissionError,
    SubmissionValidationError,
    VersionConflictError,
    WriteConflictError,
)
from culture_tracker.models.record import Record
from culture_tracker.services.clock import Clock, civil_day, to_utc, utc_now
from culture_tracker.services.csv_codec import CsvCodec, has_forbidden_chars, sanitize_free_text
from culture_tracker.services.file_store import RemoteFileStore
from culture_tracker.services.submission_guard import has_submitted_today

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MAX_REASON_LENGTH = 500
MIN_RATING = 1
MAX_RATING = 5


class SubmitState(str, enum.Enum):
    idle = "idle"
    loading = "loading"
    validating = "validating"
    guarding = "guarding"
    appending = "appending"
    committed = "committed"
    rejected = "rejected"
    failed = "failed"


def validate_submission(
    name: object,
    rating: object,
    reason: object = None,
    require_reason: bool = False,
) -> tuple[str, int, str]:
    """Return the cleaned (name, rating, reason) or raise SubmissionValidationError."""
    if not isinstance(name, str) or not name.strip():
        raise SubmissionValidationError("name", "name is required.")
    name = name.strip()
    if has_forbidden_chars(name):
        raise SubmissionValidationError("name", "name must not contain commas, line breaks or control characters.")
    if len(name) > MAX_NAME_LENGTH:
        raise SubmissionValidationError("name", f"name must be at most {MAX_NAME_LENGTH} characters.")

    # bool is an int subclass; True must not count as a rating of 1
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise SubmissionValidationError(
            "rating", f"rating must be an integer between {MIN_RATING} and {MAX_RATING}."
        )

    if reason is not None and not isinstance(reason, str):
        raise SubmissionValidationError("reason", "reason must be text.")
    cleaned_reason = sanitize_free_text(reason)
    if require_reason and not cleaned_reason:
        raise SubmissionValidationError("reason", "reason is required.")
    if len(cleaned_reason) > MAX_REASON_LENGTH:
        raise SubmissionValidationError("reason", f"reason must be at most {MAX_REASON_LENGTH} characters.")

    return name, rating, cleaned_reason


class SubmitService:

    def __init__(
        self,
        store: RemoteFileStore,
        codec: CsvCodec,
        path: str,
        tz: tzinfo,
        require_reason: bool = False,
        max_attempts: int = 1,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.codec = codec
        self.path = path
        self.tz = tz
        self.require_reason = require_reason
        self.max_attempts = max(1, max_attempts)
        self.clock = clock
        self.state = SubmitState.idle

    def _enter(self, state: SubmitState) -> None:
        logger.debug("submit %s: %s → %s", self.path, self.state.value, state.value)
        self.state = state

    def submit(self, name: object, rating: object, reason: Optional[str] = None) -> Record:
        """Append a rating for `name`; returns the stored record."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                return self._attempt(name, rating, reason)
            except VersionConflictError:
                logger.warning(
                    "Lost write race on %s (attempt %d/%d)", self.path, attempt, self.max_attempts
                )
        self._enter(SubmitState.failed)
        raise WriteConflictError(path=self.path, attempts=self.max_attempts)

    def _attempt(self, name: object, rating: object, reason: Optional[str]) -> Record:
        self._enter(SubmitState.loading)
        try:
            current = self.store.ensure_initialized(self.path, self.codec.header())
        except Exception:
            self._enter(SubmitState.failed)
            raise
        records = self.codec.decode(current.content)

        self._enter(SubmitState.validating)
        try:
            clean_name, clean_rating, clean_reason = validate_submission(
                name, rating, reason, require_reason=self.require_reason
            )
        except SubmissionValidationError:
            self._enter(SubmitState.rejected)
            raise

        self._enter(SubmitState.guarding)
        now = to_utc(self.clock())
        today = civil_day(now, self.tz)
        if has_submitted_today(records, clean_name, today, self.tz):
            self._enter(SubmitState.rejected)
            logger.info("Rejected duplicate submission from %s for %s", clean_name, today)
            raise DuplicateSubmissionError(name=clean_name, day=today)

        self._enter(SubmitState.appending)
        record = Record(timestamp=now, name=clean_name, rating=clean_rating, reason=clean_reason)
        content = self.codec.encode([*records, record])
        try:
            self.store.write(
                self.path,
                content,
                current.version,
                f"Add culture rating: {clean_name} {today}",
            )
        except VersionConflictError:
            raise
        except Exception:
            self._enter(SubmitState.failed)
            raise

        self._enter(SubmitState.committed)
        logger.info("Recorded rating %d from %s for %s", clean_rating, clean_name, today)
        return record
