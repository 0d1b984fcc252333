"""
Tests for the submit service: validation rules, the duplicate guard, state
transitions, compare-and-swap failures and the optional bounded retry.
"""
import threading
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from culture_tracker.core.errors import (
    DuplicateSubmissionError,
    SubmissionValidationError,
    TransientStoreError,
    VersionConflictError,
    WriteConflictError,
)
from culture_tracker.models.record import Record
from culture_tracker.services.csv_codec import CsvCodec
from culture_tracker.services.file_store import InMemoryFileStore
from culture_tracker.services.submit_service import (
    SubmitService,
    SubmitState,
    validate_submission,
)

PATH = "data/data.csv"
UTC = timezone.utc
NOW = datetime(2024, 1, 5, 9, 30, tzinfo=UTC)


def _service(store, now=NOW, tz=UTC, **kwargs) -> SubmitService:
    return SubmitService(
        store=store,
        codec=CsvCodec("timestamp", tz=tz),
        path=PATH,
        tz=tz,
        clock=lambda: now,
        **kwargs,
    )


def _records(store) -> list[Record]:
    return CsvCodec("timestamp").decode(store.read(PATH).content)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestValidateSubmission:
    def test_cleans_values(self):
        assert validate_submission("  Alice ", 4, " good,\nweek ") == ("Alice", 4, "good week")

    def test_reason_defaults_to_empty(self):
        assert validate_submission("Alice", 1) == ("Alice", 1, "")

    @pytest.mark.parametrize("name", [None, "", "   ", 42])
    def test_missing_name(self, name):
        with pytest.raises(SubmissionValidationError) as excinfo:
            validate_submission(name, 3)
        assert excinfo.value.field == "name"

    @pytest.mark.parametrize("name", [
        "Smith, Alice", "Alice\nBob", "Al\u2028ice", "Al\x85ice", "Al\tice", "Al\x0bice", "x" * 101,
    ])
    def test_bad_name(self, name):
        with pytest.raises(SubmissionValidationError) as excinfo:
            validate_submission(name, 3)
        assert excinfo.value.field == "name"

    @pytest.mark.parametrize("rating", [0, 6, -1, 3.5, "4", None, True])
    def test_bad_rating(self, rating):
        with pytest.raises(SubmissionValidationError) as excinfo:
            validate_submission("Alice", rating)
        assert excinfo.value.field == "rating"

    @pytest.mark.parametrize("rating", [1, 2, 3, 4, 5])
    def test_every_valid_rating(self, rating):
        assert validate_submission("Alice", rating)[1] == rating

    def test_reason_required_by_configuration(self):
        with pytest.raises(SubmissionValidationError) as excinfo:
            validate_submission("Alice", 3, " , ", require_reason=True)
        assert excinfo.value.field == "reason"
        assert validate_submission("Alice", 3, "because", require_reason=True)[2] == "because"

    def test_reason_too_long(self):
        with pytest.raises(SubmissionValidationError):
            validate_submission("Alice", 3, "x" * 501)

    def test_reason_must_be_text(self):
        with pytest.raises(SubmissionValidationError):
            validate_submission("Alice", 3, ["list"])


# ---------------------------------------------------------------------------
# Happy path and lifecycle
# ---------------------------------------------------------------------------

class TestSubmit:
    def test_first_submit_initializes_and_appends(self):
        store = InMemoryFileStore()
        service = _service(store)
        record = service.submit("Bob", 4)

        assert record == Record(timestamp=NOW, name="Bob", rating=4, reason="")
        assert _records(store) == [record]
        assert service.state is SubmitState.committed
        # one write to initialize, one to append
        assert len(store.revisions(PATH)) == 2

    def test_appends_in_order(self):
        store = InMemoryFileStore()
        _service(store).submit("Alice", 5, "Shipped")
        _service(store, now=NOW.replace(hour=10)).submit("Bob", 2)
        assert [(r.name, r.rating, r.reason) for r in _records(store)] == [
            ("Alice", 5, "Shipped"),
            ("Bob", 2, ""),
        ]

    def test_existing_empty_file_is_used_as_is(self):
        store = InMemoryFileStore({PATH: ""})
        _service(store).submit("Bob", 4)
        content = store.read(PATH).content
        assert content.startswith("timestamp,name,rating,reason\n")
        assert len(store.revisions(PATH)) == 2

    def test_naive_clock_is_treated_as_utc(self):
        store = InMemoryFileStore()
        record = _service(store, now=datetime(2024, 1, 5, 9, 30)).submit("Bob", 4)
        assert record.timestamp == NOW


class TestRejections:
    def test_duplicate_same_day_is_rejected_and_not_written(self):
        store = InMemoryFileStore()
        _service(store).submit("Alice", 4)
        before = store.read(PATH)

        service = _service(store, now=NOW.replace(hour=23))
        with pytest.raises(DuplicateSubmissionError) as excinfo:
            service.submit("Alice", 1, "changed my mind")
        assert excinfo.value.details == {"name": "Alice", "day": "2024-01-05"}
        assert service.state is SubmitState.rejected
        assert store.read(PATH) == before

    def test_next_day_is_accepted(self):
        store = InMemoryFileStore()
        _service(store).submit("Alice", 4)
        _service(store, now=datetime(2024, 1, 6, 0, 0, 1, tzinfo=UTC)).submit("Alice", 3)
        assert len(_records(store)) == 2

    def test_duplicate_uses_stripped_name(self):
        store = InMemoryFileStore()
        _service(store).submit("Alice", 4)
        with pytest.raises(DuplicateSubmissionError):
            _service(store).submit("  Alice  ", 4)

    def test_day_boundary_follows_timezone(self):
        sydney = ZoneInfo("Australia/Sydney")
        store = InMemoryFileStore()
        # 12:30 UTC on the 5th is 23:30 in Sydney; 13:30 UTC is the next civil day
        _service(store, now=NOW.replace(hour=12), tz=sydney).submit("Alice", 4)
        _service(store, now=NOW.replace(hour=13, minute=30), tz=sydney).submit("Alice", 4)
        with pytest.raises(DuplicateSubmissionError):
            _service(store, now=NOW.replace(hour=20), tz=sydney).submit("Alice", 4)

    def test_validation_failure_state(self):
        service = _service(InMemoryFileStore())
        with pytest.raises(SubmissionValidationError):
            service.submit("Alice", 9)
        assert service.state is SubmitState.rejected

    def test_name_with_unicode_line_separator_cannot_slip_past_guard(self):
        store = InMemoryFileStore()
        _service(store).submit("Alice", 4)
        with pytest.raises(SubmissionValidationError):
            _service(store).submit("Al\u2028ice", 4)
        with pytest.raises(DuplicateSubmissionError):
            _service(store).submit("Alice", 2)
        assert [(r.name, r.rating) for r in _records(store)] == [("Alice", 4)]


# ---------------------------------------------------------------------------
# Store failures
# ---------------------------------------------------------------------------

class ConflictingStore(InMemoryFileStore):
    """Lets another writer sneak in before each of our appends."""

    def __init__(self, intruders: int):
        super().__init__({PATH: "timestamp,name,rating,reason\n"})
        self.intruders = intruders

    def write(self, path, content, expected_version, message):
        if self.intruders and expected_version is not None:
            self.intruders -= 1
            current = self.read(path)
            super().write(
                path,
                current.content + f"2024-01-05T08:0{self.intruders}:00Z,Intruder{self.intruders},3,\n",
                current.version,
                "intruder",
            )
        return super().write(path, content, expected_version, message)


class FailingStore(InMemoryFileStore):
    def write(self, path, content, expected_version, message):
        raise TransientStoreError("GitHub PUT failed: 502", path=path, upstream_status=502)


class TestStoreFailures:
    def test_lost_race_fails_without_retry_by_default(self):
        store = ConflictingStore(intruders=1)
        service = _service(store)
        with pytest.raises(WriteConflictError) as excinfo:
            service.submit("Alice", 4)
        assert excinfo.value.details["attempts"] == 1
        assert service.state is SubmitState.failed
        assert [r.name for r in _records(store)] == ["Intruder0"]

    def test_bounded_retry_recovers(self):
        store = ConflictingStore(intruders=1)
        _service(store, max_attempts=3).submit("Alice", 4)
        assert [r.name for r in _records(store)] == ["Intruder0", "Alice"]

    def test_bounded_retry_gives_up(self):
        store = ConflictingStore(intruders=5)
        with pytest.raises(WriteConflictError) as excinfo:
            _service(store, max_attempts=2).submit("Alice", 4)
        assert excinfo.value.details["attempts"] == 2
        assert "Alice" not in [r.name for r in _records(store)]

    def test_retry_rechecks_duplicates(self):
        class SameNameIntruder(InMemoryFileStore):
            def __init__(self):
                super().__init__({PATH: "timestamp,name,rating,reason\n"})
                self.done = False

            def write(self, path, content, expected_version, message):
                if not self.done:
                    self.done = True
                    current = self.read(path)
                    super().write(path, current.content + "2024-01-05T08:00:00Z,Alice,2,\n", current.version, "x")
                return super().write(path, content, expected_version, message)

        with pytest.raises(DuplicateSubmissionError):
            _service(SameNameIntruder(), max_attempts=3).submit("Alice", 4)

    def test_transient_errors_propagate_without_retry(self):
        store = FailingStore({PATH: "timestamp,name,rating,reason\n"})
        service = _service(store, max_attempts=3)
        with pytest.raises(TransientStoreError):
            service.submit("Alice", 4)
        assert service.state is SubmitState.failed
        assert store.read(PATH).content == "timestamp,name,rating,reason\n"

    def test_version_conflict_is_not_surfaced_directly(self):
        with pytest.raises(WriteConflictError) as excinfo:
            _service(ConflictingStore(intruders=1)).submit("Alice", 4)
        assert not isinstance(excinfo.value, VersionConflictError)


# ---------------------------------------------------------------------------
# Concurrent submitters
# ---------------------------------------------------------------------------

class GatedStore(InMemoryFileStore):
    """Holds the first two appends until both submitters have read the log."""

    def __init__(self):
        super().__init__({PATH: "timestamp,name,rating,reason\n"})
        self.gate = threading.Barrier(2, timeout=5)
        self._gated = 0
        self._gate_lock = threading.Lock()

    def write(self, path, content, expected_version, message):
        with self._gate_lock:
            self._gated += 1
            wait = self._gated <= 2
        if wait:
            self.gate.wait()
        return super().write(path, content, expected_version, message)


def _race(store, max_attempts):
    outcomes = {}

    def run(name):
        try:
            _service(store, max_attempts=max_attempts).submit(name, 4)
            outcomes[name] = "ok"
        except WriteConflictError:
            outcomes[name] = "conflict"

    threads = [threading.Thread(target=run, args=(n,)) for n in ("Alice", "Bob")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return outcomes


class TestConcurrentAppend:
    def test_exactly_one_writer_wins(self):
        store = GatedStore()
        outcomes = _race(store, max_attempts=1)
        assert sorted(outcomes.values()) == ["conflict", "ok"]
        names = [r.name for r in _records(store)]
        winner = next(n for n, o in outcomes.items() if o == "ok")
        assert names == [winner]

    def test_with_retry_both_land_once(self):
        store = GatedStore()
        outcomes = _race(store, max_attempts=2)
        assert outcomes == {"Alice": "ok", "Bob": "ok"}
        assert sorted(r.name for r in _records(store)) == ["Alice", "Bob"]
