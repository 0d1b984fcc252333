"""
Shared pytest fixtures.

Uses an in-memory file store and a fixed clock so no GitHub access is
required and "today" is deterministic.
"""
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from culture_tracker.core.config import Settings, get_settings
from culture_tracker.core.dependencies import get_clock, get_store
from culture_tracker.main import app
from culture_tracker.services.file_store import InMemoryFileStore

CSV_PATH = "data/data.csv"
ROLES_PATH = "data/team_roles.csv"


class FakeClock:
    """Callable clock whose current instant tests can move."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, iso: str) -> None:
        self.now = datetime.fromisoformat(iso).replace(tzinfo=timezone.utc)


def make_settings(**overrides) -> Settings:
    values = dict(
        STORE_BACKEND="memory",
        TIMEZONE="UTC",
        CSV_PATH=CSV_PATH,
        ROLES_PATH=ROLES_PATH,
        CSV_SCHEMA="timestamp",
        WINDOW_DAYS=7,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture()
def settings():
    return make_settings()


@pytest.fixture()
def store():
    return InMemoryFileStore()


@pytest.fixture()
def clock():
    return FakeClock(datetime(2024, 1, 5, 9, 30, tzinfo=timezone.utc))


@pytest.fixture()
def client(settings, store, clock):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def settings_factory():
    return make_settings
