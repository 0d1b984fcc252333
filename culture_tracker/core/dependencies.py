"""
FastAPI dependencies.

Each request gets its own services; only the configuration (and, for the
`memory` backend, the process-local store) outlives a request. Tests swap
these out through `app.dependency_overrides`.
"""
from fastapi import Depends

from culture_tracker.core.config import Settings, get_settings
from culture_tracker.services.clock import Clock, utc_now
from culture_tracker.services.csv_codec import CsvCodec
from culture_tracker.services.file_store import GitHubFileStore, InMemoryFileStore, RemoteFileStore
from culture_tracker.services.query_service import QueryService
from culture_tracker.services.submit_service import SubmitService

_memory_store = InMemoryFileStore()


def get_store(settings: Settings = Depends(get_settings)) -> RemoteFileStore:
    if settings.STORE_BACKEND == "memory":
        return _memory_store
    return GitHubFileStore(settings.github_config())


def get_clock() -> Clock:
    return utc_now


def get_codec(settings: Settings = Depends(get_settings)) -> CsvCodec:
    return CsvCodec(schema=settings.CSV_SCHEMA, tz=settings.tzinfo)


def get_submit_service(
    settings: Settings = Depends(get_settings),
    store: RemoteFileStore = Depends(get_store),
    codec: CsvCodec = Depends(get_codec),
    clock: Clock = Depends(get_clock),
) -> SubmitService:
    return SubmitService(
        store=store,
        codec=codec,
        path=settings.CSV_PATH,
        tz=settings.tzinfo,
        require_reason=settings.REQUIRE_REASON,
        max_attempts=settings.SUBMIT_MAX_ATTEMPTS,
        clock=clock,
    )


def get_query_service(
    settings: Settings = Depends(get_settings),
    store: RemoteFileStore = Depends(get_store),
    codec: CsvCodec = Depends(get_codec),
    clock: Clock = Depends(get_clock),
) -> QueryService:
    return QueryService(
        store=store,
        codec=codec,
        path=settings.CSV_PATH,
        tz=settings.tzinfo,
        window_days=settings.WINDOW_DAYS,
        roles_path=settings.ROLES_PATH,
        clock=clock,
    )
