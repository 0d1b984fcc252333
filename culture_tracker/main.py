from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from culture_tracker import __version__
from culture_tracker.core.config import Settings, get_settings
from culture_tracker.core.logging import configure_logging
from culture_tracker.routers import ratings as ratings_router
from culture_tracker.routers import stats as stats_router
from culture_tracker.core.errors import (
    CultureTrackerException,
    culture_tracker_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

settings = get_settings()
configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title="Culture Tracker API",
    description=(
        "**Daily culture ratings**\n\n"
        "Team members submit one 1–5 rating per day; ratings are appended to a CSV "
        "file in a Git repository and summarised over a rolling 7-day window.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(CultureTrackerException, culture_tracker_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(ratings_router.router)
app.include_router(stats_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(settings: Settings = Depends(get_settings)):
    """
    Returns `{"status": "ok"}` when the API is up. The backing store is not
    contacted, so this never spends GitHub rate limit.
    """
    return {"status": "ok", "env": settings.APP_ENV, "store": settings.STORE_BACKEND}
