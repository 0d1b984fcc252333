from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from culture_tracker.core.errors import ConfigError
from culture_tracker.services.file_store import GitHubConfig


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://culture.example.com,https://intranet.example.com"
    CORS_ORIGINS: str = "*"

    # "github" for the real repository, "memory" for local development.
    STORE_BACKEND: Literal["github", "memory"] = "github"

    GITHUB_TOKEN: str = ""
    GITHUB_USER: str = ""
    GITHUB_REPO: str = ""
    GITHUB_BRANCH: str = ""
    GITHUB_API_URL: str = "https://api.github.com"
    REQUEST_TIMEOUT: float = 10.0

    CSV_PATH: str = "data/data.csv"
    # Empty string disables the per-role breakdown.
    ROLES_PATH: str = "data/team_roles.csv"
    # "timestamp" -> timestamp,name,rating,reason   "datetime" -> date,time,name,rating
    CSV_SCHEMA: Literal["timestamp", "datetime"] = "timestamp"

    # Civil timezone used for every "same day" and window decision.
    TIMEZONE: str = "Australia/Sydney"
    WINDOW_DAYS: int = Field(default=7, ge=1)
    REQUIRE_REASON: bool = False
    # 1 = a lost compare-and-swap race is reported to the caller as 409.
    SUBMIT_MAX_ATTEMPTS: int = Field(default=1, ge=1)

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def tzinfo(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"Unknown TIMEZONE {self.TIMEZONE!r}.") from exc

    def github_config(self) -> GitHubConfig:
        missing = [
            key for key in ("GITHUB_TOKEN", "GITHUB_USER", "GITHUB_REPO")
            if not getattr(self, key).strip()
        ]
        if missing:
            raise ConfigError(
                "Missing required settings: " + ", ".join(missing),
                missing=missing,
            )
        return GitHubConfig(
            token=self.GITHUB_TOKEN,
            owner=self.GITHUB_USER,
            repo=self.GITHUB_REPO,
            branch=self.GITHUB_BRANCH or None,
            api_url=self.GITHUB_API_URL.rstrip("/"),
            timeout=self.REQUEST_TIMEOUT,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
