import os
from functools import lru_cache
from typing import Mapping
from urllib.parse import quote_plus

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DATABASE_URL_PLACEHOLDER = "REPLACE_WITH_STRONG_DB_PASSWORD"


def resolve_database_url(
    *,
    database_url: str | None,
    postgres_user: str | None,
    postgres_password: str | None,
    postgres_host: str | None = "db",
    postgres_port: int | str | None = "5432",
    postgres_db: str | None = "edgescore",
) -> tuple[str, str]:
    raw_database_url = (database_url or "").strip()
    if raw_database_url and DATABASE_URL_PLACEHOLDER not in raw_database_url:
        return raw_database_url, "env"

    user = quote_plus((postgres_user or "edgescore").strip())
    password = quote_plus((postgres_password or "edgescore").strip())
    host = (postgres_host or "db").strip() or "db"
    port = str(postgres_port or "5432").strip() or "5432"
    db_name = (postgres_db or "edgescore").strip() or "edgescore"
    constructed = f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db_name}"
    return constructed, "postgres_fallback"


def resolve_database_url_from_env(
    env: Mapping[str, str] | None = None,
    *,
    default_database_url: str | None = None,
) -> tuple[str, str]:
    source_env = os.environ if env is None else env
    database_url = source_env.get("DATABASE_URL", default_database_url or "")
    return resolve_database_url(
        database_url=database_url,
        postgres_user=source_env.get("POSTGRES_USER"),
        postgres_password=source_env.get("POSTGRES_PASSWORD"),
        postgres_host=source_env.get("POSTGRES_HOST", "db"),
        postgres_port=source_env.get("POSTGRES_PORT", "5432"),
        postgres_db=source_env.get("POSTGRES_DB", "edgescore"),
    )


def _csv(value: str) -> list[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @model_validator(mode="after")
    def _check_queue_policies(self) -> "Settings":
        for name in ("fetch", "parse", "results", "alert"):
            if getattr(self, f"{name}_queue_attempts") < 1:
                raise ValueError(f"{name.upper()}_QUEUE_ATTEMPTS must be at least 1")
            if getattr(self, f"{name}_queue_concurrency") < 1:
                raise ValueError(f"{name.upper()}_QUEUE_CONCURRENCY must be at least 1")
        return self

    app_env: str = "development"
    app_name: str = "edgescore"
    app_timezone: str = "UTC"
    log_level: str = "INFO"

    database_url: str = ""
    postgres_user: str = "edgescore"
    postgres_password: str = "edgescore"
    postgres_host: str = "db"
    postgres_port: int = 5432
    postgres_db: str = "edgescore"
    redis_url: str = "redis://redis:6379/0"

    sentry_dsn: str = ""
    sentry_traces_sample_rate: float = 0.0

    snapshot_dir: str = "./snapshots"
    adapter_classes: str = ""
    curated_sports: str = "nba"
    results_sports: str = "nba,nfl,nhl,mlb,football"

    http_user_agent: str = "BetAggregator/1.0 (research project)"
    http_timeout_seconds: float = 15.0
    http_max_redirects: int = 3
    browser_timeout_seconds: float = 30.0
    browser_viewport_width: int = 1280
    browser_viewport_height: int = 800

    robots_cache_ttl_seconds: int = 3600
    robots_timeout_seconds: float = 5.0

    fetch_queue_attempts: int = 3
    fetch_queue_backoff_type: str = "exponential"
    fetch_queue_backoff_seconds: float = 5.0
    fetch_queue_concurrency: int = 3
    parse_queue_attempts: int = 2
    parse_queue_backoff_type: str = "fixed"
    parse_queue_backoff_seconds: float = 2.0
    parse_queue_concurrency: int = 5
    results_queue_attempts: int = 3
    results_queue_backoff_type: str = "exponential"
    results_queue_backoff_seconds: float = 30.0
    results_queue_concurrency: int = 2
    alert_queue_attempts: int = 2
    alert_queue_backoff_type: str = "fixed"
    alert_queue_backoff_seconds: float = 60.0
    alert_queue_concurrency: int = 1
    queue_keep_completed: int = 1000
    queue_keep_failed: int = 5000

    results_today_cron: str = "0 9-23 * * *"
    results_yesterday_cron: str = "0 6,12,18 * * *"
    alert_cron: str = "0 */2 * * *"

    espn_base_url: str = "https://site.api.espn.com/apis/site/v2/sports"
    soccer24_base_url: str = "https://www.soccer24.com"

    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    telegram_api_base_url: str = "https://api.telegram.org"
    telegram_score_threshold: int = 65
    telegram_max_picks: int = 5
    alert_dedup_ttl_seconds: int = 86400

    source_accuracy_cache_ttl_seconds: int = 1800

    @property
    def resolved_database_url(self) -> str:
        url, _ = resolve_database_url(
            database_url=self.database_url,
            postgres_user=self.postgres_user,
            postgres_password=self.postgres_password,
            postgres_host=self.postgres_host,
            postgres_port=self.postgres_port,
            postgres_db=self.postgres_db,
        )
        return url

    @property
    def resolved_database_url_source(self) -> str:
        _, source = resolve_database_url(
            database_url=self.database_url,
            postgres_user=self.postgres_user,
            postgres_password=self.postgres_password,
            postgres_host=self.postgres_host,
            postgres_port=self.postgres_port,
            postgres_db=self.postgres_db,
        )
        return source

    @property
    def curated_sports_list(self) -> list[str]:
        return _csv(self.curated_sports)

    @property
    def results_sports_list(self) -> list[str]:
        return _csv(self.results_sports)

    @property
    def adapter_class_paths(self) -> list[str]:
        return [item.strip() for item in self.adapter_classes.split(",") if item.strip()]

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token.strip() and self.telegram_chat_id.strip())


@lru_cache
def get_settings() -> Settings:
    return Settings()
