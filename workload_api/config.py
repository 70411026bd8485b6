"""Environment-driven configuration for the workload service."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from os import getenv
from typing import List

from dotenv import load_dotenv

from workload_engine import ApportionPolicy, WorkloadSettings

# Ensure environment variables are available as soon as the package is imported.
load_dotenv()


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection and retry parameters for the PostgreSQL pool."""

    dbname: str
    user: str
    password: str
    host: str
    port: str
    options: str | None
    min_connections: int
    max_connections: int
    max_retries: int
    retry_delay: float

    def connect_kwargs(self) -> dict:
        return {
            "dbname": self.dbname,
            "user": self.user,
            "password": self.password,
            "host": self.host,
            "port": self.port,
            "options": self.options,
        }


@dataclass(frozen=True)
class ApiConfig:
    """HTTP surface settings."""

    allowed_origins: List[str]


@dataclass(frozen=True)
class CacheConfig:
    ttl: timedelta
    refresh_interval_minutes: int
    refresh_enabled: bool


def _env_bool(name: str, default: str) -> bool:
    return getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_database_config() -> DatabaseConfig:
    """Database settings from ``DB_*`` variables."""

    return DatabaseConfig(
        dbname=getenv("DB_NAME", "clinical_ops"),
        user=getenv("DB_USER", "postgres"),
        password=getenv("DB_PASSWORD", ""),
        host=getenv("DB_HOST", "localhost"),
        port=getenv("DB_PORT", "5432"),
        options=getenv("DB_OPTIONS", "-c search_path=public"),
        min_connections=int(getenv("DB_POOL_MIN_CONN", "1")),
        max_connections=int(getenv("DB_POOL_MAX_CONN", "5")),
        max_retries=int(getenv("DB_MAX_RETRIES", "3")),
        retry_delay=float(getenv("DB_RETRY_DELAY", "0.5")),
    )


@lru_cache(maxsize=1)
def get_api_config() -> ApiConfig:
    """CORS origins from ``ALLOWED_ORIGINS`` (comma separated)."""

    origins = getenv(
        "ALLOWED_ORIGINS",
        "http://localhost:3000,http://localhost:8080",
    )
    allowed = [origin.strip() for origin in origins.split(",") if origin.strip()]
    return ApiConfig(allowed_origins=allowed)


@lru_cache(maxsize=1)
def get_engine_settings() -> WorkloadSettings:
    """Engine tuning knobs. Invalid values fail at startup rather than skewing scores."""

    return WorkloadSettings(
        lookback_weeks=int(getenv("WORKLOAD_LOOKBACK_WEEKS", "4")),
        scale_min=float(getenv("WORKLOAD_SCALE_MIN", "0.6")),
        scale_max=float(getenv("WORKLOAD_SCALE_MAX", "1.8")),
        meeting_adjustment_bound=float(getenv("WORKLOAD_MEETING_ADJUSTMENT_BOUND", "40")),
        apportion_policy=ApportionPolicy(
            getenv("WORKLOAD_APPORTION_POLICY", ApportionPolicy.EVEN_SPLIT.value).strip().lower()
        ),
    )


@lru_cache(maxsize=1)
def get_cache_config() -> CacheConfig:
    return CacheConfig(
        ttl=timedelta(minutes=float(getenv("SNAPSHOT_TTL_MINUTES", "5"))),
        refresh_interval_minutes=int(getenv("SNAPSHOT_REFRESH_INTERVAL_MINUTES", "15")),
        refresh_enabled=_env_bool("SNAPSHOT_REFRESH_ENABLED", "false"),
    )
