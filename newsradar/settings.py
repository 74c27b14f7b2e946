import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator


class Settings(BaseModel):
    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./newsradar.db", alias="DATABASE_URL"
    )
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")
    baseline_store: str = Field(default="memory", alias="BASELINE_STORE")

    # Pipeline schedule
    pipeline_interval_minutes: int = Field(default=5, alias="PIPELINE_INTERVAL_MINUTES")

    # Analysis worker
    cluster_timeout_seconds: float = Field(default=30.0, alias="CLUSTER_TIMEOUT_SECONDS")
    correlation_timeout_seconds: float = Field(
        default=10.0, alias="CORRELATION_TIMEOUT_SECONDS"
    )
    worker_ready_timeout_seconds: float = Field(
        default=10.0, alias="WORKER_READY_TIMEOUT_SECONDS"
    )

    # Circuit breaker defaults
    breaker_max_failures: int = Field(default=2, alias="BREAKER_MAX_FAILURES")
    breaker_cooldown_seconds: float = Field(default=300.0, alias="BREAKER_COOLDOWN_SECONDS")
    breaker_cache_ttl_seconds: float = Field(
        default=600.0, alias="BREAKER_CACHE_TTL_SECONDS"
    )

    # Trending keywords
    trending_min_spike_count: int = Field(default=5, alias="TRENDING_MIN_SPIKE_COUNT")
    trending_spike_multiplier: float = Field(
        default=3.0, alias="TRENDING_SPIKE_MULTIPLIER"
    )
    trending_blocked_terms: list[str] = Field(
        default_factory=list, alias="TRENDING_BLOCKED_TERMS"
    )

    # Temporal baseline
    baseline_z_threshold: float = Field(default=1.0, alias="BASELINE_Z_THRESHOLD")

    # Outbound HTTP
    http_timeout_seconds: float = Field(default=15.0, alias="HTTP_TIMEOUT_SECONDS")

    # Collaborator feeds (normalised JSON lists)
    headlines_url: str | None = Field(default=None, alias="HEADLINES_URL")
    markets_url: str | None = Field(default=None, alias="MARKETS_URL")
    predictions_url: str | None = Field(default=None, alias="PREDICTIONS_URL")
    counters_url: str | None = Field(default=None, alias="COUNTERS_URL")

    @field_validator("trending_blocked_terms", mode="before")
    @classmethod
    def _split_terms(cls, value):
        if isinstance(value, str):
            return [t.strip() for t in value.split(",") if t.strip()]
        return value

    @field_validator("baseline_store")
    @classmethod
    def _check_store(cls, value: str) -> str:
        value = value.lower()
        if value not in ("memory", "database"):
            raise ValueError("BASELINE_STORE must be 'memory' or 'database'")
        return value


def load_settings() -> Settings:
    """Read .env and the process environment into a fresh Settings."""
    load_dotenv()
    return Settings.model_validate(dict(os.environ))
