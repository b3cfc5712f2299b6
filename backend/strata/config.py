"""
Strata Backend: Application Configuration
=========================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a module-level `settings` object.
Who:   Read by the application factory, the adapter factories and the retry policy.
When:  Loaded once at module import time; validated before the app starts.

Adapter selection lives here too: PERSISTENCE_BACKEND and FILE_STORAGE_BACKEND
name the adapter bound to each capability interface at startup.
"""

from typing import Dict, List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have defaults suitable for local development
    (in-memory persistence, local disk file storage).
    """

    # ── Adapter Selection ─────────────────────────────────────────────────
    # memory:     process-local dict store (tests, demos)
    # sqlalchemy: async SQLAlchemy against DATABASE_URL
    persistence_backend: Literal["memory", "sqlalchemy"] = Field(default="memory")

    # memory: process-local dict store
    # local:  files under STORAGE_ROOT
    file_storage_backend: Literal["memory", "local"] = Field(default="local")

    # ── Database ──────────────────────────────────────────────────────────
    # Any async SQLAlchemy URL, e.g. postgresql+asyncpg://user:pw@host/db
    database_url: str = Field(
        default="sqlite+aiosqlite:///./strata.db",
        description="Async SQLAlchemy connection URL",
    )

    # Pool sizing is ignored for SQLite (see database.build_engine)
    db_pool_size: int = Field(default=20, ge=1, le=100)
    db_max_overflow: int = Field(default=10, ge=0, le=50)
    db_pool_pre_ping: bool = Field(default=True)

    # Create tables on startup when they are missing
    db_create_schema: bool = Field(default=True)

    # ── File Storage ──────────────────────────────────────────────────────
    storage_root: str = Field(default="./storage")

    # Maximum decoded file size in bytes (10MB)
    max_file_size: int = Field(default=10_485_760, ge=1, le=52_428_800)

    # ── CORS ──────────────────────────────────────────────────────────────
    # Comma-separated URLs
    cors_origins: str = Field(default="http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Request Deadline ──────────────────────────────────────────────────
    # Overall deadline for one request's processing chain (routes may override)
    request_timeout_seconds: float = Field(default=30.0, gt=0, le=600)

    # ── Retry Configuration ───────────────────────────────────────────────
    # Tenacity settings for idempotent operations failing with BackendUnavailable
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_min_wait: float = Field(default=0.2, ge=0, le=30)
    retry_max_wait: float = Field(default=2.0, ge=0, le=120)

    # ── Error → Status Mapping ────────────────────────────────────────────
    # JSON object overriding the default kind → status table, e.g.
    # ERROR_STATUS_OVERRIDES='{"ServiceError": 409}'
    error_status_overrides: Dict[str, int] = Field(default_factory=dict)

    @field_validator("error_status_overrides")
    @classmethod
    def validate_status_overrides(cls, v: Dict[str, int]) -> Dict[str, int]:
        """Only 4xx/5xx codes make sense for errors."""
        for kind, status in v.items():
            if not 400 <= status <= 599:
                raise ValueError(f"Status {status} for '{kind}' is not an error status code")
        return v

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


# Module-level instance used when no explicit Settings is passed to create_app()
settings = Settings()
