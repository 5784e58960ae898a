"""Centralized configuration management using Pydantic Settings.

This module provides typed configuration for all application settings,
loaded from environment variables with sensible defaults.

Usage:
    from judge.config import get_settings
    settings = get_settings()
    run_budget = settings.runner.run_timeout_ms
"""

import os
import tempfile
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_temp_root() -> str:
    return os.path.join(tempfile.gettempdir(), "judge-workspaces")


class RedisSettings(BaseSettings):
    """Redis connection configuration."""

    model_config = SettingsConfigDict(env_prefix="REDIS_", extra="ignore")

    host: str = Field(default="redis", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: str = Field(default="", description="Redis password")
    max_connections: int = Field(default=200, description="Maximum pool connections")
    pool_timeout_sec: float = Field(default=5.0, description="Pool timeout in seconds")
    health_check_interval: int = Field(default=30, description="Health check interval in seconds")
    retry_on_timeout: bool = Field(default=True, description="Retry on timeout")
    socket_timeout: float = Field(default=5.0, description="Socket timeout in seconds")
    socket_connect_timeout: float = Field(default=5.0, description="Socket connect timeout in seconds")


class RunnerSettings(BaseSettings):
    """Process runner budgets and the shared workspace root."""

    model_config = SettingsConfigDict(env_prefix="RUNNER_", extra="ignore")

    temp_root: str = Field(default_factory=_default_temp_root, description="Shared workspace root")
    compile_timeout_ms: int = Field(default=30_000, gt=0, description="Compile step wall-clock budget")
    run_timeout_ms: int = Field(default=10_000, gt=0, description="Per test case wall-clock budget")
    interactive_timeout_ms: int = Field(default=30_000, gt=0, description="Budget for /compile runs")
    compile_max_output_bytes: int = Field(default=5 * 1024 * 1024, gt=0)
    run_max_output_bytes: int = Field(default=2 * 1024 * 1024, gt=0)
    interactive_max_output_bytes: int = Field(default=10 * 1024 * 1024, gt=0)


class AdmissionSettings(BaseSettings):
    """Concurrency ceilings for the two admission controllers."""

    model_config = SettingsConfigDict(env_prefix="ADMISSION_", extra="ignore")

    compile_concurrency: int = Field(default=20, ge=1, description="Interactive compile slots")
    judge_concurrency: int = Field(default=10, ge=1, description="Submission judging slots")


class JudgeSettings(BaseSettings):
    """Submission judging configuration."""

    model_config = SettingsConfigDict(env_prefix="JUDGE_", extra="ignore")

    default_max_score: int = Field(default=100, ge=0, description="Max score of standalone problems")
    max_code_length: int = Field(default=50_000, gt=0, description="Maximum accepted source length")
    worker_count: int | None = Field(default=None, ge=1, description="Judge workers (defaults to judge slots)")
    require_active_contest: bool = Field(default=True, description="Reject submissions to inactive contests")

    @field_validator("require_active_contest", mode="before")
    @classmethod
    def parse_require_active(cls, v):
        if isinstance(v, str):
            return v.lower() in ("1", "true", "yes")
        return bool(v)


class RateLimitSettings(BaseSettings):
    """Per-client rate limit for the interactive compile endpoint."""

    model_config = SettingsConfigDict(env_prefix="COMPILE_RATE_", extra="ignore")

    enabled: bool = Field(default=True)
    window_sec: int = Field(default=60, gt=0)
    max_requests: int = Field(default=50, gt=0)
    trust_forwarded_for: bool = Field(
        default=False, description="Key clients on X-Forwarded-For (only behind a trusted proxy)"
    )

    @field_validator("enabled", "trust_forwarded_for", mode="before")
    @classmethod
    def parse_bool(cls, v):
        if isinstance(v, str):
            return v.lower() in ("1", "true", "yes")
        return bool(v)


class CorsSettings(BaseSettings):
    """CORS configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    origins_raw: str = Field(
        default="http://localhost:3000",
        validation_alias="CORS_ORIGINS",
    )

    @property
    def origins(self) -> list[str]:
        """Parse comma-separated origins into list."""
        return [o.strip() for o in self.origins_raw.split(",") if o.strip()]

    @property
    def allow_credentials(self) -> bool:
        """Credentials not allowed with wildcard origins."""
        return self.origins != ["*"]


class DebugSettings(BaseSettings):
    """Debug flags configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    runner: bool = Field(default=False, alias="runner_debug")
    admission: bool = Field(default=False, alias="admission_debug")

    @field_validator("*", mode="before")
    @classmethod
    def parse_bool(cls, v):
        if isinstance(v, str):
            return v.lower() in ("1", "true", "yes")
        return bool(v)


class Settings:
    """Main application settings combining all configuration sections.

    This is not a BaseSettings subclass to avoid env var conflicts.
    Each subsetting is loaded independently with its own prefix.
    """

    def __init__(self) -> None:
        self.redis = RedisSettings()
        self.runner = RunnerSettings()
        self.admission = AdmissionSettings()
        self.judge = JudgeSettings()
        self.rate_limit = RateLimitSettings()
        self.cors = CorsSettings()
        self.debug = DebugSettings()


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance (singleton pattern)."""
    return Settings()


def clear_settings_cache() -> None:
    """Clear cached settings (useful for testing)."""
    get_settings.cache_clear()
