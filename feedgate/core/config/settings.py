#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
feedgate client gateway. All configuration is centralized here to ensure
consistency across modules.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Easy testing with override mechanisms
"""

from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from feedgate.core.config.constants import (
    L1_CACHE_MAX_SIZE,
    QUEUE_BACKOFF_BASE_SECONDS,
    QUEUE_BACKOFF_MAX_SECONDS,
    QUEUE_DEAD_LETTER_LIMIT,
    QUEUE_JITTER_MAX_SECONDS,
    QUEUE_JITTER_MIN_SECONDS,
    QUEUE_MAX_ATTEMPTS,
    RATE_LIMIT_MARGIN_SECONDS,
    RATE_LIMIT_WINDOW_SECONDS,
    REDIS_KEY_OBJECTS,
    TIMELINE_FETCH_LIMIT,
)


class QueueSettings(BaseSettings):
    """
    Task queue configuration.

    STAGE-Q: Jitter window, backoff curve and retry ceiling

    QUEUE_MAX_ATTEMPTS of None keeps the unbounded behaviour; any integer
    dead-letters a task once it has failed that many times.
    """

    QUEUE_JITTER_MIN_SECONDS: float = Field(default=QUEUE_JITTER_MIN_SECONDS, description="Minimum inter-task delay")
    QUEUE_JITTER_MAX_SECONDS: float = Field(default=QUEUE_JITTER_MAX_SECONDS, description="Maximum inter-task delay")
    QUEUE_BACKOFF_BASE_SECONDS: float = Field(default=QUEUE_BACKOFF_BASE_SECONDS, description="Backoff base")
    QUEUE_BACKOFF_MAX_SECONDS: float = Field(default=QUEUE_BACKOFF_MAX_SECONDS, description="Backoff cap")
    QUEUE_MAX_ATTEMPTS: int | None = Field(default=QUEUE_MAX_ATTEMPTS, description="Attempts before dead-lettering")
    QUEUE_SCHEDULING_POLICY: Literal["retry_first", "fair_rotate"] = Field(
        default="retry_first",
        description="Where a failed task is reinserted",
    )
    QUEUE_DEAD_LETTER_LIMIT: int = Field(default=QUEUE_DEAD_LETTER_LIMIT, description="Dead letters kept in memory")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class AuthSettings(BaseSettings):
    """
    Authentication guard configuration.

    STAGE-A: Credential identity and rate-limit cooldown
    """

    CREDENTIAL_IDENTITY: str = Field(default="default", description="Identity whose credential is shared")
    RATE_LIMIT_WINDOW_SECONDS: float = Field(default=RATE_LIMIT_WINDOW_SECONDS, description="Platform window")
    RATE_LIMIT_MARGIN_SECONDS: float = Field(default=RATE_LIMIT_MARGIN_SECONDS, description="Safety margin")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)

    @property
    def cooldown_seconds(self) -> float:
        return self.RATE_LIMIT_WINDOW_SECONDS + self.RATE_LIMIT_MARGIN_SECONDS


class CacheSettings(BaseSettings):
    """
    Object cache configuration.

    STAGE-C: L1 size and persistent backend selection
    """

    CACHE_BACKEND: Literal["redis", "file"] = Field(default="file", description="Persistent object store")
    CACHE_DIRECTORY: str = Field(default=".feedgate/cache", description="Root directory for the file store")
    CACHE_KEY_PREFIX: str = Field(default=REDIS_KEY_OBJECTS, description="Redis key prefix")
    CACHE_L1_MAX_SIZE: int = Field(default=L1_CACHE_MAX_SIZE, description="L1 in-memory cache max entries")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RedisSettings(BaseSettings):
    """
    Redis configuration for the persistent object store.

    STAGE-REDIS: Connection pool configuration
    """

    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum total connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ReconciliationSettings(BaseSettings):
    """
    Reconciliation configuration.

    STAGE-R: Owning agent and timeline population
    """

    AGENT_ID: str = Field(default="feedgate-agent", description="Agent owning ingested records")
    RECORD_SOURCE: str = Field(default="twitter", description="Source tag written into record content")
    TIMELINE_FETCH_LIMIT: int = Field(default=TIMELINE_FETCH_LIMIT, description="Mentions fetched per population")
    POPULATE_TIMELINE_ON_START: bool = Field(default=True, description="Populate timeline during start()")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RemoteSettings(BaseSettings):
    """
    Remote API configuration.

    STAGE-HTTP: Endpoints and OAuth2 client credentials
    """

    REMOTE_BASE_URL: str = Field(default="https://api.twitter.com/2", description="Remote API base URL")
    REMOTE_TOKEN_URL: str = Field(
        default="https://api.twitter.com/2/oauth2/token",
        description="OAuth2 token endpoint",
    )
    REMOTE_CLIENT_ID: str | None = Field(default=None, description="OAuth2 client id")
    REMOTE_CLIENT_SECRET: str | None = Field(default=None, description="OAuth2 client secret")
    REMOTE_TIMEOUT: float = Field(default=30.0, description="Request timeout in seconds")
    REMOTE_REFRESH_MAX_ATTEMPTS: int = Field(default=3, description="Token endpoint attempts on transport errors")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """
    General application settings.

    STAGE-0: Application initialization
    """

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="feedgate", description="Application name")
    APP_VERSION: str = Field(default="0.1.0", description="Application version")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from feedgate.core.config.settings import get_settings

        settings = get_settings()
        cooldown = settings.auth.cooldown_seconds
        backend = settings.cache.CACHE_BACKEND
    """

    # Queue settings
    QUEUE_JITTER_MIN_SECONDS: float = Field(default=QUEUE_JITTER_MIN_SECONDS, description="Minimum inter-task delay")
    QUEUE_JITTER_MAX_SECONDS: float = Field(default=QUEUE_JITTER_MAX_SECONDS, description="Maximum inter-task delay")
    QUEUE_BACKOFF_BASE_SECONDS: float = Field(default=QUEUE_BACKOFF_BASE_SECONDS, description="Backoff base")
    QUEUE_BACKOFF_MAX_SECONDS: float = Field(default=QUEUE_BACKOFF_MAX_SECONDS, description="Backoff cap")
    QUEUE_MAX_ATTEMPTS: int | None = Field(default=QUEUE_MAX_ATTEMPTS, description="Attempts before dead-lettering")
    QUEUE_SCHEDULING_POLICY: Literal["retry_first", "fair_rotate"] = Field(
        default="retry_first",
        description="Where a failed task is reinserted",
    )
    QUEUE_DEAD_LETTER_LIMIT: int = Field(default=QUEUE_DEAD_LETTER_LIMIT, description="Dead letters kept in memory")

    # Auth settings
    CREDENTIAL_IDENTITY: str = Field(default="default", description="Identity whose credential is shared")
    RATE_LIMIT_WINDOW_SECONDS: float = Field(default=RATE_LIMIT_WINDOW_SECONDS, description="Platform window")
    RATE_LIMIT_MARGIN_SECONDS: float = Field(default=RATE_LIMIT_MARGIN_SECONDS, description="Safety margin")

    # Cache settings
    CACHE_BACKEND: Literal["redis", "file"] = Field(default="file", description="Persistent object store")
    CACHE_DIRECTORY: str = Field(default=".feedgate/cache", description="Root directory for the file store")
    CACHE_KEY_PREFIX: str = Field(default=REDIS_KEY_OBJECTS, description="Redis key prefix")
    CACHE_L1_MAX_SIZE: int = Field(default=L1_CACHE_MAX_SIZE, description="L1 in-memory cache max entries")

    # Redis settings
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum total connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    # Reconciliation settings
    AGENT_ID: str = Field(default="feedgate-agent", description="Agent owning ingested records")
    RECORD_SOURCE: str = Field(default="twitter", description="Source tag written into record content")
    TIMELINE_FETCH_LIMIT: int = Field(default=TIMELINE_FETCH_LIMIT, description="Mentions fetched per population")
    POPULATE_TIMELINE_ON_START: bool = Field(default=True, description="Populate timeline during start()")

    # Remote settings
    REMOTE_BASE_URL: str = Field(default="https://api.twitter.com/2", description="Remote API base URL")
    REMOTE_TOKEN_URL: str = Field(
        default="https://api.twitter.com/2/oauth2/token",
        description="OAuth2 token endpoint",
    )
    REMOTE_CLIENT_ID: str | None = Field(default=None, description="OAuth2 client id")
    REMOTE_CLIENT_SECRET: str | None = Field(default=None, description="OAuth2 client secret")
    REMOTE_TIMEOUT: float = Field(default=30.0, description="Request timeout in seconds")
    REMOTE_REFRESH_MAX_ATTEMPTS: int = Field(default=3, description="Token endpoint attempts on transport errors")

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="feedgate", description="Application name")
    APP_VERSION: str = Field(default="0.1.0", description="Application version")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("QUEUE_MAX_ATTEMPTS")
    @classmethod
    def validate_max_attempts(cls, v):
        """A retry ceiling, when set, must allow at least one attempt."""
        if v is not None and v < 1:
            raise ValueError("QUEUE_MAX_ATTEMPTS must be >= 1 or unset")
        return v

    @model_validator(mode="after")
    def validate_jitter_window(self):
        """Jitter window must be ordered and non-negative."""
        if self.QUEUE_JITTER_MIN_SECONDS < 0:
            raise ValueError("QUEUE_JITTER_MIN_SECONDS must be >= 0")
        if self.QUEUE_JITTER_MAX_SECONDS < self.QUEUE_JITTER_MIN_SECONDS:
            raise ValueError("QUEUE_JITTER_MAX_SECONDS must be >= QUEUE_JITTER_MIN_SECONDS")
        return self

    # Nested configuration objects
    @property
    def queue(self) -> 'QueueSettings':
        """Get task queue settings."""
        return QueueSettings(
            QUEUE_JITTER_MIN_SECONDS=self.QUEUE_JITTER_MIN_SECONDS,
            QUEUE_JITTER_MAX_SECONDS=self.QUEUE_JITTER_MAX_SECONDS,
            QUEUE_BACKOFF_BASE_SECONDS=self.QUEUE_BACKOFF_BASE_SECONDS,
            QUEUE_BACKOFF_MAX_SECONDS=self.QUEUE_BACKOFF_MAX_SECONDS,
            QUEUE_MAX_ATTEMPTS=self.QUEUE_MAX_ATTEMPTS,
            QUEUE_SCHEDULING_POLICY=self.QUEUE_SCHEDULING_POLICY,
            QUEUE_DEAD_LETTER_LIMIT=self.QUEUE_DEAD_LETTER_LIMIT,
        )

    @property
    def auth(self) -> 'AuthSettings':
        """Get authentication guard settings."""
        return AuthSettings(
            CREDENTIAL_IDENTITY=self.CREDENTIAL_IDENTITY,
            RATE_LIMIT_WINDOW_SECONDS=self.RATE_LIMIT_WINDOW_SECONDS,
            RATE_LIMIT_MARGIN_SECONDS=self.RATE_LIMIT_MARGIN_SECONDS,
        )

    @property
    def cache(self) -> 'CacheSettings':
        """Get cache settings."""
        return CacheSettings(
            CACHE_BACKEND=self.CACHE_BACKEND,
            CACHE_DIRECTORY=self.CACHE_DIRECTORY,
            CACHE_KEY_PREFIX=self.CACHE_KEY_PREFIX,
            CACHE_L1_MAX_SIZE=self.CACHE_L1_MAX_SIZE,
        )

    @property
    def redis(self) -> 'RedisSettings':
        """Get Redis settings."""
        return RedisSettings(
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
        )

    @property
    def reconciliation(self) -> 'ReconciliationSettings':
        """Get reconciliation settings."""
        return ReconciliationSettings(
            AGENT_ID=self.AGENT_ID,
            RECORD_SOURCE=self.RECORD_SOURCE,
            TIMELINE_FETCH_LIMIT=self.TIMELINE_FETCH_LIMIT,
            POPULATE_TIMELINE_ON_START=self.POPULATE_TIMELINE_ON_START,
        )

    @property
    def remote(self) -> 'RemoteSettings':
        """Get remote API settings."""
        return RemoteSettings(
            REMOTE_BASE_URL=self.REMOTE_BASE_URL,
            REMOTE_TOKEN_URL=self.REMOTE_TOKEN_URL,
            REMOTE_CLIENT_ID=self.REMOTE_CLIENT_ID,
            REMOTE_CLIENT_SECRET=self.REMOTE_CLIENT_SECRET,
            REMOTE_TIMEOUT=self.REMOTE_TIMEOUT,
            REMOTE_REFRESH_MAX_ATTEMPTS=self.REMOTE_REFRESH_MAX_ATTEMPTS,
        )

    @property
    def logging(self) -> 'LoggingSettings':
        """Get logging settings."""
        return LoggingSettings(
            LOG_LEVEL=self.LOG_LEVEL,
            LOG_FORMAT=self.LOG_FORMAT,
        )

    @property
    def app(self) -> 'ApplicationSettings':
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
