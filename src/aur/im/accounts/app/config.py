"""
Configuration Module for the Account Service

This module defines the configuration system for the account service, using Pydantic for
settings validation and dependency injection through AppKeys.

The Settings class is loaded from environment variables with defaults suitable for
development environments, except for the token secret which must always be provided.
Handlers reach settings and shared collaborators through the typed AppKeys declared at
the bottom of this module.

Key configuration areas include:
- Service identification and networking
- Database and cache connections
- Token signing and password hashing parameters
- Avatar storage and verification-code windows
- Monitoring and observability
"""

from typing import Final, Optional
import logging
from aio_statsd import TelegrafStatsdClient
from pydantic import (
    AliasChoices,
    Field,
    field_validator,
    PostgresDsn,
    RedisDsn,
)
from pydantic_settings import BaseSettings
from aiohttp import web
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    AsyncSession,
)
from redis import asyncio as redis

from aur.im.accounts.image.avatar import AvatarResolver
from aur.im.accounts.security.accounts import AccountService
from aur.im.accounts.security.jwt import MINIMUM_SECRET_LENGTH
from aur.im.accounts.security.password import HashParameters
from aur.im.accounts.store.rate import RateCounter


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings for the account service.

    Environment variables are mapped to fields automatically, with aliases provided
    where deployments use more than one name. For example, the database connection
    string can be set with either PG_DSN or DATABASE_URL.
    """

    # Environment and debugging settings
    debug: bool = False
    """
    Enable debug mode for verbose logging and development features.
    Set with DEBUG=true environment variable.
    """

    # Network and service identification settings
    http_port: int = Field(alias="port", default=8080)
    """
    HTTP port for the service to listen on.
    Set with PORT environment variable.
    """

    external_hostname: str = "localhost:8080"
    """
    Public hostname for the service, used to build avatar URLs.
    Set with EXTERNAL_HOSTNAME environment variable.
    """

    external_scheme: str = "http"
    """Scheme used with external_hostname when building avatar URLs."""

    # Monitoring and error reporting
    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. Optional, no error reporting if not set.
    Set with SENTRY_DSN environment variable.
    """

    # Database and cache connections
    redis_dsn: RedisDsn = Field(
        "redis://valkey:6379/0",
        validation_alias=AliasChoices("redis_dsn", "redis_url"),
    )  # type: ignore
    """
    Redis connection string for sessions, codes and counters.
    Set with REDIS_DSN or REDIS_URL environment variables.
    """

    pg_dsn: PostgresDsn = Field(
        "postgresql+asyncpg://postgres:password@db/accounts",
        validation_alias=AliasChoices("pg_dsn", "database_url"),
    )  # type: ignore
    """
    PostgreSQL connection string for the user table.
    Set with PG_DSN or DATABASE_URL environment variables.
    """

    # Token settings
    token_secret: str
    """
    Symmetric secret used to sign session tokens (required, no default).
    Must be at least 32 characters.
    Set with TOKEN_SECRET environment variable.
    """

    token_lifetime_days: int = 30
    """
    Session token lifetime in days.
    Set with TOKEN_LIFETIME_DAYS environment variable.
    """

    # Password hashing
    argon2_time_cost: int = 3
    argon2_memory_cost: int = 10240
    """Argon2id memory cost in KiB."""
    argon2_parallelism: int = 4

    # Avatars
    avatar_directory: str = "./avatars"
    """
    Directory holding avatar files.
    Set with AVATAR_DIRECTORY environment variable.
    """

    avatar_quality: float = 0.8

    max_upload_bytes: int = 8 * 1024 * 1024
    """
    Largest request body accepted, in bytes. Larger uploads are refused with 413.
    Set with MAX_UPLOAD_BYTES environment variable.
    """

    # Verification codes and request counters
    rate_window_seconds: int = 120
    """
    Time-to-live of the verification-code and request-count collections.
    Set with RATE_WINDOW_SECONDS environment variable.
    """

    captcha_length: int = 4

    # Monitoring and observability settings
    statsd_host: str = Field(alias="TELEGRAF_HOST", default="telegraf")
    """
    StatsD/Telegraf host for metrics collection.
    Set with TELEGRAF_HOST environment variable.
    """

    statsd_port: int = Field(alias="TELEGRAF_PORT", default=8125)
    """
    StatsD/Telegraf port for metrics collection.
    Set with TELEGRAF_PORT environment variable.
    """

    statsd_prefix: str = "accounts"
    """
    Prefix for all StatsD metrics from this service.
    Set with STATSD_PREFIX environment variable.
    """

    @field_validator("token_secret")
    @classmethod
    def check_token_secret(cls, v: str) -> str:
        if len(v) < MINIMUM_SECRET_LENGTH:
            raise ValueError(
                f"token_secret must be at least {MINIMUM_SECRET_LENGTH} characters"
            )
        return v

    def hash_parameters(self) -> HashParameters:
        return HashParameters(
            time_cost=self.argon2_time_cost,
            memory_cost=self.argon2_memory_cost,
            parallelism=self.argon2_parallelism,
        )


# Application context keys for dependency injection
SettingsAppKey: Final = web.AppKey("settings", Settings)
"""AppKey for accessing the application settings"""

DatabaseAppKey: Final = web.AppKey("database", AsyncEngine)
"""AppKey for accessing the SQLAlchemy async database engine"""

DatabaseSessionMakerAppKey: Final = web.AppKey(
    "database_session_maker", async_sessionmaker[AsyncSession]
)
"""AppKey for accessing the SQLAlchemy async session factory"""

RedisPoolAppKey: Final = web.AppKey("redis_pool", redis.ConnectionPool)
"""AppKey for accessing the Redis connection pool"""

RedisClientAppKey: Final = web.AppKey("redis_client", redis.Redis)
"""AppKey for accessing the Redis client"""

TelegrafStatsdClientAppKey: Final = web.AppKey(
    "telegraf_statsd_client", TelegrafStatsdClient
)
"""AppKey for the Telegraf/StatsD metrics client"""

CaptchaCounterAppKey: Final = web.AppKey("captcha_counter", RateCounter)
"""AppKey for the verification-code collection"""

RequestCounterAppKey: Final = web.AppKey("request_counter", RateCounter)
"""AppKey for the per-client request counter collection"""

AvatarResolverAppKey: Final = web.AppKey("avatar_resolver", AvatarResolver)
"""AppKey for avatar storage"""

AccountServiceAppKey: Final = web.AppKey("account_service", AccountService)
"""AppKey for the registration and login flows"""
