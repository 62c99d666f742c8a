# common/config/app_config.py
"""
Complete application configuration with validation.

Database, logging and booking-queue settings are all loaded from the
environment and validated once at startup.
"""

from typing import Optional, Any
from pydantic import BaseModel, Field, field_validator, model_validator, SecretStr
from .config_types import EnvLogLevel, DbDriver, SslMode, Environment
from .env_config import require_env, get_env, get_env_int, get_env_bool
from .logging_config import LoggingConfig
from pathlib import Path


class DatabaseConfig(BaseModel):
    """
    Database configuration with SSL/TLS support.

    Either the individual connection parts (host, port, name, ...) or a full
    SQLAlchemy `url` may be provided. The url form is used for SQLite.
    """

    url: Optional[SecretStr] = Field(default=None, description="Full SQLAlchemy URL")

    # Basic connection
    host: Optional[str] = Field(default=None, min_length=1)
    port: int = Field(default=5432, gt=0, le=65535)
    name: Optional[str] = Field(default=None, min_length=1, description="Database name")

    # Authentication (keep separate from URL for security)
    username: Optional[str] = Field(default=None, min_length=1)
    password: Optional[SecretStr] = Field(default=None)

    # Connection pooling
    pool_size: int = Field(default=10, ge=1, le=100)
    max_overflow: int = Field(default=20, ge=0, le=100)
    pool_timeout: int = Field(default=30, ge=1, le=300)
    pool_recycle: int = Field(default=3600, ge=300)

    # SSL/TLS Configuration
    ssl_mode: Optional[SslMode] = Field(default=None)
    ssl_cert_path: Optional[Path] = Field(default=None)
    ssl_key_path: Optional[Path] = Field(default=None)
    ssl_ca_path: Optional[Path] = Field(default=None)

    driver: DbDriver = Field(default=DbDriver.ASYNCPG)

    model_config = {"frozen": True}

    @field_validator("ssl_cert_path", "ssl_key_path", "ssl_ca_path")
    @classmethod
    def validate_ssl_paths(cls, v: Optional[Path]) -> Optional[Path]:
        """Validate SSL certificate paths exist."""
        if v is not None and not v.exists():
            raise ValueError(f"SSL file not found: {v}")
        return v

    @model_validator(mode="after")
    def validate_target(self) -> "DatabaseConfig":
        if self.url is None and not (self.host and self.name):
            raise ValueError("Either DB_URL or DB_HOST + DB_NAME must be set")
        return self

    def get_connection_url(self, include_password: bool = False) -> str:
        """
        Build SQLAlchemy connection URL.

        Args:
            include_password: If True, include password in URL (use for actual connections)
                            If False, mask it (use for logging)
        """
        if self.url is not None:
            return self.url.get_secret_value() if include_password else "<DB_URL>"

        if self.username:
            if include_password and self.password:
                auth = f"{self.username}:{self.password.get_secret_value()}"
            else:
                auth = f"{self.username}:****"
            return f"postgresql+{self.driver.value}://{auth}@{self.host}:{self.port}/{self.name}"

        return f"postgresql+{self.driver.value}://{self.host}:{self.port}/{self.name}"

    def requires_ssl(self) -> bool:
        return self.ssl_mode in [
            SslMode.REQUIRE,
            SslMode.VERIFY_CA,
            SslMode.VERIFY_FULL,
        ]

    def to_dict_safe(self) -> dict[str, Any]:
        """Convert to dict with sensitive data masked (safe for logging)."""
        data = self.model_dump()
        for key in ("password", "url"):
            if data.get(key):
                data[key] = "****"
        return data


class QueueConfig(BaseModel):
    """
    Booking queue settings.

    heartbeat_seconds: interval between `ping` frames on live queue streams
    slot_duration_minutes: default slot grid step
    next_available_max_days: default scan window for the next open date
    serial_lock_timeout_seconds: how long an allocator waits for the
        per-(doctor, date) lock before giving up
    """

    heartbeat_seconds: float = Field(default=25, gt=0, le=300)
    slot_duration_minutes: int = Field(default=15, ge=5, le=120)
    next_available_max_days: int = Field(default=30, ge=1, le=90)
    serial_lock_timeout_seconds: float = Field(default=10, gt=0, le=120)

    model_config = {"frozen": True}


class RateLimitConfig(BaseModel):
    """
    Per-client request limits, in slowapi/limits notation ("20/minute").

    booking_create is one budget shared by both booking creation routes.
    """

    enabled: bool = True
    booking_create: str = Field(
        default="20/minute",
        pattern=r"^\d+\s*(/|per)\s*\d*\s*(second|minute|hour|day)s?$",
    )

    model_config = {"frozen": True}


class AppConfig(BaseModel):
    """
    Complete application configuration.

    All configuration is loaded from environment variables and validated
    at startup. Invalid configuration will fail fast with clear error messages.
    """

    app_title: str = Field(..., min_length=1)
    app_version: str = Field(..., pattern=r"^\d+\.\d+\.\d+$")
    environment: Environment

    logging: LoggingConfig
    database: Optional[DatabaseConfig] = None
    queue: QueueConfig = Field(default_factory=QueueConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_production_settings(self) -> "AppConfig":
        if self.environment.is_production:
            if self.database is None:
                raise ValueError("Database config required in production")
            if self.logging.log_level == EnvLogLevel.DEBUG:
                raise ValueError("DEBUG log level not allowed in production")
        return self


def load_database_config(environment: Environment) -> Optional[DatabaseConfig]:
    """
    Load database configuration from environment.

    Environment variables:
    - DB_URL: full SQLAlchemy URL (takes precedence over the parts below)
    - DB_HOST, DB_PORT, DB_NAME, DB_DRIVER
    - DB_POOL_SIZE, DB_MAX_OVERFLOW, DB_POOL_TIMEOUT, DB_POOL_RECYCLE
    - DB_USER, DB_PASSWORD, DB_SSL_MODE (required in production)
    - DB_SSL_CERT, DB_SSL_KEY, DB_SSL_CA
    """
    url = get_env("DB_URL")
    host = get_env("DB_HOST")
    if not url and not host:
        return None

    pool_settings = dict(
        pool_size=get_env_int("DB_POOL_SIZE", 10),
        max_overflow=get_env_int("DB_MAX_OVERFLOW", 20),
        pool_timeout=get_env_int("DB_POOL_TIMEOUT", 30),
        pool_recycle=get_env_int("DB_POOL_RECYCLE", 3600),
    )

    if url:
        driver = DbDriver.AIOSQLITE if url.startswith("sqlite") else DbDriver.ASYNCPG
        return DatabaseConfig(url=SecretStr(url), driver=driver, **pool_settings)

    driver_str = get_env("DB_DRIVER", DbDriver.ASYNCPG.value)
    try:
        driver = DbDriver(driver_str)
    except ValueError:
        valid_drivers = [d.value for d in DbDriver]
        raise ValueError(
            f"Invalid DB_DRIVER: {driver_str}. Must be one of: {valid_drivers}"
        )

    if environment.is_production:
        username: Optional[str] = require_env("DB_USER")
        password_str: Optional[str] = require_env("DB_PASSWORD")
        ssl_mode_str: Optional[str] = require_env("DB_SSL_MODE")
    else:
        username = get_env("DB_USER")
        password_str = get_env("DB_PASSWORD")
        ssl_mode_str = get_env("DB_SSL_MODE")

    ssl_mode: Optional[SslMode] = None
    if ssl_mode_str:
        try:
            ssl_mode = SslMode(ssl_mode_str)
        except ValueError:
            valid_modes = [m.value for m in SslMode]
            raise ValueError(
                f"Invalid DB_SSL_MODE: {ssl_mode_str}. Must be one of: {valid_modes}"
            )

    def _path(env_key: str) -> Optional[Path]:
        value = get_env(env_key)
        return Path(value) if value else None

    return DatabaseConfig(
        host=host,
        port=get_env_int("DB_PORT", 5432),
        name=require_env("DB_NAME"),
        username=username,
        password=SecretStr(password_str) if password_str else None,
        ssl_mode=ssl_mode,
        ssl_cert_path=_path("DB_SSL_CERT"),
        ssl_key_path=_path("DB_SSL_KEY"),
        ssl_ca_path=_path("DB_SSL_CA"),
        driver=driver,
        **pool_settings,
    )


def load_queue_config() -> QueueConfig:
    return QueueConfig(
        heartbeat_seconds=get_env_int("QUEUE_HEARTBEAT_SECONDS", 25),
        slot_duration_minutes=get_env_int("SLOT_DURATION_MINUTES", 15),
        next_available_max_days=get_env_int("NEXT_AVAILABLE_MAX_DAYS", 30),
        serial_lock_timeout_seconds=get_env_int("SERIAL_LOCK_TIMEOUT_SECONDS", 10),
    )


def load_rate_limit_config() -> RateLimitConfig:
    return RateLimitConfig(
        enabled=get_env_bool("RATE_LIMIT_ENABLED", True),
        booking_create=get_env("RATE_LIMIT_BOOKINGS", "20/minute"),
    )


def load_app_config() -> AppConfig:
    """
    Load complete application configuration.

    Raises:
        ValidationError: If configuration is invalid
        ConfigurationError: If required env vars are missing
    """
    from .logging_config import load_logging_config

    env_str = require_env("ENVIRONMENT")

    try:
        environment = Environment(env_str)
    except ValueError:
        valid_envs = [e.value for e in Environment]
        raise ValueError(
            f"Invalid ENVIRONMENT: {env_str}. Must be one of: {valid_envs}"
        )

    return AppConfig(
        app_title=require_env("APP_TITLE"),
        app_version=require_env("APP_VERSION"),
        environment=environment,
        logging=load_logging_config(),
        database=load_database_config(environment),
        queue=load_queue_config(),
        rate_limit=load_rate_limit_config(),
    )


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "QueueConfig",
    "RateLimitConfig",
    "load_app_config",
]
