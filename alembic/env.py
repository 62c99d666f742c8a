"""
Alembic environment for the booking schema.

Reads the same DatabaseConfig as the application so migrations and the
running service always target one database. The app talks through async
drivers; migrations run on their sync counterparts.
"""

import os
import sys
from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context
from dotenv import load_dotenv

# Add project to path
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from app.db.models import DbBaseModel
from common.config import DatabaseConfig
from common.config.initialize_config import (
    get_config,
    initialize_config,
    ConfigurationError,
)

load_dotenv()
try:
    initialize_config()
except ConfigurationError as e:
    print(f"FATAL: Configuration error:\n{e}")
    sys.exit(1)

config = context.config
app_config = get_config()

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = DbBaseModel.metadata

# async driver -> sync driver used by alembic
SYNC_DRIVERS = {
    "postgresql+asyncpg": "postgresql",  # psycopg2
    "postgresql+psycopg": "postgresql+psycopg",
    "sqlite+aiosqlite": "sqlite",
}


def database_config() -> DatabaseConfig:
    if not app_config.database:
        raise RuntimeError("Database configuration not found in environment")
    return app_config.database


def get_sync_url() -> str:
    url = database_config().get_connection_url(include_password=True)
    scheme, sep, rest = url.partition("://")
    return f"{SYNC_DRIVERS.get(scheme, scheme)}{sep}{rest}"


def get_connect_args() -> dict:
    """libpq-style SSL options mirroring the application's asyncpg settings."""
    db_config = database_config()
    if db_config.url is not None or not db_config.ssl_mode:
        return {}

    connect_args = {"sslmode": db_config.ssl_mode.value}
    if db_config.requires_ssl():
        for key, path in (
            ("sslrootcert", db_config.ssl_ca_path),
            ("sslcert", db_config.ssl_cert_path),
            ("sslkey", db_config.ssl_key_path),
        ):
            if path:
                connect_args[key] = str(path)
    return connect_args


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of executing it."""
    url = get_sync_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=url.startswith("sqlite"),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = get_sync_url()

    # NullPool: a migration run holds exactly one connection
    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
        connect_args=get_connect_args(),
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
