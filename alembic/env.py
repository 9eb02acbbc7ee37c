"""Alembic environment configuration.

Migrations run with the service credentials (SERVICE_DATABASE_URL, falling
back to DATABASE_URL): schema changes and the certificate lookup path both
need access that the request-scoped role does not have.
"""

from __future__ import annotations

from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context
from credhub.core.config import SETTINGS
from credhub.db.engine import Base

config = context.config

migration_url = SETTINGS.service_database_url or SETTINGS.database_url
if migration_url:
    # Alembic runs synchronously; swap the asyncpg driver for psycopg2.
    config.set_main_option(
        "sqlalchemy.url", migration_url.replace("postgresql+asyncpg", "postgresql")
    )

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# SQLAlchemy MetaData for autogenerate support.
# Import table module so Base.metadata sees all table definitions.
import credhub.db.tables  # noqa: E402, F401

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (generate SQL without a live DB)."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode (connected to a live DB)."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
