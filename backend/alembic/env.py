"""Alembic environment for the DPO Fast schema."""

from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine

from dpofast.config.settings import get_settings
from dpofast.db.base import Base

# Import all models so their tables are visible to Alembic
import dpofast.db.models  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def get_url() -> str:
    # Allow override via -x db_url=... on the CLI
    url = context.get_x_argument(as_dictionary=True).get("db_url")
    if url:
        return url
    return str(get_settings().database_url)


def get_sync_url() -> str:
    """Alembic runs on a sync engine; strip the async driver from the URL."""
    return get_url().replace("+aiosqlite", "").replace("+asyncpg", "")


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def run_migrations_offline() -> None:
    url = get_sync_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        render_as_batch=_is_sqlite(url),
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Sync engine so startup can call ``command.upgrade`` from inside the event loop."""
    url = get_sync_url()
    engine = create_engine(url)
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=_is_sqlite(url),
        )
        with context.begin_transaction():
            context.run_migrations()
    engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
