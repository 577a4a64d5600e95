"""
Alembic migration environment for the accounts and reservations schema.

The URL comes from DATABASE_URL_SYNC unless one is passed on the command
line, e.g. `alembic -x url=postgresql://... upgrade head`.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from tablebook.core.config import get_settings
from tablebook.db.base import Base
from tablebook.models import Account, Reservation  # noqa: F401 - registers tables on Base.metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def database_url() -> str:
    return context.get_x_argument(as_dictionary=True).get("url") or get_settings().DATABASE_URL_SYNC


def run_offline() -> None:
    """Emit SQL to stdout instead of executing it."""
    context.configure(
        url=database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    engine = create_engine(database_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()
    engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
