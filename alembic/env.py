"""Alembic environment configuration."""

from logging.config import fileConfig

from sqlalchemy import create_engine

from alembic import context
from tagweave.config import get_settings
from tagweave.db.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# -x database_url=... overrides the configured database
database_url = context.get_x_argument(as_dictionary=True).get("database_url")
if not database_url:
    database_url = get_settings().sync_database_url
config.set_main_option("sqlalchemy.url", database_url)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    connectable = create_engine(config.get_main_option("sqlalchemy.url"))

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
