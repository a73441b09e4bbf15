import sys
import os
from logging.config import fileConfig

from sqlalchemy import pool
from alembic import context

# make the household package importable when alembic runs from the repo root
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from household.core.config import settings
from household.db.session import Base
import household.models  # registers every table on Base.metadata

from sqlalchemy.ext.asyncio import create_async_engine


config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata

def get_url():
    return os.getenv("DATABASE_URL", settings.DATABASE_URL)


def run_migrations_offline():
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=connection.dialect.name == "sqlite",
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online():
    connectable = create_async_engine(
        get_url(),
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    import asyncio
    asyncio.run(run_migrations_online())
