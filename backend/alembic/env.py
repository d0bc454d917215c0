"""Alembic environment: migrates the SQLite file the app is configured with."""
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine

from database import migration_url

alembic_config = context.config
if alembic_config.config_file_name is not None:
    fileConfig(alembic_config.config_file_name)

# Schema is raw SQL in the revisions; there is no metadata to autogenerate from
target_metadata = None


def run_migrations_offline(url: str) -> None:
    """Emit the migration SQL without connecting."""
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online(url: str) -> None:
    """Apply migrations to the database file, batching ALTERs for SQLite."""
    engine = create_engine(url)
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                render_as_batch=True,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


# The file named by TASKFAST_DB, which init_db passes to this process
url = migration_url()
if context.is_offline_mode():
    run_migrations_offline(url)
else:
    run_migrations_online(url)
