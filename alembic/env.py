"""
Alembic migration environment for the SeasonElo ledger schema.

The database URL always comes from SeasonElo settings (DATABASE_URL or
.env), never from alembic.ini, so migrations hit the same database as
the coordinator.

Usage:
    alembic upgrade head               # apply to DATABASE_URL
    alembic upgrade head --sql > x.sql # offline: emit SQL only
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

# Models must be imported before Base.metadata is read
from seasonelo.config import configure_logging, settings
from seasonelo.db.models import Base

config = context.config
config.set_main_option("sqlalchemy.url", settings.database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)
else:
    configure_logging()

target_metadata = Base.metadata


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def run_migrations_offline() -> None:
    """Emit migration SQL without connecting."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=_is_sqlite(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Connect and apply migrations."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,  # Migrations are one-shot
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # SQLite cannot ALTER most constraints in place
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
