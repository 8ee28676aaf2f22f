"""Alembic environment for the shopcore schema; DATABASE_URL decides the target database."""
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlmodel import SQLModel

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

import app.models  # noqa: E402,F401  (registers every table on SQLModel.metadata)
from app.core.database import DATABASE_URL  # noqa: E402

config = context.config
config.set_main_option("sqlalchemy.url", str(DATABASE_URL))
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _configure(is_sqlite: bool, **kwargs) -> None:
    # SQLite cannot ALTER most constraints in place
    context.configure(
        target_metadata=SQLModel.metadata,
        compare_type=True,
        render_as_batch=is_sqlite,
        **kwargs,
    )


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    _configure(url.startswith("sqlite"), url=url, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        _configure(connection.dialect.name == "sqlite", connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
