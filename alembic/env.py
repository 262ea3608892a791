from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from scribo.core.config import settings
from scribo.db.base import Base
import scribo.db.models  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def database_url() -> str:
    return os.getenv("DATABASE_DSN") or settings.DATABASE_DSN


def include_object(obj, name, type_, reflected, compare_to):
    # tables living in the same schema but unknown to scribo are left alone
    if type_ == "table" and reflected and compare_to is None:
        return False
    return True


def _options(**extra) -> dict:
    return dict(
        target_metadata=target_metadata,
        compare_type=True,
        include_object=include_object,
        **extra,
    )


def run_offline() -> None:
    context.configure(
        url=database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = database_url()
    engine = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with engine.connect() as connection:
        context.configure(
            connection=connection,
            **_options(render_as_batch=connection.dialect.name == "sqlite"),
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
