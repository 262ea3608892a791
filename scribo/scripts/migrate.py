"""Container entrypoint: wait for the database, migrate, seed the catalogs.

    python -m scribo.scripts.migrate [--timeout 90] [--no-seed]
"""

from __future__ import annotations

import argparse
import logging
import os
import subprocess
import time

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from scribo.core.config import settings
from scribo.core.logging import setup_logging

logger = logging.getLogger("scribo.migrate")


def wait_for_db(engine: Engine, timeout_s: int = 60) -> None:
    start = time.monotonic()
    delay = 1.0
    while True:
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return
        except OperationalError:
            if time.monotonic() - start > timeout_s:
                raise
            logger.info("Database not ready, retrying in %.1fs", delay)
            time.sleep(delay)
            delay = min(delay * 1.5, 5.0)


def alembic(*args: str) -> int:
    return subprocess.run(["alembic", *args], check=False).returncode


def upgrade(engine: Engine) -> int:
    tables = set(inspect(engine).get_table_names())
    if "alembic_version" not in tables and "campaigns" in tables:
        # schema created by create_all before alembic tracked it
        logger.warning("Untracked schema found, stamping head")
        return alembic("stamp", "head")
    return alembic("upgrade", "head")


def seed() -> None:
    from scribo.db.session import session_scope
    from scribo.scripts.seed import seed_field_types, seed_model_forms

    with session_scope() as db:
        created = seed_field_types(db)
        if settings.AUTO_SEED_MODELS:
            seed_model_forms(db)
    logger.info("Field catalog seeded (%d new types)", created)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run migrations and seed the catalogs.")
    parser.add_argument("--timeout", type=int, default=int(os.getenv("DB_WAIT_TIMEOUT", "90")))
    parser.add_argument("--no-seed", action="store_true")
    args = parser.parse_args(argv)

    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    engine = create_engine(os.getenv("DATABASE_DSN") or settings.DATABASE_DSN, pool_pre_ping=True)
    wait_for_db(engine, timeout_s=args.timeout)

    rc = upgrade(engine)
    if rc != 0:
        logger.error("Alembic exited with %s", rc)
        return rc
    if not args.no_seed:
        seed()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
