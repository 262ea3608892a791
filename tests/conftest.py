"""Shared fixtures: in-memory SQLite, seeded field catalog, API client."""

from __future__ import annotations

import os
import tempfile

# Settings are read at import time, so the environment is prepared first.
os.environ["DATABASE_DSN"] = "sqlite://"
os.environ["EXPORT_DIR"] = tempfile.mkdtemp(prefix="scribo_exports_")
os.environ["AUTO_SEED_FIELDS"] = "false"
os.environ["REDIS_URL"] = ""
os.environ["SMTP_HOST"] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from scribo.core.config import settings  # noqa: E402
from scribo.db.base import Base  # noqa: E402
import scribo.db.models  # noqa: E402,F401
from scribo.db.session import get_db  # noqa: E402
from scribo.main import app  # noqa: E402
from scribo.scripts.seed import seed_field_types  # noqa: E402

from tests.factories import make_client  # noqa: E402

engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db():
    Base.metadata.create_all(engine)
    session = TestingSession()
    seed_field_types(session)
    session.commit()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture()
def export_dir():
    path = settings.EXPORT_DIR
    os.makedirs(path, exist_ok=True)
    for name in os.listdir(path):
        os.remove(os.path.join(path, name))
    return path


@pytest.fixture()
def api(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def owner(db):
    return make_client(db)
