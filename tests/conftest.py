import importlib
import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from alembic import command
from alembic.config import Config

from tests.db_utils import create_postgres_test_database


def _setup_app(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    os.environ["SECRET_KEY"] = "test-secret"

    import app.haultrack.core.config as config
    import app.haultrack.db.session as session
    import app.main as main

    importlib.reload(config)
    importlib.reload(session)
    importlib.reload(main)

    return main.create_app(), session


def _run_migrations(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    config = Config("alembic.ini")
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")


@pytest.fixture()
def database_url(tmp_path: Path):
    database_url = os.getenv("DATABASE_URL", "")
    cleanup = None

    if database_url.startswith("postgres"):
        database_url, cleanup = create_postgres_test_database(database_url)
    else:
        db_path = tmp_path / "test.db"
        database_url = f"sqlite+pysqlite:///{db_path}"

    _run_migrations(database_url)
    yield database_url
    if cleanup:
        cleanup()


@pytest.fixture()
def client(database_url: str):
    app, session = _setup_app(database_url)

    with TestClient(app) as client:
        yield client

    session.engine.dispose()


@pytest.fixture()
def session_factory(client):
    from app.haultrack.db.session import SessionLocal

    return SessionLocal


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def clock():
    from tests.factories import SteppingClock

    return SteppingClock()


@pytest.fixture()
def engine(db_session, clock):
    from app.haultrack.services.task_engine import TaskEngine

    return TaskEngine(db_session, clock=clock)


@pytest.fixture()
def admin(db_session):
    from app.haultrack.core.enums import UserRole
    from tests.factories import create_user

    return create_user(db_session, role=UserRole.ADMIN, name="Dispatch Admin")


@pytest.fixture()
def driver(db_session):
    from tests.factories import create_user

    return create_user(db_session, name="Driver One")
