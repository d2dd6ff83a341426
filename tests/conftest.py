"""
Pytest configuration and fixtures for the CRM tests.

Settings are read at import time, so the environment is prepared before any
application module is imported. Every test gets a fresh in-memory SQLite
database shared across threads through a StaticPool.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_ENV", "dev")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.crm_tool.database import get_db, get_session_factory
from src.crm_tool.main import app
from src.crm_tool.models import Base
from src.crm_tool.services.import_session import IMPORT_SESSIONS


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    IMPORT_SESSIONS.clear()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    IMPORT_SESSIONS.clear()


@pytest.fixture
def contacts_csv() -> bytes:
    return (
        "First Name,Last Name,Email,Phone,Company\n"
        "Ada,Lovelace,ada@example.com,555-0100,Analytical Engines\n"
        "Grace,Hopper,grace@example.com,555-0101,US Navy\n"
        "\n"
        "Alan,Turing,not-an-email,555-0102,Bletchley\n"
    ).encode("utf-8")
