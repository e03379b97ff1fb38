import os

# Rate limiting off before the limiter is built at import time
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import butcher_bot.config as config_mod
import butcher_bot.db as db
from butcher_bot.main import app
from butcher_bot.models import Base, Product
from butcher_bot.routes.chat import get_interpreter
from butcher_bot.services.session import clear_cache
from butcher_bot.tasks.interpreter import UtteranceInterpreter
from tests.helpers import FakeVoice, ScriptedCompletion

# Test staff credentials
TEST_STAFF_USERNAME = "teststaff"
TEST_STAFF_PASSWORD = "testpassword123"


def seed_catalog(session):
    session.add_all([
        Product(name="Solomillo de ternera", category="carnes", price=48.90, unit="kg",
                description="Pieza tierna", in_stock=True),
        Product(name="Carne picada mixta", category="carnes", price=9.95, unit="kg",
                description=None, in_stock=True),
        Product(name="Chorizo de León", category="charcutería", price=14.90, unit="kg",
                description="Curado", in_stock=True),
        Product(name="Pinchos morunos", category="preparados", price=11.50, unit="kg",
                description="Adobados", in_stock=True),
        Product(name="Secreto ibérico", category="carnes", price=22.80, unit="kg",
                description=None, in_stock=False),
    ])
    session.commit()


@pytest.fixture
def session_factory(monkeypatch):
    """In-memory SQLite shared across connections (StaticPool), seeded.

    Patches butcher_bot.db so the app's startup hook and any code that
    opens its own session use the same database.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    monkeypatch.setattr(db, "engine", engine)
    monkeypatch.setattr(db, "SessionLocal", TestingSessionLocal)

    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    seed_catalog(session)
    session.close()

    # Clear session cache before and after each test
    clear_cache()
    yield TestingSessionLocal
    clear_cache()
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def llm():
    return ScriptedCompletion()


@pytest.fixture
def voice():
    return FakeVoice()


@pytest.fixture
def interpreter(llm, voice):
    return UtteranceInterpreter(
        complete=llm,
        transcribe_fn=voice.transcribe,
        extract_fn=voice.extract,
    )


@pytest.fixture
def client(session_factory, interpreter, monkeypatch):
    """Shared FastAPI TestClient on the in-memory database, with fake AI calls.

    Sets up test staff credentials for authentication.
    """
    monkeypatch.setattr(config_mod, "STAFF_USERNAME", TEST_STAFF_USERNAME)
    monkeypatch.setattr(config_mod, "STAFF_PASSWORD", TEST_STAFF_PASSWORD)

    # Override FastAPI DB dependency
    def override_get_db():
        db_sess = session_factory()
        try:
            yield db_sess
        finally:
            db_sess.close()

    app.dependency_overrides[db.get_db] = override_get_db
    app.dependency_overrides[get_interpreter] = lambda: interpreter

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def staff_auth():
    """Returns HTTP Basic Auth tuple for staff endpoints."""
    return (TEST_STAFF_USERNAME, TEST_STAFF_PASSWORD)
