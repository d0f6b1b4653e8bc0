"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os
import tempfile
import threading

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of stackit.api.deps which validates
# the secret at module-load time.  Cheap bcrypt rounds keep the suite fast.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)
os.environ.setdefault("STACKIT_BCRYPT_ROUNDS", "4")
# The app mounts the upload directory at import; point it somewhere disposable.
os.environ.setdefault("STACKIT_UPLOAD_DIR", tempfile.mkdtemp(prefix="stackit-uploads-"))

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine, event  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from stackit.config import StackItConfig  # noqa: E402
from stackit.database.models import Base, Role, User  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()

DEFAULT_PASSWORD = "Passw0rd!"


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all StackIt tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in the rate limiter and by
    the TestClient's worker threads).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session for direct assertions against the database."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


def _file_engine(path, *, serialized: bool) -> Engine:
    engine = create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    if serialized:
        # Writers queue on BEGIN IMMEDIATE instead of failing with "database is locked".
        @event.listens_for(engine, "connect")
        def _no_implicit_begin(dbapi_conn, _record):
            dbapi_conn.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def file_engine(tmp_path) -> Engine:
    """File-backed SQLite; each session gets its own connection.

    Reads take no lock, so a test can commit a competing write between a
    unit of work's reads and its writes.
    """
    engine = _file_engine(tmp_path / "stackit.db", serialized=False)
    yield engine
    engine.dispose()


@pytest.fixture
def threaded_engine(tmp_path) -> Engine:
    """File-backed SQLite for tests that hammer it from several threads."""
    engine = _file_engine(tmp_path / "stackit-threads.db", serialized=True)
    yield engine
    engine.dispose()


@pytest.fixture
def test_config() -> StackItConfig:
    return StackItConfig(site_name="StackIt", site_tagline="Test instance")


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
def create_user(
    engine: Engine,
    username: str,
    *,
    role: Role = Role.USER,
    reputation: int = 0,
    password: str = DEFAULT_PASSWORD,
) -> int:
    """Insert an account directly and return its id."""
    from stackit.services.account_service import hash_password

    with Session(engine) as session:
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password(password),
            role=role.value,
            reputation=reputation,
        )
        session.add(user)
        session.commit()
        return user.id


def create_question(engine: Engine, author_id: int, **overrides) -> int:
    """Post a question through the service and return its id."""
    from stackit.schemas import QuestionCreate
    from stackit.services import question_service

    body = QuestionCreate(**{
        "title": "How do I reverse a list in Python?",
        "content": "I have a list of integers and want it reversed in place.",
        "tags": ["python", "lists"],
        **overrides,
    })
    return question_service.create_question(engine, author_id, body)["id"]


def create_answer(engine: Engine, author_id: int, question_id: int, content: str | None = None) -> int:
    from stackit.schemas import AnswerCreate
    from stackit.services import answer_service

    body = AnswerCreate(
        question_id=question_id,
        content=content or "Use list.reverse() or slicing with [::-1].",
    )
    return answer_service.create_answer(engine, author_id, body)["id"]


def fetch_user(engine: Engine, user_id: int) -> User:
    with Session(engine, expire_on_commit=False) as session:
        user = session.get(User, user_id)
        session.expunge(user)
        return user


def make_token(user_id: int, username: str = "someone", role: str = "user") -> str:
    """Create a signed access token.  Usable as a factory in any test."""
    from stackit.api.deps import create_access_token

    return create_access_token({"id": user_id, "username": username, "role": role}, 1)


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Common cast: an asker, an answerer, a bystander, an admin and the master
# ---------------------------------------------------------------------------
@pytest.fixture
def asker(db_engine) -> int:
    return create_user(db_engine, "alice")


@pytest.fixture
def answerer(db_engine) -> int:
    return create_user(db_engine, "bob")


@pytest.fixture
def voter(db_engine) -> int:
    return create_user(db_engine, "carol")


@pytest.fixture
def admin(db_engine) -> int:
    return create_user(db_engine, "admin_dave", role=Role.ADMIN)


@pytest.fixture
def master(db_engine) -> int:
    return create_user(db_engine, "master_admin", role=Role.MASTER, reputation=1000)


@pytest.fixture
def question_id(db_engine, asker) -> int:
    return create_question(db_engine, asker)


@pytest.fixture
def answer_id(db_engine, answerer, question_id) -> int:
    return create_answer(db_engine, answerer, question_id)


# ---------------------------------------------------------------------------
# API client wired to the SQLite engine
# ---------------------------------------------------------------------------
@pytest.fixture
def api_client(db_engine, test_config):
    """TestClient with engine/config overrides and a fresh rate limiter.

    The app's lifespan is not entered, so nothing touches DATABASE_URL.
    """
    from fastapi.testclient import TestClient

    import stackit.api.rate_limit as rl_mod
    from stackit.api.deps import get_config, get_engine
    from stackit.api.main import app

    original_limiter = rl_mod._limiter
    rl_mod.configure_rate_limiter(engine=db_engine, max_requests=1000, window_seconds=60)

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: test_config

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()
    rl_mod._limiter = original_limiter


# ---------------------------------------------------------------------------
# Concurrency helper
# ---------------------------------------------------------------------------
def run_concurrently(*calls):
    """Start every zero-argument callable at the same moment on its own
    thread; return ``(result, exception)`` pairs in call order."""
    from concurrent.futures import ThreadPoolExecutor

    barrier = threading.Barrier(len(calls))

    def _start(fn):
        barrier.wait()
        return fn()

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        futures = [pool.submit(_start, fn) for fn in calls]
        outcomes = []
        for future in futures:
            exc = future.exception()
            outcomes.append((None if exc else future.result(), exc))
    return outcomes
