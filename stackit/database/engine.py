"""
stackit.database.engine — Database Connection & Transaction Helpers
=====================================================================

**Why this file exists:**
Every StackIt action is a short read-modify-write against shared rows
(vote ledgers, reputation counters, the one-time acceptance flag).  Many
of those actions run at the same time, so each one must either commit as
a single unit or leave no trace.

:func:`run_transaction` is the one entry point services use:

    1. Open a fresh :class:`Session`.
    2. Run the caller's unit of work against it.
    3. Commit — all writes land together, or none do.
    4. On an optimistic-concurrency conflict (``version`` mismatch or a
       ledger uniqueness race) start over from step 1, a bounded number
       of times.
    5. On a connectivity failure, back off exponentially and retry, then
       surface :class:`~stackit.errors.UnavailableError`.

Business failures (``ConflictError`` for a double accept, ``ForbiddenError``
…) propagate immediately and are never retried.

Usage::

    from stackit.database.engine import create_db_engine, init_db, run_transaction

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    ledger = run_transaction(engine, _apply_vote, actor_id, item_type, item_id, direction)
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Callable
from typing import Concatenate, ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from stackit.database.models import Base
from stackit.errors import ConflictError, UnavailableError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

MAX_CONFLICT_ATTEMPTS = 3
MAX_UNAVAILABLE_ATTEMPTS = 3
BACKOFF_BASE_SECONDS = 0.05
DEFAULT_STATEMENT_TIMEOUT_MS = 5000
PG_UNIQUE_VIOLATION = "23505"


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from *url* or ``DATABASE_URL``.

    The connection pool is sized for a small-to-medium community site:
    * ``pool_size=5`` — five persistent connections.
    * ``max_overflow=10`` — up to 10 extra connections under load.
    * ``pool_timeout=10`` — fail after 10 s if no connection is available.
    * ``pool_recycle=3600`` — recycle connections after 1 hour.

    PostgreSQL connections also get a ``statement_timeout`` so a request
    blocked on a row lock fails cleanly instead of hanging.

    Raises
    ------
    RuntimeError
        If no URL is given and ``DATABASE_URL`` is not set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    connect_args: dict = {}
    if url.startswith("postgresql"):
        timeout_ms = int(
            os.getenv("STACKIT_STATEMENT_TIMEOUT_MS", DEFAULT_STATEMENT_TIMEOUT_MS)
        )
        connect_args["options"] = f"-c statement_timeout={timeout_ms}"

    engine = create_engine(
        url,
        echo=False,        # Set True for SQL debugging
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,   # Reconnect stale connections automatically
        pool_timeout=10,      # Fail after 10s instead of hanging forever
        pool_recycle=3600,    # Recycle connections after 1 hour
        connect_args=connect_args,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`stackit.database.models`.

    Safe to call on every startup.  Afterwards, bootstraps the master admin
    account when ``MASTER_ADMIN_*`` env vars are present.

    .. note::

        In production the schema is managed by Alembic (``alembic upgrade
        head``).  ``create_all`` is retained as a safety net for dev/test
        environments where Alembic may not have run.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")

    from stackit.database.seed import seed_master_admin_from_env

    seed_master_admin_from_env(engine)


# ---------------------------------------------------------------------------
# Retrying unit of work — THE write path for every service
# ---------------------------------------------------------------------------
def _is_write_race(exc: IntegrityError) -> bool:
    """Unique-key collisions (two writers inserting the same ledger row or
    handle) are races a retry resolves; any other integrity failure is a bug."""
    if getattr(exc.orig, "pgcode", None) == PG_UNIQUE_VIOLATION:
        return True
    return "UNIQUE constraint failed" in str(exc.orig)


def run_transaction(
    engine: Engine,
    func: Callable[Concatenate[Session, P], T],
    *args: P.args,
    **kwargs: P.kwargs,
) -> T:
    """Run ``func(session, *args, **kwargs)`` as one all-or-nothing unit.

    *func* must not commit; it may raise any :class:`StackItError` to abort
    the unit with nothing written.  Whatever it returns should be plain
    data (dicts, ints) built inside the session.

    Raises
    ------
    ConflictError
        Optimistic-concurrency conflicts persisted past
        ``MAX_CONFLICT_ATTEMPTS``.
    UnavailableError
        The database stayed unreachable past ``MAX_UNAVAILABLE_ATTEMPTS``.
    """
    name = getattr(func, "__name__", repr(func))
    conflicts = 0
    outages = 0
    while True:
        try:
            with Session(engine, expire_on_commit=False) as session:
                result = func(session, *args, **kwargs)
                session.commit()
                return result
        except (StaleDataError, IntegrityError) as exc:
            if isinstance(exc, IntegrityError) and not _is_write_race(exc):
                raise
            conflicts += 1
            if conflicts >= MAX_CONFLICT_ATTEMPTS:
                logger.warning(
                    "%s gave up after %d write conflicts: %s",
                    name, conflicts, exc,
                )
                raise ConflictError(
                    "The item was modified concurrently, please retry"
                ) from exc
            logger.info("%s hit a write conflict, retrying (%d)", name, conflicts)
        except (OperationalError, InterfaceError) as exc:
            outages += 1
            if outages >= MAX_UNAVAILABLE_ATTEMPTS:
                logger.error("%s: database unavailable: %s", name, exc)
                raise UnavailableError("Database is unavailable") from exc
            delay = BACKOFF_BASE_SECONDS * (2 ** (outages - 1))
            logger.warning(
                "%s: database error, retrying in %.2fs (%d)", name, delay, outages
            )
            time.sleep(delay)


def read_only(
    engine: Engine,
    func: Callable[Concatenate[Session, P], T],
    *args: P.args,
    **kwargs: P.kwargs,
) -> T:
    """Run a read-only ``func(session, …)``; connectivity errors become
    :class:`UnavailableError`."""
    try:
        with Session(engine) as session:
            return func(session, *args, **kwargs)
    except (OperationalError, InterfaceError) as exc:
        logger.error("%s: database unavailable: %s", func.__name__, exc)
        raise UnavailableError("Database is unavailable") from exc


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database (or CPU-bound) function on a
    background thread so async routes never block the event loop::

        user = await run_db(account_service.authenticate, engine, email, password)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


# ---------------------------------------------------------------------------
# Atomic counters
# ---------------------------------------------------------------------------
def increment(session: Session, model: type[Base], pk: int, **deltas: int) -> int:
    """Add *deltas* to integer columns of one row with a single UPDATE.

    ``SET col = col + :delta`` is atomic in the database, so concurrent
    increments of the same counter never lose each other.  Returns the
    number of rows matched (0 if the row is gone).

    Usage::

        increment(session, User, author_id, reputation=10)
    """
    values = {name: getattr(model, name) + delta for name, delta in deltas.items() if delta}
    if not values:
        return 0
    result = session.execute(update(model).where(model.id == pk).values(**values))
    return result.rowcount
