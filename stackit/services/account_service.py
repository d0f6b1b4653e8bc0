"""
stackit.services.account_service — Accounts & Authentication
==============================================================

Registration, credential checks and profile reads.  Every other service
resolves its acting account through :func:`load_actor`, which re-reads
the row inside the caller's transaction so a ban or suspension applied a
moment ago is honoured on the very next mutation.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime

import bcrypt
from sqlalchemy import Engine, or_, select
from sqlalchemy.orm import Session

from stackit.database.engine import read_only, run_transaction
from stackit.database.models import User
from stackit.engine.permissions import Principal, restriction_reason
from stackit.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
)
from stackit.schemas import RegisterRequest
from stackit.services.serializers import user_dict

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = int(os.getenv("STACKIT_BCRYPT_ROUNDS", "12"))
_BCRYPT_MAX_BYTES = 72


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------
def hash_password(password: str) -> str:
    raw = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    raw = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(raw, password_hash.encode("ascii"))
    except ValueError:
        # Malformed stored hash
        return False


# ---------------------------------------------------------------------------
# Actor resolution (used by every mutating service)
# ---------------------------------------------------------------------------
def load_actor(session: Session, actor_id: int | None, now: datetime | None = None) -> User:
    """Fetch the acting account and refuse restricted ones.

    Raises
    ------
    UnauthenticatedError
        No actor, or the account no longer exists.
    ForbiddenError
        The account is banned or currently suspended.
    """
    if actor_id is None:
        raise UnauthenticatedError("Authentication required")
    user = session.get(User, actor_id)
    if user is None:
        raise UnauthenticatedError("Account not found")
    reason = restriction_reason(Principal.from_user(user), now)
    if reason is not None:
        raise ForbiddenError(reason)
    return user


def get_user_or_404(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


# ---------------------------------------------------------------------------
# Register / authenticate
# ---------------------------------------------------------------------------
def _register(session: Session, body: RegisterRequest, password_hash: str) -> dict:
    existing = session.scalars(
        select(User).where(or_(User.email == body.email, User.username == body.username))
    ).all()
    for user in existing:
        if user.email == body.email:
            raise ConflictError("Email already registered")
        if user.username == body.username:
            raise ConflictError("Username already taken")

    user = User(username=body.username, email=body.email, password_hash=password_hash)
    session.add(user)
    session.flush()
    return user_dict(user, private=True)


def register(engine: Engine, body: RegisterRequest) -> dict:
    """Create a member account.  Duplicate handle or email → ``Conflict``."""
    # Hash outside the transaction; bcrypt is deliberately slow.
    password_hash = hash_password(body.password)
    result = run_transaction(engine, _register, body, password_hash)
    logger.info("Registered account %s (%s)", result["id"], result["username"])
    return result


def _authenticate(session: Session, email: str, password: str, now: datetime | None) -> dict:
    user = session.scalar(select(User).where(User.email == email.strip().lower()))
    if user is None or not verify_password(password, user.password_hash):
        raise UnauthenticatedError("Invalid email or password")
    reason = restriction_reason(Principal.from_user(user), now)
    if reason is not None:
        raise ForbiddenError(reason)
    return user_dict(user, private=True)


def authenticate(
    engine: Engine, email: str, password: str, *, now: datetime | None = None
) -> dict:
    """Check credentials and return the private account view.

    Banned accounts and accounts whose suspension ends after *now* are
    refused with ``Forbidden`` even when the password is right.
    """
    return read_only(engine, _authenticate, email, password, now)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def _get_profile(session: Session, user_id: int, private: bool) -> dict:
    return user_dict(get_user_or_404(session, user_id), private=private)


def get_profile(engine: Engine, user_id: int, *, private: bool = False) -> dict:
    return read_only(engine, _get_profile, user_id, private)


def _get_principal(session: Session, user_id: int) -> Principal | None:
    user = session.get(User, user_id)
    return Principal.from_user(user) if user else None


def get_principal(engine: Engine, user_id: int) -> Principal | None:
    """Resolve a token subject to a :class:`Principal` (``None`` if gone)."""
    return read_only(engine, _get_principal, user_id)
