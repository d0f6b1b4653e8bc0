"""
stackit.api.deps — FastAPI dependency injection
=================================================
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from stackit.config import StackItConfig, load_config
from stackit.database.engine import create_db_engine, run_db
from stackit.engine.permissions import Principal, restriction_reason
from stackit.services import account_service

_WEAK_SECRETS = frozenset({
    "stackit-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> StackItConfig:
    return load_config(os.getenv("STACKIT_CONFIG", "config.yaml"))


def create_access_token(user: dict, ttl_hours: int) -> str:
    """Issue a signed token for the public view of *user*."""
    payload = {
        "sub": str(user["id"]),
        "username": user["username"],
        "role": user["role"],
        "exp": datetime.now(UTC) + timedelta(hours=ttl_hours),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def _decode_subject(authorization: str | None) -> int:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        return int(payload["sub"])
    except (InvalidTokenError, KeyError, ValueError):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")


async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    engine: Engine = Depends(get_engine),
) -> Principal:
    """Validate the bearer token and resolve it to a live account.

    The account row is re-read on every request, so role changes take
    effect immediately.  Ban/suspension checks happen in the services.
    """
    user_id = _decode_subject(authorization)
    principal = await run_db(account_service.get_principal, engine, user_id)
    if principal is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Account no longer exists")
    return principal


async def get_optional_user(
    authorization: Annotated[str | None, Header()] = None,
    engine: Engine = Depends(get_engine),
) -> Principal | None:
    """Like :func:`get_current_user` but anonymous requests get ``None``."""
    if not authorization:
        return None
    try:
        return await get_current_user(authorization, engine)
    except HTTPException:
        return None


async def get_current_admin(
    principal: Principal = Depends(get_current_user),
) -> Principal:
    """Require an unrestricted admin or master account. Raises 403 otherwise."""
    if not principal.is_staff:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Admin access required")
    reason = restriction_reason(principal)
    if reason is not None:
        raise HTTPException(status.HTTP_403_FORBIDDEN, reason)
    return principal
