"""
stackit.api.rate_limit — Per-Account Mutation Budget
======================================================

Every write endpoint (posting, voting, accepting, uploading, moderating)
spends one unit of the caller's budget: by default 30 mutations per
60-second sliding window, tunable under ``rate_limit`` in ``config.yaml``.

The window lives in ``mutation_rate_limit_events`` so it survives restarts
and is shared between workers.  Spending is a single unit of work (prune,
count, insert) run through :func:`run_transaction` with the account row
locked, so parallel requests from one account cannot all slip under the
limit.  Over-budget requests get HTTP 429 with a ``Retry-After`` header.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import Engine, delete, func, select
from sqlalchemy.orm import Session

from stackit.api.deps import get_current_admin, get_current_user
from stackit.database.engine import run_transaction
from stackit.database.models import MutationRateLimitEvent, User
from stackit.engine.permissions import Principal, as_utc

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT = 30
DEFAULT_WINDOW_SECONDS = 60

# GET/HEAD/OPTIONS never spend budget
_MUTATION_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def _delete_events(session: Session, account_id: int | None) -> None:
    stmt = delete(MutationRateLimitEvent)
    if account_id is not None:
        stmt = stmt.where(MutationRateLimitEvent.actor_id == str(account_id))
    session.execute(stmt)


@dataclass(frozen=True, slots=True)
class Budget:
    """Outcome of one :meth:`MutationRateLimiter.spend` call."""

    allowed: bool
    remaining: int
    retry_after: int
    limit: int


class MutationRateLimiter:
    """Sliding-window mutation budget keyed by account id."""

    def __init__(
        self,
        max_requests: int = DEFAULT_RATE_LIMIT,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        *,
        engine: Engine,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.engine = engine

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.window_seconds)

    def _spend(self, session: Session, account_id: int, now: datetime) -> Budget:
        key = str(account_id)

        # Row lock on PostgreSQL; SQLite serialises on the DELETE's write lock.
        session.execute(select(User.id).where(User.id == account_id).with_for_update())
        session.execute(
            delete(MutationRateLimitEvent).where(
                MutationRateLimitEvent.actor_id == key,
                MutationRateLimitEvent.timestamp <= now - self.window,
            )
        )
        in_window = session.scalars(
            select(MutationRateLimitEvent.timestamp)
            .where(MutationRateLimitEvent.actor_id == key)
            .order_by(MutationRateLimitEvent.timestamp.asc())
        ).all()

        if len(in_window) >= self.max_requests:
            frees_at = as_utc(in_window[0]) + self.window
            return Budget(
                allowed=False,
                remaining=0,
                retry_after=max(1, math.ceil((frees_at - now).total_seconds())),
                limit=self.max_requests,
            )

        session.add(MutationRateLimitEvent(actor_id=key, timestamp=now))
        return Budget(
            allowed=True,
            remaining=self.max_requests - len(in_window) - 1,
            retry_after=0,
            limit=self.max_requests,
        )

    def spend(self, account_id: int, *, now: datetime | None = None) -> Budget:
        """Record one mutation for *account_id* if the window has room.

        A refused request records nothing, so hammering a closed window
        does not push the reopening further out.
        """
        return run_transaction(self.engine, self._spend, account_id, now or datetime.now(UTC))

    def in_window(self, account_id: int, *, now: datetime | None = None) -> int:
        now = now or datetime.now(UTC)
        with Session(self.engine) as session:
            return session.scalar(
                select(func.count())
                .select_from(MutationRateLimitEvent)
                .where(
                    MutationRateLimitEvent.actor_id == str(account_id),
                    MutationRateLimitEvent.timestamp > now - self.window,
                )
            ) or 0

    def reset(self, account_id: int | None = None) -> None:
        """Forget recorded mutations for one account, or for everyone."""
        run_transaction(self.engine, _delete_events, account_id)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
_limiter: MutationRateLimiter | None = None


def get_rate_limiter() -> MutationRateLimiter:
    if _limiter is None:
        raise RuntimeError("Rate limiter not configured — call configure_rate_limiter() first")
    return _limiter


def configure_rate_limiter(
    *,
    engine: Engine,
    max_requests: int = DEFAULT_RATE_LIMIT,
    window_seconds: int = DEFAULT_WINDOW_SECONDS,
) -> MutationRateLimiter:
    """Install the global limiter; called from the app lifespan."""
    global _limiter
    _limiter = MutationRateLimiter(
        max_requests=max_requests,
        window_seconds=window_seconds,
        engine=engine,
    )
    return _limiter


# ---------------------------------------------------------------------------
# FastAPI dependencies — chain after authentication
# ---------------------------------------------------------------------------
async def _enforce(request: Request, principal: Principal) -> Principal:
    if request.method not in _MUTATION_METHODS:
        return principal

    limiter = get_rate_limiter()
    budget = await asyncio.to_thread(limiter.spend, principal.id)
    if not budget.allowed:
        logger.warning(
            "Rate limit exceeded for user %s: %d mutations in %ds window",
            principal.id, limiter.max_requests, limiter.window_seconds,
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "rate_limit_exceeded",
                "message": (
                    f"Rate limit exceeded: {limiter.max_requests}"
                    f" mutations per {limiter.window_seconds} seconds."
                ),
                "retry_after": budget.retry_after,
            },
            headers={"Retry-After": str(budget.retry_after)},
        )
    return principal


async def rate_limited_user(
    request: Request,
    principal: Principal = Depends(get_current_user),
) -> Principal:
    """Authenticate and spend one unit of the caller's mutation budget."""
    return await _enforce(request, principal)


async def rate_limited_admin(
    request: Request,
    admin: Principal = Depends(get_current_admin),
) -> Principal:
    """Admin counterpart of :func:`rate_limited_user` for moderation routes."""
    return await _enforce(request, admin)
