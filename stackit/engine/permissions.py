"""Capability checks: (principal, action, target owner) → allow/deny.

Role hierarchy: master > admin > user.  Restricted principals (banned, or
suspended until a moment still in the future) are denied every action.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import UTC, datetime

from stackit.database.models import Role, User
from stackit.errors import ForbiddenError

_ROLE_LEVEL = {Role.USER: 0, Role.ADMIN: 1, Role.MASTER: 2}


class Action(enum.StrEnum):
    CREATE_CONTENT = "create_content"
    VOTE = "vote"
    UPLOAD = "upload"
    EDIT_CONTENT = "edit_content"
    DELETE_CONTENT = "delete_content"
    ACCEPT_ANSWER = "accept_answer"
    MODERATE = "moderate"


@dataclass(frozen=True, slots=True)
class Principal:
    """The acting account as the permission check sees it."""

    id: int
    role: Role
    is_banned: bool = False
    suspended_until: datetime | None = None

    @classmethod
    def from_user(cls, user: User) -> Principal:
        return cls(
            id=user.id,
            role=Role(user.role),
            is_banned=user.is_banned,
            suspended_until=user.suspended_until,
        )

    @property
    def is_staff(self) -> bool:
        return _ROLE_LEVEL[self.role] >= _ROLE_LEVEL[Role.ADMIN]


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def is_suspended(suspended_until: datetime | None, now: datetime | None = None) -> bool:
    until = as_utc(suspended_until)
    if until is None:
        return False
    return (now or datetime.now(UTC)) < until


def restriction_reason(principal: Principal, now: datetime | None = None) -> str | None:
    """Why *principal* may not act right now, or ``None`` if it may."""
    if principal.is_banned:
        return "Account is banned"
    if is_suspended(principal.suspended_until, now):
        return "Account is suspended"
    return None


def check_permission(
    principal: Principal,
    action: Action,
    target_owner_id: int | None = None,
    *,
    now: datetime | None = None,
) -> bool:
    """Return ``True`` if *principal* may perform *action*.

    Parameters
    ----------
    principal:
        The acting account.
    action:
        What it wants to do.
    target_owner_id:
        Author of the targeted content, for ownership-scoped actions.
    """
    if restriction_reason(principal, now) is not None:
        return False

    if action in (Action.CREATE_CONTENT, Action.VOTE, Action.UPLOAD):
        return True
    if action in (Action.EDIT_CONTENT, Action.DELETE_CONTENT):
        return principal.is_staff or principal.id == target_owner_id
    if action is Action.ACCEPT_ANSWER:
        return principal.id == target_owner_id
    if action is Action.MODERATE:
        return principal.is_staff
    return False


def require_permission(
    principal: Principal,
    action: Action,
    target_owner_id: int | None = None,
    *,
    now: datetime | None = None,
) -> None:
    """Raise :class:`ForbiddenError` unless *principal* may perform *action*.

    Usage in a service::

        require_permission(Principal.from_user(actor), Action.DELETE_CONTENT,
                           question.author_id)
    """
    reason = restriction_reason(principal, now)
    if reason is not None:
        raise ForbiddenError(reason)
    if not check_permission(principal, action, target_owner_id, now=now):
        raise ForbiddenError(f"Not allowed to {action.value.replace('_', ' ')}")
