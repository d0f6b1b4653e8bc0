"""
stackit.services.notification_service — Notification Sink
============================================================

Append-only inbox.  Producers (answer and acceptance services) call
:func:`notify` with their own session so the notification commits in the
same unit as the event that caused it.  ``is_read`` is the only field
that ever changes after insert.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, func, select, update
from sqlalchemy.orm import Session

from stackit.database.engine import read_only, run_transaction
from stackit.database.models import Notification, NotificationType
from stackit.errors import NotFoundError
from stackit.services.serializers import notification_dict

logger = logging.getLogger(__name__)


def notify(
    session: Session,
    *,
    recipient_id: int,
    type: NotificationType,
    title: str,
    message: str,
    sender_id: int | None = None,
    related_question_id: int | None = None,
    related_answer_id: int | None = None,
) -> Notification:
    """Queue a notification inside the caller's transaction."""
    note = Notification(
        recipient_id=recipient_id,
        sender_id=sender_id,
        type=type.value,
        title=title,
        message=message,
        related_question_id=related_question_id,
        related_answer_id=related_answer_id,
    )
    session.add(note)
    return note


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def _list(session: Session, user_id: int, unread_only: bool, limit: int) -> list[dict]:
    query = select(Notification).where(Notification.recipient_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    rows = session.scalars(
        query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
    ).all()
    return [notification_dict(n) for n in rows]


def list_notifications(
    engine: Engine, user_id: int, *, unread_only: bool = False, limit: int = 20
) -> list[dict]:
    return read_only(engine, _list, user_id, unread_only, limit)


def _unread_count(session: Session, user_id: int) -> int:
    return session.scalar(
        select(func.count()).select_from(Notification).where(
            Notification.recipient_id == user_id,
            Notification.is_read.is_(False),
        )
    ) or 0


def unread_count(engine: Engine, user_id: int) -> int:
    return read_only(engine, _unread_count, user_id)


# ---------------------------------------------------------------------------
# Read-state mutations
# ---------------------------------------------------------------------------
def _mark_read(session: Session, user_id: int, notification_id: int) -> dict:
    note = session.get(Notification, notification_id)
    # Someone else's notification looks exactly like a missing one.
    if note is None or note.recipient_id != user_id:
        raise NotFoundError("Notification not found")
    note.is_read = True
    return notification_dict(note)


def mark_read(engine: Engine, user_id: int, notification_id: int) -> dict:
    return run_transaction(engine, _mark_read, user_id, notification_id)


def _mark_all_read(session: Session, user_id: int) -> int:
    result = session.execute(
        update(Notification)
        .where(Notification.recipient_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    return result.rowcount or 0


def mark_all_read(engine: Engine, user_id: int) -> int:
    """Mark every unread notification read; returns how many changed."""
    changed = run_transaction(engine, _mark_all_read, user_id)
    logger.debug("Marked %d notifications read for user %s", changed, user_id)
    return changed
