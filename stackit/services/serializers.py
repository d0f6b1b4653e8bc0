"""
stackit.services.serializers — ORM → JSON-safe dicts
======================================================

Services build their return values with these helpers *inside* the
session, so routes never touch lazy-loaded attributes after commit.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from stackit.database.models import (
    Answer,
    ItemType,
    Notification,
    Question,
    User,
    Vote,
    VoteDirection,
)
from stackit.engine.permissions import as_utc


def _iso(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


def author_dict(u: User) -> dict:
    return {"id": u.id, "username": u.username, "reputation": u.reputation}


def user_dict(u: User, *, private: bool = False) -> dict:
    data = {
        "id": u.id,
        "username": u.username,
        "role": u.role,
        "bio": u.bio,
        "reputation": u.reputation,
        "questions_asked": u.questions_asked,
        "answers_given": u.answers_given,
        "answers_accepted": u.answers_accepted,
        "created_at": _iso(u.created_at),
    }
    if private:
        data.update({
            "email": u.email,
            "is_banned": u.is_banned,
            "suspended_until": _iso(u.suspended_until),
            "suspension_reason": u.suspension_reason,
        })
    return data


def question_dict(q: Question) -> dict:
    return {
        "id": q.id,
        "title": q.title,
        "content": q.content,
        "short_description": q.short_description,
        "tags": q.tag_names,
        "images": list(q.images or []),
        "author": author_dict(q.author),
        "views": q.views,
        "answer_count": q.answer_count,
        "upvote_count": q.upvote_count,
        "downvote_count": q.downvote_count,
        "vote_count": q.upvote_count - q.downvote_count,
        "has_accepted_answer": q.has_accepted_answer,
        "accepted_answer_id": q.accepted_answer_id,
        "created_at": _iso(q.created_at),
        "updated_at": _iso(q.updated_at),
    }


def answer_dict(a: Answer) -> dict:
    return {
        "id": a.id,
        "question_id": a.question_id,
        "content": a.content,
        "images": list(a.images or []),
        "author": author_dict(a.author),
        "upvote_count": a.upvote_count,
        "downvote_count": a.downvote_count,
        "vote_count": a.upvote_count - a.downvote_count,
        "is_accepted": a.is_accepted,
        "created_at": _iso(a.created_at),
        "updated_at": _iso(a.updated_at),
    }


def notification_dict(n: Notification) -> dict:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "sender_id": n.sender_id,
        "related_question_id": n.related_question_id,
        "related_answer_id": n.related_answer_id,
        "is_read": n.is_read,
        "created_at": _iso(n.created_at),
    }


def ledger_dict(
    session: Session,
    item_type: ItemType,
    item: Question | Answer,
    *,
    viewer_id: int | None = None,
) -> dict[str, Any]:
    """The item's vote ledger: both voter sets plus the author."""
    target = Vote.question_id if item_type is ItemType.QUESTION else Vote.answer_id
    rows = session.execute(
        select(Vote.user_id, Vote.direction).where(target == item.id).order_by(Vote.id)
    ).all()
    upvoted_by = [r.user_id for r in rows if r.direction == VoteDirection.UP]
    downvoted_by = [r.user_id for r in rows if r.direction == VoteDirection.DOWN]

    my_vote = None
    if viewer_id is not None:
        my_vote = next((r.direction for r in rows if r.user_id == viewer_id), None)

    return {
        "item_type": item_type.value,
        "item_id": item.id,
        "upvoted_by": upvoted_by,
        "downvoted_by": downvoted_by,
        "upvote_count": len(upvoted_by),
        "downvote_count": len(downvoted_by),
        "vote_count": len(upvoted_by) - len(downvoted_by),
        "my_vote": my_vote,
        "author": author_dict(item.author),
    }


def snapshot(obj: Any, *, exclude: tuple[str, ...] = ("password_hash",)) -> dict | None:
    """Convert a model instance to a JSON-serializable dict for admin_log."""
    if obj is None:
        return None
    result = {}
    for col in obj.__table__.columns:
        if col.name in exclude:
            continue
        val = getattr(obj, col.key, None)
        if isinstance(val, datetime):
            val = _iso(val)
        result[col.name] = val
    return result
