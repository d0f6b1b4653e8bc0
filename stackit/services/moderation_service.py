"""
stackit.services.moderation_service — Moderation Engine
=========================================================

Account restrictions (ban / suspend and their reversals) and content
deletion.  Every staff mutation follows the same pattern:

  1. Begin transaction
  2. Read "before" snapshot
  3. Apply change
  4. Write admin_log with before/after JSONB
  5. Commit

Authors deleting their own content skip the audit row; everything else
(including an admin deleting someone else's answer) is logged.

The master account can be neither banned nor suspended, and nobody can
ban or suspend themselves.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from datetime import UTC, datetime, timedelta

from sqlalchemy import Engine, func, or_, select
from sqlalchemy.orm import Session, selectinload

from stackit.constants import DEFAULT_SUSPENSION_REASON, SUSPEND_MAX_DAYS, SUSPEND_MIN_DAYS
from stackit.database.engine import increment, read_only, run_transaction
from stackit.database.models import (
    AdminActionType,
    AdminLog,
    Answer,
    NotificationType,
    Question,
    Role,
    User,
)
from stackit.engine.permissions import Action, Principal, require_permission
from stackit.errors import ForbiddenError, NotFoundError, ValidationError
from stackit.services.account_service import get_user_or_404, load_actor
from stackit.services.notification_service import notify
from stackit.services.serializers import question_dict, snapshot, user_dict

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Audit helper
# ---------------------------------------------------------------------------
def _log_admin_action(
    session: Session,
    *,
    actor_id: int,
    action_type: AdminActionType,
    target_table: str,
    target_id: int,
    before: dict | None,
    after: dict | None,
    reason: str | None = None,
) -> None:
    """Insert a row into admin_log within the current transaction."""
    session.add(AdminLog(
        actor_id=actor_id,
        action_type=action_type.value,
        target_table=target_table,
        target_id=str(target_id),
        before_snapshot=before,
        after_snapshot=after,
        reason=reason,
    ))


def _load_moderator(session: Session, actor_id: int) -> User:
    actor = load_actor(session, actor_id)
    require_permission(Principal.from_user(actor), Action.MODERATE)
    return actor


def _load_restrictable_target(
    session: Session, actor: User, target_id: int, verb: str, past: str
) -> User:
    target = get_user_or_404(session, target_id)
    if target.role == Role.MASTER:
        raise ForbiddenError(f"The master admin cannot be {past}")
    if target.id == actor.id:
        raise ForbiddenError(f"You cannot {verb} yourself")
    return target


# ---------------------------------------------------------------------------
# Ban / unban
# ---------------------------------------------------------------------------
def _set_banned(session: Session, actor_id: int, target_id: int, banned: bool) -> dict:
    actor = _load_moderator(session, actor_id)
    if banned:
        target = _load_restrictable_target(session, actor, target_id, "ban", "banned")
    else:
        target = get_user_or_404(session, target_id)

    before = snapshot(target)
    target.is_banned = banned
    session.flush()
    _log_admin_action(
        session,
        actor_id=actor.id,
        action_type=AdminActionType.BAN if banned else AdminActionType.UNBAN,
        target_table="users",
        target_id=target.id,
        before=before,
        after=snapshot(target),
    )
    return user_dict(target, private=True)


def ban_user(engine: Engine, actor_id: int, target_id: int) -> dict:
    result = run_transaction(engine, _set_banned, actor_id, target_id, True)
    logger.info("User %s banned by %s", target_id, actor_id)
    return result


def unban_user(engine: Engine, actor_id: int, target_id: int) -> dict:
    result = run_transaction(engine, _set_banned, actor_id, target_id, False)
    logger.info("User %s unbanned by %s", target_id, actor_id)
    return result


# ---------------------------------------------------------------------------
# Suspend / unsuspend
# ---------------------------------------------------------------------------
def _suspend(
    session: Session,
    actor_id: int,
    target_id: int,
    days: int,
    reason: str | None,
    now: datetime,
) -> dict:
    actor = _load_moderator(session, actor_id)
    target = _load_restrictable_target(session, actor, target_id, "suspend", "suspended")

    before = snapshot(target)
    target.suspended_until = now + timedelta(days=days)
    target.suspension_reason = reason or DEFAULT_SUSPENSION_REASON
    session.flush()
    _log_admin_action(
        session,
        actor_id=actor.id,
        action_type=AdminActionType.SUSPEND,
        target_table="users",
        target_id=target.id,
        before=before,
        after=snapshot(target),
        reason=target.suspension_reason,
    )
    notify(
        session,
        recipient_id=target.id,
        sender_id=actor.id,
        type=NotificationType.ADMIN,
        title="Account Suspended",
        message=f"Your account is suspended for {days} day(s): {target.suspension_reason}",
    )
    return user_dict(target, private=True)


def suspend_user(
    engine: Engine,
    actor_id: int,
    target_id: int,
    days: int,
    reason: str | None = None,
    *,
    now: datetime | None = None,
) -> dict:
    """Suspend *target_id* for *days* (1–365) starting at *now*."""
    if not SUSPEND_MIN_DAYS <= days <= SUSPEND_MAX_DAYS:
        raise ValidationError(
            f"Suspension must be between {SUSPEND_MIN_DAYS} and {SUSPEND_MAX_DAYS} days"
        )
    now = now or datetime.now(UTC)
    result = run_transaction(engine, _suspend, actor_id, target_id, days, reason, now)
    logger.info("User %s suspended for %d days by %s", target_id, days, actor_id)
    return result


def _unsuspend(session: Session, actor_id: int, target_id: int) -> dict:
    actor = _load_moderator(session, actor_id)
    target = get_user_or_404(session, target_id)

    before = snapshot(target)
    target.suspended_until = None
    target.suspension_reason = None
    session.flush()
    _log_admin_action(
        session,
        actor_id=actor.id,
        action_type=AdminActionType.UNSUSPEND,
        target_table="users",
        target_id=target.id,
        before=before,
        after=snapshot(target),
    )
    return user_dict(target, private=True)


def unsuspend_user(engine: Engine, actor_id: int, target_id: int) -> dict:
    result = run_transaction(engine, _unsuspend, actor_id, target_id)
    logger.info("User %s unsuspended by %s", target_id, actor_id)
    return result


# ---------------------------------------------------------------------------
# Content deletion
# ---------------------------------------------------------------------------
def _delete_question(session: Session, actor_id: int, question_id: int) -> dict:
    actor = load_actor(session, actor_id)
    question = session.get(Question, question_id)
    if question is None:
        raise NotFoundError("Question not found")
    require_permission(Principal.from_user(actor), Action.DELETE_CONTENT, question.author_id)

    given: Counter[int] = Counter()
    accepted: Counter[int] = Counter()
    for answer in question.answers:
        given[answer.author_id] += 1
        if answer.is_accepted:
            accepted[answer.author_id] += 1

    before = snapshot(question) if actor.id != question.author_id else None
    author_id = question.author_id
    session.delete(question)
    session.flush()

    for user_id in given:
        increment(
            session, User, user_id,
            answers_given=-given[user_id],
            answers_accepted=-accepted[user_id],
        )
    increment(session, User, author_id, questions_asked=-1)

    if before is not None:
        _log_admin_action(
            session,
            actor_id=actor.id,
            action_type=AdminActionType.DELETE,
            target_table="questions",
            target_id=question_id,
            before=before,
            after=None,
        )
    return {"message": "Question deleted successfully", "deleted_answers": sum(given.values())}


def delete_question(engine: Engine, actor_id: int, question_id: int) -> dict:
    """Delete a question with all its answers, votes and tags.

    Allowed for the author and for staff.  Counters of every affected
    author are decremented in the same transaction.
    """
    result = run_transaction(engine, _delete_question, actor_id, question_id)
    logger.info(
        "Question %s deleted by user %s (%d answers)",
        question_id, actor_id, result["deleted_answers"],
    )
    return result


def _delete_answer(session: Session, actor_id: int, answer_id: int) -> dict:
    actor = load_actor(session, actor_id)
    answer = session.get(Answer, answer_id)
    if answer is None:
        raise NotFoundError("Answer not found")
    require_permission(Principal.from_user(actor), Action.DELETE_CONTENT, answer.author_id)

    before = snapshot(answer) if actor.id != answer.author_id else None
    question_id, author_id, was_accepted = answer.question_id, answer.author_id, answer.is_accepted
    session.delete(answer)
    session.flush()

    increment(session, Question, question_id, answer_count=-1)
    increment(
        session, User, author_id,
        answers_given=-1,
        answers_accepted=-1 if was_accepted else 0,
    )

    if before is not None:
        _log_admin_action(
            session,
            actor_id=actor.id,
            action_type=AdminActionType.DELETE,
            target_table="answers",
            target_id=answer_id,
            before=before,
            after=None,
        )
    return {"message": "Answer deleted successfully"}


def delete_answer(engine: Engine, actor_id: int, answer_id: int) -> dict:
    """Delete one answer; allowed for its author and for staff.

    Deleting the accepted answer does not reopen the question: acceptance
    stays final.
    """
    result = run_transaction(engine, _delete_answer, actor_id, answer_id)
    logger.info("Answer %s deleted by user %s", answer_id, actor_id)
    return result


# ---------------------------------------------------------------------------
# Admin panel reads
# ---------------------------------------------------------------------------
def _admin_stats(session: Session, now: datetime) -> dict:
    def count(model, *criteria) -> int:
        return session.scalar(select(func.count()).select_from(model).where(*criteria)) or 0

    return {
        "totalUsers": count(User),
        "totalQuestions": count(Question),
        "totalAnswers": count(Answer),
        "bannedUsers": count(User, User.is_banned.is_(True)),
        "suspendedUsers": count(User, User.suspended_until > now),
    }


def admin_stats(engine: Engine, *, now: datetime | None = None) -> dict:
    return read_only(engine, _admin_stats, now or datetime.now(UTC))


def _paginate(total: int, page: int, page_size: int) -> dict:
    return {
        "total": total,
        "page": page,
        "page_size": page_size,
        "pages": math.ceil(total / page_size) if total else 0,
    }


def _list_users(session: Session, page: int, page_size: int, search: str | None) -> dict:
    query = select(User)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(or_(User.username.ilike(pattern), User.email.ilike(pattern)))
    total = session.scalar(select(func.count()).select_from(query.subquery())) or 0
    rows = session.scalars(
        query.order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()
    return {"users": [user_dict(u, private=True) for u in rows], **_paginate(total, page, page_size)}


def list_users(
    engine: Engine, *, page: int = 1, page_size: int = 25, search: str | None = None
) -> dict:
    return read_only(engine, _list_users, page, page_size, search)


def _list_all_questions(session: Session, page: int, page_size: int) -> dict:
    total = session.scalar(select(func.count()).select_from(Question)) or 0
    rows = session.scalars(
        select(Question)
        .options(selectinload(Question.author), selectinload(Question.tags))
        .order_by(Question.created_at.desc(), Question.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()
    return {"questions": [question_dict(q) for q in rows], **_paginate(total, page, page_size)}


def list_all_questions(engine: Engine, *, page: int = 1, page_size: int = 25) -> dict:
    return read_only(engine, _list_all_questions, page, page_size)


def _get_audit_log(session: Session, page: int, page_size: int) -> dict:
    total = session.scalar(select(func.count()).select_from(AdminLog)) or 0
    rows = session.scalars(
        select(AdminLog)
        .order_by(AdminLog.timestamp.desc(), AdminLog.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()
    return {
        "entries": [
            {
                "id": r.id,
                "actor_id": r.actor_id,
                "action_type": r.action_type,
                "target_table": r.target_table,
                "target_id": r.target_id,
                "before_snapshot": r.before_snapshot,
                "after_snapshot": r.after_snapshot,
                "reason": r.reason,
                "timestamp": r.timestamp.isoformat() if r.timestamp else None,
            }
            for r in rows
        ],
        **_paginate(total, page, page_size),
    }


def get_audit_log(engine: Engine, *, page: int = 1, page_size: int = 25) -> dict:
    """Paginated admin audit log, newest first."""
    return read_only(engine, _get_audit_log, page, page_size)
