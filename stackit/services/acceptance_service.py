"""
stackit.services.acceptance_service — Acceptance Engine
=========================================================

Only the question's author may accept an answer, and a question accepts
at most one answer over its lifetime.  The one-time flip is a guarded
``UPDATE … WHERE has_accepted_answer = false``: of two concurrent accepts
exactly one matches a row, the other gets ``Conflict`` and writes
nothing.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, update
from sqlalchemy.orm import Session

from stackit.config import ReputationRules
from stackit.database.engine import increment, run_transaction
from stackit.database.models import Answer, NotificationType, Question, User
from stackit.engine.permissions import Action, Principal, require_permission
from stackit.errors import ConflictError, NotFoundError
from stackit.services.account_service import load_actor
from stackit.services.notification_service import notify
from stackit.services.serializers import answer_dict, question_dict

logger = logging.getLogger(__name__)

_ALREADY_ACCEPTED = "This question already has an accepted answer"


def _accept_answer(
    session: Session, actor_id: int, answer_id: int, rules: ReputationRules
) -> dict:
    actor = load_actor(session, actor_id)
    answer = session.get(Answer, answer_id)
    if answer is None:
        raise NotFoundError("Answer not found")
    question = session.get(Question, answer.question_id)
    if question is None:
        raise NotFoundError("Question not found")

    require_permission(Principal.from_user(actor), Action.ACCEPT_ANSWER, question.author_id)
    if question.has_accepted_answer:
        raise ConflictError(_ALREADY_ACCEPTED)

    flipped = session.execute(
        update(Question)
        .where(Question.id == question.id, Question.has_accepted_answer.is_(False))
        .values(
            has_accepted_answer=True,
            accepted_answer_id=answer.id,
            version=Question.version + 1,
        )
    )
    if flipped.rowcount == 0:
        raise ConflictError(_ALREADY_ACCEPTED)

    answer.is_accepted = True
    session.flush()

    self_accept = answer.author_id == actor.id
    increment(
        session, User, answer.author_id,
        answers_accepted=1,
        reputation=0 if self_accept else rules.answer_accepted,
    )

    if not self_accept:
        notify(
            session,
            recipient_id=answer.author_id,
            sender_id=actor.id,
            type=NotificationType.ACCEPT,
            title="Answer Accepted",
            message=f'{actor.username} accepted your answer to "{question.title}"',
            related_question_id=question.id,
            related_answer_id=answer.id,
        )

    return {
        "message": "Answer accepted successfully",
        "question": question_dict(question),
        "answer": answer_dict(answer),
    }


def accept_answer(
    engine: Engine,
    actor_id: int | None,
    answer_id: int,
    rules: ReputationRules | None = None,
) -> dict:
    """Mark *answer_id* as the accepted answer of its question.

    Raises
    ------
    UnauthenticatedError
        No actor.
    NotFoundError
        The answer (or its question) does not exist.
    ForbiddenError
        The actor is not the question's author, or is restricted.
    ConflictError
        The question already has an accepted answer.
    """
    result = run_transaction(engine, _accept_answer, actor_id, answer_id, rules or ReputationRules())
    logger.info(
        "Answer %s accepted on question %s by user %s",
        answer_id, result["question"]["id"], actor_id,
    )
    return result
