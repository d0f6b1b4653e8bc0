"""Posting answers.

Posting bumps the question's ``answer_count`` and the author's
``answers_given``, grants the answer bonus (not for answering your own
question) and drops a notification in the question author's inbox.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine
from sqlalchemy.orm import Session

from stackit.config import ReputationRules
from stackit.database.engine import increment, run_transaction
from stackit.database.models import Answer, NotificationType, Question, User
from stackit.engine.permissions import Action, Principal, require_permission
from stackit.errors import NotFoundError
from stackit.schemas import AnswerCreate
from stackit.services.account_service import load_actor
from stackit.services.notification_service import notify
from stackit.services.serializers import answer_dict

logger = logging.getLogger(__name__)


def _create_answer(
    session: Session, actor_id: int, body: AnswerCreate, rules: ReputationRules
) -> dict:
    actor = load_actor(session, actor_id)
    require_permission(Principal.from_user(actor), Action.CREATE_CONTENT)
    question = session.get(Question, body.question_id)
    if question is None:
        raise NotFoundError("Question not found")

    answer = Answer(
        question_id=question.id,
        author=actor,
        content=body.content,
        images=list(body.images),
    )
    session.add(answer)
    session.flush()

    own_question = question.author_id == actor.id
    increment(session, Question, question.id, answer_count=1)
    increment(
        session, User, actor.id,
        answers_given=1,
        reputation=0 if own_question else rules.answer_posted,
    )

    if not own_question:
        notify(
            session,
            recipient_id=question.author_id,
            sender_id=actor.id,
            type=NotificationType.ANSWER,
            title="New Answer",
            message=f'{actor.username} answered your question: "{question.title}"',
            related_question_id=question.id,
            related_answer_id=answer.id,
        )
    return answer_dict(answer)


def create_answer(
    engine: Engine,
    actor_id: int,
    body: AnswerCreate,
    rules: ReputationRules | None = None,
) -> dict:
    result = run_transaction(engine, _create_answer, actor_id, body, rules or ReputationRules())
    logger.info(
        "Answer %s posted on question %s by user %s",
        result["id"], result["question_id"], actor_id,
    )
    return result
