"""
stackit.services.question_service — Questions, Listing & Tags
===============================================================

Creation and editing of questions, the paginated question feed, the
single-question view (which counts a view as a side effect) and tag
statistics.  Deletion lives in :mod:`stackit.services.moderation_service`
with the rest of the ownership-or-staff mutations.
"""

from __future__ import annotations

import enum
import logging
import math

from sqlalchemy import Engine, func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from stackit.database.engine import increment, read_only, run_transaction
from stackit.database.models import Answer, Question, QuestionTag, User, Vote
from stackit.constants import tag_description
from stackit.engine.permissions import Action, Principal, require_permission
from stackit.errors import NotFoundError, ValidationError
from stackit.schemas import QuestionCreate, QuestionUpdate
from stackit.services.account_service import load_actor
from stackit.services.serializers import answer_dict, question_dict

logger = logging.getLogger(__name__)


class QuestionFilter(enum.StrEnum):
    ALL = "all"
    UNANSWERED = "unanswered"
    ACCEPTED = "accepted"
    UPVOTED = "upvoted"


class QuestionSort(enum.StrEnum):
    NEWEST = "newest"
    POPULAR = "popular"
    VOTES = "votes"
    VIEWS = "views"


_SORT_COLUMNS = {
    QuestionSort.NEWEST: (Question.created_at.desc(), Question.id.desc()),
    QuestionSort.POPULAR: (Question.views.desc(), Question.answer_count.desc(), Question.id.desc()),
    QuestionSort.VOTES: (
        (Question.upvote_count - Question.downvote_count).desc(),
        Question.id.desc(),
    ),
    QuestionSort.VIEWS: (Question.views.desc(), Question.id.desc()),
}


def _get_question_or_404(session: Session, question_id: int) -> Question:
    question = session.get(Question, question_id)
    if question is None:
        raise NotFoundError("Question not found")
    return question


# ---------------------------------------------------------------------------
# Create / update
# ---------------------------------------------------------------------------
def _create_question(session: Session, actor_id: int, body: QuestionCreate) -> dict:
    actor = load_actor(session, actor_id)
    question = Question(
        author=actor,
        title=body.title,
        content=body.content,
        short_description=body.short_description,
        images=list(body.images),
        tags=[QuestionTag(name=name, position=i) for i, name in enumerate(body.tags)],
    )
    session.add(question)
    session.flush()
    increment(session, User, actor.id, questions_asked=1)
    return question_dict(question)


def create_question(engine: Engine, actor_id: int, body: QuestionCreate) -> dict:
    """Post a question.  Banned or suspended authors get ``Forbidden``."""
    result = run_transaction(engine, _create_question, actor_id, body)
    logger.info("Question %s created by user %s", result["id"], actor_id)
    return result


def _update_question(
    session: Session, actor_id: int, question_id: int, body: QuestionUpdate
) -> dict:
    actor = load_actor(session, actor_id)
    question = _get_question_or_404(session, question_id)
    require_permission(Principal.from_user(actor), Action.EDIT_CONTENT, question.author_id)

    if body.title is not None:
        question.title = body.title
    if body.content is not None:
        question.content = body.content
    if body.short_description is not None:
        question.short_description = body.short_description
    if body.tags is not None:
        current = {t.name: t for t in question.tags}
        question.tags = [
            current.get(name) or QuestionTag(name=name) for name in body.tags
        ]
        for position, tag in enumerate(question.tags):
            tag.position = position
    session.flush()
    return question_dict(question)


def update_question(
    engine: Engine, actor_id: int, question_id: int, body: QuestionUpdate
) -> dict:
    """Edit a question; allowed for its author and for staff."""
    return run_transaction(engine, _update_question, actor_id, question_id, body)


# ---------------------------------------------------------------------------
# Single-question view
# ---------------------------------------------------------------------------
def _get_question(session: Session, question_id: int, viewer_id: int | None) -> dict:
    counted = session.execute(
        update(Question)
        .where(Question.id == question_id)
        .values(views=Question.views + 1)
        .execution_options(synchronize_session=False)
    )
    if counted.rowcount == 0:
        raise NotFoundError("Question not found")

    question = session.scalar(
        select(Question)
        .where(Question.id == question_id)
        .options(selectinload(Question.author), selectinload(Question.tags))
    )
    answers = session.scalars(
        select(Answer)
        .where(Answer.question_id == question_id)
        .options(selectinload(Answer.author))
        .order_by(
            Answer.is_accepted.desc(),
            Answer.upvote_count.desc(),
            Answer.created_at.asc(),
            Answer.id.asc(),
        )
    ).all()

    result = {
        "question": question_dict(question),
        "answers": [answer_dict(a) for a in answers],
    }
    if viewer_id is not None:
        result["my_votes"] = _viewer_votes(session, viewer_id, question_id, answers)
    return result


def _viewer_votes(
    session: Session, viewer_id: int, question_id: int, answers: list[Answer]
) -> dict:
    answer_ids = [a.id for a in answers]
    conditions = [Vote.question_id == question_id]
    if answer_ids:
        conditions.append(Vote.answer_id.in_(answer_ids))
    rows = session.execute(
        select(Vote.question_id, Vote.answer_id, Vote.direction).where(
            Vote.user_id == viewer_id, or_(*conditions)
        )
    ).all()
    mine: dict = {"question": None, "answers": {}}
    for row in rows:
        if row.question_id is not None:
            mine["question"] = row.direction
        else:
            mine["answers"][str(row.answer_id)] = row.direction
    return mine


def get_question(engine: Engine, question_id: int, *, viewer_id: int | None = None) -> dict:
    """Return a question with its answers and count one view.

    Answers come accepted first, then by upvotes, then oldest first.
    """
    return run_transaction(engine, _get_question, question_id, viewer_id)


# ---------------------------------------------------------------------------
# Feed
# ---------------------------------------------------------------------------
def _list_questions(
    session: Session,
    tag: str | None,
    search: str | None,
    filter_: QuestionFilter,
    sort: QuestionSort,
    page: int,
    limit: int,
) -> dict:
    query = select(Question)
    if tag:
        query = query.where(Question.tags.any(QuestionTag.name == tag.strip().lower()))
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(or_(Question.title.ilike(pattern), Question.content.ilike(pattern)))

    if filter_ is QuestionFilter.UNANSWERED:
        query = query.where(Question.answer_count == 0)
    elif filter_ is QuestionFilter.ACCEPTED:
        query = query.where(Question.has_accepted_answer.is_(True))
    elif filter_ is QuestionFilter.UPVOTED:
        query = query.where(Question.upvote_count > 0)

    total = session.scalar(select(func.count()).select_from(query.subquery())) or 0
    rows = session.scalars(
        query.options(selectinload(Question.author), selectinload(Question.tags))
        .order_by(*_SORT_COLUMNS[sort])
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return {
        "questions": [question_dict(q) for q in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        },
    }


def list_questions(
    engine: Engine,
    *,
    tag: str | None = None,
    search: str | None = None,
    filter: str = QuestionFilter.ALL,
    sort: str = QuestionSort.NEWEST,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """Paginated question feed with tag/search/status filters."""
    try:
        filter_ = QuestionFilter(filter)
        sort_ = QuestionSort(sort)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    return read_only(engine, _list_questions, tag, search, filter_, sort_, page, limit)


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------
def _list_tags(session: Session) -> list[dict]:
    count = func.count().label("count")
    rows = session.execute(
        select(QuestionTag.name, count)
        .group_by(QuestionTag.name)
        .order_by(count.desc(), QuestionTag.name.asc())
    ).all()
    return [
        {"name": row.name, "count": row.count, "description": tag_description(row.name)}
        for row in rows
    ]


def list_tags(engine: Engine) -> list[dict]:
    """Every tag in use with its question count, most used first."""
    return read_only(engine, _list_tags)
