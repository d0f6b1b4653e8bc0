"""
stackit.api.routes.questions — Question feed, detail and tags
===============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import Engine

from stackit.api.deps import get_config, get_engine, get_optional_user
from stackit.api.rate_limit import rate_limited_user
from stackit.config import StackItConfig
from stackit.engine.permissions import Principal
from stackit.schemas import QuestionCreate, QuestionUpdate
from stackit.services import moderation_service, question_service

router = APIRouter(tags=["questions"])


@router.get("/questions")
def list_questions(
    tag: str | None = None,
    search: str | None = None,
    filter_: str = Query("all", alias="filter"),
    sort: str = "newest",
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    engine: Engine = Depends(get_engine),
    cfg: StackItConfig = Depends(get_config),
):
    """Paginated question feed.

    ``filter`` is one of all/unanswered/accepted/upvoted and ``sort`` one
    of newest/popular/votes/views.
    """
    limit = min(limit or cfg.default_page_size, cfg.max_page_size)
    return question_service.list_questions(
        engine, tag=tag, search=search, filter=filter_, sort=sort, page=page, limit=limit,
    )


@router.post("/questions", status_code=status.HTTP_201_CREATED)
def create_question(
    body: QuestionCreate,
    user: Principal = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
):
    return question_service.create_question(engine, user.id, body)


@router.get("/questions/{question_id}")
def get_question(
    question_id: int,
    viewer: Principal | None = Depends(get_optional_user),
    engine: Engine = Depends(get_engine),
):
    """Question detail with answers; counts one view."""
    return question_service.get_question(
        engine, question_id, viewer_id=viewer.id if viewer else None
    )


@router.put("/questions/{question_id}")
def update_question(
    question_id: int,
    body: QuestionUpdate,
    user: Principal = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
):
    return question_service.update_question(engine, user.id, question_id, body)


@router.delete("/questions/{question_id}")
def delete_question(
    question_id: int,
    user: Principal = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
):
    return moderation_service.delete_question(engine, user.id, question_id)


@router.get("/tags")
def list_tags(engine: Engine = Depends(get_engine)):
    return {"tags": question_service.list_tags(engine)}
