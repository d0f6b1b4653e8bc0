"""
stackit.api.routes.answers — Posting, deleting and accepting answers
======================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy import Engine

from stackit.api.deps import get_config, get_engine
from stackit.api.rate_limit import rate_limited_user
from stackit.config import StackItConfig
from stackit.engine.permissions import Principal
from stackit.schemas import AnswerCreate
from stackit.services import acceptance_service, answer_service, moderation_service

router = APIRouter(prefix="/answers", tags=["answers"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_answer(
    body: AnswerCreate,
    user: Principal = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
    cfg: StackItConfig = Depends(get_config),
):
    return answer_service.create_answer(engine, user.id, body, cfg.reputation)


@router.delete("/{answer_id}")
def delete_answer(
    answer_id: int,
    user: Principal = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
):
    return moderation_service.delete_answer(engine, user.id, answer_id)


@router.put("/{answer_id}/accept")
def accept_answer(
    answer_id: int,
    user: Principal = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
    cfg: StackItConfig = Depends(get_config),
):
    """Accept an answer.  Only the question's author may, and only once."""
    return acceptance_service.accept_answer(engine, user.id, answer_id, cfg.reputation)
