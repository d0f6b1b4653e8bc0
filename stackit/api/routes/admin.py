"""
stackit.api.routes.admin — Moderation panel
=============================================

All endpoints require an admin or master token.  Writes are rate limited
per account and recorded in the audit log by the moderation service.
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy import Engine

from stackit.api.deps import get_current_admin, get_engine
from stackit.api.rate_limit import rate_limited_admin
from stackit.engine.permissions import Principal
from stackit.schemas import SuspendRequest
from stackit.services import moderation_service

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Overview
# ---------------------------------------------------------------------------
@router.get("/stats")
def stats(
    admin: Principal = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
):
    return moderation_service.admin_stats(engine)


@router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
    search: str | None = None,
    admin: Principal = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
):
    return moderation_service.list_users(engine, page=page, page_size=page_size, search=search)


@router.get("/questions")
def list_questions(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
    admin: Principal = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
):
    return moderation_service.list_all_questions(engine, page=page, page_size=page_size)


@router.get("/audit")
def get_audit_log(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
    admin: Principal = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
):
    """Paginated admin audit log."""
    return moderation_service.get_audit_log(engine, page=page, page_size=page_size)


# ---------------------------------------------------------------------------
# Account restrictions
# ---------------------------------------------------------------------------
@router.put("/users/{user_id}/ban")
def ban_user(
    user_id: int,
    admin: Principal = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    return moderation_service.ban_user(engine, admin.id, user_id)


@router.put("/users/{user_id}/unban")
def unban_user(
    user_id: int,
    admin: Principal = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    return moderation_service.unban_user(engine, admin.id, user_id)


@router.put("/users/{user_id}/suspend")
def suspend_user(
    user_id: int,
    body: SuspendRequest = Body(...),
    admin: Principal = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    return moderation_service.suspend_user(engine, admin.id, user_id, body.days, body.reason)


@router.put("/users/{user_id}/unsuspend")
def unsuspend_user(
    user_id: int,
    admin: Principal = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    return moderation_service.unsuspend_user(engine, admin.id, user_id)


# ---------------------------------------------------------------------------
# Content removal
# ---------------------------------------------------------------------------
@router.delete("/questions/{question_id}")
def delete_question(
    question_id: int,
    admin: Principal = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    return moderation_service.delete_question(engine, admin.id, question_id)


@router.delete("/answers/{answer_id}")
def delete_answer(
    answer_id: int,
    admin: Principal = Depends(rate_limited_admin),
    engine: Engine = Depends(get_engine),
):
    return moderation_service.delete_answer(engine, admin.id, answer_id)
