"""
stackit.api.routes.notifications — The caller's inbox
=======================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import Engine

from stackit.api.deps import get_current_user, get_engine
from stackit.engine.permissions import Principal
from stackit.services import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(
    unread_only: bool = False,
    limit: int = Query(20, ge=1, le=100),
    user: Principal = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return {
        "notifications": notification_service.list_notifications(
            engine, user.id, unread_only=unread_only, limit=limit
        )
    }


@router.get("/count")
def unread_count(
    user: Principal = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return {"count": notification_service.unread_count(engine, user.id)}


@router.put("/read-all")
def mark_all_read(
    user: Principal = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return {"updated": notification_service.mark_all_read(engine, user.id)}


@router.put("/{notification_id}/read")
def mark_read(
    notification_id: int,
    user: Principal = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return notification_service.mark_read(engine, user.id, notification_id)
