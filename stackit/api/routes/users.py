"""
stackit.api.routes.users — Public profiles
============================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import Engine

from stackit.api.deps import get_engine
from stackit.services import account_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{user_id}")
def get_user(user_id: int, engine: Engine = Depends(get_engine)):
    return account_service.get_profile(engine, user_id)
