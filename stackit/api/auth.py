"""
stackit.api.auth — Email/password accounts + JWT issuance
===========================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import Engine

from stackit.api.deps import create_access_token, get_config, get_current_user, get_engine
from stackit.config import StackItConfig
from stackit.database.engine import run_db
from stackit.engine.permissions import Principal
from stackit.schemas import LoginRequest, RegisterRequest
from stackit.services import account_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    engine: Engine = Depends(get_engine),
    cfg: StackItConfig = Depends(get_config),
):
    """Create an account and log it in."""
    user = await run_db(account_service.register, engine, body)
    return {"user": user, "token": create_access_token(user, cfg.token_ttl_hours)}


@router.post("/login")
async def login(
    body: LoginRequest,
    engine: Engine = Depends(get_engine),
    cfg: StackItConfig = Depends(get_config),
):
    user = await run_db(account_service.authenticate, engine, body.email, body.password)
    logger.info("User %s logged in", user["id"])
    return {"user": user, "token": create_access_token(user, cfg.token_ttl_hours)}


@router.get("/me")
async def me(
    principal: Principal = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    """Return the current account, including private fields."""
    return await run_db(account_service.get_profile, engine, principal.id, private=True)
