"""
stackit.api.routes.votes — Up/down votes on questions and answers
===================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import Engine

from stackit.api.deps import get_config, get_engine
from stackit.api.rate_limit import rate_limited_user
from stackit.config import StackItConfig
from stackit.engine.permissions import Principal
from stackit.schemas import VoteRequest
from stackit.services import vote_service

router = APIRouter(tags=["votes"])


@router.post("/vote")
def vote(
    body: VoteRequest,
    user: Principal = Depends(rate_limited_user),
    engine: Engine = Depends(get_engine),
    cfg: StackItConfig = Depends(get_config),
):
    """Cast, switch or retract a vote; returns the item's updated ledger."""
    return vote_service.apply_vote(
        engine, user.id, body.item_type, body.item_id, body.direction, cfg.reputation
    )
