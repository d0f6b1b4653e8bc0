"""
stackit.services.vote_service — Vote Engine
=============================================

Applies one vote request to one item's ledger:

    1. Resolve the actor (banned/suspended → ``Forbidden``).
    2. Load the item and the actor's standing vote on it.
    3. Ask :func:`stackit.engine.votes.resolve_vote` for the new standing
       vote and the author's reputation delta.
    4. Write the ledger row, the item's counters and the author's
       reputation in the same transaction.

The item counters are written through the ORM, so the ``version`` check
turns a concurrent vote on the same item into a retry instead of a lost
update.  The unique ``(item, user)`` constraint does the same for two
first votes racing each other.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from stackit.config import ReputationRules
from stackit.database.engine import increment, run_transaction
from stackit.database.models import Answer, ItemType, Question, User, Vote, VoteDirection
from stackit.engine.permissions import Action, Principal, require_permission
from stackit.engine.votes import resolve_vote
from stackit.errors import NotFoundError
from stackit.services.account_service import load_actor
from stackit.services.serializers import ledger_dict

logger = logging.getLogger(__name__)


def _load_item(session: Session, item_type: ItemType, item_id: int) -> Question | Answer:
    model = Question if item_type is ItemType.QUESTION else Answer
    item = session.get(model, item_id)
    if item is None:
        raise NotFoundError(f"{item_type.value.capitalize()} not found")
    return item


def _standing_vote(
    session: Session, item_type: ItemType, item_id: int, user_id: int
) -> Vote | None:
    target = Vote.question_id if item_type is ItemType.QUESTION else Vote.answer_id
    return session.scalar(select(Vote).where(target == item_id, Vote.user_id == user_id))


def _apply_vote(
    session: Session,
    actor_id: int,
    item_type: ItemType,
    item_id: int,
    direction: VoteDirection,
    rules: ReputationRules,
) -> dict:
    actor = load_actor(session, actor_id)
    require_permission(Principal.from_user(actor), Action.VOTE)
    item = _load_item(session, item_type, item_id)

    vote = _standing_vote(session, item_type, item_id, actor.id)
    before = VoteDirection(vote.direction) if vote else None
    transition = resolve_vote(
        before, direction, rules, self_vote=item.author_id == actor.id
    )

    if transition.after is None:
        session.delete(vote)
    elif vote is not None:
        vote.direction = transition.after.value
    else:
        vote = Vote(user_id=actor.id, direction=transition.after.value)
        if item_type is ItemType.QUESTION:
            vote.question_id = item.id
        else:
            vote.answer_id = item.id
        session.add(vote)

    item.upvote_count += transition.upvote_delta
    item.downvote_count += transition.downvote_delta
    session.flush()

    increment(session, User, item.author_id, reputation=transition.reputation_delta)

    logger.info(
        "Vote %s on %s %s by user %s: %s -> %s (author rep %+d)",
        direction.value, item_type.value, item_id, actor.id,
        before, transition.after, transition.reputation_delta,
    )
    return ledger_dict(session, item_type, item, viewer_id=actor.id)


def apply_vote(
    engine: Engine,
    actor_id: int,
    item_type: ItemType,
    item_id: int,
    direction: VoteDirection,
    rules: ReputationRules | None = None,
) -> dict:
    """Cast, switch or retract the actor's vote on a question or answer.

    Voting the same direction twice retracts the vote.  Returns the
    item's updated ledger (both voter lists, counts and the caller's
    standing vote).
    """
    return run_transaction(
        engine, _apply_vote, actor_id, item_type, item_id, direction,
        rules or ReputationRules(),
    )
