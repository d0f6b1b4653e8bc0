"""
stackit.engine.votes — Vote Toggle & Reputation Deltas
========================================================

Pure calculation, no DB I/O.  The vote service loads the actor's current
standing vote, asks this module what the new standing vote is and how far
the author's reputation moves, then writes both in one transaction.

A vote is a *standing value*: ``up`` is worth ``rules.vote_up``, ``down``
is worth ``rules.vote_down`` and no vote is worth 0.  The reputation delta
of any transition is ``value(after) - value(before)``, so:

* retracting a vote exactly undoes what casting it granted;
* switching down → up applies "undo penalty + apply bonus" in one step.
"""

from __future__ import annotations

from dataclasses import dataclass

from stackit.config import ReputationRules
from stackit.database.models import VoteDirection


@dataclass(frozen=True, slots=True)
class VoteTransition:
    """Result of applying one vote request to one standing vote."""

    before: VoteDirection | None
    after: VoteDirection | None
    reputation_delta: int

    @property
    def retracted(self) -> bool:
        return self.before is not None and self.after is None

    @property
    def upvote_delta(self) -> int:
        return _count(self.after, VoteDirection.UP) - _count(self.before, VoteDirection.UP)

    @property
    def downvote_delta(self) -> int:
        return _count(self.after, VoteDirection.DOWN) - _count(self.before, VoteDirection.DOWN)


def _count(state: VoteDirection | None, direction: VoteDirection) -> int:
    return 1 if state == direction else 0


def toggle(before: VoteDirection | None, requested: VoteDirection) -> VoteDirection | None:
    """Repeating the standing vote retracts it; anything else replaces it."""
    if before == requested:
        return None
    return requested


def vote_value(state: VoteDirection | None, rules: ReputationRules) -> int:
    if state == VoteDirection.UP:
        return rules.vote_up
    if state == VoteDirection.DOWN:
        return rules.vote_down
    return 0


def resolve_vote(
    before: VoteDirection | None,
    requested: VoteDirection,
    rules: ReputationRules,
    *,
    self_vote: bool = False,
) -> VoteTransition:
    """Compute the new standing vote and the author's reputation delta.

    Self-votes are recorded in the ledger but never move reputation.
    """
    after = toggle(before, requested)
    delta = 0 if self_vote else vote_value(after, rules) - vote_value(before, rules)
    return VoteTransition(before=before, after=after, reputation_delta=delta)
