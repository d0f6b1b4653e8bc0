"""
stackit.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for site identity and tuning values (reputation
rules, paging, rate limits).  Secrets and connection strings stay in the
environment (``DATABASE_URL``, ``JWT_SECRET``) and never live in YAML.

Usage::

    from stackit.config import load_config

    cfg = load_config()                  # reads ./config.yaml by default
    print(cfg.site_name)                 # "StackIt"
    print(cfg.reputation.vote_up)        # 10
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from stackit.constants import (
    DEFAULT_ACCEPT_BONUS,
    DEFAULT_ANSWER_BONUS,
    DEFAULT_VOTE_DOWN,
    DEFAULT_VOTE_UP,
)


# ---------------------------------------------------------------------------
# Reputation rules — injected into the vote/answer/acceptance services
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ReputationRules:
    """Reputation granted to a content author per event.

    ``vote_up``/``vote_down`` are the *standing* value of a vote, so any
    vote transition moves the author by ``value(after) - value(before)``.
    """

    vote_up: int = DEFAULT_VOTE_UP
    vote_down: int = DEFAULT_VOTE_DOWN
    answer_posted: int = DEFAULT_ANSWER_BONUS
    answer_accepted: int = DEFAULT_ACCEPT_BONUS


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    max_mutations: int = 30
    window_seconds: int = 60


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class StackItConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    site_name: str
    site_tagline: str

    # Auth
    token_ttl_hours: int = 12

    # Listing
    default_page_size: int = 10
    max_page_size: int = 50

    reputation: ReputationRules = field(default_factory=ReputationRules)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> StackItConfig:
    """Read *path* and return a :class:`StackItConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return parse_config(raw)


def parse_config(raw: dict) -> StackItConfig:
    """Build a :class:`StackItConfig` from an already-parsed mapping."""
    rep = raw.get("reputation") or {}
    limits = raw.get("rate_limit") or {}

    return StackItConfig(
        site_name=raw["site_name"],
        site_tagline=raw.get("site_tagline", ""),
        token_ttl_hours=int(raw.get("token_ttl_hours", 12)),
        default_page_size=int(raw.get("default_page_size", 10)),
        max_page_size=int(raw.get("max_page_size", 50)),
        reputation=ReputationRules(
            vote_up=int(rep.get("vote_up", DEFAULT_VOTE_UP)),
            vote_down=int(rep.get("vote_down", DEFAULT_VOTE_DOWN)),
            answer_posted=int(rep.get("answer_posted", DEFAULT_ANSWER_BONUS)),
            answer_accepted=int(rep.get("answer_accepted", DEFAULT_ACCEPT_BONUS)),
        ),
        rate_limit=RateLimitConfig(
            max_mutations=int(limits.get("max_mutations", 30)),
            window_seconds=int(limits.get("window_seconds", 60)),
        ),
    )
