"""
StackIt — A Q&A Community Service
===================================
Questions, answers, voting, tags, notifications and admin moderation,
served as a JSON API on top of a relational database.

Package layout::

    stackit/
    ├── __main__.py        # python -m stackit → Uvicorn
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Reputation defaults, tag descriptions, limits
    ├── errors.py          # Error taxonomy shared by services and API
    ├── schemas.py         # Validated request bodies (pydantic)
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, retrying transactions
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Master admin bootstrap
    ├── engine/
    │   ├── votes.py       # Vote toggle + reversible reputation deltas
    │   └── permissions.py # (principal, action, target) → allow/deny
    ├── services/
    │   ├── account_service.py      # Register / authenticate / profiles
    │   ├── question_service.py     # Questions, listing, tags
    │   ├── answer_service.py       # Answers
    │   ├── vote_service.py         # Vote Engine
    │   ├── acceptance_service.py   # Acceptance Engine
    │   ├── moderation_service.py   # Audited ban/suspend/delete
    │   ├── notification_service.py # Notification sink
    │   ├── upload_service.py       # Image uploads
    │   └── serializers.py          # ORM → JSON-safe dicts
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine, config and current-user dependencies
        ├── rate_limit.py  # Per-account mutation throttle
        ├── auth.py        # Register / login → JWT
        └── routes/        # Public, member and admin REST endpoints
"""

__version__ = "0.1.0"
