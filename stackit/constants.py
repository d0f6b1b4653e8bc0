"""
stackit.constants — Shared Constants & Helpers
================================================

Single source of truth for content limits, reputation defaults and the
tag description table.  Import from here instead of duplicating in
schemas, services and routes.
"""

from __future__ import annotations

import re

# ---------------------------------------------------------------------------
# Reputation defaults (overridable in config.yaml → ``reputation``)
# ---------------------------------------------------------------------------
DEFAULT_VOTE_UP = 10
DEFAULT_VOTE_DOWN = -2
DEFAULT_ANSWER_BONUS = 100
DEFAULT_ACCEPT_BONUS = 50

# ---------------------------------------------------------------------------
# Content limits
# ---------------------------------------------------------------------------
USERNAME_MIN, USERNAME_MAX = 3, 30
PASSWORD_MIN = 8
TITLE_MIN, TITLE_MAX = 10, 200
QUESTION_CONTENT_MIN = 20
ANSWER_CONTENT_MIN = 10
SHORT_DESCRIPTION_MAX = 200
TAGS_MIN, TAGS_MAX = 1, 5
TAG_NAME_MAX = 30
MAX_IMAGES = 10

SUSPEND_MIN_DAYS, SUSPEND_MAX_DAYS = 1, 365
DEFAULT_SUSPENSION_REASON = "Violation of community guidelines"

MAX_UPLOAD_BYTES = 1024 * 1024  # 1 MB

PASSWORD_SPECIALS = '!@#$%^&*(),.?":{}|<>'
_PASSWORD_SPECIAL_REGEX = re.compile(r'[!@#$%^&*(),.?":{}|<>]')
EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"


def password_problems(password: str) -> list[str]:
    """Return every complexity rule *password* breaks (empty when valid)."""
    problems: list[str] = []
    if len(password) < PASSWORD_MIN:
        problems.append(f"Password must be at least {PASSWORD_MIN} characters long")
    if not re.search(r"[A-Z]", password):
        problems.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        problems.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        problems.append("Password must contain at least one number")
    if not _PASSWORD_SPECIAL_REGEX.search(password):
        problems.append(
            f"Password must contain at least one special character ({PASSWORD_SPECIALS})"
        )
    return problems


# ---------------------------------------------------------------------------
# Tag descriptions (shown on the tags page)
# ---------------------------------------------------------------------------
TAG_DESCRIPTIONS: dict[str, str] = {
    "javascript": "Programming language for web development",
    "react": "JavaScript library for building user interfaces",
    "nodejs": "JavaScript runtime for server-side development",
    "python": "High-level programming language",
    "typescript": "Typed superset of JavaScript",
    "nextjs": "React framework for production",
    "mongodb": "NoSQL database",
    "sql": "Structured Query Language",
    "html": "Markup language for web pages",
    "css": "Styling language for web pages",
    "git": "Version control system",
    "docker": "Containerization platform",
    "aws": "Cloud computing platform",
    "api": "Application Programming Interface",
    "database": "Data storage and management",
    "frontend": "Client-side development",
    "backend": "Server-side development",
    "fullstack": "Full-stack development",
    "mobile": "Mobile app development",
    "testing": "Software testing and quality assurance",
}
DEFAULT_TAG_DESCRIPTION = "General programming topic"


def tag_description(name: str) -> str:
    return TAG_DESCRIPTIONS.get(name.lower(), DEFAULT_TAG_DESCRIPTION)


def normalize_tags(tags: list[str]) -> list[str]:
    """Trim, lowercase and de-duplicate *tags*, keeping first-seen order."""
    seen: dict[str, None] = {}
    for tag in tags:
        clean = tag.strip().lower()
        if clean:
            seen.setdefault(clean, None)
    return list(seen)
