"""Validated request bodies — parsed once at the edge, trusted by services."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from stackit.constants import (
    ANSWER_CONTENT_MIN,
    EMAIL_PATTERN,
    MAX_IMAGES,
    QUESTION_CONTENT_MIN,
    SHORT_DESCRIPTION_MAX,
    SUSPEND_MAX_DAYS,
    SUSPEND_MIN_DAYS,
    TAG_NAME_MAX,
    TAGS_MAX,
    TAGS_MIN,
    TITLE_MAX,
    TITLE_MIN,
    USERNAME_MAX,
    USERNAME_MIN,
    normalize_tags,
    password_problems,
)
from stackit.database.models import ItemType, VoteDirection


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------
class RegisterRequest(BaseModel):
    username: str = Field(min_length=USERNAME_MIN, max_length=USERNAME_MAX)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str

    @field_validator("username")
    @classmethod
    def _strip_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < USERNAME_MIN:
            raise ValueError(
                f"Username must be between {USERNAME_MIN} and {USERNAME_MAX} characters"
            )
        return v

    @field_validator("email", mode="before")
    @classmethod
    def _lower_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def _password_complexity(cls, v: str) -> str:
        problems = password_problems(v)
        if problems:
            raise ValueError(problems[0])
        return v


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.strip().lower()


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------
def _clean_title(title: str) -> str:
    title = title.strip()
    if len(title) < TITLE_MIN:
        raise ValueError(f"Title must be at least {TITLE_MIN} characters")
    return title


def _clean_tags(tags: list[str]) -> list[str]:
    tags = normalize_tags(tags)
    if not TAGS_MIN <= len(tags) <= TAGS_MAX:
        raise ValueError(f"Between {TAGS_MIN} and {TAGS_MAX} tags are required")
    for tag in tags:
        if len(tag) > TAG_NAME_MAX:
            raise ValueError(f"Tag {tag!r} is longer than {TAG_NAME_MAX} characters")
    return tags


class QuestionCreate(BaseModel):
    title: str = Field(min_length=TITLE_MIN, max_length=TITLE_MAX)
    content: str = Field(min_length=QUESTION_CONTENT_MIN)
    tags: list[str]
    short_description: str | None = Field(default=None, max_length=SHORT_DESCRIPTION_MAX)
    images: list[str] = Field(default_factory=list, max_length=MAX_IMAGES)

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        return _clean_title(v)

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, v: list[str]) -> list[str]:
        return _clean_tags(v)

    @model_validator(mode="after")
    def _default_short_description(self) -> QuestionCreate:
        if not self.short_description:
            self.short_description = self.content[:SHORT_DESCRIPTION_MAX]
        return self


class QuestionUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=TITLE_MIN, max_length=TITLE_MAX)
    content: str | None = Field(default=None, min_length=QUESTION_CONTENT_MIN)
    tags: list[str] | None = None
    short_description: str | None = Field(default=None, max_length=SHORT_DESCRIPTION_MAX)

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str | None) -> str | None:
        return None if v is None else _clean_title(v)

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, v: list[str] | None) -> list[str] | None:
        return None if v is None else _clean_tags(v)


class AnswerCreate(BaseModel):
    question_id: int = Field(gt=0)
    content: str = Field(min_length=ANSWER_CONTENT_MIN)
    images: list[str] = Field(default_factory=list, max_length=MAX_IMAGES)


class VoteRequest(BaseModel):
    item_type: ItemType
    item_id: int = Field(gt=0)
    direction: VoteDirection


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------
class SuspendRequest(BaseModel):
    days: int = Field(ge=SUSPEND_MIN_DAYS, le=SUSPEND_MAX_DAYS)
    reason: str | None = Field(default=None, max_length=500)
