"""
stackit.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- users                 — Accounts (credentials, role, reputation, moderation state)
- questions             — Questions with denormalised vote/answer counters
- question_tags         — One row per (question, tag)
- answers               — Answers, at most one accepted per question
- votes                 — The vote ledger: one row per (item, voter)
- notifications         — Append-only per-recipient inbox
- admin_log             — Append-only moderation audit trail
- uploaded_images       — Images accepted by the upload endpoint
- mutation_rate_limit_events — Durable sliding-window throttle state

Contended rows (users, questions, answers) carry a ``version`` column that
SQLAlchemy compares on every UPDATE/DELETE; a mismatch raises
``StaleDataError`` and the transaction is retried by
:func:`stackit.database.engine.run_transaction`.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all StackIt ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class Role(enum.StrEnum):
    USER = "user"
    ADMIN = "admin"
    MASTER = "master"


class ItemType(enum.StrEnum):
    """Kinds of content that carry a vote ledger."""
    QUESTION = "question"
    ANSWER = "answer"


class VoteDirection(enum.StrEnum):
    UP = "up"
    DOWN = "down"


class NotificationType(enum.StrEnum):
    ANSWER = "answer"
    COMMENT = "comment"
    MENTION = "mention"
    VOTE = "vote"
    ACCEPT = "accept"
    ADMIN = "admin"


class AdminActionType(enum.StrEnum):
    """Categories of moderation mutations recorded in admin_log."""
    BAN = "BAN"
    UNBAN = "UNBAN"
    SUSPEND = "SUSPEND"
    UNSUSPEND = "UNSUSPEND"
    DELETE = "DELETE"


# ---------------------------------------------------------------------------
# Users — one row per account
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(10), nullable=False, default=Role.USER.value)
    bio: Mapped[str | None] = mapped_column(Text, default=None)

    reputation: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    questions_asked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    answers_given: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    answers_accepted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Moderation state
    is_banned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    suspended_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    suspension_reason: Mapped[str | None] = mapped_column(Text, default=None)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_users_reputation_desc", "reputation"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.username!r} role={self.role}>"


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------
class Question(Base):
    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    short_description: Mapped[str] = mapped_column(String(200), nullable=False)
    images: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)

    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    answer_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    upvote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    downvote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    has_accepted_answer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # No FK: answers reference questions, and acceptance is final even if
    # the accepted answer is later deleted.
    accepted_answer_id: Mapped[int | None] = mapped_column(Integer, default=None)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    author: Mapped[User] = relationship()
    tags: Mapped[list[QuestionTag]] = relationship(
        back_populates="question", cascade="all, delete-orphan",
        order_by="QuestionTag.position",
    )
    answers: Mapped[list[Answer]] = relationship(
        back_populates="question", cascade="all, delete-orphan",
    )
    votes: Mapped[list[Vote]] = relationship(
        back_populates="question", cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_questions_created_at", "created_at"),
        Index("ix_questions_author", "author_id"),
    )

    @property
    def tag_names(self) -> list[str]:
        return [t.name for t in self.tags]

    def __repr__(self) -> str:
        return f"<Question id={self.id} title={self.title[:30]!r}>"


class QuestionTag(Base):
    __tablename__ = "question_tags"

    question_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("questions.id", ondelete="CASCADE"), primary_key=True
    )
    name: Mapped[str] = mapped_column(String(30), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    question: Mapped[Question] = relationship(back_populates="tags")

    __table_args__ = (
        Index("ix_question_tags_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<QuestionTag question={self.question_id} name={self.name!r}>"


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------
class Answer(Base):
    __tablename__ = "answers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    images: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)

    upvote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    downvote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    author: Mapped[User] = relationship()
    question: Mapped[Question] = relationship(back_populates="answers")
    votes: Mapped[list[Vote]] = relationship(
        back_populates="answer", cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_answers_question", "question_id"),
        Index("ix_answers_author", "author_id"),
    )

    def __repr__(self) -> str:
        return f"<Answer id={self.id} question={self.question_id} accepted={self.is_accepted}>"


# ---------------------------------------------------------------------------
# Votes — the per-item ledger
# ---------------------------------------------------------------------------
class Vote(Base):
    """One standing vote by one account on one question or answer.

    The unique constraints make "an account is in at most one of the
    upvoted-by / downvoted-by sets" a property of the schema.
    """
    __tablename__ = "votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=True
    )
    answer_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("answers.id", ondelete="CASCADE"), nullable=True
    )
    direction: Mapped[str] = mapped_column(String(4), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    question: Mapped[Question | None] = relationship(back_populates="votes")
    answer: Mapped[Answer | None] = relationship(back_populates="votes")

    __table_args__ = (
        UniqueConstraint("question_id", "user_id", name="uq_votes_question_user"),
        UniqueConstraint("answer_id", "user_id", name="uq_votes_answer_user"),
        CheckConstraint(
            "(question_id IS NULL) <> (answer_id IS NULL)", name="ck_votes_one_target"
        ),
        CheckConstraint("direction IN ('up', 'down')", name="ck_votes_direction"),
    )

    def __repr__(self) -> str:
        target = f"q{self.question_id}" if self.question_id else f"a{self.answer_id}"
        return f"<Vote user={self.user_id} target={target} dir={self.direction}>"


# ---------------------------------------------------------------------------
# Notifications — append-only inbox
# ---------------------------------------------------------------------------
class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recipient_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    related_question_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("questions.id", ondelete="SET NULL"), nullable=True
    )
    related_answer_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("answers.id", ondelete="SET NULL"), nullable=True
    )
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_notifications_recipient_read", "recipient_id", "is_read"),
        Index("ix_notifications_recipient_time", "recipient_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} to={self.recipient_id} type={self.type}>"


# ---------------------------------------------------------------------------
# AdminLog — append-only moderation audit trail
# ---------------------------------------------------------------------------
class AdminLog(Base):
    __tablename__ = "admin_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_table: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    before_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    after_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_admin_log_actor_time", "actor_id", "timestamp"),
        Index("ix_admin_log_target", "target_table", "target_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog id={self.id} actor={self.actor_id} action={self.action_type}>"


# ---------------------------------------------------------------------------
# UploadedImage — images accepted by POST /api/upload
# ---------------------------------------------------------------------------
class UploadedImage(Base):
    """Uploaded image stored on disk, referenced by URL path.

    Questions and answers only keep the URL strings; this table records
    who uploaded what so orphaned files can be traced.
    """
    __tablename__ = "uploaded_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(500), nullable=False, unique=True)
    content_type: Mapped[str | None] = mapped_column(String(100), default=None)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    uploaded_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<UploadedImage id={self.id} filename={self.filename!r}>"


# ---------------------------------------------------------------------------
# MutationRateLimitEvent — durable mutation events for throttling
# ---------------------------------------------------------------------------
class MutationRateLimitEvent(Base):
    __tablename__ = "mutation_rate_limit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_mutation_rate_limit_actor_ts", "actor_id", timestamp.desc()),
        Index("ix_mutation_rate_limit_ts", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<MutationRateLimitEvent actor={self.actor_id!r} ts={self.timestamp}>"
