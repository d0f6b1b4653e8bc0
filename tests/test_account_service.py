"""
tests/test_account_service.py — Registration & Authentication Tests
=====================================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from stackit.database.models import User
from stackit.errors import ConflictError, ForbiddenError, NotFoundError, UnauthenticatedError
from stackit.schemas import RegisterRequest
from stackit.services import account_service


def _register(engine, username="newbie", email="newbie@example.com", password="Str0ng!pass"):
    return account_service.register(
        engine, RegisterRequest(username=username, email=email, password=password)
    )


class TestRegister:
    def test_creates_member_account(self, db_engine):
        user = _register(db_engine)
        assert user["role"] == "user"
        assert user["reputation"] == 0
        assert user["email"] == "newbie@example.com"
        assert "password_hash" not in user

    def test_email_is_normalised(self, db_engine):
        user = _register(db_engine, email="  NewBie@Example.COM ")
        assert user["email"] == "newbie@example.com"

    def test_duplicate_email_conflicts(self, db_engine):
        _register(db_engine)
        with pytest.raises(ConflictError, match="Email already registered"):
            _register(db_engine, username="other")

    def test_duplicate_username_conflicts(self, db_engine):
        _register(db_engine)
        with pytest.raises(ConflictError, match="Username already taken"):
            _register(db_engine, email="other@example.com")

    def test_password_is_hashed(self, db_engine):
        user = _register(db_engine)
        with Session(db_engine) as s:
            stored = s.get(User, user["id"]).password_hash
        assert stored != "Str0ng!pass"
        assert account_service.verify_password("Str0ng!pass", stored)

    @pytest.mark.parametrize(
        "username, password",
        [
            ("ab", "Str0ng!pass"),                # handle too short
            ("x" * 31, "Str0ng!pass"),            # handle too long
            ("valid_name", "short1!"),            # password too short
            ("valid_name", "nouppercase1!"),
            ("valid_name", "NoDigits!!"),
            ("valid_name", "NoSpecial12"),
        ],
    )
    def test_rejects_invalid_input(self, username, password):
        with pytest.raises(PydanticValidationError):
            RegisterRequest(username=username, email="a@example.com", password=password)


class TestAuthenticate:
    def test_valid_credentials(self, db_engine):
        _register(db_engine)
        user = account_service.authenticate(db_engine, "newbie@example.com", "Str0ng!pass")
        assert user["username"] == "newbie"

    def test_wrong_password(self, db_engine):
        _register(db_engine)
        with pytest.raises(UnauthenticatedError):
            account_service.authenticate(db_engine, "newbie@example.com", "Wr0ng!pass")

    def test_unknown_email(self, db_engine):
        with pytest.raises(UnauthenticatedError):
            account_service.authenticate(db_engine, "ghost@example.com", "Str0ng!pass")

    def test_banned_account_refused(self, db_engine):
        uid = _register(db_engine)["id"]
        with Session(db_engine) as s:
            s.get(User, uid).is_banned = True
            s.commit()
        with pytest.raises(ForbiddenError, match="banned"):
            account_service.authenticate(db_engine, "newbie@example.com", "Str0ng!pass")

    def test_suspension_boundary(self, db_engine):
        """Refused while now < suspended_until; allowed from the instant it ends."""
        uid = _register(db_engine)["id"]
        until = datetime(2030, 1, 1, 12, 0, tzinfo=UTC)
        with Session(db_engine) as s:
            s.get(User, uid).suspended_until = until
            s.commit()

        with pytest.raises(ForbiddenError, match="suspended"):
            account_service.authenticate(
                db_engine, "newbie@example.com", "Str0ng!pass",
                now=until - timedelta(milliseconds=1),
            )
        user = account_service.authenticate(
            db_engine, "newbie@example.com", "Str0ng!pass",
            now=until + timedelta(milliseconds=1),
        )
        assert user["id"] == uid


class TestLoadActor:
    def test_none_is_unauthenticated(self, db_session):
        with pytest.raises(UnauthenticatedError):
            account_service.load_actor(db_session, None)

    def test_missing_account_is_unauthenticated(self, db_session):
        with pytest.raises(UnauthenticatedError):
            account_service.load_actor(db_session, 4242)


class TestProfile:
    def test_public_profile_hides_private_fields(self, db_engine, asker):
        profile = account_service.get_profile(db_engine, asker)
        assert profile["username"] == "alice"
        assert "email" not in profile

    def test_missing_profile(self, db_engine):
        with pytest.raises(NotFoundError):
            account_service.get_profile(db_engine, 999)


class TestMasterAdminSeed:
    def test_creates_master_account(self, db_engine):
        from stackit.database.seed import ensure_master_admin

        uid = ensure_master_admin(
            db_engine, email="Root@Example.com", username="root", password="R00t!pass"
        )
        with Session(db_engine) as session:
            user = session.get(User, uid)
            assert user.role == "master"
            assert user.email == "root@example.com"
        assert account_service.authenticate(db_engine, "root@example.com", "R00t!pass")["id"] == uid

    def test_promotes_existing_and_is_idempotent(self, db_engine):
        from stackit.database.seed import ensure_master_admin

        existing = _register(db_engine)["id"]
        first = ensure_master_admin(
            db_engine, email="newbie@example.com", username="ignored", password="x"
        )
        second = ensure_master_admin(
            db_engine, email="newbie@example.com", username="ignored", password="x"
        )
        assert first == second == existing
        with Session(db_engine) as session:
            assert session.scalars(select(User).where(User.role == "master")).all()[0].id == existing

    def test_master_role_stays_singleton(self, db_engine):
        from stackit.database.seed import ensure_master_admin

        old = ensure_master_admin(db_engine, email="old@example.com", username="old_root", password="x")
        new = ensure_master_admin(db_engine, email="new@example.com", username="new_root", password="x")
        with Session(db_engine) as session:
            assert session.get(User, old).role == "admin"
            assert session.get(User, new).role == "master"

    def test_env_seed_skips_without_credentials(self, db_engine, monkeypatch):
        from stackit.database.seed import seed_master_admin_from_env

        monkeypatch.delenv("MASTER_ADMIN_EMAIL", raising=False)
        monkeypatch.delenv("MASTER_ADMIN_PASSWORD", raising=False)
        assert seed_master_admin_from_env(db_engine) is None
