"""
tests/test_permissions.py — Capability Check Tests
====================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from stackit.database.models import Role
from stackit.engine.permissions import (
    Action,
    Principal,
    check_permission,
    is_suspended,
    require_permission,
)
from stackit.errors import ForbiddenError

NOW = datetime(2030, 1, 1, tzinfo=UTC)

member = Principal(id=1, role=Role.USER)
admin = Principal(id=2, role=Role.ADMIN)
master = Principal(id=3, role=Role.MASTER)


class TestRoleMatrix:
    @pytest.mark.parametrize("action", [Action.CREATE_CONTENT, Action.VOTE, Action.UPLOAD])
    def test_everyone_may_contribute(self, action):
        for p in (member, admin, master):
            assert check_permission(p, action, now=NOW)

    def test_edit_and_delete_are_owner_or_staff(self):
        for action in (Action.EDIT_CONTENT, Action.DELETE_CONTENT):
            assert check_permission(member, action, target_owner_id=1, now=NOW)
            assert not check_permission(member, action, target_owner_id=99, now=NOW)
            assert check_permission(admin, action, target_owner_id=99, now=NOW)
            assert check_permission(master, action, target_owner_id=99, now=NOW)

    def test_accept_is_owner_only(self):
        assert check_permission(member, Action.ACCEPT_ANSWER, target_owner_id=1, now=NOW)
        assert not check_permission(admin, Action.ACCEPT_ANSWER, target_owner_id=1, now=NOW)

    def test_moderate_is_staff_only(self):
        assert not check_permission(member, Action.MODERATE, now=NOW)
        assert check_permission(admin, Action.MODERATE, now=NOW)
        assert check_permission(master, Action.MODERATE, now=NOW)


class TestRestrictions:
    def test_banned_principal_denied_everything(self):
        banned = Principal(id=1, role=Role.ADMIN, is_banned=True)
        for action in Action:
            assert not check_permission(banned, action, target_owner_id=1, now=NOW)

    def test_suspension_is_exclusive_of_its_end(self):
        until = NOW + timedelta(days=1)
        suspended = Principal(id=1, role=Role.USER, suspended_until=until)

        just_before = until - timedelta(milliseconds=1)
        just_after = until + timedelta(milliseconds=1)
        assert not check_permission(suspended, Action.VOTE, now=just_before)
        assert check_permission(suspended, Action.VOTE, now=just_after)

    def test_naive_timestamps_are_treated_as_utc(self):
        naive = datetime(2030, 1, 2)
        assert is_suspended(naive, NOW)
        assert not is_suspended(naive, NOW + timedelta(days=2))

    def test_require_permission_raises_with_reason(self):
        banned = Principal(id=1, role=Role.USER, is_banned=True)
        with pytest.raises(ForbiddenError, match="banned"):
            require_permission(banned, Action.VOTE, now=NOW)
        with pytest.raises(ForbiddenError, match="moderate"):
            require_permission(member, Action.MODERATE, now=NOW)
