"""Tests for admin user management and the activity log (F7)."""

import sqlite3

import pytest

from readspeed.core import admin
from readspeed.core.admin import UserNotFoundError
from readspeed.core.seed import seed_defaults
from readspeed.db import platform_repository
from readspeed.utils.validators import ValidationError


class TestUpdateUser:
    """Tests for update_user."""

    def test_changes_are_logged(self, make_user):
        boss = make_user(role="admin")
        user = make_user()
        seed_defaults()

        updated = admin.update_user(boss.id, user.id, role="admin", subscription_tier="pro")
        assert updated.role == "admin"
        assert updated.subscription_tier == "pro"

        [entry] = admin.recent_activity()
        assert entry.admin_id == boss.id
        assert entry.action == "update_user"
        assert entry.entity_id == user.id
        assert entry.details == {
            "before": {"role": "reader", "subscription_tier": "free"},
            "after": {"role": "admin", "subscription_tier": "pro"},
        }

    def test_nothing_to_update(self, make_user):
        boss = make_user(role="admin")
        with pytest.raises(ValidationError, match="Nothing"):
            admin.update_user(boss.id, boss.id)

    @pytest.mark.parametrize(
        "kwargs,field",
        [({"role": "owner"}, "role"), ({"subscription_tier": "gold"}, "subscription_tier")],
    )
    def test_rejects_unknown_values(self, make_user, kwargs, field):
        boss = make_user(role="admin")
        with pytest.raises(ValidationError) as exc:
            admin.update_user(boss.id, boss.id, **kwargs)
        assert exc.value.field == field

    def test_unknown_user(self, make_user):
        boss = make_user(role="admin")
        with pytest.raises(UserNotFoundError):
            admin.update_user(boss.id, "missing", role="admin")
        assert admin.recent_activity() == []


class TestActivityLog:
    """Tests for log_admin_action."""

    def test_write_failure_is_not_raised(self, make_user, monkeypatch):
        boss = make_user(role="admin")

        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(platform_repository, "insert_activity", broken)
        admin.log_admin_action(boss.id, "delete_book", "book", "b1")

    def test_paging(self, make_user):
        boss = make_user(role="admin")
        for i in range(3):
            admin.log_admin_action(boss.id, f"action_{i}")
        assert len(admin.recent_activity(limit=2)) == 2
        assert len(admin.recent_activity(limit=2, offset=2)) == 1


class TestListUsers:
    """Tests for list_users."""

    def test_filters_and_total(self, make_user):
        make_user(email="ada@example.com", full_name="Ada Lovelace", tier="pro")
        make_user(email="bob@example.com", full_name="Bob", tier="free")
        make_user(email="cy@example.com", role="admin")

        profiles, total = admin.list_users(subscription_tier="pro")
        assert total == 1
        assert profiles[0].full_name == "Ada Lovelace"

        profiles, total = admin.list_users(search="bob@")
        assert [p.full_name for p in profiles] == ["Bob"]

        _, total = admin.list_users(role="admin")
        assert total == 1

    def test_paging(self, make_user):
        for _ in range(3):
            make_user()
        profiles, total = admin.list_users(limit=2, sort_by="not_a_column")
        assert total == 3
        assert len(profiles) == 2
