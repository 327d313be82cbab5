"""Tests for tier limits, feature flags and default seeding (F5)."""

from datetime import date

import pytest

from readspeed.core import feature_flags, subscriptions
from readspeed.core.feature_flags import FeatureFlagError
from readspeed.core.seed import DEFAULT_FLAGS, seed_defaults
from readspeed.core.subscriptions import (
    LimitExceededError,
    UnknownTierError,
    check_user_limits,
    current_month,
    enforce_limit,
    tier_at_least,
    track_usage,
)
from readspeed.db import exercises_repository, platform_repository

MARCH = date(2024, 3, 15)


@pytest.fixture
def seeded(db):
    return seed_defaults()


class TestTiers:
    """Tests for tier ordering helpers."""

    @pytest.mark.parametrize(
        "tier,required,expected",
        [
            ("free", "free", True),
            ("free", "reader", False),
            ("reader", "free", True),
            ("pro", "reader", True),
            ("reader", "pro", False),
        ],
    )
    def test_tier_at_least(self, tier, required, expected):
        assert tier_at_least(tier, required) is expected

    def test_current_month(self):
        assert current_month(MARCH) == "2024-03-01"


class TestCheckUserLimits:
    """Tests for check_user_limits."""

    def test_no_limits_row_allows(self, make_user):
        user = make_user()
        assert check_user_limits(user.id, "free", "submission").allowed

    def test_feature_flags_per_tier(self, seeded, make_user):
        user = make_user()
        assert check_user_limits(user.id, "free", "leaderboard_view").allowed
        denied = check_user_limits(user.id, "free", "leaderboard_join")
        assert not denied.allowed
        assert denied.reason == "Upgrade to join the leaderboard"
        assert check_user_limits(user.id, "reader", "leaderboard_join").allowed
        assert not check_user_limits(user.id, "reader", "data_export").allowed
        assert check_user_limits(user.id, "pro", "data_export").allowed

    def test_submission_quota(self, seeded, make_user):
        """Free readers get 30 submissions a month."""
        user = make_user()
        track_usage(user.id, "submission", amount=29, today=MARCH)
        check = check_user_limits(user.id, "free", "submission", today=MARCH)
        assert check.allowed
        assert (check.current, check.limit) == (29, 30)

        track_usage(user.id, "submission", today=MARCH)
        check = check_user_limits(user.id, "free", "submission", today=MARCH)
        assert not check.allowed
        assert check.reason == "Monthly limit of 30 reading submissions reached. Upgrade for more."

    def test_quota_resets_next_month(self, seeded, make_user):
        user = make_user()
        track_usage(user.id, "submission", amount=30, today=MARCH)
        assert check_user_limits(user.id, "free", "submission", today=date(2024, 4, 1)).allowed

    def test_unlimited_tier(self, seeded, make_user):
        user = make_user(tier="reader")
        track_usage(user.id, "submission", amount=500, today=MARCH)
        check = check_user_limits(user.id, "reader", "submission", today=MARCH)
        assert check.allowed
        assert check.limit is None

    def test_exercise_reuse_allowed(self, seeded, make_user):
        """A free reader may repeat the one exercise already counted."""
        user = make_user()
        track_usage(user.id, "exercise", exercise_id="ex-1", today=MARCH)
        track_usage(user.id, "exercise", exercise_id="ex-1", today=MARCH)
        assert check_user_limits(user.id, "free", "exercise", exercise_id="ex-1", today=MARCH).allowed
        assert not check_user_limits(
            user.id, "free", "exercise", exercise_id="ex-2", today=MARCH
        ).allowed

    def test_custom_text_denied_for_free(self, seeded, make_user):
        user = make_user()
        assert not check_user_limits(user.id, "free", "custom_text").allowed

    def test_enforce_raises(self, seeded, make_user):
        user = make_user()
        with pytest.raises(LimitExceededError) as exc:
            enforce_limit(user.id, "free", "book_stats")
        assert exc.value.action == "book_stats"
        assert exc.value.reason == "Upgrade to see book statistics"


class TestTierChanges:
    """Tests for set_user_tier, limits and plans."""

    def test_set_user_tier(self, seeded, make_user):
        user = make_user()
        profile = subscriptions.set_user_tier(user.id, "pro", billing_cycle="monthly")
        assert profile.subscription_tier == "pro"
        sub = platform_repository.get_active_subscription(user.id)
        assert sub.plan_id == platform_repository.get_plan_by_name("pro").id
        assert sub.current_period_end is not None

    def test_set_unknown_tier(self, make_user):
        user = make_user()
        with pytest.raises(UnknownTierError):
            subscriptions.set_user_tier(user.id, "gold")

    def test_update_tier_limits(self, seeded):
        limits = subscriptions.update_tier_limits("free", max_submissions_per_month=50)
        assert limits.max_submissions_per_month == 50
        assert limits.max_exercises == 1

    def test_save_plan(self, seeded):
        plan = subscriptions.save_plan("reader", "Reader+", price_monthly=4.99)
        assert plan.display_name == "Reader+"
        assert plan.price_monthly == 4.99
        with pytest.raises(UnknownTierError):
            subscriptions.save_plan("enterprise", "Enterprise")


class TestFeatureFlags:
    """Tests for feature flag evaluation and management."""

    def test_unknown_flag_off(self, db):
        assert feature_flags.is_feature_enabled("nothing", "pro") is False

    def test_tier_gate(self, seeded):
        assert feature_flags.is_feature_enabled("progress_comparison", "reader")
        assert not feature_flags.is_feature_enabled("progress_comparison", "free")

    def test_disabled_flag_off_for_all(self, seeded):
        assert not feature_flags.is_feature_enabled("data_export", "pro")

    def test_enabled_features(self, seeded):
        assert set(feature_flags.enabled_features("free")) == {
            "leaderboard",
            "exercises",
            "assessments",
        }
        assert "custom_texts" in feature_flags.enabled_features("pro")

    def test_create_duplicate(self, db):
        feature_flags.create_flag("beta", enabled=True)
        with pytest.raises(FeatureFlagError, match="already exists"):
            feature_flags.create_flag(" beta ")

    def test_create_validation(self, db):
        with pytest.raises(FeatureFlagError):
            feature_flags.create_flag("   ")
        with pytest.raises(UnknownTierError):
            feature_flags.create_flag("beta", requires_subscription="gold")

    def test_update_and_delete(self, db):
        flag = feature_flags.create_flag("beta", metadata={"rollout": 10})
        updated = feature_flags.update_flag(flag.id, enabled=True)
        assert updated.enabled
        assert updated.metadata == {"rollout": 10}
        assert feature_flags.is_feature_enabled("beta", "free")
        assert feature_flags.delete_flag(flag.id)
        assert not feature_flags.is_feature_enabled("beta", "free")


class TestSeedDefaults:
    """Tests for seed_defaults."""

    def test_first_run(self, seeded):
        assert seeded.exercises == 3
        assert seeded.texts == 3
        assert seeded.limits == 3
        assert seeded.plans == 3
        assert seeded.flags == len(DEFAULT_FLAGS)

    def test_idempotent(self, seeded):
        again = seed_defaults()
        assert again.total == 0
        assert len(exercises_repository.list_exercises(include_inactive=True)) == 3

    def test_exercise_tiers(self, seeded):
        free = {e.type for e in exercises_repository.list_exercises(tier="free")}
        assert free == {"mindset"}
        reader = {e.type for e in exercises_repository.list_exercises(tier="reader")}
        assert reader == {"mindset", "word_flasher", "3-2-1"}
