"""Feature flags gated by subscription tier."""

from __future__ import annotations

import sqlite3
from typing import Any

import structlog

from readspeed.core.subscriptions import TIERS, UnknownTierError, tier_at_least
from readspeed.db import platform_repository as platform
from readspeed.db.platform_repository import FeatureFlagRecord

logger = structlog.get_logger(__name__)


class FeatureFlagError(Exception):
    """Raised for invalid flag definitions."""


def is_feature_enabled(name: str, tier: str) -> bool:
    """Whether a flag is on for a tier.

    Unknown or disabled flags are off. Otherwise the tier must be at or
    above the flag's required tier.
    """
    flag = platform.get_flag(name)
    if flag is None or not flag.enabled:
        return False
    return tier_at_least(tier, flag.requires_subscription)


def enabled_features(tier: str) -> list[str]:
    """Names of every flag enabled for a tier."""
    return [
        f.name
        for f in platform.list_flags()
        if f.enabled and tier_at_least(tier, f.requires_subscription)
    ]


def list_flags() -> list[FeatureFlagRecord]:
    return platform.list_flags()


def create_flag(
    name: str,
    description: str | None = None,
    enabled: bool = False,
    requires_subscription: str = "free",
    metadata: dict[str, Any] | None = None,
) -> FeatureFlagRecord:
    """Create a flag.

    Raises:
        FeatureFlagError: On an empty or duplicate name
        UnknownTierError: On an unknown tier
    """
    name = name.strip()
    if not name:
        raise FeatureFlagError("Flag name is required")
    if requires_subscription not in TIERS:
        raise UnknownTierError(requires_subscription)
    try:
        flag = platform.insert_flag(name, description, enabled, requires_subscription, metadata)
    except sqlite3.IntegrityError as e:
        raise FeatureFlagError(f"Feature flag '{name}' already exists") from e
    logger.info("feature_flags.created", name=name, enabled=enabled)
    return flag


def update_flag(flag_id: str, **fields) -> FeatureFlagRecord | None:
    tier = fields.get("requires_subscription")
    if tier is not None and tier not in TIERS:
        raise UnknownTierError(tier)
    flag = platform.update_flag(flag_id, **fields)
    if flag is not None:
        logger.info("feature_flags.updated", name=flag.name, enabled=flag.enabled)
    return flag


def delete_flag(flag_id: str) -> bool:
    return platform.delete_flag(flag_id)
