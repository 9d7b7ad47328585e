"""
Subscription plan definitions and pass limits.
Single source of truth for plan entitlements.

Billing itself lives with the payment provider; accounts only carry the
plan key, which defaults to the free plan.
"""
from enum import Enum
from typing import TypedDict


class Plan(str, Enum):
    """Subscription plan identifiers."""
    FREE = "free"
    STARTER = "starter"
    GROWTH = "growth"
    BUSINESS = "business"
    ENTERPRISE = "enterprise"


class PlanLimits(TypedDict):
    """Type definition for plan limit configuration."""
    name: str
    pass_limit: int | None  # None = unlimited
    platforms: list[str]


PLAN_LIMITS: dict[Plan, PlanLimits] = {
    Plan.FREE: {"name": "Free", "pass_limit": 25, "platforms": ["apple", "google"]},
    Plan.STARTER: {"name": "Starter", "pass_limit": 100, "platforms": ["apple", "google"]},
    Plan.GROWTH: {"name": "Growth", "pass_limit": 500, "platforms": ["apple", "google"]},
    Plan.BUSINESS: {"name": "Business", "pass_limit": 2000, "platforms": ["apple", "google"]},
    Plan.ENTERPRISE: {"name": "Enterprise", "pass_limit": None, "platforms": ["apple", "google"]},
}


def get_plan_limits(plan: str | None) -> PlanLimits:
    """Get limits for a plan, defaulting to FREE if unknown."""
    try:
        return PLAN_LIMITS[Plan(plan)]
    except (ValueError, KeyError):
        return PLAN_LIMITS[Plan.FREE]


def is_platform_allowed(plan: str | None, platform: str) -> bool:
    return platform in get_plan_limits(plan)["platforms"]


def remaining_passes(plan: str | None, current_count: int) -> int | None:
    """Passes left before the plan limit, or None if unlimited."""
    limit = get_plan_limits(plan)["pass_limit"]
    if limit is None:
        return None
    return max(0, limit - current_count)
