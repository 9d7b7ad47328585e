"""
Entitlement checking for plan-gated operations.

Uses dependency injection pattern consistent with permissions.py.

Usage:
    @router.post("")
    def create_pass(
        account: dict = Depends(require_can_create_pass),
    ):
        # Only executes if the account is approved AND its plan has room
        pass
"""
from fastapi import Depends, HTTPException, status

from app.core.permissions import require_approved_account
from app.core.plans import get_plan_limits, is_platform_allowed, remaining_passes
from app.repositories.pass_record import PassRepository


class LimitExceededError(HTTPException):
    """Raised when a plan limit would be exceeded by an operation."""

    def __init__(self, resource: str, limit: int, current: int):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "LIMIT_EXCEEDED",
                "resource": resource,
                "limit": limit,
                "current": current,
                "message": f"Your plan allows {limit} {resource}. You currently have {current}.",
                "upgrade_required": True,
            }
        )


class PlatformNotAvailableError(HTTPException):
    """Raised when a platform is not included in the account's plan."""

    def __init__(self, platform: str):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "PLATFORM_NOT_AVAILABLE",
                "platform": platform,
                "message": f"Your plan does not include the '{platform}' platform.",
                "upgrade_required": True,
            }
        )


def require_can_create_pass(
    account: dict = Depends(require_approved_account)
) -> dict:
    """Dependency that checks if the account can create another pass.

    Raises:
        LimitExceededError: If the plan's pass limit would be exceeded

    Returns:
        The account dict for chaining
    """
    limits = get_plan_limits(account.get("plan"))
    max_passes = limits["pass_limit"]
    if max_passes is not None:
        current = PassRepository.count(account["id"])
        if current >= max_passes:
            raise LimitExceededError("passes", max_passes, current)
    return account


def check_platforms(account: dict, platforms: list[str]) -> None:
    """Raise PlatformNotAvailableError for the first platform the plan excludes."""
    for platform in platforms:
        if not is_platform_allowed(account.get("plan"), platform):
            raise PlatformNotAvailableError(platform)


def get_account_limits_and_usage(account: dict) -> dict:
    """Get both limits and current usage for an account.

    Useful for the settings page to show usage vs limits.
    """
    current = PassRepository.count(account["id"])
    return {
        "plan": account.get("plan") or "free",
        "limits": get_plan_limits(account.get("plan")),
        "usage": {"passes": current},
        "remaining": {"passes": remaining_passes(account.get("plan"), current)},
    }
