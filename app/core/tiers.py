"""
Account tier definitions and gate predicates.
Single source of truth for tier ordering.

Accounts move through four tiers, strictly in order and never backwards:

    Email_Verified -> Verified_And_Configured -> Production -> Live

The frontend mirrors this ordering for the tier badge and roadmap.
"""
from enum import Enum
from typing import TypedDict


class AccountTier(str, Enum):
    """Account tier identifiers, declared in progression order."""
    EMAIL_VERIFIED = "Email_Verified"
    VERIFIED_AND_CONFIGURED = "Verified_And_Configured"
    PRODUCTION = "Production"
    LIVE = "Live"

    @property
    def position(self) -> int:
        return TIER_ORDER.index(self)


TIER_ORDER: list[AccountTier] = list(AccountTier)

DEFAULT_TIER = AccountTier.EMAIL_VERIFIED


class TierInfo(TypedDict):
    """Display metadata for a tier."""
    name: str
    description: str


TIER_INFO: dict[AccountTier, TierInfo] = {
    AccountTier.EMAIL_VERIFIED: {
        "name": "Email Verified",
        "description": "Sign up complete. Configure Apple and Google Wallet to continue.",
    },
    AccountTier.VERIFIED_AND_CONFIGURED: {
        "name": "Verified & Configured",
        "description": "Both wallets configured. Request a production review when ready.",
    },
    AccountTier.PRODUCTION: {
        "name": "Production",
        "description": "Approved for production. Complete the pre-launch checklist to go live.",
    },
    AccountTier.LIVE: {
        "name": "Live",
        "description": "Distributing passes to customers.",
    },
}

# Pre-launch checklist items, all required to go live
CHECKLIST_ITEMS = (
    "apple_configured",
    "google_configured",
    "first_pass_created",
    "profile_complete",
    "tested_on_device",
)

# Items the user asserts themselves; the rest are derived from account state
USER_ASSERTED_ITEMS = ("tested_on_device",)


class TierTransitionError(Exception):
    """Raised when a tier operation is not allowed from the account's current state."""

    def __init__(self, message: str, errors: dict[str, list[str]] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}


def parse_tier(value: str | None) -> AccountTier:
    """Parse a stored tier string, defaulting to Email_Verified when unset."""
    if not value:
        return DEFAULT_TIER
    return AccountTier(value)


def next_tier(tier: AccountTier) -> AccountTier | None:
    """The tier directly after `tier`, or None at the top."""
    position = tier.position
    if position + 1 >= len(TIER_ORDER):
        return None
    return TIER_ORDER[position + 1]


def is_forward_step(current: AccountTier, target: AccountTier) -> bool:
    """True only when `target` is the immediate successor of `current`."""
    return next_tier(current) == target


def can_request_production(
    tier: AccountTier,
    has_apple_certificate: bool,
    has_google_credential: bool,
) -> bool:
    return (
        tier == AccountTier.VERIFIED_AND_CONFIGURED
        and has_apple_certificate
        and has_google_credential
    )


def can_go_live(tier: AccountTier, checklist: dict[str, bool]) -> bool:
    """Every checklist item must pass at the same time, from Production only."""
    if tier != AccountTier.PRODUCTION:
        return False
    return all(checklist.get(item, False) for item in CHECKLIST_ITEMS)


def is_profile_complete(account: dict) -> bool:
    return bool((account.get("name") or "").strip()) and bool(
        (account.get("business_name") or "").strip()
    )
