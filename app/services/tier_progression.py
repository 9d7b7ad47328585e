"""
Account tier progression.

Only the first step (Email_Verified -> Verified_And_Configured) happens
automatically. Production is granted by an admin and Live by the account
owner once the pre-launch checklist passes.

All tier writes go through `_transition`, which updates the row only while
its stored tier still equals the tier the decision was based on.
"""

import logging

from app.core.tiers import (
    CHECKLIST_ITEMS,
    TIER_INFO,
    AccountTier,
    TierTransitionError,
    can_go_live,
    can_request_production,
    is_forward_step,
    is_profile_complete,
    parse_tier,
)
from app.repositories.account import AccountRepository
from app.repositories.apple_certificate import AppleCertificateRepository
from app.repositories.google_credential import GoogleCredentialRepository
from app.repositories.pass_record import PassRepository
from app.services.certificate_validation import is_expired
from app.services.email import get_email_service
from database.connection import utcnow_iso

logger = logging.getLogger(__name__)


def has_apple_certificate(account_id: str) -> bool:
    return bool(AppleCertificateRepository.list_for_account(account_id))


def has_valid_apple_certificate(account_id: str) -> bool:
    """At least one non-deleted certificate that has not expired yet."""
    return any(
        cert.get("expiry_date") and not is_expired(cert["expiry_date"])
        for cert in AppleCertificateRepository.list_for_account(account_id)
    )


def has_google_credential(account_id: str) -> bool:
    return bool(GoogleCredentialRepository.list_for_account(account_id))


def _notify(send, *args) -> None:
    try:
        send(*args)
    except Exception as e:
        logger.error(f"Failed to send {send.__name__} notification: {e}")


def _transition(account: dict, target: AccountTier, **fields) -> dict:
    current = parse_tier(account.get("tier"))
    if not is_forward_step(current, target):
        raise TierTransitionError(
            f"Cannot move from {current.value} to {target.value}.",
            {"tier": [f"Tier can only advance one step at a time from {current.value}."]},
        )

    updated = AccountRepository.update_if_tier(account["id"], current.value, tier=target.value, **fields)
    if not updated:
        raise TierTransitionError(
            "Account tier changed while processing the request. Please retry.",
            {"tier": ["Tier was modified concurrently."]},
        )
    logger.info(f"Account {account['id']} advanced from {current.value} to {target.value}")
    return updated


def evaluate_and_advance(account: dict) -> dict:
    """Auto-advance Email_Verified accounts once approved and both wallets are configured.

    Returns the (possibly updated) account. Never advances past
    Verified_And_Configured.
    """
    if account.get("approval_status") != "approved":
        return account
    if parse_tier(account.get("tier")) != AccountTier.EMAIL_VERIFIED:
        return account
    if not (has_apple_certificate(account["id"]) and has_google_credential(account["id"])):
        return account

    try:
        updated = _transition(account, AccountTier.VERIFIED_AND_CONFIGURED)
    except TierTransitionError as e:
        # Another request already advanced the account
        logger.info(f"Skipped auto-advance for account {account['id']}: {e.message}")
        return AccountRepository.get_by_id(account["id"]) or account

    _notify(
        get_email_service().send_tier_advanced,
        updated["email"],
        updated.get("name"),
        TIER_INFO[AccountTier.VERIFIED_AND_CONFIGURED]["name"],
    )
    return updated


def check_can_request_production(account: dict) -> bool:
    return can_request_production(
        parse_tier(account.get("tier")),
        has_apple_certificate(account["id"]),
        has_google_credential(account["id"]),
    )


def submit_production_request(account: dict) -> dict:
    if not check_can_request_production(account):
        raise TierTransitionError(
            "You cannot request production tier at this time.",
            {"tier": ["Both Apple and Google Wallet must be configured at the Verified & Configured tier."]},
        )

    updated = AccountRepository.update_if_tier(
        account["id"],
        AccountTier.VERIFIED_AND_CONFIGURED.value,
        production_requested_at=utcnow_iso(),
        production_rejected_at=None,
        production_rejected_reason=None,
    )
    if not updated:
        raise TierTransitionError("Account tier changed while processing the request. Please retry.")

    email_service = get_email_service()
    _notify(email_service.send_production_request_received, updated["email"], updated.get("name"))
    for admin in AccountRepository.get_admins():
        _notify(
            email_service.send_admin_production_request,
            admin["email"],
            updated.get("name") or "",
            updated["email"],
        )
    return updated


def _require_tier(account: dict, tier: AccountTier, action: str) -> None:
    if parse_tier(account.get("tier")) != tier:
        raise TierTransitionError(
            f"Account must be in the {tier.value} tier to {action}.",
            {"tier": [f"Current tier is {parse_tier(account.get('tier')).value}."]},
        )


def approve_production(account: dict, admin: dict) -> dict:
    _require_tier(account, AccountTier.VERIFIED_AND_CONFIGURED, "approve for production")
    updated = _transition(
        account,
        AccountTier.PRODUCTION,
        production_approved_at=utcnow_iso(),
        production_approved_by=admin["id"],
        production_requested_at=None,
        production_rejected_at=None,
        production_rejected_reason=None,
    )
    _notify(get_email_service().send_production_approved, updated["email"], updated.get("name"))
    return updated


def reject_production(account: dict, admin: dict, reason: str) -> dict:
    _require_tier(account, AccountTier.VERIFIED_AND_CONFIGURED, "reject a production request")
    updated = AccountRepository.update_if_tier(
        account["id"],
        AccountTier.VERIFIED_AND_CONFIGURED.value,
        production_requested_at=None,
        production_rejected_reason=reason,
        production_rejected_at=utcnow_iso(),
    )
    if not updated:
        raise TierTransitionError("Account tier changed while processing the request. Please retry.")
    logger.info(f"Admin {admin['id']} rejected production for account {account['id']}")
    _notify(get_email_service().send_production_rejected, updated["email"], updated.get("name"), reason)
    return updated


def evaluate_checklist(account: dict) -> dict[str, bool]:
    """Current state of every pre-launch checklist item."""
    stored = account.get("pre_launch_checklist") or {}
    return {
        "apple_configured": has_valid_apple_certificate(account["id"]),
        "google_configured": has_google_credential(account["id"]),
        "first_pass_created": PassRepository.count(account["id"]) > 0,
        "profile_complete": is_profile_complete(account),
        "tested_on_device": bool(stored.get("tested_on_device")),
    }


def request_live(account: dict) -> dict:
    """Evaluate the checklist without advancing."""
    _require_tier(account, AccountTier.PRODUCTION, "request live")
    checklist = evaluate_checklist(account)
    return {
        "ready": can_go_live(AccountTier.PRODUCTION, checklist),
        "checklist": checklist,
        "missing": [item for item in CHECKLIST_ITEMS if not checklist[item]],
    }


def advance_to_live(account: dict) -> dict:
    _require_tier(account, AccountTier.PRODUCTION, "go live")
    checklist = evaluate_checklist(account)
    if not can_go_live(AccountTier.PRODUCTION, checklist):
        missing = [item for item in CHECKLIST_ITEMS if not checklist[item]]
        raise TierTransitionError(
            "Pre-launch checklist requirements not met.",
            {item: ["This item is not complete."] for item in missing},
        )

    updated = _transition(account, AccountTier.LIVE, live_approved_at=utcnow_iso())
    _notify(get_email_service().send_live_tier, updated["email"], updated.get("name"))
    return updated


def mark_checklist_item(account: dict, item: str, value: bool = True) -> dict:
    checklist = dict(account.get("pre_launch_checklist") or {})
    checklist[item] = value
    return AccountRepository.update(account["id"], pre_launch_checklist=checklist) or account


def next_tier_requirements(account: dict) -> list[dict]:
    """Human-readable requirements for the next tier."""
    tier = parse_tier(account.get("tier"))
    account_id = account["id"]

    if tier == AccountTier.EMAIL_VERIFIED:
        return [
            {"name": "Configure Apple Wallet", "met": has_apple_certificate(account_id)},
            {"name": "Configure Google Wallet", "met": has_google_credential(account_id)},
        ]
    if tier == AccountTier.VERIFIED_AND_CONFIGURED:
        return [
            {"name": "All wallets configured", "met": True},
            {"name": "Request Production review", "met": bool(account.get("production_requested_at"))},
        ]
    if tier == AccountTier.PRODUCTION:
        checklist = evaluate_checklist(account)
        return [
            {"name": "Create test passes", "met": checklist["first_pass_created"]},
            {"name": "Test on a device", "met": checklist["tested_on_device"]},
            {"name": "Complete pre-launch checklist", "met": all(checklist.values())},
        ]
    return [{"name": "Account is live!", "met": True}]


def tier_status(account: dict) -> dict:
    tier = parse_tier(account.get("tier"))
    return {
        "tier": tier.value,
        "tier_name": TIER_INFO[tier]["name"],
        "description": TIER_INFO[tier]["description"],
        "can_request_production": check_can_request_production(account),
        "production_requested_at": account.get("production_requested_at"),
        "production_rejected_reason": account.get("production_rejected_reason"),
        "requirements": next_tier_requirements(account),
        "checklist": evaluate_checklist(account),
    }
