"""
Apple certificate expiry notices.

Run daily (see scripts/check_certificate_expiry.py). Each certificate gets at
most one notice per window:

    30 days  expires 8-30 days from now
    7 days   expires within the next 7 days
    0 days   already expired

A flag is only set after the email went out, so failed sends are retried on
the next run.
"""

import logging
from datetime import datetime, timedelta, timezone

from app.repositories.account import AccountRepository
from app.repositories.apple_certificate import AppleCertificateRepository
from app.services.email import get_email_service
from database.connection import parse_timestamp

logger = logging.getLogger(__name__)

NOTICE_FLAGS = {
    30: "expiry_notified_30_days",
    7: "expiry_notified_7_days",
    0: "expiry_notified_0_days",
}


def notice_due(certificate: dict, now: datetime) -> int | None:
    """Which notice (30, 7 or 0) the certificate needs now, if any."""
    expiry = parse_timestamp(certificate["expiry_date"])

    if expiry <= now:
        return None if certificate.get("expiry_notified_0_days") else 0
    if expiry <= now + timedelta(days=7):
        return None if certificate.get("expiry_notified_7_days") else 7
    if now + timedelta(days=8) <= expiry <= now + timedelta(days=30):
        return None if certificate.get("expiry_notified_30_days") else 30
    return None


def send_expiry_notice(certificate: dict, days_remaining: int) -> bool:
    account = AccountRepository.get_by_id(certificate["account_id"])
    if not account:
        logger.warning(f"Certificate {certificate['id']} has no account, skipping expiry notice")
        return False

    expiry_label = parse_timestamp(certificate["expiry_date"]).strftime("%Y-%m-%d")
    try:
        get_email_service().send_certificate_expiry(
            account["email"], account.get("name"), expiry_label, days_remaining
        )
    except Exception as e:
        logger.error(f"Failed to send {days_remaining}-day expiry notice for certificate {certificate['id']}: {e}")
        return False

    AppleCertificateRepository.update(certificate["id"], **{NOTICE_FLAGS[days_remaining]: True})
    return True


def check_certificate_expiry(now: datetime | None = None) -> dict[int, int]:
    """Send every due notice. Returns the number of notices sent per window."""
    now = now or datetime.now(timezone.utc)
    sent = {30: 0, 7: 0, 0: 0}

    for certificate in AppleCertificateRepository.list_active():
        days = notice_due(certificate, now)
        if days is None:
            continue
        if send_expiry_notice(certificate, days):
            sent[days] += 1

    logger.info(f"Certificate expiry sweep sent notices: {sent}")
    return sent
