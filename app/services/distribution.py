"""
Shareable pass links.

Each link is public at {base_url}/p/{slug}. Resolving a link records the
access and tells the client which wallet to offer based on the device.
"""

import logging
import re
import uuid

from fastapi import HTTPException

from app.core.config import get_public_base_url, settings
from app.repositories.distribution_link import DistributionLinkRepository
from app.repositories.pass_record import PassRepository
from app.services.passes import is_expired
from app.services.qr_generator import generate_qr_code_base64
from app.services.storage import get_storage_service

logger = logging.getLogger(__name__)

IOS_MARKERS = re.compile(r"iPhone|iPad|iPod", re.IGNORECASE)
ANDROID_MARKER = re.compile(r"Android", re.IGNORECASE)


def link_url(slug: str) -> str:
    return f"{get_public_base_url()}/p/{slug}"


def serialize_link(link: dict) -> dict:
    return {**link, "url": link_url(link["slug"])}


def detect_device(user_agent: str | None) -> str:
    """ios, android or unknown from a User-Agent header."""
    if not user_agent:
        return "unknown"
    if IOS_MARKERS.search(user_agent):
        return "ios"
    if ANDROID_MARKER.search(user_agent):
        return "android"
    return "unknown"


def pkpass_url(pkpass_path: str | None) -> str | None:
    """Public URL of a stored .pkpass file. Absolute URLs are returned unchanged."""
    if not pkpass_path:
        return None
    if pkpass_path.startswith(("http://", "https://")):
        return pkpass_path
    return get_storage_service().get_public_url(settings.passes_bucket, pkpass_path)


def add_to_wallet_url(pass_row: dict, device: str) -> str | None:
    """Where the "Add to Wallet" button points for this device."""
    platforms = pass_row.get("platforms") or []
    if device == "ios" and "apple" in platforms:
        return pkpass_url(pass_row.get("pkpass_path"))
    if device == "android" and "google" in platforms:
        return pass_row.get("google_save_url")
    return None


def create_link(pass_row: dict) -> dict:
    link = DistributionLinkRepository.create(pass_row["id"], str(uuid.uuid4()))
    if not link:
        raise HTTPException(status_code=500, detail="Failed to create distribution link")
    logger.info(f"Created distribution link {link['slug']} for pass {pass_row['id']}")
    return serialize_link(link)


def list_links(pass_row: dict) -> list[dict]:
    return [serialize_link(link) for link in DistributionLinkRepository.list_for_pass(pass_row["id"])]


def set_link_status(pass_row: dict, link_id: str, status: str) -> dict:
    link = DistributionLinkRepository.get_for_pass(link_id, pass_row["id"])
    if not link:
        raise HTTPException(status_code=404, detail="Distribution link not found")
    if link["status"] == status:
        return serialize_link(link)
    updated = DistributionLinkRepository.update(link_id, status=status)
    if not updated:
        raise HTTPException(status_code=500, detail="Failed to update distribution link")
    return serialize_link(updated)


def resolve_public(slug: str, user_agent: str | None) -> dict:
    """Resolve a public link for the landing page.

    Raises:
        HTTPException: 404 unknown link, 403 disabled link, 410 voided pass
    """
    link = DistributionLinkRepository.get_by_slug(slug)
    if not link:
        raise HTTPException(status_code=404, detail="Pass link not found")
    if link["status"] != "active":
        raise HTTPException(status_code=403, detail="This pass link has been disabled")

    pass_row = PassRepository.get_by_id(link["pass_id"])
    if not pass_row:
        raise HTTPException(status_code=404, detail="Pass link not found")
    if pass_row.get("status") == "voided":
        raise HTTPException(status_code=410, detail="This pass is no longer available")

    DistributionLinkRepository.record_access(link)

    expired = pass_row.get("status") == "expired" or is_expired(pass_row)
    device = detect_device(user_agent)
    url = link_url(slug)
    return {
        "slug": slug,
        "link_status": "expired" if expired else "active",
        "device": device,
        "pass_type": pass_row["pass_type"],
        "platforms": pass_row.get("platforms") or [],
        "description": (pass_row.get("pass_data") or {}).get("description"),
        "add_to_wallet_url": None if expired else add_to_wallet_url(pass_row, device),
        "qr_code": generate_qr_code_base64(url),
        "url": url,
    }
