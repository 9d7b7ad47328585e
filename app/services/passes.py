"""
Pass and template rules shared by the passes and templates routes.

Passes may be seeded from a template: the template's design_data supplies
defaults that the request's pass_data overrides key by key.
"""

import copy
import json
import logging
import re
import uuid
from datetime import datetime, timezone

from pydantic import ValidationError

from app.domain.schemas import BARCODE_FORMAT_PATTERN, TRANSIT_TYPE_PATTERN, PassField
from app.repositories.onboarding import OnboardingRepository
from app.repositories.pass_record import PassRepository
from app.repositories.pass_template import PassTemplateRepository
from app.services.pass_images import apply_upload, normalize_images, preview_url, quality_warning, remove_slot
from database.connection import parse_timestamp

logger = logging.getLogger(__name__)

PASS_TYPES = (
    "generic",
    "coupon",
    "boardingPass",
    "eventTicket",
    "storeCard",
    "offer",
    "loyalty",
    "transit",
    "stampCard",
)

# Pass types each wallet can render
PLATFORM_PASS_TYPES = {
    "apple": {"generic", "coupon", "boardingPass", "eventTicket", "storeCard", "stampCard"},
    "google": {"generic", "offer", "loyalty", "eventTicket", "boardingPass", "transit", "stampCard"},
}

TRANSIT_PASS_TYPES = {"boardingPass", "transit"}

# Serialized pass_data cap, in bytes
PASS_DATA_MAX_BYTES = 10240

# Compare-and-set attempts before a contended pass write gives up
WRITE_ATTEMPTS = 3

APPLE_FIELD_GROUPS = ["headerFields", "primaryFields", "secondaryFields", "auxiliaryFields", "backFields"]
GOOGLE_FIELD_GROUPS = ["primaryFields", "secondaryFields", "auxiliaryFields", "backFields"]

PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_.-]+)\s*\}\}")


class PassValidationError(ValueError):
    """Raised with per-field messages when a pass definition is not acceptable."""

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        self.message = next(iter(errors.values()))[0]
        super().__init__(self.message)


def field_map(pass_type: str, platform: str) -> dict:
    """Field groups the editor shows for a pass type on a platform."""
    groups = APPLE_FIELD_GROUPS if platform == "apple" else GOOGLE_FIELD_GROUPS
    constraints = {"requires": ["transitType"]} if pass_type in TRANSIT_PASS_TYPES else {}
    return {
        "pass_type": pass_type,
        "platform": platform,
        "field_groups": list(groups),
        "constraints": constraints,
    }


def apply_template_defaults(defaults: dict, overrides: dict) -> dict:
    """Merge request values over template defaults.

    - None keeps the default
    - "" clears the value explicitly
    - nested dicts merge recursively, lists and scalars replace
    """
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, dict):
            base = merged.get(key)
            merged[key] = apply_template_defaults(base if isinstance(base, dict) else {}, value)
            continue
        merged[key] = copy.deepcopy(value)
    return merged


def replace_placeholders(data, values: dict[str, str | None]):
    """Substitute {{key}} placeholders in every string of a nested structure."""
    if isinstance(data, dict):
        return {k: replace_placeholders(v, values) for k, v in data.items()}
    if isinstance(data, list):
        return [replace_placeholders(v, values) for v in data]
    if isinstance(data, str):
        return PLACEHOLDER.sub(
            lambda m: str(values[m.group(1)] or "") if m.group(1) in values else m.group(0),
            data,
        )
    return data


def validate_definition(pass_type: str, platforms: list[str], pass_data: dict,
                        barcode_data: dict | None) -> None:
    """Check the cross-field rules that plain schema validation can't express."""
    errors: dict[str, list[str]] = {}

    if pass_type not in PASS_TYPES:
        errors.setdefault("pass_type", []).append(f"Unsupported pass type '{pass_type}'.")
    else:
        for platform in platforms:
            if pass_type not in PLATFORM_PASS_TYPES.get(platform, set()):
                errors.setdefault("platforms", []).append(
                    f"The {pass_type} pass type is not available on {platform}."
                )

    if pass_type in TRANSIT_PASS_TYPES:
        transit_type = pass_data.get("transitType")
        if not transit_type:
            errors.setdefault("pass_data.transitType", []).append(
                "A transit type is required for this pass type."
            )
        elif not re.match(TRANSIT_TYPE_PATTERN, str(transit_type)):
            errors.setdefault("pass_data.transitType", []).append(f"Unsupported transit type '{transit_type}'.")

    groups = set(APPLE_FIELD_GROUPS)
    for group in groups:
        fields = pass_data.get(group)
        if fields is None:
            continue
        if not isinstance(fields, list):
            errors.setdefault(f"pass_data.{group}", []).append("Fields must be a list.")
            continue
        for index, field in enumerate(fields):
            try:
                PassField.model_validate(field)
            except ValidationError:
                errors.setdefault(f"pass_data.{group}.{index}", []).append("Each field needs a key.")

    if barcode_data and not re.match(BARCODE_FORMAT_PATTERN, str(barcode_data.get("format", ""))):
        errors.setdefault("barcode_data.format", []).append("Unsupported barcode format.")

    if errors:
        raise PassValidationError(errors)


def is_expired(pass_row: dict, now: datetime | None = None) -> bool:
    """A pass expires once pass_data.expiry_date is in the past."""
    expiry = (pass_row.get("pass_data") or {}).get("expiry_date")
    if not expiry:
        return False
    now = now or datetime.now(timezone.utc)
    try:
        return parse_timestamp(expiry) < now
    except ValueError:
        logger.warning(f"Pass {pass_row.get('id')} has an unparseable expiry_date: {expiry}")
        return False


def effective_status(pass_row: dict) -> str:
    status = pass_row.get("status") or "active"
    if status == "active" and is_expired(pass_row):
        return "expired"
    return status


def serialize_pass(pass_row: dict) -> dict:
    return {
        **pass_row,
        "status": effective_status(pass_row),
        "is_expired": is_expired(pass_row),
        "image_previews": image_previews(pass_row.get("images"), pass_row.get("platforms") or []),
    }


def create_pass(account: dict, payload: dict) -> dict:
    """Create a pass, optionally seeded from one of the account's templates.

    Raises:
        LookupError: if the template does not exist for this account
        PassValidationError: if the resulting definition is invalid
    """
    pass_data = payload.get("pass_data") or {}
    barcode_data = payload.get("barcode_data")
    images = payload.get("images")
    pass_type = payload.get("pass_type")
    template_id = payload.get("pass_template_id")

    if template_id:
        template = PassTemplateRepository.get_for_account(template_id, account["id"])
        if not template:
            raise LookupError("Template not found")
        pass_type = pass_type or template["pass_type"]
        pass_data = apply_template_defaults(template.get("design_data") or {}, pass_data)
        barcode_data = barcode_data or template.get("barcode_data")
        images = images or template.get("images")

    if not pass_type:
        raise PassValidationError({"pass_type": ["The pass type field is required."]})

    custom_fields = payload.get("custom_fields")
    if custom_fields:
        pass_data = replace_placeholders(pass_data, custom_fields)

    if not barcode_data:
        barcode_data = {
            "format": "PKBarcodeFormatQR",
            "message": payload.get("member_id"),
            "altText": None,
        }

    platforms = payload["platforms"]
    validate_definition(pass_type, platforms, pass_data, barcode_data)
    check_pass_data_size(pass_data)

    created = PassRepository.create(
        account["id"],
        pass_template_id=template_id,
        serial_number=str(uuid.uuid4()),
        pass_type=pass_type,
        platforms=platforms,
        status="active",
        pass_data=pass_data,
        barcode_data=barcode_data,
        images=images or {},
    )
    if not created:
        raise RuntimeError("Failed to create pass")

    OnboardingRepository.mark_complete(account["id"], "first_pass")
    logger.info(f"Account {account['id']} created {pass_type} pass {created['id']}")
    return created


def check_pass_data_size(pass_data: dict) -> None:
    if len(json.dumps(pass_data, separators=(",", ":"))) > PASS_DATA_MAX_BYTES:
        raise PassValidationError({"pass_data": ["Pass data exceeds 10KB limit after update."]})


def ensure_not_voided(pass_row: dict) -> None:
    if pass_row.get("status") == "voided":
        raise PassValidationError({"status": ["Voided passes cannot be updated."]})


def update_pass(pass_row: dict, changes: dict) -> dict:
    """Apply a partial update, re-validating the merged definition.

    Voided passes are final and reject every change.
    """
    ensure_not_voided(pass_row)
    platforms = changes.get("platforms") or pass_row["platforms"]
    pass_data = changes["pass_data"] if changes.get("pass_data") is not None else pass_row.get("pass_data") or {}
    barcode_data = changes.get("barcode_data") or pass_row.get("barcode_data")
    validate_definition(pass_row["pass_type"], platforms, pass_data, barcode_data)
    check_pass_data_size(pass_data)

    updated = PassRepository.update(pass_row["id"], **changes)
    if not updated:
        raise RuntimeError("Failed to update pass")
    return updated


def void_pass(pass_row: dict) -> dict:
    if pass_row.get("status") == "voided":
        return pass_row
    updated = PassRepository.update(pass_row["id"], status="voided")
    if not updated:
        raise RuntimeError("Failed to void pass")
    logger.info(f"Voided pass {pass_row['id']}")
    return updated


def validate_template(pass_type: str, platforms: list[str], design_data: dict,
                      barcode_data: dict | None) -> None:
    validate_definition(pass_type, platforms, design_data, barcode_data)


def image_previews(images: dict | None, platforms: list[str]) -> dict:
    """Preview URL and upscaling flag for every uploaded slot, per platform."""
    previews: dict = {}
    for platform in platforms:
        variants = normalize_images(images, platform)["variants"].get(platform) or {}
        for slot in variants:
            url = preview_url(images, platform, slot)
            if url:
                previews.setdefault(platform, {})[slot] = {
                    "url": url,
                    "quality_warning": quality_warning(images, platform, slot),
                }
    return previews


def stored_image_paths(images: dict | None) -> list[str]:
    """Storage paths of every original and variant in an image map."""
    normalized = normalize_images(images, "apple")
    paths = [o["path"] for o in normalized["originals"].values() if o.get("path")]
    for slots in normalized["variants"].values():
        for scales in slots.values():
            paths.extend(v["path"] for v in scales.values() if v.get("path"))
    return paths


def write_with_retry(pass_row: dict, change) -> dict:
    """Write `change(current_row)` to the pass with a compare-and-set on updated_at.

    When a concurrent write lands first the pass is re-read and the change is
    computed again from the newer row, so independent edits are not lost.
    """
    current = pass_row
    for _ in range(WRITE_ATTEMPTS):
        updated = PassRepository.update_if_unchanged(current["id"], current.get("updated_at"), **change(current))
        if updated:
            return updated
        current = PassRepository.get_by_id(pass_row["id"])
        if not current:
            raise LookupError("Pass not found")
    raise RuntimeError(f"Pass {pass_row['id']} kept changing during the update")


def attach_image(pass_row: dict, platform: str, slot: str, result: dict) -> dict:
    return write_with_retry(
        pass_row, lambda row: {"images": apply_upload(row.get("images"), platform, slot, result)}
    )


def detach_image(pass_row: dict, platform: str, slot: str) -> dict:
    return write_with_retry(pass_row, lambda row: {"images": remove_slot(row.get("images"), platform, slot)})
