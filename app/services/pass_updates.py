"""
Field-level pass updates, their history and bulk updates across a template.

A field update changes the `value` (and optionally the `changeMessage`) of
fields that already exist on the pass. Each successful update records the
old and new values in pass_updates so the owner can see what changed.
"""

import copy
import logging
from datetime import datetime, timedelta, timezone

from app.core.config import settings
from app.repositories.bulk_update import BulkUpdateRepository
from app.repositories.pass_record import PassRepository
from app.repositories.pass_template import PassTemplateRepository
from app.repositories.pass_update import PassUpdateRepository
from app.services.passes import (
    APPLE_FIELD_GROUPS,
    PassValidationError,
    check_pass_data_size,
    ensure_not_voided,
    write_with_retry,
)
from database.connection import utcnow_iso

logger = logging.getLogger(__name__)

UPDATE_SOURCES = ("dashboard", "api", "bulk")


def field_keys(data: dict | None) -> set[str]:
    keys = set()
    for group in APPLE_FIELD_GROUPS:
        for field in (data or {}).get(group) or []:
            if isinstance(field, dict) and field.get("key"):
                keys.add(field["key"])
    return keys


def allowed_field_keys(pass_row: dict) -> set[str]:
    """Keys a field update may touch.

    Passes created from a template are limited to the template's fields.
    Passes without one (or whose template was deleted) use their own.
    """
    if pass_row.get("pass_template_id"):
        template = PassTemplateRepository.get_for_account(pass_row["pass_template_id"], pass_row["account_id"])
        if template:
            return field_keys(template.get("design_data"))
    return field_keys(pass_row.get("pass_data"))


def apply_field_values(pass_data: dict, fields: dict, change_messages: dict | None = None) -> tuple[dict, dict]:
    """Return the updated pass_data and a {key: {old, new}} change map.

    Keys missing from pass_data are appended to primaryFields.
    """
    data = copy.deepcopy(pass_data or {})
    change_messages = change_messages or {}
    changed = {}

    for key, value in fields.items():
        target = None
        for group in APPLE_FIELD_GROUPS:
            for field in data.get(group) or []:
                if isinstance(field, dict) and field.get("key") == key:
                    target = field
                    break
            if target is not None:
                break
        if target is None:
            target = {"key": key}
            data.setdefault("primaryFields", []).append(target)

        old = target.get("value")
        target["value"] = value
        if change_messages.get(key):
            target["changeMessage"] = change_messages[key]
        if old != value:
            changed[key] = {"old": old, "new": value}

    return data, changed


def update_pass_fields(
    pass_row: dict,
    fields: dict,
    initiator_id: str | None = None,
    source: str = "dashboard",
    change_messages: dict | None = None,
    bulk_update_id: str | None = None,
) -> dict:
    """Update field values on a pass and record the change. Returns the history row."""
    if not fields:
        raise PassValidationError({"fields": ["At least one field is required."]})
    if source not in UPDATE_SOURCES:
        raise ValueError(f"Unknown update source: {source}")

    ensure_not_voided(pass_row)
    allowed = allowed_field_keys(pass_row)
    unknown = [key for key in fields if key not in allowed]
    if unknown:
        raise PassValidationError({
            f"fields.{key}": [f"Field [{key}] does not exist on the pass template."] for key in unknown
        })

    changes = {}

    def change(row):
        ensure_not_voided(row)
        pass_data, changed = apply_field_values(row.get("pass_data"), fields, change_messages)
        check_pass_data_size(pass_data)
        changes.clear()
        changes.update(changed)
        return {"pass_data": pass_data}

    updated = write_with_retry(pass_row, change)

    record = PassUpdateRepository.create(
        updated["id"],
        account_id=initiator_id,
        bulk_update_id=bulk_update_id,
        source=source,
        fields_changed=changes,
    )
    if not record:
        raise RuntimeError("Failed to record pass update")
    logger.info(f"Updated fields {sorted(changes)} on pass {updated['id']} ({source})")
    return record


def list_history(pass_row: dict, page: int = 1, per_page: int = 15) -> tuple[list[dict], int]:
    return PassUpdateRepository.list_for_pass(pass_row["id"], page=page, per_page=per_page)


def prune_history(days: int | None = None) -> int:
    """Delete history rows older than the retention window. Returns the count removed."""
    days = settings.pass_update_retention_days if days is None else days
    cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()
    removed = PassUpdateRepository.delete_older_than(cutoff)
    logger.info(f"Pruned {removed} pass update(s) older than {days} days")
    return removed


# ============================================
# Bulk updates
# ============================================

def start_bulk_update(account: dict, template: dict, field_key: str, field_value,
                      filters: dict | None = None) -> dict:
    """Record a pending bulk update; `run_bulk_update` does the work."""
    if field_key not in field_keys(template.get("design_data")):
        raise PassValidationError({"field_key": [f"Field [{field_key}] does not exist on the pass template."]})

    bulk = BulkUpdateRepository.create(
        account["id"],
        pass_template_id=template["id"],
        field_key=field_key,
        field_value=field_value,
        filters=filters or {},
    )
    if not bulk:
        raise RuntimeError("Failed to create bulk update")
    return bulk


def run_bulk_update(bulk_update_id: str) -> dict | None:
    """Apply a bulk update to every matching pass, counting successes and failures.

    A failing pass is logged and counted; the remaining passes are still updated.
    """
    bulk = BulkUpdateRepository.get_by_id(bulk_update_id)
    if not bulk:
        logger.warning(f"Bulk update {bulk_update_id} not found")
        return None

    filters = bulk.get("filters") or {}
    targets = PassRepository.list_for_template(
        bulk["account_id"],
        bulk["pass_template_id"],
        status=filters.get("status"),
        platform=filters.get("platform"),
    )
    BulkUpdateRepository.update(
        bulk_update_id,
        status="processing",
        total_count=len(targets),
        started_at=utcnow_iso(),
    )

    processed = failed = 0
    for pass_row in targets:
        try:
            update_pass_fields(
                pass_row,
                {bulk["field_key"]: bulk["field_value"]},
                initiator_id=bulk["account_id"],
                source="bulk",
                bulk_update_id=bulk_update_id,
            )
            processed += 1
        except (PassValidationError, LookupError, RuntimeError) as e:
            failed += 1
            logger.warning(f"Bulk update {bulk_update_id} failed for pass {pass_row['id']}: {e}")

    logger.info(f"Bulk update {bulk_update_id} done: {processed} updated, {failed} failed")
    return BulkUpdateRepository.update(
        bulk_update_id,
        status="completed",
        processed_count=processed,
        failed_count=failed,
        completed_at=utcnow_iso(),
    )
