import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from app.core.config import settings
from app.core.entitlements import check_platforms, require_can_create_pass
from app.core.permissions import require_approved_account
from app.domain.schemas import (
    PASS_TYPE_PATTERN,
    PLATFORM_PATTERN,
    FieldMapResponse,
    ImageUploadResponse,
    PassCreate,
    PassListResponse,
    PassResponse,
    PassUpdate,
)
from app.repositories.pass_record import PassRepository
from app.services import passes as pass_service
from app.services.pass_images import ImageUploadError, store_image
from app.services.storage import get_storage_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _validation_failed(e: pass_service.PassValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"message": e.message, "errors": e.errors},
    )


def _get_owned_pass(pass_id: str, account: dict) -> dict:
    pass_row = PassRepository.get_for_account(pass_id, account["id"])
    if not pass_row:
        raise HTTPException(status_code=404, detail="Pass not found")
    return pass_row


@router.get("", response_model=PassListResponse)
def list_passes(
    platform: Optional[str] = Query(None, pattern=PLATFORM_PATTERN),
    status_filter: Optional[str] = Query(None, alias="status", pattern=r'^(active|voided|expired)$'),
    pass_type: Optional[str] = Query(None, pattern=PASS_TYPE_PATTERN),
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    account: dict = Depends(require_approved_account),
):
    """List the account's passes, newest first.

    The status filter matches the stored status. An active pass whose
    expiry_date has passed still matches status=active, and is reported
    with status "expired" and is_expired true.
    """
    rows, total = PassRepository.list_for_account(
        account["id"],
        status=status_filter,
        pass_type=pass_type,
        platform=platform,
        page=page,
        per_page=per_page,
    )
    return {
        "data": [pass_service.serialize_pass(row) for row in rows],
        "total": total,
        "page": page,
        "per_page": per_page,
    }


@router.post("", response_model=PassResponse, status_code=status.HTTP_201_CREATED)
def create_pass(
    data: PassCreate,
    account: dict = Depends(require_can_create_pass),
):
    """Create a pass (requires an approved account with room in its plan)."""
    check_platforms(account, data.platforms)
    try:
        created = pass_service.create_pass(account, data.model_dump())
    except LookupError:
        raise HTTPException(status_code=404, detail="Template not found")
    except pass_service.PassValidationError as e:
        raise _validation_failed(e)
    return pass_service.serialize_pass(created)


@router.get("/field-map", response_model=FieldMapResponse)
def get_field_map(
    pass_type: str = Query(..., pattern=PASS_TYPE_PATTERN),
    platform: str = Query(..., pattern=PLATFORM_PATTERN),
    _: dict = Depends(require_approved_account),
):
    """Field groups the editor should show for a pass type on a platform."""
    return pass_service.field_map(pass_type, platform)


@router.post("/images/store", response_model=ImageUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_image(
    image: UploadFile = File(...),
    slot: str = Form(...),
    platform: str = Form(...),
    resize_mode: Optional[str] = Form(None),
    pass_id: Optional[str] = Form(None),
    account: dict = Depends(require_approved_account),
):
    """Upload an image and generate every variant the platform needs for the slot.

    When pass_id is given the variants are attached to that pass.
    """
    pass_row = _get_owned_pass(pass_id, account) if pass_id else None
    if pass_row:
        try:
            pass_service.ensure_not_voided(pass_row)
        except pass_service.PassValidationError as e:
            raise _validation_failed(e)

    content = await image.read()
    try:
        result = store_image(account["id"], platform, slot, image.content_type, content, resize_mode)
    except ImageUploadError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": e.message, "errors": {e.field: [e.message]}},
        )

    if pass_row:
        pass_service.attach_image(pass_row, platform, slot, result)
    return result


@router.delete("/{pass_id}/images/{platform}/{slot}", response_model=PassResponse)
def delete_image(
    pass_id: str,
    platform: str,
    slot: str,
    account: dict = Depends(require_approved_account),
):
    """Detach an image slot from a pass."""
    pass_row = _get_owned_pass(pass_id, account)
    return pass_service.serialize_pass(pass_service.detach_image(pass_row, platform, slot))


@router.get("/{pass_id}", response_model=PassResponse)
def get_pass(pass_id: str, account: dict = Depends(require_approved_account)):
    return pass_service.serialize_pass(_get_owned_pass(pass_id, account))


@router.put("/{pass_id}", response_model=PassResponse)
def update_pass(
    pass_id: str,
    data: PassUpdate,
    account: dict = Depends(require_approved_account),
):
    pass_row = _get_owned_pass(pass_id, account)
    changes = {k: v for k, v in data.model_dump().items() if k in data.model_fields_set and v is not None}
    if not changes:
        return pass_service.serialize_pass(pass_row)
    if "platforms" in changes:
        check_platforms(account, changes["platforms"])
    try:
        updated = pass_service.update_pass(pass_row, changes)
    except pass_service.PassValidationError as e:
        raise _validation_failed(e)
    return pass_service.serialize_pass(updated)


@router.post("/{pass_id}/void", response_model=PassResponse)
def void_pass(pass_id: str, account: dict = Depends(require_approved_account)):
    """Void a pass. Its distribution links stop resolving."""
    pass_row = _get_owned_pass(pass_id, account)
    return pass_service.serialize_pass(pass_service.void_pass(pass_row))


@router.delete("/{pass_id}")
def delete_pass(pass_id: str, account: dict = Depends(require_approved_account)):
    pass_row = _get_owned_pass(pass_id, account)
    get_storage_service().delete_files(settings.images_bucket, pass_service.stored_image_paths(pass_row.get("images")))
    PassRepository.delete(pass_id)
    return {"message": "Pass deleted"}
