import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status

from app.core.permissions import require_approved_account
from app.domain.schemas import (
    BulkUpdateCreate,
    BulkUpdateResponse,
    PassFieldsUpdate,
    PassUpdateListResponse,
    PassUpdateRecordResponse,
)
from app.repositories.bulk_update import BulkUpdateRepository
from app.repositories.pass_record import PassRepository
from app.repositories.pass_template import PassTemplateRepository
from app.services import pass_updates as update_service
from app.services.passes import PassValidationError

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Bulk updates
# ============================================

@router.post("/bulk-updates", response_model=BulkUpdateResponse, status_code=status.HTTP_202_ACCEPTED)
def create_bulk_update(
    data: BulkUpdateCreate,
    background_tasks: BackgroundTasks,
    account: dict = Depends(require_approved_account),
):
    """Set one field on every pass created from a template.

    The update runs in the background; poll the returned bulk update for progress.
    """
    template = PassTemplateRepository.get_for_account(data.pass_template_id, account["id"])
    if not template:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": "The selected pass template is invalid.",
                "errors": {"pass_template_id": ["The selected pass template is invalid."]},
            },
        )

    filters = data.filters.model_dump(exclude_none=True) if data.filters else {}
    try:
        bulk = update_service.start_bulk_update(account, template, data.field_key, data.field_value, filters)
    except PassValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": e.message, "errors": e.errors},
        )

    background_tasks.add_task(update_service.run_bulk_update, bulk["id"])
    return bulk


@router.get("/bulk-updates/{bulk_update_id}", response_model=BulkUpdateResponse)
def get_bulk_update(
    bulk_update_id: str,
    account: dict = Depends(require_approved_account),
):
    bulk = BulkUpdateRepository.get_for_account(bulk_update_id, account["id"])
    if not bulk:
        raise HTTPException(status_code=404, detail="Bulk update not found")
    return bulk


# ============================================
# Single pass
# ============================================

@router.patch("/{pass_id}/fields", response_model=PassUpdateRecordResponse)
def update_pass_fields(
    pass_id: str,
    data: PassFieldsUpdate,
    account: dict = Depends(require_approved_account),
):
    """Change field values on a pass and record the change in its history."""
    pass_row = PassRepository.get_for_account(pass_id, account["id"])
    if not pass_row:
        raise HTTPException(status_code=404, detail="Pass not found")

    try:
        return update_service.update_pass_fields(
            pass_row,
            data.fields,
            initiator_id=account["id"],
            source="dashboard",
            change_messages=data.change_messages,
        )
    except PassValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": e.message, "errors": e.errors},
        )
    except LookupError:
        raise HTTPException(status_code=404, detail="Pass not found")


@router.get("/{pass_id}/updates", response_model=PassUpdateListResponse)
def list_pass_updates(
    pass_id: str,
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    account: dict = Depends(require_approved_account),
):
    """Field update history of a pass, latest first."""
    pass_row = PassRepository.get_for_account(pass_id, account["id"])
    if not pass_row:
        raise HTTPException(status_code=404, detail="Pass not found")

    rows, total = update_service.list_history(pass_row, page=page, per_page=per_page)
    return {"data": rows, "total": total, "page": page, "per_page": per_page}
