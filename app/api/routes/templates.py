from fastapi import APIRouter, Depends, HTTPException, status

from app.core.entitlements import check_platforms
from app.core.permissions import require_approved_account
from app.domain.schemas import TemplateCreate, TemplateResponse, TemplateUpdate
from app.repositories.pass_template import PassTemplateRepository
from app.services.passes import PassValidationError, validate_template

router = APIRouter()


def _get_owned_template(template_id: str, account: dict) -> dict:
    template = PassTemplateRepository.get_for_account(template_id, account["id"])
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


def _validate(pass_type: str, platforms: list[str], design_data: dict, barcode_data: dict | None) -> None:
    try:
        validate_template(pass_type, platforms, design_data, barcode_data)
    except PassValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": e.message, "errors": e.errors},
        )


@router.get("", response_model=list[TemplateResponse])
def list_templates(account: dict = Depends(require_approved_account)):
    return PassTemplateRepository.list_for_account(account["id"])


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
def create_template(
    data: TemplateCreate,
    account: dict = Depends(require_approved_account),
):
    check_platforms(account, data.platforms)
    fields = data.model_dump(exclude_none=True)
    _validate(data.pass_type, data.platforms, data.design_data, fields.get("barcode_data"))

    template = PassTemplateRepository.create(account["id"], **fields)
    if not template:
        raise HTTPException(status_code=500, detail="Failed to create template")
    return template


@router.get("/{template_id}", response_model=TemplateResponse)
def get_template(template_id: str, account: dict = Depends(require_approved_account)):
    return _get_owned_template(template_id, account)


@router.put("/{template_id}", response_model=TemplateResponse)
def update_template(
    template_id: str,
    data: TemplateUpdate,
    account: dict = Depends(require_approved_account),
):
    existing = _get_owned_template(template_id, account)
    changes = {k: v for k, v in data.model_dump().items() if k in data.model_fields_set and v is not None}
    if not changes:
        return existing
    if "platforms" in changes:
        check_platforms(account, changes["platforms"])

    _validate(
        existing["pass_type"],
        changes.get("platforms", existing["platforms"]),
        changes.get("design_data", existing.get("design_data") or {}),
        changes.get("barcode_data", existing.get("barcode_data")),
    )

    template = PassTemplateRepository.update(template_id, **changes)
    if not template:
        raise HTTPException(status_code=500, detail="Failed to update template")
    return template


@router.delete("/{template_id}")
def delete_template(template_id: str, account: dict = Depends(require_approved_account)):
    _get_owned_template(template_id, account)
    PassTemplateRepository.delete(template_id)
    return {"message": "Template deleted"}
