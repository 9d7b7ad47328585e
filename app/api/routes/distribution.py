from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.core.permissions import require_approved_account
from app.domain.schemas import (
    DistributionLinkResponse,
    DistributionLinkUpdate,
    PublicPassLinkResponse,
)
from app.repositories.pass_record import PassRepository
from app.services import distribution

router = APIRouter()

# Public landing endpoint (no auth required)
public_router = APIRouter()


def _get_owned_pass(pass_id: str, account: dict) -> dict:
    pass_row = PassRepository.get_for_account(pass_id, account["id"])
    if not pass_row:
        raise HTTPException(status_code=404, detail="Pass not found")
    return pass_row


@router.get("/{pass_id}/distribution-links", response_model=list[DistributionLinkResponse])
def list_links(pass_id: str, account: dict = Depends(require_approved_account)):
    return distribution.list_links(_get_owned_pass(pass_id, account))


@router.post(
    "/{pass_id}/distribution-links",
    response_model=DistributionLinkResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_link(pass_id: str, account: dict = Depends(require_approved_account)):
    pass_row = _get_owned_pass(pass_id, account)
    if pass_row.get("status") == "voided":
        raise HTTPException(status_code=422, detail="Cannot share a voided pass")
    return distribution.create_link(pass_row)


@router.patch("/{pass_id}/distribution-links/{link_id}", response_model=DistributionLinkResponse)
def update_link(
    pass_id: str,
    link_id: str,
    data: DistributionLinkUpdate,
    account: dict = Depends(require_approved_account),
):
    """Enable or disable a link."""
    return distribution.set_link_status(_get_owned_pass(pass_id, account), link_id, data.status)


@public_router.get("/p/{slug}", response_model=PublicPassLinkResponse)
def resolve_link(slug: str, request: Request):
    """Resolve a shared pass link for the public landing page."""
    return distribution.resolve_public(slug, request.headers.get("user-agent"))
