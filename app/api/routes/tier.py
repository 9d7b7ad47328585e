"""Tier status and the user-driven transitions (production request, go live)."""

from fastapi import APIRouter, Depends

from app.core.permissions import require_approved_account
from app.domain.schemas import ChecklistUpdate, LiveCheckResponse, TierStatusResponse
from app.services import tier_progression

router = APIRouter()


@router.get("", response_model=TierStatusResponse)
def get_tier_status(account: dict = Depends(require_approved_account)):
    return tier_progression.tier_status(account)


@router.post("/request-production", response_model=TierStatusResponse)
def request_production(account: dict = Depends(require_approved_account)):
    """Submit the account for production review. Admins are notified by email."""
    updated = tier_progression.submit_production_request(account)
    return tier_progression.tier_status(updated)


@router.post("/request-live", response_model=LiveCheckResponse)
def request_live(account: dict = Depends(require_approved_account)):
    """Evaluate the pre-launch checklist without changing the tier."""
    return tier_progression.request_live(account)


@router.post("/go-live", response_model=TierStatusResponse)
def go_live(account: dict = Depends(require_approved_account)):
    updated = tier_progression.advance_to_live(account)
    return tier_progression.tier_status(updated)


@router.put("/checklist", response_model=TierStatusResponse)
def update_checklist(
    data: ChecklistUpdate,
    account: dict = Depends(require_approved_account),
):
    """Record a user-asserted checklist item (testing on a real device)."""
    updated = tier_progression.mark_checklist_item(account, data.item, data.value)
    return tier_progression.tier_status(updated)
