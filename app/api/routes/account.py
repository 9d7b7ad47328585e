from fastapi import APIRouter, Depends, HTTPException

from app.core.entitlements import get_account_limits_and_usage
from app.core.permissions import require_approved_account
from app.domain.schemas import AccountResponse, AccountUpdate, OnboardingStepResponse
from app.repositories.account import AccountRepository
from app.repositories.onboarding import OnboardingRepository

router = APIRouter()


@router.get("", response_model=AccountResponse)
def get_account(account: dict = Depends(require_approved_account)):
    """Get the current account's settings."""
    return account


@router.put("", response_model=AccountResponse)
def update_account(
    data: AccountUpdate,
    account: dict = Depends(require_approved_account),
):
    """Update name, industry and business name. Region cannot be changed."""
    update_data = data.model_dump(exclude_unset=True)
    if "name" in update_data and not (update_data["name"] or "").strip():
        raise HTTPException(
            status_code=422,
            detail={"message": "The name field is required.", "errors": {"name": ["The name field is required."]}},
        )
    if not update_data:
        return account

    updated = AccountRepository.update(account["id"], **update_data)
    if not updated:
        raise HTTPException(status_code=500, detail="Failed to update account")

    if updated.get("name") and updated.get("business_name"):
        OnboardingRepository.mark_complete(account["id"], "user_profile")
    return updated


@router.get("/onboarding", response_model=list[OnboardingStepResponse])
def get_onboarding(account: dict = Depends(require_approved_account)):
    return OnboardingRepository.get_steps(account["id"])


@router.get("/limits")
def get_limits(account: dict = Depends(require_approved_account)):
    """Plan limits and current usage for the settings page."""
    return get_account_limits_and_usage(account)
