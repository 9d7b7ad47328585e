"""Admin-only API routes: account approval, production review, business domains."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from postgrest.exceptions import APIError

from app.core.permissions import require_admin
from app.domain.schemas import AccountResponse, BusinessDomainCreate, RejectionRequest
from app.repositories.account import AccountRepository
from app.repositories.business_domain import BusinessDomainRepository
from app.services import tier_progression
from app.services.email import get_email_service
from app.services.email_domain import add_business_domain, remove_business_domain
from database.connection import utcnow_iso

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_account(account_id: str) -> dict:
    account = AccountRepository.get_by_id(account_id)
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    return account


def _page(rows: list[dict], total: int, page: int, per_page: int) -> dict:
    return {
        "data": [AccountResponse.model_validate(row).model_dump(mode="json") for row in rows],
        "total": total,
        "page": page,
        "per_page": per_page,
    }


# ============================================
# Account approval
# ============================================

@router.get("/accounts")
def list_accounts(
    approval_status: str = Query("pending", alias="status", pattern=r'^(pending|approved|rejected)$'),
    region: Optional[str] = Query(None, pattern=r'^(EU|US)$'),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    _: dict = Depends(require_admin),
):
    """Approval queues. Admins can narrow any queue to one region."""
    rows, total = AccountRepository.list_by_approval_status(approval_status, page, per_page, region)
    return _page(rows, total, page, per_page)


@router.post("/accounts/{account_id}/approve", response_model=AccountResponse)
def approve_account(account_id: str, admin: dict = Depends(require_admin)):
    """Approve a pending account and email its owner."""
    account = _get_account(account_id)
    if account.get("approval_status") != "pending":
        raise HTTPException(status_code=400, detail="User is not pending approval.")

    updated = AccountRepository.update_if_approval_status(
        account_id,
        "pending",
        approval_status="approved",
        approved_at=utcnow_iso(),
        approved_by=admin["id"],
    )
    if not updated:
        raise HTTPException(status_code=400, detail="User is not pending approval.")

    try:
        get_email_service().send_account_approved(updated["email"], updated.get("name"))
    except Exception as e:
        logger.error(f"Failed to send approval email for account {account_id}: {e}")

    # Credentials may already be in place from before approval
    return tier_progression.evaluate_and_advance(updated)


@router.post("/accounts/{account_id}/reject", response_model=AccountResponse)
def reject_account(account_id: str, admin: dict = Depends(require_admin)):
    account = _get_account(account_id)
    if account.get("approval_status") != "pending":
        raise HTTPException(status_code=400, detail="User is not pending approval.")

    updated = AccountRepository.update_if_approval_status(
        account_id,
        "pending",
        approval_status="rejected",
        approved_by=admin["id"],
    )
    if not updated:
        raise HTTPException(status_code=400, detail="User is not pending approval.")

    try:
        get_email_service().send_account_rejected(updated["email"], updated.get("name"))
    except Exception as e:
        logger.error(f"Failed to send rejection email for account {account_id}: {e}")

    return updated


# ============================================
# Production review
# ============================================

@router.get("/production-requests")
def list_production_requests(
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    _: dict = Depends(require_admin),
):
    rows, total = AccountRepository.list_production_requests(page, per_page)
    return _page(rows, total, page, per_page)


@router.post("/production-requests/{account_id}/approve", response_model=AccountResponse)
def approve_production(account_id: str, admin: dict = Depends(require_admin)):
    """Move an account to the Production tier."""
    return tier_progression.approve_production(_get_account(account_id), admin)


@router.post("/production-requests/{account_id}/reject", response_model=AccountResponse)
def reject_production(
    account_id: str,
    data: RejectionRequest,
    admin: dict = Depends(require_admin),
):
    return tier_progression.reject_production(_get_account(account_id), admin, data.reason)


# ============================================
# Business domains
# ============================================

@router.get("/business-domains")
def list_business_domains(_: dict = Depends(require_admin)):
    return BusinessDomainRepository.get_all()


@router.post("/business-domains", status_code=status.HTTP_201_CREATED)
def create_business_domain(data: BusinessDomainCreate, _: dict = Depends(require_admin)):
    """Whitelist a domain. Future signups from it are approved automatically."""
    if BusinessDomainRepository.get_by_domain(data.domain.lower()):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": "The domain has already been added.",
                "errors": {"domain": ["The domain has already been added."]},
            },
        )
    try:
        row = add_business_domain(data.domain)
    except APIError as e:
        if "23505" in str(e):
            raise HTTPException(status_code=409, detail=f"Domain '{data.domain}' already exists")
        raise
    if not row:
        raise HTTPException(status_code=500, detail="Failed to add domain")
    return row


@router.delete("/business-domains/{domain_id}")
def delete_business_domain(domain_id: str, _: dict = Depends(require_admin)):
    if not remove_business_domain(domain_id):
        raise HTTPException(status_code=404, detail="Domain not found")
    return {"message": "Domain removed"}
