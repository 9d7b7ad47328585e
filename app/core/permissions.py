from fastapi import Depends, HTTPException, status

from app.core.security import require_auth
from app.repositories.account import AccountRepository


def get_current_account(auth_payload: dict = Depends(require_auth)) -> dict:
    """Get the account row for the authenticated Supabase user.

    Args:
        auth_payload: JWT payload from require_auth dependency

    Returns:
        Account dict from the accounts table

    Raises:
        HTTPException 404 if no account is linked to the auth user
    """
    auth_id = auth_payload.get("sub")
    if not auth_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload: missing sub claim"
        )

    account = AccountRepository.get_by_auth_id(auth_id)
    if not account:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account not found. Please complete sign up."
        )

    return account


def require_approved_account(account: dict = Depends(get_current_account)) -> dict:
    """Require an approved account - pending and rejected accounts get 403."""
    approval_status = account.get("approval_status")
    if approval_status == "pending":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account is pending approval. You'll receive an email when approved.",
        )
    if approval_status != "approved":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has not been approved.",
        )
    return account


def is_admin(account: dict, auth_payload: dict | None = None) -> bool:
    if account.get("is_admin"):
        return True
    app_metadata = (auth_payload or {}).get("app_metadata") or {}
    return bool(app_metadata.get("is_superadmin"))


def require_admin(
    auth_payload: dict = Depends(require_auth),
    account: dict = Depends(get_current_account),
) -> dict:
    """Require admin access - raises 403 if the caller is not an admin."""
    if not is_admin(account, auth_payload):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return account
