"""Self-service signup."""

import logging

from fastapi import APIRouter, HTTPException, status
from postgrest.exceptions import APIError

from app.domain.schemas import AccountResponse, SignupRequest
from app.repositories.account import AccountRepository
from app.repositories.onboarding import OnboardingRepository
from app.services.email import get_email_service
from app.services.email_domain import approval_status_for
from database.connection import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


def _create_auth_user(data: SignupRequest, email: str) -> str:
    """Create the Supabase auth user and return its id."""
    try:
        response = get_db().auth.admin.create_user({
            "email": email,
            "password": data.password,
            "email_confirm": True,
            "user_metadata": {"name": data.name, "region": data.region},
        })
    except Exception as e:
        logger.error(f"Auth user creation failed for {email}: {e}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Could not create the account.", "errors": {"email": [str(e)]}},
        )
    return response.user.id


def _delete_auth_user(auth_id: str) -> None:
    """Remove an auth user whose account row could not be created, so the email can sign up again."""
    try:
        get_db().auth.admin.delete_user(auth_id)
        logger.info(f"Removed orphaned auth user {auth_id}")
    except Exception as e:
        logger.error(f"Failed to remove orphaned auth user {auth_id}: {e}")


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def signup(data: SignupRequest):
    """Create an account.

    Accounts from whitelisted business domains are approved immediately,
    everyone else waits in the admin approval queue.
    """
    email = data.email.lower()
    if AccountRepository.get_by_email(email):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": "The email has already been taken.",
                "errors": {"email": ["The email has already been taken."]},
            },
        )

    approval_status = approval_status_for(email)
    auth_id = _create_auth_user(data, email)

    try:
        account = AccountRepository.create(
            auth_id=auth_id,
            name=data.name,
            email=email,
            region=data.region,
            industry=data.industry,
            approval_status=approval_status,
        )
        if not account:
            raise HTTPException(status_code=500, detail="Failed to create account")
    except APIError as e:
        _delete_auth_user(auth_id)
        if "23505" in str(e):
            raise HTTPException(status_code=409, detail="An account with this email already exists")
        raise
    except Exception:
        _delete_auth_user(auth_id)
        raise

    OnboardingRepository.seed(account["id"], completed=("email_verified",))

    email_service = get_email_service()
    try:
        if approval_status == "approved":
            email_service.send_account_approved(account["email"], account["name"])
        else:
            email_service.send_account_pending(account["email"], account["name"])
    except Exception as e:
        logger.error(f"Failed to send signup email to {account['email']}: {e}")

    logger.info(f"New {approval_status} account {account['id']} ({data.region})")
    return account
