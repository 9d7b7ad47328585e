"""Wallet signing credentials: Apple certificates and Google service-account keys."""

import logging
import uuid

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status

from app.core.config import settings
from app.core.permissions import require_approved_account
from app.domain.schemas import (
    AppleCertificateResponse,
    CredentialsResponse,
    GoogleCredentialResponse,
)
from app.repositories.apple_certificate import AppleCertificateRepository
from app.repositories.google_credential import GoogleCredentialRepository
from app.repositories.onboarding import OnboardingRepository
from app.services import tier_progression
from app.services.certificate_manager import get_certificate_manager
from app.services.certificate_validation import (
    days_until_expiry,
    is_expired,
    is_expiring_soon,
    is_rotation_recent,
    validate_apple_certificate,
    validate_google_credential,
)
from app.services.csr import CSR_FILENAME, generate_csr
from app.services.email import get_email_service
from app.services.storage import get_storage_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _apple_to_response(cert: dict) -> AppleCertificateResponse:
    return AppleCertificateResponse(
        id=cert["id"],
        fingerprint=cert["fingerprint"],
        valid_from=cert["valid_from"],
        expiry_date=cert["expiry_date"],
        days_until_expiry=days_until_expiry(cert["expiry_date"]),
        is_expired=is_expired(cert["expiry_date"]),
        is_expiring_soon=is_expiring_soon(cert["expiry_date"]),
        created_at=cert.get("created_at"),
    )


def _google_to_response(credential: dict) -> GoogleCredentialResponse:
    return GoogleCredentialResponse(
        id=credential["id"],
        issuer_id=credential["issuer_id"],
        project_id=credential["project_id"],
        client_email=credential.get("client_email"),
        last_rotated_at=credential.get("last_rotated_at"),
        rotation_recent=is_rotation_recent(credential.get("last_rotated_at")),
        created_at=credential.get("created_at"),
    )


def _invalid_upload(field: str, errors: list[str]) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"message": errors[0], "errors": {field: errors}},
    )


def _csr_response(csr_pem: bytes) -> Response:
    return Response(
        content=csr_pem,
        media_type="application/pkcs10",
        headers={"Content-Disposition": f'attachment; filename="{CSR_FILENAME}"'},
    )


def _issue_csr(account: dict, renewal: bool) -> bytes:
    """Generate a CSR, keep its private key and email the instructions."""
    csr_pem, private_key_pem = generate_csr(account)
    get_certificate_manager().store_csr_private_key(account["id"], private_key_pem)
    try:
        get_email_service().send_apple_csr_instructions(
            account["email"], account.get("name"), csr_pem, renewal=renewal
        )
    except Exception as e:
        logger.error(f"Failed to email CSR instructions to {account['email']}: {e}")
    return csr_pem


@router.get("", response_model=CredentialsResponse)
def list_credentials(account: dict = Depends(require_approved_account)):
    return CredentialsResponse(
        apple=[_apple_to_response(c) for c in AppleCertificateRepository.list_for_account(account["id"])],
        google=[_google_to_response(c) for c in GoogleCredentialRepository.list_for_account(account["id"])],
    )


# ============================================
# Apple
# ============================================

@router.get("/apple/csr")
def download_csr(account: dict = Depends(require_approved_account)):
    """Download a certificate signing request for the Apple Developer portal."""
    return _csr_response(_issue_csr(account, renewal=False))


@router.post("/apple", response_model=AppleCertificateResponse, status_code=status.HTTP_201_CREATED)
async def upload_apple_certificate(
    certificate: UploadFile = File(...),
    password: str | None = Form(None),
    account: dict = Depends(require_approved_account),
):
    """Upload the Pass Type ID certificate (.cer or .pem) issued by Apple."""
    content = await certificate.read()
    result = validate_apple_certificate(certificate.filename, content)
    if not result["valid"]:
        raise _invalid_upload("certificate", result["errors"])

    extension = (certificate.filename or "certificate.cer").rsplit(".", 1)[-1].lower()
    path = f"{account['id']}/apple/{uuid.uuid4().hex}.{extension}"
    get_storage_service().upload_file(
        settings.certificates_bucket,
        path,
        content,
        content_type="application/x-x509-ca-cert",
    )

    manager = get_certificate_manager()
    cert = AppleCertificateRepository.create(
        account_id=account["id"],
        path=path,
        fingerprint=result["fingerprint"],
        valid_from=result["valid_from"],
        expiry_date=result["expiry_date"],
        password_encrypted=manager.encrypt_text(password) if password else None,
    )
    if not cert:
        raise HTTPException(status_code=500, detail="Failed to save certificate")

    OnboardingRepository.mark_complete(account["id"], "apple_setup")
    tier_progression.evaluate_and_advance(account)
    logger.info(f"Account {account['id']} uploaded Apple certificate {cert['fingerprint'][:16]}")
    return _apple_to_response(cert)


@router.delete("/apple/{certificate_id}")
def delete_apple_certificate(
    certificate_id: str,
    account: dict = Depends(require_approved_account),
):
    if not AppleCertificateRepository.soft_delete(certificate_id, account["id"]):
        raise HTTPException(status_code=404, detail="Certificate not found")
    return {"message": "Certificate deleted"}


@router.get("/apple/{certificate_id}/renew")
def renew_apple_certificate(
    certificate_id: str,
    account: dict = Depends(require_approved_account),
):
    """Issue a fresh CSR for renewing an existing certificate."""
    if not AppleCertificateRepository.get_by_id(certificate_id, account["id"]):
        raise HTTPException(status_code=404, detail="Certificate not found")
    return _csr_response(_issue_csr(account, renewal=True))


# ============================================
# Google
# ============================================

@router.post("/google", response_model=GoogleCredentialResponse, status_code=status.HTTP_201_CREATED)
async def upload_google_credential(
    credential: UploadFile = File(...),
    account: dict = Depends(require_approved_account),
):
    """Upload a Google Wallet service-account JSON key."""
    content = await credential.read()
    result = validate_google_credential(credential.filename, content)
    if not result["valid"]:
        raise _invalid_upload("credential", result["errors"])

    created = GoogleCredentialRepository.create(
        account_id=account["id"],
        issuer_id=result["issuer_id"],
        project_id=result["project_id"],
        client_email=result["client_email"],
        private_key_encrypted=get_certificate_manager().encrypt_text(result["private_key"]),
    )
    if not created:
        raise HTTPException(status_code=500, detail="Failed to save credential")

    OnboardingRepository.mark_complete(account["id"], "google_setup")
    tier_progression.evaluate_and_advance(account)
    logger.info(f"Account {account['id']} uploaded Google credential for project {result['project_id']}")
    return _google_to_response(created)


@router.delete("/google/{credential_id}")
def delete_google_credential(
    credential_id: str,
    account: dict = Depends(require_approved_account),
):
    if not GoogleCredentialRepository.soft_delete(credential_id, account["id"]):
        raise HTTPException(status_code=404, detail="Credential not found")
    return {"message": "Credential deleted"}


@router.get("/google/{credential_id}/rotate")
def rotate_google_credential(
    credential_id: str,
    account: dict = Depends(require_approved_account),
):
    """Email the steps for rotating the service-account key."""
    if not GoogleCredentialRepository.get_by_id(credential_id, account["id"]):
        raise HTTPException(status_code=404, detail="Credential not found")
    try:
        get_email_service().send_google_rotation_instructions(account["email"], account.get("name"))
    except Exception as e:
        logger.error(f"Failed to email rotation instructions to {account['email']}: {e}")
        raise HTTPException(status_code=502, detail="Could not send rotation instructions. Please try again.")
    return {"message": "Rotation instructions sent to your email."}
