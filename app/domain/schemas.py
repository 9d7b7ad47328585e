import re
from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationInfo, field_validator

PASS_TYPE_PATTERN = r'^(generic|coupon|boardingPass|eventTicket|storeCard|offer|loyalty|transit|stampCard)$'
PLATFORM_PATTERN = r'^(apple|google)$'
BARCODE_FORMAT_PATTERN = r'^PKBarcodeFormat(QR|PDF417|Aztec|Code128)$'
TRANSIT_TYPE_PATTERN = r'^PKTransitType(Air|Train|Bus|Boat|Generic)$'


def _check_platforms(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    invalid = [p for p in v if not re.match(PLATFORM_PATTERN, p)]
    if invalid:
        raise ValueError(f"Unsupported platform(s): {', '.join(invalid)}")
    return list(dict.fromkeys(v))


# ============================================
# Account Schemas
# ============================================

class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str
    password_confirmation: str
    region: str = Field(..., pattern=r'^(EU|US)$')
    industry: Optional[str] = Field(default=None, max_length=255)
    agree_terms: bool

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("The name field is required.")
        return v.strip()

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters.")
        if not re.search(r"[A-Za-z]", v):
            raise ValueError("Password must contain at least one letter.")
        if not re.search(r"\d", v):
            raise ValueError("Password must contain at least one number.")
        if not re.search(r"[^A-Za-z0-9\s]", v):
            raise ValueError("Password must contain at least one symbol (!@#$%^&*).")
        return v

    @field_validator("agree_terms")
    @classmethod
    def terms_accepted(cls, v: bool) -> bool:
        if not v:
            raise ValueError("You must accept the terms and conditions.")
        return v

    @field_validator("password_confirmation")
    @classmethod
    def passwords_match(cls, v: str, info: ValidationInfo) -> str:
        if "password" in info.data and v != info.data["password"]:
            raise ValueError("Passwords do not match.")
        return v


class AccountUpdate(BaseModel):
    """Editable account settings. Region is fixed at signup and not accepted here."""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    industry: Optional[str] = Field(default=None, max_length=255)
    business_name: Optional[str] = Field(default=None, max_length=255)


class AccountResponse(BaseModel):
    id: str
    name: str
    email: str
    region: str
    industry: Optional[str] = None
    business_name: Optional[str] = None
    tier: str
    approval_status: str
    plan: str = "free"
    is_admin: bool = False
    approved_at: Optional[datetime] = None
    production_requested_at: Optional[datetime] = None
    production_approved_at: Optional[datetime] = None
    production_rejected_at: Optional[datetime] = None
    production_rejected_reason: Optional[str] = None
    live_approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class OnboardingStepResponse(BaseModel):
    step_key: str
    completed_at: Optional[datetime] = None


# ============================================
# Tier Schemas
# ============================================

class TierRequirement(BaseModel):
    name: str
    met: bool


class TierStatusResponse(BaseModel):
    tier: str
    tier_name: str
    description: str
    can_request_production: bool
    production_requested_at: Optional[datetime] = None
    production_rejected_reason: Optional[str] = None
    requirements: List[TierRequirement]
    checklist: dict[str, bool]


class ChecklistUpdate(BaseModel):
    item: str = Field(..., pattern=r'^tested_on_device$')
    value: bool = True


class LiveCheckResponse(BaseModel):
    ready: bool
    checklist: dict[str, bool]
    missing: List[str]


# ============================================
# Admin Schemas
# ============================================

class RejectionRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class BusinessDomainCreate(BaseModel):
    domain: str = Field(..., pattern=r'^[A-Za-z0-9.-]+\.[A-Za-z]{2,}$', max_length=255)


# ============================================
# Credential Schemas
# ============================================

class AppleCertificateResponse(BaseModel):
    id: str
    fingerprint: str
    valid_from: datetime
    expiry_date: datetime
    days_until_expiry: Optional[int] = None
    is_expired: bool = False
    is_expiring_soon: bool = False
    created_at: Optional[datetime] = None


class GoogleCredentialResponse(BaseModel):
    id: str
    issuer_id: str
    project_id: str
    client_email: Optional[str] = None
    last_rotated_at: Optional[datetime] = None
    rotation_recent: bool = False
    created_at: Optional[datetime] = None


class CredentialsResponse(BaseModel):
    apple: List[AppleCertificateResponse]
    google: List[GoogleCredentialResponse]


# ============================================
# Pass Schemas
# ============================================

class PassField(BaseModel):
    model_config = ConfigDict(extra="allow")

    key: str
    label: Optional[str] = None
    value: str | int | float | None = None


class BarcodeData(BaseModel):
    format: str = Field(default="PKBarcodeFormatQR", pattern=BARCODE_FORMAT_PATTERN)
    message: Optional[str] = None
    messageEncoding: Optional[str] = "iso-8859-1"
    altText: Optional[str] = None


class PassCreate(BaseModel):
    pass_template_id: Optional[str] = None
    pass_type: Optional[str] = Field(default=None, pattern=PASS_TYPE_PATTERN)
    platforms: List[str] = Field(..., min_length=1)
    pass_data: dict = {}
    barcode_data: Optional[BarcodeData] = None
    images: Optional[dict] = None
    member_id: Optional[str] = Field(default=None, max_length=255)
    custom_fields: Optional[dict[str, Optional[str]]] = None

    @field_validator("platforms")
    @classmethod
    def valid_platforms(cls, v):
        return _check_platforms(v)


class PassUpdate(BaseModel):
    """Editable pass fields. Status changes go through the void endpoint."""
    model_config = ConfigDict(extra="forbid")

    platforms: Optional[List[str]] = Field(default=None, min_length=1)
    pass_data: Optional[dict] = None
    barcode_data: Optional[BarcodeData] = None
    images: Optional[dict] = None

    @field_validator("platforms")
    @classmethod
    def valid_platforms(cls, v):
        return _check_platforms(v)


class PassResponse(BaseModel):
    id: str
    pass_template_id: Optional[str] = None
    serial_number: str
    pass_type: str
    platforms: List[str]
    status: str
    pass_data: dict = {}
    barcode_data: Optional[dict] = None
    images: Optional[dict] = None
    pkpass_path: Optional[str] = None
    google_save_url: Optional[str] = None
    is_expired: bool = False
    image_previews: dict = {}
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PassListResponse(BaseModel):
    data: List[PassResponse]
    total: int
    page: int
    per_page: int


class FieldMapResponse(BaseModel):
    pass_type: str
    platform: str
    field_groups: List[str]
    constraints: dict[str, List[str]] = {}


# ============================================
# Template Schemas
# ============================================

class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    pass_type: str = Field(..., pattern=PASS_TYPE_PATTERN)
    platforms: List[str] = Field(..., min_length=1)
    design_data: dict = {}
    barcode_data: Optional[BarcodeData] = None
    images: Optional[dict] = None

    @field_validator("platforms")
    @classmethod
    def valid_platforms(cls, v):
        return _check_platforms(v)


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    platforms: Optional[List[str]] = Field(default=None, min_length=1)
    design_data: Optional[dict] = None
    barcode_data: Optional[BarcodeData] = None
    images: Optional[dict] = None

    @field_validator("platforms")
    @classmethod
    def valid_platforms(cls, v):
        return _check_platforms(v)


class TemplateResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    pass_type: str
    platforms: List[str]
    design_data: dict = {}
    barcode_data: Optional[dict] = None
    images: Optional[dict] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ============================================
# Image Schemas
# ============================================

class ImageOriginal(BaseModel):
    path: str
    url: Optional[str] = None
    width: int
    height: int
    mime: Optional[str] = None


class ImageVariant(BaseModel):
    platform: str
    slot: str
    scale: str
    path: str
    url: str
    width: int
    height: int
    quality_warning: bool = False


class ImageUploadResponse(BaseModel):
    original: ImageOriginal
    variants: List[ImageVariant]


# ============================================
# Distribution Schemas
# ============================================

class DistributionLinkUpdate(BaseModel):
    status: str = Field(..., pattern=r'^(active|disabled)$')


class DistributionLinkResponse(BaseModel):
    id: str
    pass_id: str
    slug: str
    status: str
    url: str
    accessed_count: int = 0
    last_accessed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PublicPassLinkResponse(BaseModel):
    slug: str
    link_status: str
    device: str
    pass_type: str
    platforms: List[str]
    description: Optional[str] = None
    add_to_wallet_url: Optional[str] = None
    qr_code: str
    url: str


class ErrorResponse(BaseModel):
    message: str
    errors: dict[str, List[str]] = {}


# ============================================
# Pass Update Schemas
# ============================================

FieldValue = Optional[str | int | float]


class PassFieldsUpdate(BaseModel):
    fields: dict[str, FieldValue] = Field(..., min_length=1)
    change_messages: dict[str, str] = {}


class PassUpdateRecordResponse(BaseModel):
    id: str
    pass_id: str
    account_id: Optional[str] = None
    bulk_update_id: Optional[str] = None
    source: str
    fields_changed: dict = {}
    created_at: Optional[datetime] = None


class PassUpdateListResponse(BaseModel):
    data: List[PassUpdateRecordResponse]
    total: int
    page: int
    per_page: int


class BulkUpdateFilters(BaseModel):
    status: Optional[str] = Field(default=None, pattern=r'^active$')
    platform: Optional[str] = Field(default=None, pattern=PLATFORM_PATTERN)


class BulkUpdateCreate(BaseModel):
    pass_template_id: str
    field_key: str = Field(..., min_length=1, max_length=100)
    field_value: str | int | float
    filters: Optional[BulkUpdateFilters] = None


class BulkUpdateResponse(BaseModel):
    id: str
    pass_template_id: str
    field_key: str
    field_value: str | int | float
    filters: dict = {}
    status: str
    total_count: int = 0
    processed_count: int = 0
    failed_count: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
