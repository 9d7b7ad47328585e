"""Row builders for the in-memory Supabase double."""

from datetime import datetime, timedelta, timezone


def add_apple_certificate(fake_db, account_id, days_left=200, **overrides):
    now = datetime.now(timezone.utc)
    return fake_db.table("apple_certificates").insert({
        "account_id": account_id,
        "path": f"{account_id}/apple/cert.cer",
        "fingerprint": "ab" * 32,
        "valid_from": (now - timedelta(days=10)).isoformat(),
        "expiry_date": (now + timedelta(days=days_left)).isoformat(),
        "expiry_notified_30_days": False,
        "expiry_notified_7_days": False,
        "expiry_notified_0_days": False,
        "deleted_at": None,
        **overrides,
    }).execute().data[0]


def add_google_credential(fake_db, account_id, **overrides):
    return fake_db.table("google_credentials").insert({
        "account_id": account_id,
        "issuer_id": "wallet-issuer",
        "project_id": "wallet-project",
        "client_email": "wallet-issuer@wallet-project.iam.gserviceaccount.com",
        "private_key_encrypted": "encrypted",
        "last_rotated_at": datetime.now(timezone.utc).isoformat(),
        "deleted_at": None,
        **overrides,
    }).execute().data[0]


def add_pass(fake_db, account_id, **overrides):
    return fake_db.table("passes").insert({
        "account_id": account_id,
        "pass_template_id": None,
        "serial_number": "4f1c2b8e-0000-4000-8000-000000000001",
        "pass_type": "generic",
        "platforms": ["apple", "google"],
        "status": "active",
        "pass_data": {"description": "Member card"},
        "barcode_data": {"format": "PKBarcodeFormatQR", "message": "M-1", "altText": None},
        "images": {},
        **overrides,
    }).execute().data[0]


def add_template(fake_db, account_id, **overrides):
    return fake_db.table("pass_templates").insert({
        "account_id": account_id,
        "name": "Membership",
        "description": None,
        "pass_type": "generic",
        "platforms": ["apple", "google"],
        "design_data": {"description": "Member card"},
        "barcode_data": None,
        "images": None,
        **overrides,
    }).execute().data[0]
