import pytest

from app.repositories.onboarding import ONBOARDING_STEPS
from app.services import email_domain
from tests.factories import add_apple_certificate, add_google_credential

SIGNUP = {
    "name": "Ada Lovelace",
    "email": "Ada@Example.com",
    "password": "Secr3t!pass",
    "password_confirmation": "Secr3t!pass",
    "region": "EU",
    "industry": "Retail",
    "agree_terms": True,
}


# ============================================
# Signup
# ============================================

def test_signup_creates_pending_account(client, fake_db, sent_emails):
    response = client.post("/api/signup", json=SIGNUP)

    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "ada@example.com"
    assert body["approval_status"] == "pending"
    assert body["tier"] == "Email_Verified"
    assert body["plan"] == "free"

    auth_users = fake_db.auth.admin.users
    assert len(auth_users) == 1
    assert auth_users[0]["email_confirm"] is True

    steps = {row["step_key"]: row["completed_at"] for row in fake_db.rows("onboarding_steps")}
    assert set(steps) == set(ONBOARDING_STEPS)
    assert steps["email_verified"] is not None
    assert steps["first_pass"] is None

    assert sent_emails[0]["to"] == ["ada@example.com"]


def test_signup_from_business_domain_is_approved(client, fake_db):
    fake_db.table("business_domains").insert({"domain": "example.com"}).execute()

    response = client.post("/api/signup", json=SIGNUP)

    assert response.status_code == 201
    assert response.json()["approval_status"] == "approved"
    assert response.json()["approved_at"]


def test_signup_rejects_duplicate_email(client, make_account):
    make_account(email="ada@example.com")

    response = client.post("/api/signup", json=SIGNUP)

    assert response.status_code == 422
    assert response.json()["errors"]["email"] == ["The email has already been taken."]


def test_failed_account_insert_removes_auth_user(client, fake_db, monkeypatch):
    from app.repositories.account import AccountRepository

    with monkeypatch.context() as patched:
        patched.setattr(AccountRepository, "create", staticmethod(lambda **fields: None))
        response = client.post("/api/signup", json=SIGNUP)

    assert response.status_code == 500
    assert fake_db.auth.admin.users == []
    assert fake_db.rows("accounts") == []

    retry = client.post("/api/signup", json=SIGNUP)
    assert retry.status_code == 201
    assert len(fake_db.auth.admin.users) == 1


@pytest.mark.parametrize("field,value,message", [
    ("password", "short1!", "Password must be at least 8 characters."),
    ("password", "longpassword!", "Password must contain at least one number."),
    ("password", "longpassword1", "Password must contain at least one symbol (!@#$%^&*)."),
    ("agree_terms", False, "You must accept the terms and conditions."),
    ("region", "APAC", None),
])
def test_signup_validation_errors_are_keyed_by_field(client, field, value, message):
    payload = {**SIGNUP, field: value}
    if field == "password":
        payload["password_confirmation"] = value

    response = client.post("/api/signup", json=payload)

    assert response.status_code == 422
    errors = response.json()["errors"]
    assert field in errors
    if message:
        assert errors[field] == [message]


def test_signup_password_confirmation_must_match(client):
    response = client.post("/api/signup", json={**SIGNUP, "password_confirmation": "Different1!"})

    assert response.status_code == 422
    assert response.json()["errors"]["password_confirmation"] == ["Passwords do not match."]


# ============================================
# Business domain whitelist
# ============================================

def test_business_domains_are_cached(fake_db, fake_redis):
    fake_db.table("business_domains").insert({"domain": "acme.io"}).execute()

    assert email_domain.is_business_domain("jo@ACME.io")
    assert "business_domains" in fake_redis.values

    # Served from cache until invalidated
    fake_db.rows("business_domains").clear()
    assert email_domain.is_business_domain("jo@acme.io")

    email_domain.add_business_domain("other.io")
    assert "business_domains" not in fake_redis.values
    assert email_domain.get_business_domains() == ["other.io"]


# ============================================
# Account settings
# ============================================

def test_pending_account_cannot_access_settings(client, make_account):
    _, headers = make_account(approval_status="pending")

    response = client.get("/api/account", headers=headers)

    assert response.status_code == 403
    assert "pending approval" in response.json()["message"]


def test_update_account_marks_profile_step(client, fake_db, make_account):
    account, headers = make_account()
    fake_db.table("onboarding_steps").insert({
        "account_id": account["id"], "step_key": "user_profile", "completed_at": None,
    }).execute()

    response = client.put("/api/account", json={"business_name": "Analytical Engines"}, headers=headers)

    assert response.status_code == 200
    assert response.json()["business_name"] == "Analytical Engines"
    step = fake_db.rows("onboarding_steps")[0]
    assert step["completed_at"] is not None


def test_region_cannot_be_changed(client, make_account):
    account, headers = make_account(region="EU")

    response = client.put("/api/account", json={"region": "US"}, headers=headers)

    assert response.status_code == 422
    assert "region" in response.json()["errors"]


def test_account_limits(client, make_account):
    _, headers = make_account(plan="starter")

    response = client.get("/api/account/limits", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["limits"]["pass_limit"] == 100
    assert body["usage"]["passes"] == 0


# ============================================
# Admin
# ============================================

def test_admin_routes_require_admin(client, make_account):
    _, headers = make_account()

    assert client.get("/api/admin/accounts", headers=headers).status_code == 403


def test_admin_lists_pending_queue_by_region(client, make_account, admin):
    make_account(approval_status="pending", region="EU")
    make_account(approval_status="pending", region="US")
    make_account(approval_status="approved", region="EU")
    _, admin_headers = admin

    response = client.get("/api/admin/accounts?status=pending&region=EU", headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["data"][0]["region"] == "EU"


def test_admin_approves_pending_account(client, fake_db, make_account, admin, sent_emails):
    account, _ = make_account(approval_status="pending")
    add_apple_certificate(fake_db, account["id"])
    add_google_credential(fake_db, account["id"])
    admin_account, admin_headers = admin

    response = client.post(f"/api/admin/accounts/{account['id']}/approve", headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["approval_status"] == "approved"
    # Credentials were uploaded before approval
    assert body["tier"] == "Verified_And_Configured"
    assert any(email["to"] == [account["email"]] for email in sent_emails)

    again = client.post(f"/api/admin/accounts/{account['id']}/approve", headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["message"] == "User is not pending approval."


def test_admin_rejects_pending_account(client, make_account, admin):
    account, headers = make_account(approval_status="pending")
    _, admin_headers = admin

    response = client.post(f"/api/admin/accounts/{account['id']}/reject", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["approval_status"] == "rejected"
    assert client.get("/api/account", headers=headers).status_code == 403


def test_admin_production_queue_and_approval(client, make_account, admin):
    account, _ = make_account(
        tier="Verified_And_Configured",
        production_requested_at="2026-03-01T10:00:00+00:00",
    )
    make_account(tier="Verified_And_Configured")
    _, admin_headers = admin

    queue = client.get("/api/admin/production-requests", headers=admin_headers).json()
    assert [row["id"] for row in queue["data"]] == [account["id"]]

    response = client.post(f"/api/admin/production-requests/{account['id']}/approve", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["tier"] == "Production"

    again = client.post(f"/api/admin/production-requests/{account['id']}/approve", headers=admin_headers)
    assert again.status_code == 422


def test_admin_rejects_production_with_reason(client, make_account, admin):
    account, _ = make_account(tier="Verified_And_Configured", production_requested_at="2026-03-01T10:00:00+00:00")
    _, admin_headers = admin

    response = client.post(
        f"/api/admin/production-requests/{account['id']}/reject",
        json={"reason": "Pass design incomplete"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["tier"] == "Verified_And_Configured"
    assert body["production_rejected_reason"] == "Pass design incomplete"


def test_admin_manages_business_domains(client, fake_redis, admin):
    _, admin_headers = admin
    fake_redis.values["business_domains"] = "[]"

    created = client.post("/api/admin/business-domains", json={"domain": "Acme.io"}, headers=admin_headers)
    assert created.status_code == 201
    assert created.json()["domain"] == "acme.io"
    assert "business_domains" not in fake_redis.values

    duplicate = client.post("/api/admin/business-domains", json={"domain": "acme.io"}, headers=admin_headers)
    assert duplicate.status_code == 422

    listed = client.get("/api/admin/business-domains", headers=admin_headers).json()
    assert [d["domain"] for d in listed] == ["acme.io"]

    deleted = client.delete(f"/api/admin/business-domains/{created.json()['id']}", headers=admin_headers)
    assert deleted.status_code == 200
