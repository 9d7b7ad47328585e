import io
from datetime import datetime, timedelta, timezone

import pytest
from PIL import Image

from app.services.pass_images import apply_upload, store_image
from app.services.passes import (
    PassValidationError,
    apply_template_defaults,
    attach_image,
    effective_status,
    field_map,
    is_expired,
    replace_placeholders,
    validate_definition,
)
from tests.factories import add_pass

GENERIC_PASS = {
    "pass_type": "generic",
    "platforms": ["apple", "google"],
    "pass_data": {
        "description": "Member card",
        "primaryFields": [{"key": "member", "label": "Member", "value": "Ada"}],
    },
    "member_id": "M-1001",
}

TEMPLATE = {
    "name": "Gold membership",
    "pass_type": "storeCard",
    "platforms": ["apple"],
    "design_data": {
        "description": "Gold card",
        "backgroundColor": "#111111",
        "primaryFields": [{"key": "name", "label": "Name", "value": "{{first_name}} {{last_name}}"}],
        "labels": {"points": "Points", "tier": "Tier"},
    },
    "barcode_data": {"format": "PKBarcodeFormatPDF417", "message": "GOLD"},
}


def png_bytes(width, height):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "green").save(buffer, format="PNG")
    return buffer.getvalue()


# ============================================
# Template defaults and placeholders
# ============================================

def test_template_defaults_merge_rules():
    defaults = {
        "description": "Gold card",
        "backgroundColor": "#111111",
        "labels": {"points": "Points", "tier": "Tier"},
        "backFields": [{"key": "terms"}],
    }

    merged = apply_template_defaults(defaults, {
        "description": None,
        "backgroundColor": "",
        "labels": {"tier": "Level"},
        "backFields": [],
    })

    assert merged == {
        "description": "Gold card",
        "backgroundColor": "",
        "labels": {"points": "Points", "tier": "Level"},
        "backFields": [],
    }
    assert defaults["labels"]["tier"] == "Tier"


def test_placeholders_are_replaced_in_nested_values():
    data = {"primaryFields": [{"key": "name", "value": "{{ first_name }} {{last_name}}"}], "count": 3}

    result = replace_placeholders(data, {"first_name": "Ada", "last_name": None})

    assert result == {"primaryFields": [{"key": "name", "value": "Ada "}], "count": 3}


def test_unknown_placeholders_are_left_alone():
    assert replace_placeholders("Hi {{nickname}}", {"first_name": "Ada"}) == "Hi {{nickname}}"


# ============================================
# Definition rules
# ============================================

def test_transit_passes_need_a_transit_type():
    with pytest.raises(PassValidationError) as exc:
        validate_definition("boardingPass", ["apple"], {}, None)
    assert "pass_data.transitType" in exc.value.errors

    with pytest.raises(PassValidationError) as exc:
        validate_definition("transit", ["google"], {"transitType": "PKTransitTypeRocket"}, None)
    assert exc.value.message == "Unsupported transit type 'PKTransitTypeRocket'."

    validate_definition("boardingPass", ["apple", "google"], {"transitType": "PKTransitTypeAir"}, None)


@pytest.mark.parametrize("pass_type,platform", [
    ("coupon", "google"),
    ("storeCard", "google"),
    ("offer", "apple"),
    ("loyalty", "apple"),
])
def test_pass_type_must_exist_on_every_platform(pass_type, platform):
    with pytest.raises(PassValidationError) as exc:
        validate_definition(pass_type, [platform], {}, None)
    assert exc.value.errors["platforms"] == [f"The {pass_type} pass type is not available on {platform}."]


def test_fields_need_keys():
    with pytest.raises(PassValidationError) as exc:
        validate_definition("generic", ["apple"], {"secondaryFields": [{"label": "No key"}]}, None)
    assert "pass_data.secondaryFields.0" in exc.value.errors


def test_field_map_per_platform():
    apple = field_map("boardingPass", "apple")
    google = field_map("generic", "google")

    assert apple["field_groups"][0] == "headerFields"
    assert apple["constraints"] == {"requires": ["transitType"]}
    assert "headerFields" not in google["field_groups"]
    assert google["constraints"] == {}


def test_expiry_is_derived_from_pass_data():
    now = datetime(2026, 6, 1, tzinfo=timezone.utc)
    row = {"status": "active", "pass_data": {"expiry_date": "2026-05-31T23:00:00+00:00"}}

    assert is_expired(row, now) is True
    assert is_expired({"pass_data": {"expiry_date": "2026-06-02"}}, now) is False
    assert is_expired({"pass_data": {}}, now) is False
    assert effective_status(row) == "expired"
    assert effective_status({**row, "status": "voided"}) == "voided"


# ============================================
# Pass routes
# ============================================

def test_create_pass(client, fake_db, make_account):
    account, headers = make_account()
    fake_db.table("onboarding_steps").insert({
        "account_id": account["id"], "step_key": "first_pass", "completed_at": None,
    }).execute()

    response = client.post("/passes", json=GENERIC_PASS, headers=headers)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "active"
    assert body["is_expired"] is False
    assert body["barcode_data"]["message"] == "M-1001"
    assert body["barcode_data"]["format"] == "PKBarcodeFormatQR"
    assert len(body["serial_number"]) == 36
    assert fake_db.rows("onboarding_steps")[0]["completed_at"] is not None


def test_create_pass_from_template(client, make_account):
    _, headers = make_account()
    template = client.post("/templates", json=TEMPLATE, headers=headers).json()

    response = client.post("/passes", json={
        "pass_template_id": template["id"],
        "platforms": ["apple"],
        "pass_data": {"backgroundColor": "#ffd700"},
        "custom_fields": {"first_name": "Ada", "last_name": "Lovelace"},
    }, headers=headers)

    assert response.status_code == 201
    body = response.json()
    assert body["pass_type"] == "storeCard"
    assert body["pass_template_id"] == template["id"]
    assert body["pass_data"]["description"] == "Gold card"
    assert body["pass_data"]["backgroundColor"] == "#ffd700"
    assert body["pass_data"]["primaryFields"][0]["value"] == "Ada Lovelace"
    assert body["barcode_data"]["format"] == "PKBarcodeFormatPDF417"


def test_create_pass_with_unknown_template(client, make_account):
    _, headers = make_account()

    response = client.post("/passes", json={"pass_template_id": "missing", "platforms": ["apple"]}, headers=headers)

    assert response.status_code == 404
    assert response.json()["message"] == "Template not found"


def test_create_pass_rejects_incompatible_platform(client, make_account):
    _, headers = make_account()

    response = client.post("/passes", json={**GENERIC_PASS, "pass_type": "coupon"}, headers=headers)

    assert response.status_code == 422
    assert "platforms" in response.json()["errors"]


def test_create_pass_requires_known_pass_type(client, make_account):
    _, headers = make_account()

    response = client.post("/passes", json={**GENERIC_PASS, "pass_type": "membership"}, headers=headers)

    assert response.status_code == 422
    assert "pass_type" in response.json()["errors"]


def test_pass_limit_is_enforced(client, fake_db, make_account):
    account, headers = make_account(plan="free")
    for _ in range(25):
        add_pass(fake_db, account["id"])

    response = client.post("/passes", json=GENERIC_PASS, headers=headers)

    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "LIMIT_EXCEEDED"
    assert body["limit"] == 25
    assert body["current"] == 25
    assert body["upgrade_required"] is True


def test_pending_account_cannot_create_passes(client, make_account):
    _, headers = make_account(approval_status="pending")

    assert client.post("/passes", json=GENERIC_PASS, headers=headers).status_code == 403


def test_list_passes_filters_and_paginates(client, fake_db, make_account):
    account, headers = make_account()
    add_pass(fake_db, account["id"], pass_type="coupon", platforms=["apple"])
    add_pass(fake_db, account["id"], platforms=["google"], status="voided")
    newest = add_pass(fake_db, account["id"])
    other, _ = make_account()
    add_pass(fake_db, other["id"])

    everything = client.get("/passes", headers=headers).json()
    assert everything["total"] == 3
    assert everything["data"][0]["id"] == newest["id"]

    assert client.get("/passes?platform=google", headers=headers).json()["total"] == 2
    assert client.get("/passes?status=voided", headers=headers).json()["total"] == 1
    assert client.get("/passes?pass_type=coupon", headers=headers).json()["total"] == 1

    page = client.get("/passes?page=2&per_page=2", headers=headers).json()
    assert page["total"] == 3
    assert len(page["data"]) == 1
    assert page["page"] == 2


def test_list_passes_rejects_unknown_filters(client, make_account):
    _, headers = make_account()

    assert client.get("/passes?platform=windows", headers=headers).status_code == 422


def test_expired_pass_is_reported_as_expired(client, fake_db, make_account):
    account, headers = make_account()
    yesterday = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    row = add_pass(fake_db, account["id"], pass_data={"description": "Ticket", "expiry_date": yesterday})

    body = client.get(f"/passes/{row['id']}", headers=headers).json()

    assert body["status"] == "expired"
    assert body["is_expired"] is True


def test_update_pass(client, fake_db, make_account):
    account, headers = make_account()
    row = add_pass(fake_db, account["id"])

    response = client.put(f"/passes/{row['id']}", json={"pass_data": {"description": "Renamed"}}, headers=headers)

    assert response.status_code == 200
    assert response.json()["pass_data"] == {"description": "Renamed"}
    assert response.json()["platforms"] == ["apple", "google"]


def test_update_pass_revalidates_platforms(client, fake_db, make_account):
    account, headers = make_account()
    row = add_pass(fake_db, account["id"], pass_type="coupon", platforms=["apple"])

    response = client.put(f"/passes/{row['id']}", json={"platforms": ["google"]}, headers=headers)

    assert response.status_code == 422
    assert fake_db.rows("passes")[0]["platforms"] == ["apple"]


def test_void_and_delete_pass(client, fake_db, make_account):
    account, headers = make_account()
    row = add_pass(fake_db, account["id"])

    voided = client.post(f"/passes/{row['id']}/void", headers=headers)
    assert voided.status_code == 200
    assert voided.json()["status"] == "voided"

    assert client.delete(f"/passes/{row['id']}", headers=headers).status_code == 200
    assert client.get(f"/passes/{row['id']}", headers=headers).status_code == 404


def test_voided_pass_cannot_be_edited_or_reactivated(client, fake_db, make_account):
    account, headers = make_account()
    row = add_pass(fake_db, account["id"])
    client.post(f"/passes/{row['id']}/void", headers=headers)

    reactivate = client.put(f"/passes/{row['id']}", json={"status": "active"}, headers=headers)
    assert reactivate.status_code == 422
    assert "status" in reactivate.json()["errors"]

    edit = client.put(f"/passes/{row['id']}", json={"pass_data": {"description": "Back again"}}, headers=headers)
    assert edit.status_code == 422
    assert edit.json()["errors"] == {"status": ["Voided passes cannot be updated."]}

    stored = fake_db.rows("passes")[0]
    assert stored["status"] == "voided"
    assert stored["pass_data"] == {"description": "Member card"}


def test_update_pass_rejects_oversized_pass_data(client, fake_db, make_account):
    account, headers = make_account()
    row = add_pass(fake_db, account["id"])

    response = client.put(f"/passes/{row['id']}", json={"pass_data": {"description": "x" * 11000}}, headers=headers)

    assert response.status_code == 422
    assert response.json()["errors"] == {"pass_data": ["Pass data exceeds 10KB limit after update."]}
    assert fake_db.rows("passes")[0]["pass_data"] == {"description": "Member card"}


def test_status_filter_matches_stored_status(client, fake_db, make_account):
    account, headers = make_account()
    yesterday = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    add_pass(fake_db, account["id"], pass_data={"description": "Ticket", "expiry_date": yesterday})

    active = client.get("/passes?status=active", headers=headers).json()
    assert active["total"] == 1
    assert active["data"][0]["status"] == "expired"

    assert client.get("/passes?status=expired", headers=headers).json()["total"] == 0


def test_passes_of_other_accounts_are_hidden(client, fake_db, make_account):
    owner, _ = make_account()
    _, other_headers = make_account()
    row = add_pass(fake_db, owner["id"])

    assert client.get(f"/passes/{row['id']}", headers=other_headers).status_code == 404
    assert client.post(f"/passes/{row['id']}/void", headers=other_headers).status_code == 404


def test_field_map_route(client, make_account):
    _, headers = make_account()

    response = client.get("/passes/field-map?pass_type=transit&platform=google", headers=headers)

    assert response.status_code == 200
    assert response.json()["constraints"] == {"requires": ["transitType"]}


def test_image_upload_attaches_variants_to_pass(client, fake_db, make_account):
    account, headers = make_account()
    row = add_pass(fake_db, account["id"])

    response = client.post(
        "/passes/images/store",
        files={"image": ("logo.png", png_bytes(480, 150), "image/png")},
        data={"slot": "logo", "platform": "apple", "pass_id": row["id"]},
        headers=headers,
    )

    assert response.status_code == 201
    assert len(response.json()["variants"]) == 3

    body = client.get(f"/passes/{row['id']}", headers=headers).json()
    preview = body["image_previews"]["apple"]["logo"]
    assert preview["url"].endswith("/logo.png")
    assert preview["quality_warning"] is False

    stored = list(fake_db.storage.buckets["pass-images"])
    assert len(stored) == 4
    client.delete(f"/passes/{row['id']}", headers=headers)
    assert fake_db.storage.buckets["pass-images"] == {}


def test_image_upload_rejects_unknown_slot(client, make_account):
    _, headers = make_account()

    response = client.post(
        "/passes/images/store",
        files={"image": ("logo.png", png_bytes(10, 10), "image/png")},
        data={"slot": "banner", "platform": "apple"},
        headers=headers,
    )

    assert response.status_code == 422
    assert "slot" in response.json()["errors"]


def test_delete_image_slot(client, fake_db, make_account):
    account, headers = make_account()
    images = {"variants": {"apple": {"icon": {"1x": {"path": "a/icon.png", "url": "https://cdn/icon.png"}}}}}
    row = add_pass(fake_db, account["id"], images=images)

    response = client.delete(f"/passes/{row['id']}/images/apple/icon", headers=headers)

    assert response.status_code == 200
    assert response.json()["image_previews"] == {}


def test_attach_image_keeps_a_concurrently_added_slot(fake_db, make_account, monkeypatch):
    from app.repositories.pass_record import PassRepository

    account, _ = make_account()
    row = add_pass(fake_db, account["id"])
    icon = store_image(account["id"], "apple", "icon", "image/png", png_bytes(100, 100))
    logo = store_image(account["id"], "apple", "logo", "image/png", png_bytes(480, 150))
    original = PassRepository.update_if_unchanged
    seen = []

    def racing_update(pass_id, expected_updated_at, **kwargs):
        if not seen:
            # Another request attaches the icon between our read and write
            PassRepository.update(pass_id, images=apply_upload({}, "apple", "icon", icon))
        seen.append(expected_updated_at)
        return original(pass_id, expected_updated_at, **kwargs)

    monkeypatch.setattr(PassRepository, "update_if_unchanged", staticmethod(racing_update))

    updated = attach_image(row, "apple", "logo", logo)

    assert len(seen) == 2
    assert seen[0] == row["updated_at"]
    assert set(updated["images"]["variants"]["apple"]) == {"icon", "logo"}
    assert set(fake_db.rows("passes")[0]["images"]["originals"]) == {"icon", "logo"}


def test_attach_image_gives_up_when_the_pass_keeps_changing(fake_db, make_account, monkeypatch):
    from app.repositories.pass_record import PassRepository

    account, _ = make_account()
    row = add_pass(fake_db, account["id"])
    logo = store_image(account["id"], "apple", "logo", "image/png", png_bytes(480, 150))
    monkeypatch.setattr(PassRepository, "update_if_unchanged", staticmethod(lambda *args, **kwargs: None))

    with pytest.raises(RuntimeError):
        attach_image(row, "apple", "logo", logo)
    assert fake_db.rows("passes")[0]["images"] == {}


# ============================================
# Template routes
# ============================================

def test_template_crud(client, make_account):
    _, headers = make_account()

    created = client.post("/templates", json=TEMPLATE, headers=headers)
    assert created.status_code == 201
    template_id = created.json()["id"]
    assert created.json()["barcode_data"]["format"] == "PKBarcodeFormatPDF417"

    updated = client.put(f"/templates/{template_id}", json={"name": "Platinum"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["name"] == "Platinum"
    assert updated.json()["design_data"]["backgroundColor"] == "#111111"

    assert [t["id"] for t in client.get("/templates", headers=headers).json()] == [template_id]

    assert client.delete(f"/templates/{template_id}", headers=headers).status_code == 200
    assert client.get(f"/templates/{template_id}", headers=headers).status_code == 404


def test_template_update_revalidates_platforms(client, make_account):
    _, headers = make_account()
    template = client.post("/templates", json=TEMPLATE, headers=headers).json()

    response = client.put(f"/templates/{template['id']}", json={"platforms": ["google"]}, headers=headers)

    assert response.status_code == 422
    assert "platforms" in response.json()["errors"]


def test_template_requires_transit_type(client, make_account):
    _, headers = make_account()

    response = client.post("/templates", json={
        "name": "Flight", "pass_type": "boardingPass", "platforms": ["apple"], "design_data": {},
    }, headers=headers)

    assert response.status_code == 422
    assert "pass_data.transitType" in response.json()["errors"]
