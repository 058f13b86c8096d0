"""
test_api.py: HTTP surface: status codes, error bodies and tenant scoping.
Run: pytest tests/test_api.py -v
"""
import uuid
from datetime import timedelta
from decimal import Decimal

from conftest import make_customer, make_policy
from voucherdesk.models import CompensationType, ComplaintCategory, GiftCard, GiftCardStatus, Voucher, VoucherStatus
from voucherdesk.utils.datetime import utcnow


def _issue_voucher(client, headers, customer_id, category="delivery_delay"):
    response = client.post(
        "/api/v1/vouchers",
        json={
            "customer_id": str(customer_id),
            "complaint_category": category,
            "complaint_summary": "Order arrived 90 minutes late.",
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def _approve(client, headers, voucher_id):
    response = client.post(
        f"/api/v1/vouchers/{voucher_id}/approve",
        json={"reviewer": "Store manager", "admin_notes": "Confirmed with courier."},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()


def _issue_card(client, headers, code="GIFT-2026-0042", balance="30000", **extra):
    response = client.post(
        "/api/v1/gift-cards",
        json={"code": code, "initial_balance": balance, **extra},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_tenant_header_is_required(client):
    response = client.get("/api/v1/vouchers")
    assert response.status_code == 422


# ── Vouchers ──────────────────────────────────────────────────────

def test_voucher_lifecycle(client, db_session, tenant_id, headers):
    customer = make_customer(db_session, tenant_id)
    make_policy(db_session, tenant_id)

    issued = _issue_voucher(client, headers, customer.id)
    assert issued["status"] == "pending_approval"
    assert issued["code"].startswith("COMP-")
    assert issued["customer"]["name"] == "Bolormaa D."

    approved = _approve(client, headers, issued["id"])
    assert approved["status"] == "approved"
    assert approved["approved_by"] == "Store manager"

    order_id = str(uuid.uuid4())
    redeemed = client.post(
        f"/api/v1/vouchers/{issued['id']}/redeem",
        json={"order_id": order_id, "order_subtotal": "10000"},
        headers=headers,
    )
    assert redeemed.status_code == 200, redeemed.text
    body = redeemed.json()
    assert Decimal(body["applied_amount"]) == Decimal("2000.00")
    assert body["voucher"]["status"] == "redeemed"
    assert body["voucher"]["redeemed_order_id"] == order_id

    again = client.post(
        f"/api/v1/vouchers/{issued['id']}/redeem",
        json={"order_id": str(uuid.uuid4()), "order_subtotal": "10000"},
        headers=headers,
    )
    assert again.status_code == 409
    assert again.json()["detail"]["error"] == "already_redeemed"
    assert again.json()["detail"]["redeemed_order_id"] == order_id


def test_rejected_voucher_cannot_be_approved(client, db_session, tenant_id, headers):
    customer = make_customer(db_session, tenant_id)
    make_policy(db_session, tenant_id)
    issued = _issue_voucher(client, headers, customer.id)

    rejected = client.post(
        f"/api/v1/vouchers/{issued['id']}/reject",
        json={"reviewer": "Store manager"},
        headers=headers,
    )
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"

    approved = client.post(
        f"/api/v1/vouchers/{issued['id']}/approve",
        json={"reviewer": "Store manager"},
        headers=headers,
    )
    assert approved.status_code == 409
    assert approved.json()["detail"] == {
        "error": "invalid_transition",
        "message": approved.json()["detail"]["message"],
        "status": "rejected",
    }


def test_issue_requires_policy_reference(client, db_session, tenant_id, headers):
    customer = make_customer(db_session, tenant_id)
    response = client.post("/api/v1/vouchers", json={"customer_id": str(customer.id)}, headers=headers)
    assert response.status_code == 422


def test_issue_without_matching_policy(client, db_session, tenant_id, headers):
    customer = make_customer(db_session, tenant_id)
    response = client.post(
        "/api/v1/vouchers",
        json={"customer_id": str(customer.id), "complaint_category": "wrong_item"},
        headers=headers,
    )
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "policy_not_found"


def test_expired_voucher_returns_gone_and_stays_expired(client, db_session, tenant_id, headers):
    customer = make_customer(db_session, tenant_id)
    make_policy(db_session, tenant_id)
    issued = _issue_voucher(client, headers, customer.id)
    _approve(client, headers, issued["id"])

    voucher = db_session.get(Voucher, uuid.UUID(issued["id"]))
    voucher.valid_until = utcnow() - timedelta(minutes=5)
    db_session.commit()

    response = client.post(
        f"/api/v1/vouchers/{issued['id']}/redeem",
        json={"order_id": str(uuid.uuid4()), "order_subtotal": "10000"},
        headers=headers,
    )
    assert response.status_code == 410
    assert response.json()["detail"]["error"] == "expired"

    db_session.expire_all()
    assert db_session.get(Voucher, voucher.id).status == VoucherStatus.EXPIRED
    fetched = client.get(f"/api/v1/vouchers/{issued['id']}", headers=headers)
    assert fetched.json()["status"] == "expired"


def test_voucher_is_invisible_to_other_tenants(client, db_session, tenant_id, headers):
    customer = make_customer(db_session, tenant_id)
    make_policy(db_session, tenant_id)
    issued = _issue_voucher(client, headers, customer.id)

    response = client.get(f"/api/v1/vouchers/{issued['id']}", headers={"X-Tenant-ID": str(uuid.uuid4())})
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "not_found"


def test_list_and_summary(client, db_session, tenant_id, headers):
    customer = make_customer(db_session, tenant_id)
    make_policy(db_session, tenant_id)
    make_policy(
        db_session,
        tenant_id,
        complaint_category=ComplaintCategory.WRONG_ITEM,
        compensation_type=CompensationType.FREE_ITEM,
        compensation_value=Decimal("0"),
        max_discount_amount=None,
        auto_approve=True,
    )
    _issue_voucher(client, headers, customer.id)
    auto = _issue_voucher(client, headers, customer.id, category="wrong_item")
    assert auto["status"] == "approved"
    assert auto["approved_by"] == "auto-approve"

    listed = client.get("/api/v1/vouchers", params={"status": "approved"}, headers=headers)
    assert [item["id"] for item in listed.json()] == [auto["id"]]

    summary = client.get("/api/v1/vouchers/summary", headers=headers).json()
    assert summary["pending_approval"] == 1
    assert summary["approved"] == 1
    assert summary["redeemed"] == 0


# ── Gift cards ────────────────────────────────────────────────────

def test_gift_card_apply_until_empty(client, headers):
    card = _issue_card(client, headers)
    assert card["status"] == "active"
    assert Decimal(card["current_balance"]) == Decimal("30000")

    first = client.post(f"/api/v1/gift-cards/{card['id']}/apply", json={"amount": "12000"}, headers=headers)
    assert first.status_code == 200, first.text
    assert Decimal(first.json()["new_balance"]) == Decimal("18000")

    second = client.post(f"/api/v1/gift-cards/{card['id']}/apply", json={"amount": "18000"}, headers=headers)
    assert second.json()["card"]["status"] == "redeemed"

    third = client.post(f"/api/v1/gift-cards/{card['id']}/apply", json={"amount": "1"}, headers=headers)
    assert third.status_code == 422
    assert third.json()["detail"]["error"] == "insufficient_balance"

    history = client.get(f"/api/v1/gift-cards/{card['id']}/transactions", headers=headers).json()
    assert [item["transaction_type"] for item in history] == ["redemption", "redemption", "issue"]


def test_gift_card_apply_with_idempotency_header(client, headers):
    card = _issue_card(client, headers)
    keyed = {**headers, "Idempotency-Key": "checkout-7781"}

    first = client.post(f"/api/v1/gift-cards/{card['id']}/apply", json={"amount": "12000"}, headers=keyed)
    retry = client.post(f"/api/v1/gift-cards/{card['id']}/apply", json={"amount": "12000"}, headers=keyed)

    assert first.json()["replayed"] is False
    assert retry.status_code == 200
    assert retry.json()["replayed"] is True
    assert Decimal(retry.json()["card"]["current_balance"]) == Decimal("18000")

    conflict = client.post(f"/api/v1/gift-cards/{card['id']}/apply", json={"amount": "500"}, headers=keyed)
    assert conflict.status_code == 409
    assert conflict.json()["detail"]["error"] == "idempotency_conflict"


def test_gift_card_duplicate_code_and_lookup(client, headers):
    card = _issue_card(client, headers, code="GIFT-ABC")
    duplicate = client.post(
        "/api/v1/gift-cards", json={"code": "gift-abc", "initial_balance": "100"}, headers=headers
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["error"] == "duplicate_code"

    found = client.get("/api/v1/gift-cards/by-code/gift-abc", headers=headers)
    assert found.json()["id"] == card["id"]


def test_disabled_gift_card(client, headers):
    card = _issue_card(client, headers)
    disabled = client.post(f"/api/v1/gift-cards/{card['id']}/disable", headers=headers)
    assert disabled.json()["status"] == "disabled"

    response = client.post(f"/api/v1/gift-cards/{card['id']}/apply", json={"amount": "10"}, headers=headers)
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "disabled"


def test_disabling_lapsed_card_commits_expiry(client, db_session, headers):
    card = _issue_card(client, headers, expires_at=(utcnow() + timedelta(days=1)).isoformat())

    stored = db_session.get(GiftCard, uuid.UUID(card["id"]))
    stored.expires_at = utcnow() - timedelta(minutes=5)
    db_session.commit()

    response = client.post(f"/api/v1/gift-cards/{card['id']}/disable", headers=headers)
    assert response.status_code == 409
    assert response.json()["detail"]["status"] == "expired"

    db_session.expire_all()
    assert db_session.get(GiftCard, stored.id).status == GiftCardStatus.EXPIRED


def test_reviewing_lapsed_voucher_commits_expiry(client, db_session, tenant_id, headers):
    customer = make_customer(db_session, tenant_id)
    make_policy(db_session, tenant_id)
    issued = _issue_voucher(client, headers, customer.id)
    _approve(client, headers, issued["id"])

    voucher = db_session.get(Voucher, uuid.UUID(issued["id"]))
    voucher.valid_until = utcnow() - timedelta(minutes=5)
    db_session.commit()

    response = client.post(
        f"/api/v1/vouchers/{issued['id']}/reject", json={"reviewer": "Store manager"}, headers=headers
    )
    assert response.status_code == 409
    assert response.json()["detail"]["status"] == "expired"

    db_session.expire_all()
    assert db_session.get(Voucher, voucher.id).status == VoucherStatus.EXPIRED


def test_sub_cent_amounts_are_rejected(client, headers):
    card = _issue_card(client, headers, balance="100")
    response = client.post(f"/api/v1/gift-cards/{card['id']}/apply", json={"amount": "0.005"}, headers=headers)
    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "invalid_amount"

    fetched = client.get(f"/api/v1/gift-cards/{card['id']}", headers=headers).json()
    assert Decimal(fetched["current_balance"]) == Decimal("100")


def test_card_cannot_be_issued_already_expired(client, headers):
    response = client.post(
        "/api/v1/gift-cards",
        json={"code": "GIFT-OLD", "initial_balance": "100", "expires_at": "2020-01-01T00:00:00Z"},
        headers=headers,
    )
    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "invalid_expiry"


def test_zero_balance_card_is_rejected(client, headers):
    response = client.post("/api/v1/gift-cards", json={"code": "GIFT-0", "initial_balance": "0"}, headers=headers)
    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "invalid_amount"


def test_assign_gift_card_customer(client, db_session, tenant_id, headers):
    customer = make_customer(db_session, tenant_id)
    card = _issue_card(client, headers)

    response = client.put(
        f"/api/v1/gift-cards/{card['id']}/customer", json={"customer_id": str(customer.id)}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["customer"]["id"] == str(customer.id)


# ── Redemption gateway ────────────────────────────────────────────

def test_gateway_redeems_voucher_by_code(client, db_session, tenant_id, headers):
    customer = make_customer(db_session, tenant_id)
    make_policy(db_session, tenant_id)
    issued = _issue_voucher(client, headers, customer.id)
    _approve(client, headers, issued["id"])

    response = client.post(
        "/api/v1/redemptions",
        json={
            "instrument": {"kind": "voucher", "code": issued["code"].lower()},
            "order": {"order_id": str(uuid.uuid4()), "subtotal": "100000"},
        },
        headers=headers,
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["instrument_kind"] == "voucher"
    assert body["compensation_type"] == "percent_discount"
    assert Decimal(body["applied_amount"]) == Decimal("5000.00")
    assert body["remaining_balance"] is None


def test_gateway_debits_gift_card_by_code(client, headers):
    _issue_card(client, headers, code="GIFT-GW")
    payload = {
        "instrument": {"kind": "gift_card", "code": "GIFT-GW"},
        "order": {"order_id": str(uuid.uuid4()), "subtotal": "50000", "amount": "12000"},
        "idempotency_key": "order-1",
    }

    first = client.post("/api/v1/redemptions", json=payload, headers=headers)
    retry = client.post("/api/v1/redemptions", json=payload, headers=headers)

    assert first.status_code == 200, first.text
    assert Decimal(first.json()["applied_amount"]) == Decimal("12000")
    assert Decimal(first.json()["remaining_balance"]) == Decimal("18000")
    assert retry.json()["replayed"] is True
    assert Decimal(retry.json()["remaining_balance"]) == Decimal("18000")


def test_gateway_reports_unknown_instrument(client, headers):
    response = client.post(
        "/api/v1/redemptions",
        json={
            "instrument": {"kind": "gift_card", "code": "NOPE"},
            "order": {"order_id": str(uuid.uuid4()), "subtotal": "10"},
        },
        headers=headers,
    )
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "not_found"


def test_gateway_requires_exactly_one_locator(client, headers):
    response = client.post(
        "/api/v1/redemptions",
        json={
            "instrument": {"kind": "voucher", "id": str(uuid.uuid4()), "code": "COMP-XXXX"},
            "order": {"order_id": str(uuid.uuid4()), "subtotal": "10"},
        },
        headers=headers,
    )
    assert response.status_code == 422
