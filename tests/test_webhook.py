"""Mercado Pago notification handling: signature check and status transitions."""

import hashlib
import hmac

import pytest

from nutriplan.core.config import settings
from nutriplan.core.security import parse_signature_header, verify_webhook_signature

SECRET = "webhook-secret"


def sign(payload, ts="1700000000", secret=SECRET):
    manifest = f"id:{payload.get('id')};topic:{payload.get('type')};ts:{ts};"
    digest = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    return f"ts={ts},v1={digest}"


def mp_response(response, status=200):
    return {"status": status, "response": response}


class TestSignature:
    def test_parse_signature_header(self):
        assert parse_signature_header("ts=123, v1=abc") == ("123", "abc")

    def test_parse_signature_header_missing_parts(self):
        assert parse_signature_header("garbage") == ("", "")

    def test_valid_signature(self):
        payload = {"id": 42, "type": "payment"}
        assert verify_webhook_signature(sign(payload), payload, SECRET)

    def test_tampered_payload(self):
        payload = {"id": 42, "type": "payment"}
        signature = sign(payload)
        assert not verify_webhook_signature(signature, {"id": 43, "type": "payment"}, SECRET)

    def test_wrong_secret(self):
        payload = {"id": 42, "type": "payment"}
        assert not verify_webhook_signature(sign(payload, secret="other"), payload, SECRET)

    def test_missing_v1(self):
        assert not verify_webhook_signature("ts=1", {"id": 1, "type": "payment"}, SECRET)


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setattr(settings, "MERCADOPAGO_WEBHOOK_SECRET", SECRET)


def test_invalid_signature_is_rejected(client, webhook_secret):
    payload = {"id": 1, "type": "payment", "data": {"id": "55"}}

    response = client.post("/webhook", json=payload, headers={"x-signature": "ts=1,v1=deadbeef"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid signature"


def test_valid_signature_is_accepted(client, mp_service, webhook_secret):
    payload = {"id": 1, "type": "test"}

    response = client.post("/webhook", json=payload, headers={"x-signature": sign(payload)})

    assert response.status_code == 200
    assert response.json() == {"success": True}


def test_unsigned_notification_is_processed(client, webhook_secret):
    response = client.post("/subscription/webhook", json={"id": 1, "type": "merchant_order"})

    assert response.status_code == 200
    assert response.json() == {"success": True}


def test_invalid_json_is_bad_request(client):
    response = client.post("/webhook", content=b"not-json", headers={"content-type": "application/json"})

    assert response.status_code == 400


def test_approved_payment_activates_subscription_by_preapproval(client, mp_service, db):
    db.tables["subscriptions"] = [{
        "id": 10,
        "user_id": "user-1",
        "plan_type": "simple",
        "status": "pending",
        "mercadopago_preapproval_id": "pre-9",
    }]
    db.tables["perfis_usuario"] = [{"id": "user-1", "plan_status": "inactive"}]
    mp_service.sdk.payment.return_value.get.return_value = mp_response({
        "id": 555,
        "status": "approved",
        "preapproval_id": "pre-9",
        "metadata": {},
    })

    response = client.post("/webhook", json={"type": "payment", "data": {"id": "555"}})

    assert response.json() == {"success": True}
    mp_service.sdk.payment.return_value.get.assert_called_once_with("555")
    row = db.tables["subscriptions"][0]
    assert row["status"] == "active"
    assert row["mercadopago_subscription_id"] == "555"
    assert row["last_payment_date"] is not None
    assert row["next_payment_date"] > row["last_payment_date"]
    assert db.tables["perfis_usuario"][0]["plan_status"] == "active"


def test_approved_card_payment_falls_back_to_user_metadata(client, mp_service, db):
    db.tables["subscriptions"] = [{"id": 3, "user_id": "user-7", "plan_type": "simple", "status": "pending"}]
    mp_service.sdk.payment.return_value.get.return_value = mp_response({
        "id": 777,
        "status": "approved",
        "external_reference": "user-7",
        "metadata": {"user_id": "user-7", "plan_type": "premium"},
    })

    response = client.post("/webhook", json={"type": "payment", "data": {"id": 777}})

    assert response.json() == {"success": True}
    row = db.tables["subscriptions"][0]
    assert row["status"] == "active"
    assert row["plan_type"] == "premium"


def test_rejected_payment_changes_nothing(client, mp_service, db):
    db.tables["subscriptions"] = [{
        "id": 10,
        "user_id": "user-1",
        "status": "pending",
        "mercadopago_preapproval_id": "pre-9",
    }]
    mp_service.sdk.payment.return_value.get.return_value = mp_response({
        "id": 555,
        "status": "rejected",
        "preapproval_id": "pre-9",
    })

    response = client.post("/webhook", json={"type": "payment", "data": {"id": "555"}})

    assert response.json() == {"success": True}
    assert db.tables["subscriptions"][0]["status"] == "pending"


def test_payment_lookup_failure_changes_nothing(client, mp_service, db):
    mp_service.sdk.payment.return_value.get.return_value = mp_response({"message": "not found"}, status=404)

    response = client.post("/webhook", json={"type": "payment", "data": {"id": "1"}})

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert not [call for call in db.calls if call[1] == "update"]


@pytest.mark.parametrize("processor_status,expected_status,profile_status", [
    ("authorized", "active", "active"),
    ("cancelled", "cancelled", "inactive"),
    ("paused", "cancelled", "inactive"),
    ("pending", "pending", "inactive"),
])
def test_preapproval_status_sync(client, mp_service, db, processor_status, expected_status, profile_status):
    db.tables["subscriptions"] = [{
        "id": 4,
        "user_id": "user-2",
        "status": "pending",
        "mercadopago_preapproval_id": "pre-4",
    }]
    db.tables["perfis_usuario"] = [{"id": "user-2", "plan_status": None}]
    mp_service.sdk.preapproval.return_value.get.return_value = mp_response({
        "id": "pre-4",
        "status": processor_status,
    })

    response = client.post("/webhook", json={"type": "subscription_preapproval", "data": {"id": "pre-4"}})

    assert response.json() == {"success": True}
    row = db.tables["subscriptions"][0]
    assert row["status"] == expected_status
    assert ("cancelled_at" in row) == (expected_status == "cancelled")
    assert db.tables["perfis_usuario"][0]["plan_status"] == profile_status


def test_preapproval_for_unknown_subscription_is_ignored(client, mp_service, db):
    mp_service.sdk.preapproval.return_value.get.return_value = mp_response({"id": "x", "status": "authorized"})

    response = client.post("/webhook", json={"type": "preapproval", "data": {"id": "x"}})

    assert response.json() == {"success": True}
    assert not [call for call in db.calls if call[1] == "update"]


def test_preapproval_lookup_failure_changes_nothing(client, mp_service, db):
    db.tables["subscriptions"] = [{
        "id": 4,
        "user_id": "user-2",
        "status": "active",
        "mercadopago_preapproval_id": "pre-4",
    }]
    mp_service.sdk.preapproval.return_value.get.return_value = mp_response({"message": "not found"}, status=404)

    response = client.post("/webhook", json={"type": "subscription_preapproval", "data": {"id": "pre-4"}})

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert db.tables["subscriptions"][0]["status"] == "active"
    assert not [call for call in db.calls if call[1] == "update"]


def test_processing_error_still_answers_200(client, mp_service):
    mp_service.sdk.payment.return_value.get.side_effect = RuntimeError("connection reset")

    response = client.post("/webhook", json={"type": "payment", "data": {"id": "1"}})

    assert response.status_code == 200
    assert response.json() == {"success": False, "error": "connection reset"}
