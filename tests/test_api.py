import hashlib
import hmac

import pytest

from conftest import CARD_FORM, auth_headers, make_user
from ofiz.extensions import db
from ofiz.models import Booking, Payment, User
from ofiz.services import BookingService, CreditService, PaymentService


@pytest.fixture
def parties(app):
    with app.app_context():
        client = make_user("client")
        master = make_user("master")
        return {
            "client_id": client.id,
            "master_id": master.id,
            "client": auth_headers(client),
            "master": auth_headers(master),
        }


@pytest.fixture
def http(app):
    return app.test_client()


def _create_booking(http, parties, price="1000"):
    response = http.post(
        "/api/v1/bookings",
        json={"master_id": parties["master_id"], "total_price": price, "notes": "Pintar pared"},
        headers=parties["client"],
    )
    assert response.status_code == 201
    return response.get_json()


def test_requests_without_token_are_unauthorized(http):
    response = http.get("/api/v1/bookings/me")
    assert response.status_code == 401
    assert response.get_json() == {"error": "Unauthorized"}


def test_bad_token_is_unauthorized(http):
    response = http.get("/api/v1/bookings/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_booking_lifecycle_over_http(http, parties):
    created = _create_booking(http, parties)
    assert created["status"] == "pending"
    assert created["allowed_actions"] == ["cancel"]

    response = http.post(
        f"/api/v1/bookings/{created['id']}/negotiate",
        json={"total_price": "900", "message": "Con descuento"},
        headers=parties["master"],
    )
    assert response.status_code == 200
    assert response.get_json()["total_price"] == "900.00"
    assert response.get_json()["has_counter_proposal"] is True

    response = http.post(f"/api/v1/bookings/{created['id']}/accept_proposal", headers=parties["client"])
    body = response.get_json()
    assert body["status"] == "confirmed"
    assert body["client_confirmed_at"] is not None

    response = http.get(f"/api/v1/bookings/{created['id']}/messages", headers=parties["master"])
    assert response.status_code == 200
    assert len(response.get_json()) == 3


def test_invalid_transition_returns_conflict_payload(http, parties):
    created = _create_booking(http, parties)

    response = http.post(f"/api/v1/bookings/{created['id']}/approve_work", headers=parties["client"])

    assert response.status_code == 409
    assert response.get_json()["current_status"] == "pending"
    assert response.get_json()["action"] == "approve_work"


def test_confirm_payment_is_not_a_user_action(http, parties):
    created = _create_booking(http, parties)

    response = http.post(f"/api/v1/bookings/{created['id']}/confirm_payment", headers=parties["client"])

    assert response.status_code == 404


def test_masters_cannot_create_bookings(http, parties):
    response = http.post(
        "/api/v1/bookings", json={"master_id": parties["master_id"], "total_price": "10"}, headers=parties["master"]
    )
    assert response.status_code == 403


def test_outsider_cannot_read_booking(app, http, parties):
    created = _create_booking(http, parties)
    with app.app_context():
        stranger = auth_headers(make_user("client"))

    assert http.get(f"/api/v1/bookings/{created['id']}", headers=stranger).status_code == 403


def test_quote_endpoint(http, parties):
    response = http.post(
        "/api/v1/payments/quote",
        json={"price_base": "2000", "payment_type": "partial", "payment_method": "debit"},
        headers=parties["client"],
    )

    body = response.get_json()
    assert body["gross_amount"] == "1000.00"
    assert body["platform_fee"] == "50.00"
    assert body["amount_due"] == "1000.00"


def test_pay_booking_endpoint(http, parties, provider):
    created = _create_booking(http, parties)

    response = http.post(
        f"/api/v1/payments/bookings/{created['id']}",
        json={"payment_type": "full", "payment_method": "debit", "form": CARD_FORM},
        headers=parties["client"],
    )

    assert response.status_code == 201
    body = response.get_json()
    assert body["status"] == "approved"
    assert body["commission_amount"] == "50.00"
    assert body["master_amount"] == "950.00"
    booking = http.get(f"/api/v1/bookings/{created['id']}", headers=parties["client"]).get_json()
    assert booking["status"] == "confirmed"


def test_incomplete_form_lists_missing_fields(http, parties, provider):
    created = _create_booking(http, parties)

    response = http.post(
        f"/api/v1/payments/bookings/{created['id']}",
        json={"payment_type": "full", "payment_method": "debit", "form": {"token": "tok"}},
        headers=parties["client"],
    )

    assert response.status_code == 400
    assert response.get_json()["missing_fields"] == ["payment_method_id"]


def test_rejected_payment_is_retryable(http, parties, provider):
    created = _create_booking(http, parties)
    provider.status = "rejected"
    provider.status_detail = "cc_rejected_bad_filled_security_code"

    response = http.post(
        f"/api/v1/payments/bookings/{created['id']}",
        json={"payment_type": "full", "payment_method": "debit", "form": CARD_FORM},
        headers=parties["client"],
    )

    assert response.status_code == 402
    body = response.get_json()
    assert body["retryable"] is True
    assert body["status_detail"] == "cc_rejected_bad_filled_security_code"


def test_remaining_without_partial_payment(http, parties, provider):
    created = _create_booking(http, parties)
    steps = (("accept", "master"), ("start_work", "master"), ("request_review", "master"), ("approve_work", "client"))
    for action, who in steps:
        assert http.post(f"/api/v1/bookings/{created['id']}/{action}", headers=parties[who]).status_code == 200

    response = http.post(
        f"/api/v1/payments/bookings/{created['id']}/remaining",
        json={"payment_method": "debit", "form": CARD_FORM},
        headers=parties["client"],
    )

    assert response.status_code == 409
    assert "50%" in response.get_json()["error"]


def test_release_endpoint(http, parties, provider):
    created = _create_booking(http, parties)
    http.post(
        f"/api/v1/payments/bookings/{created['id']}",
        json={"payment_type": "full", "payment_method": "debit", "form": CARD_FORM},
        headers=parties["client"],
    )
    for action, who in (("start_work", "master"), ("request_review", "master"), ("approve_work", "client")):
        assert http.post(f"/api/v1/bookings/{created['id']}/{action}", headers=parties[who]).status_code == 200

    response = http.post(f"/api/v1/payments/bookings/{created['id']}/release", headers=parties["client"])

    assert response.status_code == 200
    assert response.get_json()["released"][0]["escrow_released_at"] is not None


def test_credits_and_notifications(app, http, parties):
    with app.app_context():
        CreditService.grant(parties["client_id"], "75")
    _create_booking(http, parties)

    assert http.get("/api/v1/credits/me", headers=parties["client"]).get_json() == {"available": "75.00"}

    feed = http.get("/api/v1/notifications/me", headers=parties["master"]).get_json()
    assert feed["unread"] == 1
    assert feed["items"][0]["type"] == "booking_request"

    assert http.post("/api/v1/notifications/me/read", headers=parties["master"]).status_code == 200
    assert http.get("/api/v1/notifications/me", headers=parties["master"]).get_json()["unread"] == 0


def test_quotation_endpoints(app, http, parties):
    created = _create_booking(http, parties)
    with app.app_context():
        conversation_id = db.session.get(Booking, created["id"]).conversation.id

    response = http.post(
        "/api/v1/quotations",
        json={
            "conversation_id": conversation_id,
            "title": "Instalación eléctrica",
            "items": [{"description": "Tomas", "quantity": 4, "unit_price": "250"}],
        },
        headers=parties["master"],
    )
    assert response.status_code == 201
    quotation = response.get_json()
    assert quotation["total"] == "1000.00"

    response = http.post(
        f"/api/v1/quotations/{quotation['id']}/respond", json={"accept": True}, headers=parties["client"]
    )
    assert response.get_json()["status"] == "accepted"


def _signature(secret, data_id, request_id, ts="1700000000"):
    manifest = f"id:{data_id};request-id:{request_id};ts:{ts};"
    return f"ts={ts},v1={hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()}"


def _pending_payment(app, parties, provider):
    provider.status = "in_process"
    with app.app_context():
        client = db.session.get(User, parties["client_id"])
        booking = BookingService.create_booking(client, parties["master_id"], "1000")
        payment = PaymentService.pay_booking(booking.id, client, "full", "debit", form=CARD_FORM)
        return payment.provider_payment_id, payment.id


def test_webhook_rejects_bad_signature(app, http, parties, provider):
    app.config["MERCADO_PAGO_WEBHOOK_SECRET"] = "whsec"
    provider_id, payment_id = _pending_payment(app, parties, provider)

    response = http.post(
        "/api/v1/payments/webhook",
        json={"type": "payment", "data": {"id": provider_id}},
        headers={"x-signature": "ts=1,v1=deadbeef", "x-request-id": "req-1"},
    )

    assert response.status_code == 200
    assert response.get_json()["processed"] is False
    with app.app_context():
        assert db.session.get(Payment, payment_id).status == "in_process"


def test_webhook_with_valid_signature_settles_payment(app, http, parties, provider):
    app.config["MERCADO_PAGO_WEBHOOK_SECRET"] = "whsec"
    provider_id, payment_id = _pending_payment(app, parties, provider)

    response = http.post(
        "/api/v1/payments/webhook",
        json={"type": "payment", "data": {"id": provider_id}},
        headers={"x-signature": _signature("whsec", provider_id, "req-2"), "x-request-id": "req-2"},
    )

    assert response.get_json() == {"received": True, "processed": True}
    with app.app_context():
        payment = db.session.get(Payment, payment_id)
        assert payment.status == "approved"
        assert payment.booking.status == "confirmed"


def test_malformed_quotation_items_are_a_bad_request(app, http, parties):
    created = _create_booking(http, parties)
    with app.app_context():
        conversation_id = db.session.get(Booking, created["id"]).conversation.id

    response = http.post(
        "/api/v1/quotations",
        json={"conversation_id": conversation_id, "title": "Arreglo", "items": ["x"]},
        headers=parties["master"],
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "Each quotation item must be an object."
