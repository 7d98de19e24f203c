import hashlib
import hmac
import json

import httpx
import pytest

from ofiz.errors import PaymentProviderError
from ofiz.services.mercadopago_client import (
    MercadoPagoClient,
    ProviderResult,
    map_status,
    parse_signature_header,
    verify_webhook_signature,
)


def _client(handler, **kwargs):
    return MercadoPagoClient(transport=httpx.MockTransport(handler), **kwargs)


def test_create_payment_posts_the_charge(ctx):
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["idempotency"] = request.headers.get("X-Idempotency-Key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            201, json={"id": 123, "status": "approved", "status_detail": "accredited", "payment_method_id": "visa"}
        )

    result = _client(handler).create_payment(
        amount="700.00",
        token="tok",
        payment_method_id="visa",
        payer={"email": "cliente@ofiz.test"},
        external_reference=42,
        description="Pago 100% #42",
        installments=3,
        idempotency_key="booking-42-abc",
    )

    assert result.status == "approved"
    assert result.provider_payment_id == "123"
    assert seen["path"] == "/v1/payments"
    assert seen["auth"] == "Bearer TEST-access-token"
    assert seen["idempotency"] == "booking-42-abc"
    assert seen["body"]["transaction_amount"] == 700.0
    assert seen["body"]["external_reference"] == "42"
    assert seen["body"]["installments"] == 3


def test_provider_http_error_raises(ctx):
    def handler(request):
        return httpx.Response(400, json={"message": "invalid token"})

    with pytest.raises(PaymentProviderError):
        _client(handler).get_payment("1")


def test_network_error_raises(ctx):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(PaymentProviderError):
        _client(handler).create_payment(
            amount="1", token="t", payment_method_id="visa", payer={}, external_reference=1, description="x"
        )


def test_missing_access_token_raises(ctx):
    ctx.config["MERCADO_PAGO_ACCESS_TOKEN"] = None
    with pytest.raises(PaymentProviderError):
        MercadoPagoClient().get_payment("1")


@pytest.mark.parametrize(
    "provider_status, expected",
    [
        ("approved", "approved"),
        ("authorized", "in_process"),
        ("in_mediation", "in_process"),
        ("pending", "pending"),
        ("charged_back", "rejected"),
        ("cancelled", "rejected"),
        ("something_new", "pending"),
        (None, "pending"),
    ],
)
def test_status_mapping(provider_status, expected):
    assert map_status(provider_status) == expected


def test_result_from_response():
    result = ProviderResult.from_response({"id": 55, "status": "rejected", "status_detail": "cc_rejected_other_reason"})
    assert result.provider_payment_id == "55"
    assert result.status == "rejected"


def _sign(secret, data_id, request_id, ts="1700000000"):
    manifest = f"id:{data_id};request-id:{request_id};ts:{ts};"
    digest = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    return f"ts={ts},v1={digest}"


def test_webhook_signature():
    header = _sign("whsec", "123", "req-1")

    assert parse_signature_header(header)["ts"] == "1700000000"
    assert verify_webhook_signature("whsec", header, "req-1", "123")
    assert not verify_webhook_signature("whsec", header, "req-1", "124")
    assert not verify_webhook_signature("other", header, "req-1", "123")
    assert not verify_webhook_signature("whsec", None, "req-1", "123")
    assert not verify_webhook_signature("whsec", "ts=1", "req-1", "123")
