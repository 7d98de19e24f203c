"""Mercado Pago REST client used as the external payment collector."""

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
from flask import current_app

from ofiz.errors import PaymentProviderError

logger = logging.getLogger(__name__)

APPROVED = "approved"
IN_FLIGHT = ("pending", "in_process")

# Provider statuses folded into the local payment statuses.
STATUS_MAP = {
    "approved": "approved",
    "authorized": "in_process",
    "in_process": "in_process",
    "in_mediation": "in_process",
    "pending": "pending",
    "rejected": "rejected",
    "cancelled": "rejected",
    "refunded": "rejected",
    "charged_back": "rejected",
}


def map_status(provider_status: Optional[str]) -> str:
    return STATUS_MAP.get((provider_status or "").lower(), "pending")


@dataclass
class ProviderResult:
    status: str
    provider_payment_id: Optional[str]
    status_detail: Optional[str] = None
    payment_method_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "ProviderResult":
        payment_id = data.get("id")
        return cls(
            status=map_status(data.get("status")),
            provider_payment_id=str(payment_id) if payment_id is not None else None,
            status_detail=data.get("status_detail"),
            payment_method_id=data.get("payment_method_id"),
            raw=data,
        )


def parse_signature_header(header: Optional[str]) -> Dict[str, str]:
    """Split an ``x-signature`` header of the form ``ts=...,v1=...``."""
    parts = {}
    for part in (header or "").split(","):
        key, _, value = part.strip().partition("=")
        if key and value:
            parts[key] = value
    return parts


def verify_webhook_signature(secret, x_signature, x_request_id, data_id) -> bool:
    if not secret or not x_signature or not x_request_id:
        return False
    parts = parse_signature_header(x_signature)
    ts, v1 = parts.get("ts"), parts.get("v1")
    if not ts or not v1:
        return False
    manifest = f"id:{data_id};request-id:{x_request_id};ts:{ts};"
    expected = hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, v1)


class MercadoPagoClient:
    def __init__(self, access_token=None, base_url=None, timeout=None, transport=None):
        config = current_app.config
        self.access_token = access_token or config.get("MERCADO_PAGO_ACCESS_TOKEN")
        self.base_url = (base_url or config.get("MERCADO_PAGO_API_URL")).rstrip("/")
        self.timeout = timeout or config.get("MERCADO_PAGO_TIMEOUT", 30.0)
        self.notification_url = config.get("MERCADO_PAGO_NOTIFICATION_URL")
        self.statement_descriptor = config.get("MERCADO_PAGO_STATEMENT_DESCRIPTOR", "OFIZ")
        self.transport = transport

    def _client(self) -> httpx.Client:
        if not self.access_token:
            raise PaymentProviderError("Payment provider is not configured.")
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Content-Type": "application/json",
            },
        )

    def create_payment(
        self,
        amount,
        token,
        payment_method_id,
        payer,
        external_reference,
        description,
        issuer_id=None,
        installments=1,
        metadata=None,
        idempotency_key=None,
    ) -> ProviderResult:
        body = {
            "transaction_amount": float(amount),
            "token": token,
            "description": description,
            "installments": installments or 1,
            "payment_method_id": payment_method_id,
            "issuer_id": issuer_id,
            "payer": payer,
            "external_reference": str(external_reference),
            "statement_descriptor": self.statement_descriptor,
            "metadata": metadata or {},
        }
        if self.notification_url:
            body["notification_url"] = self.notification_url

        headers = {"X-Idempotency-Key": idempotency_key} if idempotency_key else {}
        try:
            with self._client() as client:
                response = client.post("/v1/payments", json=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Payment provider request failed for %s: %s", external_reference, exc)
            raise PaymentProviderError("Could not reach the payment provider. Please try again.") from exc

        if response.status_code >= 400:
            logger.error("Payment provider error %s: %s", response.status_code, response.text)
            raise PaymentProviderError(f"Payment error: {response.status_code}")

        result = ProviderResult.from_response(response.json())
        logger.info(
            "Provider payment %s for %s: %s (%s)",
            result.provider_payment_id,
            external_reference,
            result.status,
            result.status_detail,
        )
        return result

    def get_payment(self, provider_payment_id) -> ProviderResult:
        try:
            with self._client() as client:
                response = client.get(f"/v1/payments/{provider_payment_id}")
        except httpx.HTTPError as exc:
            logger.error("Could not fetch provider payment %s: %s", provider_payment_id, exc)
            raise PaymentProviderError("Could not reach the payment provider. Please try again.") from exc

        if response.status_code >= 400:
            logger.error("Provider lookup error %s for %s", response.status_code, provider_payment_id)
            raise PaymentProviderError(f"Payment lookup error: {response.status_code}")
        return ProviderResult.from_response(response.json())
