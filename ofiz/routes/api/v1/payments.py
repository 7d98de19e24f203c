from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from ofiz.extensions import limiter
from ofiz.services import PaymentService
from ofiz.services.mercadopago_client import verify_webhook_signature

api_payment_bp = Blueprint("api_payment", __name__)


@api_payment_bp.post("/quote")
@login_required
def quote():
    payload = request.get_json(silent=True) or {}
    settlement = PaymentService.quote(
        current_user,
        price_base=payload.get("price_base"),
        payment_type=payload.get("payment_type", "full"),
        payment_method=payload.get("payment_method", "debit"),
        accreditation=payload.get("accreditation", "immediate"),
        domain=payload.get("domain", "booking"),
    )
    return jsonify(settlement.to_dict())


@api_payment_bp.post("/bookings/<int:booking_id>")
@login_required
@limiter.limit("10 per minute")
def pay_booking(booking_id):
    payload = request.get_json(silent=True) or {}
    payment = PaymentService.pay_booking(
        booking_id,
        current_user,
        payment_type=payload.get("payment_type", "full"),
        payment_method=payload.get("payment_method", "debit"),
        accreditation=payload.get("accreditation", "immediate"),
        form=payload.get("form") or {},
    )
    return jsonify(payment.to_dict()), 201


@api_payment_bp.post("/bookings/<int:booking_id>/remaining")
@login_required
@limiter.limit("10 per minute")
def pay_remaining(booking_id):
    payload = request.get_json(silent=True) or {}
    payment = PaymentService.pay_remaining(
        booking_id,
        current_user,
        payment_method=payload.get("payment_method", "debit"),
        accreditation=payload.get("accreditation", "immediate"),
        form=payload.get("form") or {},
    )
    return jsonify(payment.to_dict()), 201


@api_payment_bp.post("/bookings/<int:booking_id>/release")
@login_required
def release_escrow(booking_id):
    payments = PaymentService.release_escrow(booking_id, current_user)
    return jsonify({"released": [p.to_dict() for p in payments]})


@api_payment_bp.post("/<int:payment_id>/verify")
@login_required
@limiter.limit("30 per minute")
def verify_payment(payment_id):
    payment = PaymentService.verify_payment(payment_id, current_user)
    return jsonify(payment.to_dict())


@api_payment_bp.post("/webhook")
@limiter.limit("60 per minute")
def webhook():
    body = request.get_json(silent=True) or {}
    secret = current_app.config.get("MERCADO_PAGO_WEBHOOK_SECRET")
    if secret:
        data_id = str((body.get("data") or {}).get("id") or "")
        if not verify_webhook_signature(
            secret, request.headers.get("x-signature"), request.headers.get("x-request-id"), data_id
        ):
            current_app.logger.warning("Invalid webhook signature from %s", request.remote_addr)
            return jsonify({"received": True, "processed": False, "reason": "invalid_signature"})
    else:
        current_app.logger.warning("Webhook secret not configured; signature verification skipped")

    payment = PaymentService.process_notification(body)
    return jsonify({"received": True, "processed": payment is not None})
