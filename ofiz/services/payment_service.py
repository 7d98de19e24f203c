import logging
import uuid

from flask import current_app

from ofiz.errors import (
    AppError,
    Conflict,
    IncompleteFormData,
    InvalidTransition,
    NoPriorPartialPayment,
    NotFound,
    OwnershipViolation,
    PaymentProviderError,
)
from ofiz.extensions import db
from ofiz.models import Commission, Payment, User
from ofiz.models.base import utcnow
from ofiz.services.booking_service import BookingService, format_price
from ofiz.services.credit_service import CreditService
from ofiz.services.mercadopago_client import MercadoPagoClient
from ofiz.services.messages import DEFAULT_LOCALE, render, rejection_reason
from ofiz.services.notification_service import NotificationService
from ofiz.services.platform_service import PlatformService
from ofiz.services.settlement import calculate_settlement, max_installments

logger = logging.getLogger(__name__)

PAYABLE_STATUSES = frozenset({"pending", "confirmed"})
OPEN_PAYMENT_STATUSES = ("approved", "pending", "in_process")
REQUIRED_FORM_FIELDS = ("token", "payment_method_id")


class PaymentService:
    @staticmethod
    def quote(user, price_base, payment_type, payment_method, accreditation="immediate", domain="booking"):
        return calculate_settlement(
            price_base,
            payment_type,
            payment_method,
            accreditation,
            credits_available=CreditService.available_balance(user.id),
            commission_pct=PlatformService.commission_pct(domain),
            provider_fee_rates=current_app.config["PROVIDER_FEE_RATES"],
        )

    @staticmethod
    def pay_booking(booking_id, client, payment_type, payment_method, accreditation="immediate", form=None):
        """Initial payment for a booking: the full price or the first 50%."""
        booking = BookingService.get_booking(booking_id)
        PaymentService._require_client(booking, client)
        if booking.status not in PAYABLE_STATUSES:
            raise InvalidTransition(booking.status, "pay", "client")

        existing = booking.payments.filter(
            Payment.remaining_payment_id.is_(None), Payment.status.in_(OPEN_PAYMENT_STATUSES)
        ).first()
        if existing:
            raise Conflict("This booking already has a payment in progress or approved.")

        settlement = calculate_settlement(
            booking.total_price,
            payment_type,
            payment_method,
            accreditation,
            credits_available=CreditService.available_balance(client.id),
            commission_pct=PlatformService.commission_pct("booking"),
            provider_fee_rates=current_app.config["PROVIDER_FEE_RATES"],
        )
        return PaymentService._settle(booking, client, settlement, form or {})

    @staticmethod
    def pay_remaining(booking_id, client, payment_method, accreditation="immediate", form=None):
        """Second half of a 50% plan, computed on the price the first half was charged against."""
        booking = BookingService.get_booking(booking_id)
        PaymentService._require_client(booking, client)
        if booking.status != "completed":
            raise InvalidTransition(booking.status, "pay_remaining", "client")

        partials = booking.payments.filter_by(is_partial_payment=True, status="approved").all()
        if len(partials) != 1:
            raise NoPriorPartialPayment(booking.id)
        initial = partials[0]

        existing = Payment.query.filter(
            Payment.remaining_payment_id == initial.id, Payment.status.in_(OPEN_PAYMENT_STATUSES)
        ).first()
        if existing:
            raise Conflict("The remaining payment is already in progress or approved.")

        settlement = calculate_settlement(
            initial.price_base,
            "partial",
            payment_method,
            accreditation,
            credits_available=CreditService.available_balance(client.id),
            commission_pct=initial.commission_pct,
            provider_fee_rates=current_app.config["PROVIDER_FEE_RATES"],
            second_half=True,
        )
        return PaymentService._settle(booking, client, settlement, form or {}, initial_payment=initial)

    @staticmethod
    def _require_client(booking, client):
        if booking.client_id != client.id:
            raise OwnershipViolation("Only the booking's client can pay for it.")

    @staticmethod
    def _validate_form(form, settlement):
        missing = [name for name in REQUIRED_FORM_FIELDS if not form.get(name)]
        if missing:
            raise IncompleteFormData(missing)
        try:
            installments = int(form.get("installments") or 1)
        except (TypeError, ValueError) as exc:
            raise AppError("Installments must be an integer.", 400) from exc
        limit = max_installments(settlement.payment_method, settlement.payment_type)
        if installments < 1 or installments > limit:
            raise AppError(f"Installments must be between 1 and {limit}.", 400)
        return installments

    @staticmethod
    def _settle(booking, client, settlement, form, initial_payment=None):
        installments = 1
        if not settlement.covered_by_credits:
            installments = PaymentService._validate_form(form, settlement)

        CreditService.reserve(client.id, booking.id, settlement.credits_applied)
        db.session.commit()

        if settlement.covered_by_credits:
            payment = PaymentService._record(booking, settlement, "approved", "credits", initial_payment)
            logger.info("Payment %s for booking %s covered by credits", payment.id, booking.id)
            PaymentService._on_approved(payment)
            return payment

        try:
            result = MercadoPagoClient().create_payment(
                amount=settlement.amount_due,
                token=form.get("token"),
                payment_method_id=form.get("payment_method_id"),
                issuer_id=form.get("issuer_id"),
                installments=installments,
                payer={
                    "email": (form.get("payer") or {}).get("email") or client.email,
                    "identification": (form.get("payer") or {}).get("identification"),
                },
                external_reference=booking.id,
                description=f"Pago {settlement.payment_percentage}% #{booking.id}",
                metadata={
                    "booking_id": booking.id,
                    "type": "booking",
                    "payment_percentage": settlement.payment_percentage,
                    "remaining_amount": str(settlement.pending_amount if initial_payment is None else 0),
                    "is_remaining_payment": initial_payment is not None,
                },
                idempotency_key=form.get("idempotency_key") or f"booking-{booking.id}-{uuid.uuid4().hex}",
            )
        except Exception:
            PaymentService._compensate(client.id, booking.id)
            raise

        payment = PaymentService._record(
            booking,
            settlement,
            result.status,
            result.payment_method_id or form.get("payment_method_id"),
            initial_payment,
            installments=installments,
            provider_result=result,
        )

        if result.status == "rejected":
            PaymentService._on_rejected(payment, result.status_detail)
            raise PaymentProviderError(
                rejection_reason(result.status_detail),
                provider_status=result.status,
                status_detail=result.status_detail,
                provider_payment_id=result.provider_payment_id,
            )
        if result.status == "approved":
            PaymentService._on_approved(payment)
        else:
            logger.info("Payment %s for booking %s awaiting provider confirmation", payment.id, booking.id)
        return payment

    @staticmethod
    def _compensate(user_id, booking_id, payment_id=None):
        db.session.rollback()
        released = CreditService.release(user_id, booking_id, payment_id)
        db.session.commit()
        if released:
            logger.warning("Payment attempt for booking %s failed; credits returned to user %s", booking_id, user_id)

    @staticmethod
    def _record(booking, settlement, status, method, initial_payment, installments=1, provider_result=None):
        payment = Payment(
            booking_id=booking.id,
            client_id=booking.client_id,
            master_id=booking.master_id,
            amount=settlement.gross_amount,
            commission_amount=settlement.platform_fee,
            master_amount=settlement.neto_profesional,
            price_base=settlement.price_base,
            commission_pct=settlement.commission_pct,
            provider_fee=settlement.mp_fee,
            credits_applied=settlement.credits_applied,
            status=status,
            payment_method=method,
            payment_percentage=settlement.payment_percentage,
            remaining_amount=settlement.pending_amount if initial_payment is None else 0,
            is_partial_payment=settlement.payment_type == "partial" and initial_payment is None,
            remaining_payment_id=initial_payment.id if initial_payment is not None else None,
            installments=installments,
            provider_payment_id=provider_result.provider_payment_id if provider_result else None,
            approved_at=utcnow() if status == "approved" else None,
            extra={
                "payment_type": settlement.payment_type,
                "accreditation": settlement.accreditation,
                "amount_due": str(settlement.amount_due),
                "paid_with_credits": settlement.covered_by_credits,
                "is_remaining_payment": initial_payment is not None,
                "provider_status_detail": provider_result.status_detail if provider_result else None,
            },
        )
        db.session.add(payment)
        db.session.flush()
        CreditService.attach(booking.client_id, booking.id, payment.id)
        db.session.commit()
        return payment

    @staticmethod
    def _on_approved(payment):
        if not payment.commission:
            db.session.add(
                Commission(
                    payment_id=payment.id,
                    master_id=payment.master_id,
                    amount=payment.commission_amount,
                    percentage=payment.commission_pct,
                    status="pending",
                )
            )

        client = db.session.get(User, payment.client_id)
        master = db.session.get(User, payment.master_id)
        client_locale = client.locale if client else DEFAULT_LOCALE
        master_locale = master.locale if master else DEFAULT_LOCALE
        amount = format_price(payment.amount)
        NotificationService.push(
            payment.client_id,
            type="payment_confirmed",
            title=render("payment_approved", "title", client_locale),
            message=render(
                "payment_approved", "body", client_locale, amount=amount, percentage=payment.payment_percentage
            ),
            booking_id=payment.booking_id,
            metadata={"payment_id": payment.id, "amount": str(payment.amount)},
        )
        NotificationService.push(
            payment.master_id,
            type="payment_received",
            title=render("payment_received", "title", master_locale),
            message=render("payment_received", "body", master_locale, amount=format_price(payment.master_amount)),
            booking_id=payment.booking_id,
            metadata={"payment_id": payment.id, "amount": str(payment.master_amount)},
        )
        db.session.commit()
        logger.info("Payment %s approved for booking %s", payment.id, payment.booking_id)

        if not payment.is_remaining_payment:
            booking = BookingService.get_booking(payment.booking_id)
            try:
                BookingService.confirm_by_payment(booking)
            except Conflict:
                logger.exception("Booking %s changed while confirming payment %s", booking.id, payment.id)

    @staticmethod
    def _on_rejected(payment, status_detail):
        CreditService.release(payment.client_id, payment.booking_id, payment.id)
        client = db.session.get(User, payment.client_id)
        locale = client.locale if client else DEFAULT_LOCALE
        NotificationService.push(
            payment.client_id,
            type="payment_rejected",
            title=render("payment_rejected", "title", locale),
            message=render("payment_rejected", "body", locale, reason=rejection_reason(status_detail)),
            booking_id=payment.booking_id,
            metadata={
                "payment_id": payment.id,
                "provider_payment_id": payment.provider_payment_id,
                "status_detail": status_detail,
            },
        )
        db.session.commit()
        logger.info("Payment %s for booking %s rejected: %s", payment.id, payment.booking_id, status_detail)

    @staticmethod
    def apply_provider_result(provider_payment_id, result):
        """Record a provider status update; an approved payment never goes back."""
        payment = Payment.query.filter_by(provider_payment_id=str(provider_payment_id)).first()
        if not payment:
            raise NotFound("Payment not found.")
        if payment.status == "approved":
            logger.info("Ignoring %s update for already approved payment %s", result.status, payment.id)
            return payment
        if payment.status == result.status:
            return payment

        payment.status = result.status
        payment.payment_method = result.payment_method_id or payment.payment_method
        payment.extra = {**(payment.extra or {}), "provider_status_detail": result.status_detail}
        if result.status == "approved":
            payment.approved_at = utcnow()
            db.session.commit()
            PaymentService._on_approved(payment)
        elif result.status == "rejected":
            PaymentService._on_rejected(payment, result.status_detail)
        else:
            db.session.commit()
        return payment

    @staticmethod
    def process_notification(body):
        """Handle a provider webhook body. Returns the updated payment, or None when not applicable."""
        if (body or {}).get("type") != "payment":
            return None
        data_id = ((body or {}).get("data") or {}).get("id")
        if not data_id:
            return None
        if not Payment.query.filter_by(provider_payment_id=str(data_id)).first():
            logger.warning("Webhook for unknown provider payment %s", data_id)
            return None
        result = MercadoPagoClient().get_payment(data_id)
        return PaymentService.apply_provider_result(data_id, result)

    @staticmethod
    def verify_payment(payment_id, user):
        payment = db.session.get(Payment, payment_id)
        if not payment:
            raise NotFound("Payment not found.")
        if user.role != "admin" and user.id not in {payment.client_id, payment.master_id}:
            raise OwnershipViolation("You are not a party to this payment.")
        if payment.status in ("approved", "rejected") or not payment.provider_payment_id:
            return payment
        result = MercadoPagoClient().get_payment(payment.provider_payment_id)
        return PaymentService.apply_provider_result(payment.provider_payment_id, result)

    @staticmethod
    def release_escrow(booking_id, client):
        booking = BookingService.get_booking(booking_id)
        if booking.client_id != client.id:
            raise OwnershipViolation("Only the client can release the funds.")
        if booking.status != "completed":
            raise InvalidTransition(booking.status, "release_escrow", "client")

        approved = booking.payments.filter_by(status="approved").all()
        if not approved:
            raise Conflict("No approved payment was found for this booking.")
        for partial in (p for p in approved if p.is_partial_payment):
            if not any(p.remaining_payment_id == partial.id for p in approved):
                raise Conflict("The remaining 50% must be paid before releasing the funds.")

        held = [p for p in approved if p.escrow_released_at is None]
        if not held:
            raise Conflict("The funds for this booking were already released.")

        now = utcnow()
        for payment in held:
            payment.escrow_released_at = now
            if payment.commission:
                payment.commission.status = "processed"
                payment.commission.processed_at = now

        master = db.session.get(User, booking.master_id)
        locale = master.locale if master else DEFAULT_LOCALE
        released = sum(p.master_amount for p in held)
        NotificationService.push(
            booking.master_id,
            type="escrow_released",
            title=render("escrow_released", "title", locale),
            message=render("escrow_released", "body", locale, amount=format_price(released)),
            booking_id=booking.id,
            metadata={"payment_ids": [p.id for p in held], "amount": str(released)},
        )
        db.session.commit()
        logger.info("Escrow released for booking %s (%s payment(s))", booking.id, len(held))
        return held
