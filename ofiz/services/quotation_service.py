import logging
from datetime import timedelta, timezone
from decimal import Decimal

from ofiz.errors import AppError, Conflict, NotFound, OwnershipViolation
from ofiz.extensions import db
from ofiz.models import Conversation, Message, Quotation, User
from ofiz.models.base import utcnow
from ofiz.services.booking_service import format_price
from ofiz.services.messages import DEFAULT_LOCALE, render
from ofiz.services.notification_service import NotificationService
from ofiz.services.settlement import money

logger = logging.getLogger(__name__)

MAX_VALID_DAYS = 90


class QuotationService:
    @staticmethod
    def _line_items(items):
        rows = []
        for item in items or []:
            if not isinstance(item, dict):
                raise AppError("Each quotation item must be an object.", 400)
            description = (item.get("description") or "").strip()
            if not description:
                continue
            try:
                quantity = int(item.get("quantity") or 0)
            except (TypeError, ValueError) as exc:
                raise AppError("Item quantity must be an integer.", 400) from exc
            unit_price = money(item.get("unit_price") or 0)
            if quantity <= 0 or unit_price < 0:
                raise AppError("Items need a positive quantity and a non-negative price.", 400)
            rows.append(
                {
                    "description": description,
                    "quantity": quantity,
                    "unit_price": str(unit_price),
                    "total": str(unit_price * quantity),
                }
            )
        if not rows:
            raise AppError("Add at least one item to the quotation.", 400)
        return rows

    @staticmethod
    def create(master, conversation_id, title, items, discount=0, valid_days=7, description=None, booking_id=None):
        conversation = db.session.get(Conversation, conversation_id)
        if not conversation:
            raise NotFound("Conversation not found.")
        if conversation.master_id != master.id:
            raise OwnershipViolation("Only the conversation's professional can send quotations.")
        if not (title or "").strip():
            raise AppError("Quotation title is required.", 400)

        rows = QuotationService._line_items(items)
        subtotal = sum((Decimal(row["total"]) for row in rows), Decimal("0.00"))
        discount_amount = money(discount or 0)
        total = subtotal - discount_amount
        if discount_amount < 0 or total < 0:
            raise AppError("Discount must be between zero and the subtotal.", 400)
        try:
            days = int(valid_days)
        except (TypeError, ValueError) as exc:
            raise AppError("valid_days must be an integer.", 400) from exc
        if days < 1 or days > MAX_VALID_DAYS:
            raise AppError(f"valid_days must be between 1 and {MAX_VALID_DAYS}.", 400)

        quotation = Quotation(
            conversation_id=conversation.id,
            booking_id=booking_id or conversation.booking_id,
            master_id=master.id,
            client_id=conversation.client_id,
            title=title.strip(),
            description=(description or "").strip() or None,
            items=rows,
            subtotal=subtotal,
            discount=discount_amount,
            total=total,
            valid_until=utcnow() + timedelta(days=days),
            status="pending",
        )
        db.session.add(quotation)
        db.session.flush()

        db.session.add(
            Message(
                conversation_id=conversation.id,
                sender_id=master.id,
                content=QuotationService._summary(quotation),
                is_system=True,
            )
        )
        client = db.session.get(User, conversation.client_id)
        locale = client.locale if client else DEFAULT_LOCALE
        NotificationService.push(
            conversation.client_id,
            type="quotation_received",
            title=render("quotation", "title", locale),
            message=render("quotation", "body", locale, title=quotation.title, total=format_price(total)),
            booking_id=quotation.booking_id,
            metadata={"quotation_id": quotation.id, "total": str(total)},
        )
        db.session.commit()
        logger.info("Quotation %s sent by master %s in conversation %s", quotation.id, master.id, conversation.id)
        return quotation

    @staticmethod
    def _summary(quotation):
        lines = [f"COTIZACIÓN: {quotation.title}"]
        if quotation.description:
            lines.append(quotation.description)
        for row in quotation.items:
            lines.append(
                f"- {row['description']}: {row['quantity']} x ${format_price(row['unit_price'])}"
                f" = ${format_price(row['total'])}"
            )
        lines.append(f"Subtotal: ${format_price(quotation.subtotal)}")
        if quotation.discount > 0:
            lines.append(f"Descuento: -${format_price(quotation.discount)}")
        lines.append(f"TOTAL: ${format_price(quotation.total)}")
        lines.append(f"Válida hasta: {quotation.valid_until:%d/%m/%Y}")
        return "\n".join(lines)

    @staticmethod
    def is_expired(quotation, now=None):
        valid_until = quotation.valid_until
        if valid_until.tzinfo is None:
            valid_until = valid_until.replace(tzinfo=timezone.utc)
        return (now or utcnow()) > valid_until

    @staticmethod
    def respond(quotation_id, client, accept):
        quotation = db.session.get(Quotation, quotation_id)
        if not quotation:
            raise NotFound("Quotation not found.")
        if quotation.client_id != client.id:
            raise OwnershipViolation("Only the quoted client can respond.")
        if quotation.status == "pending" and QuotationService.is_expired(quotation):
            quotation.status = "expired"
            db.session.commit()
        if quotation.status != "pending":
            raise Conflict(f"Quotation is {quotation.status}.")

        quotation.status = "accepted" if accept else "rejected"
        quotation.responded_at = utcnow()
        db.session.commit()
        return quotation
