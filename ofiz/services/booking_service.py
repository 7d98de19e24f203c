import logging
from collections import namedtuple
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ofiz.errors import AppError, Conflict, InvalidTransition, NotFound, OwnershipViolation
from ofiz.extensions import db
from ofiz.models import Booking, User
from ofiz.models.base import utcnow
from ofiz.services.chat_service import ChatService
from ofiz.services.messages import DEFAULT_LOCALE, NEGOTIATION_MARKER, render
from ofiz.services.notification_service import NotificationService
from ofiz.services.settlement import money

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({"pending", "confirmed", "in_progress", "pending_review"})

# counter_proposal: True -> only while a master proposal awaits the client,
# False -> only when no such proposal is pending, None -> either.
Transition = namedtuple("Transition", "roles sources target stamp counter_proposal notification_type")

BOOKING_TRANSITIONS = {
    "accept": Transition({"master"}, {"pending"}, "confirmed", None, False, "booking_confirmed"),
    "reject": Transition({"master"}, {"pending"}, "cancelled", "cancelled_at", None, "booking_cancelled"),
    "negotiate": Transition({"master"}, {"pending", "confirmed"}, "pending", None, None, "booking_updated"),
    "accept_proposal": Transition(
        {"client"}, {"pending"}, "confirmed", "client_confirmed_at", True, "booking_confirmed"
    ),
    "confirm_payment": Transition(
        {"client"}, {"pending"}, "confirmed", "client_confirmed_at", None, "booking_confirmed"
    ),
    "start_work": Transition({"master"}, {"confirmed"}, "in_progress", "work_started_at", None, "work_started"),
    "request_review": Transition(
        {"master"}, {"in_progress"}, "pending_review", "review_requested_at", None, "review_requested"
    ),
    "approve_work": Transition(
        {"client"}, {"pending_review"}, "completed", "work_completed_at", None, "work_approved"
    ),
    "cancel": Transition({"client", "master"}, ACTIVE_STATUSES, "cancelled", "cancelled_at", None, "booking_cancelled"),
}

# Actions a user may trigger directly; confirm_payment is driven by an approved payment.
USER_ACTIONS = frozenset(BOOKING_TRANSITIONS) - {"confirm_payment"}


def format_price(amount):
    return f"{money(amount):,.2f}"


class BookingService:
    @staticmethod
    def get_booking(booking_id):
        booking = db.session.get(Booking, booking_id)
        if not booking:
            raise NotFound("Booking not found.")
        return booking

    @staticmethod
    def get_for_user(booking_id, user):
        booking = BookingService.get_booking(booking_id)
        if user.role != "admin" and booking.party_role(user.id) is None:
            raise OwnershipViolation("You are not a party to this booking.")
        return booking

    @staticmethod
    def list_for_user(user, status=None):
        query = Booking.query.filter((Booking.client_id == user.id) | (Booking.master_id == user.id))
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    @staticmethod
    def create_booking(client, master_id, total_price, notes=None, scheduled_date=None, client_address=None):
        if client.role != "client":
            raise OwnershipViolation("Only clients can request bookings.")
        master = db.session.get(User, master_id) if master_id is not None else None
        if not master or master.role != "master" or not master.is_active_user:
            raise NotFound("Professional not found.")

        price = money(total_price)
        if price <= 0:
            raise AppError("Total price must be greater than zero.", 400)

        booking = Booking(
            client_id=client.id,
            master_id=master.id,
            status="pending",
            total_price=price,
            notes=(notes or "").strip() or None,
            scheduled_date=BookingService._parse_date(scheduled_date),
            client_address=(client_address or "").strip() or None,
            proposed_by="client",
            negotiation_round=0,
        )
        db.session.add(booking)
        db.session.flush()
        ChatService.conversation_for_booking(booking)
        BookingService._announce(booking, client.id, "created", "booking_request")
        db.session.commit()
        logger.info("Booking %s created by client %s for master %s", booking.id, client.id, master.id)
        return booking

    @staticmethod
    def _parse_date(value):
        if value is None or value == "" or isinstance(value, datetime):
            return value or None
        try:
            return datetime.fromisoformat(str(value))
        except ValueError as exc:
            raise AppError("scheduled_date must be an ISO 8601 date.", 400) from exc

    @staticmethod
    def allowed_actions(booking, user):
        role = booking.party_role(user.id)
        if role is None:
            return []
        return sorted(
            action
            for action in USER_ACTIONS
            if BookingService._permits(booking, BOOKING_TRANSITIONS[action], role)
        )

    @staticmethod
    def _permits(booking, transition, role):
        if role not in transition.roles or booking.status not in transition.sources:
            return False
        if transition.counter_proposal is None:
            return True
        return booking.has_counter_proposal == transition.counter_proposal

    @staticmethod
    def transition(booking_id, actor, action, **params):
        transition = BOOKING_TRANSITIONS.get(action)
        if transition is None:
            raise NotFound(f"Unknown booking action: {action}.")

        booking = BookingService.get_booking(booking_id)
        role = booking.party_role(actor.id)
        if role is None:
            raise OwnershipViolation("You are not a party to this booking.")
        if not BookingService._permits(booking, transition, role):
            raise InvalidTransition(booking.status, action, role)

        previous = booking.status
        if action == "negotiate":
            BookingService._apply_proposal(booking, params.get("total_price"), params.get("message"))

        booking.status = transition.target
        if transition.stamp and getattr(booking, transition.stamp) is None:
            setattr(booking, transition.stamp, utcnow())

        try:
            db.session.flush()
            BookingService._announce(booking, actor.id, action, transition.notification_type, params.get("message"))
            db.session.commit()
        except StaleDataError as exc:
            db.session.rollback()
            logger.warning("Concurrent update on booking %s while applying %s", booking_id, action)
            raise Conflict("The booking was modified by someone else. Reload and try again.") from exc

        logger.info("Booking %s: %s -> %s by %s %s", booking.id, previous, booking.status, role, actor.id)
        return booking

    @staticmethod
    def confirm_by_payment(booking):
        """Confirm a pending booking once its initial payment is approved."""
        if booking.status != "pending":
            return booking
        return BookingService.transition(booking.id, booking.client, "confirm_payment")

    @staticmethod
    def _apply_proposal(booking, total_price, message):
        if total_price in (None, ""):
            raise AppError("A proposed price is required.", 400)
        price = money(total_price)
        if price <= 0:
            raise AppError("Proposed price must be greater than zero.", 400)

        note = f"{NEGOTIATION_MARKER}\nNuevo precio: ${format_price(price)}"
        if (message or "").strip():
            note = f"{note}\n{message.strip()}"
        booking.notes = f"{booking.notes}\n\n{note}" if booking.notes else note
        booking.total_price = price
        booking.proposed_by = "master"
        booking.negotiation_round = (booking.negotiation_round or 0) + 1

    @staticmethod
    def _announce(booking, actor_id, event, notification_type, message=None):
        recipient_id = booking.counterparty_id(actor_id)
        recipient = db.session.get(User, recipient_id)
        locale = recipient.locale if recipient else DEFAULT_LOCALE
        params = {
            "price": format_price(booking.total_price),
            "note": f' "{message.strip()}"' if (message or "").strip() else "",
        }
        try:
            with db.session.begin_nested():
                ChatService.post_system_message(booking, actor_id, render(event, "chat", locale, **params))
                NotificationService.push(
                    recipient_id,
                    type=notification_type,
                    title=render(event, "title", locale, **params),
                    message=render(event, "body", locale, **params),
                    booking_id=booking.id,
                )
        except SQLAlchemyError:
            logger.exception("Could not announce %s for booking %s", event, booking.id)
