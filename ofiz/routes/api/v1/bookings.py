from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from ofiz.decorators import role_required
from ofiz.services import BookingService, ChatService
from ofiz.services.booking_service import USER_ACTIONS

api_booking_bp = Blueprint("api_booking", __name__)


def _booking_payload(booking):
    data = booking.to_dict()
    data["allowed_actions"] = BookingService.allowed_actions(booking, current_user)
    return data


@api_booking_bp.post("")
@login_required
@role_required("client")
def create_booking():
    payload = request.get_json(silent=True) or {}
    booking = BookingService.create_booking(
        client=current_user,
        master_id=payload.get("master_id"),
        total_price=payload.get("total_price"),
        notes=payload.get("notes"),
        scheduled_date=payload.get("scheduled_date"),
        client_address=payload.get("client_address"),
    )
    return jsonify(_booking_payload(booking)), 201


@api_booking_bp.get("/me")
@login_required
def my_bookings():
    rows = BookingService.list_for_user(current_user, status=request.args.get("status"))
    return jsonify([_booking_payload(b) for b in rows])


@api_booking_bp.get("/<int:booking_id>")
@login_required
def get_booking(booking_id):
    booking = BookingService.get_for_user(booking_id, current_user)
    return jsonify(_booking_payload(booking))


@api_booking_bp.get("/<int:booking_id>/messages")
@login_required
def booking_messages(booking_id):
    rows = ChatService.list_messages(booking_id, current_user)
    return jsonify([m.to_dict() for m in rows])


@api_booking_bp.post("/<int:booking_id>/<action>")
@login_required
def booking_action(booking_id, action):
    if action not in USER_ACTIONS:
        return jsonify({"error": f"Unknown booking action: {action}."}), 404
    payload = request.get_json(silent=True) or {}
    booking = BookingService.transition(
        booking_id,
        current_user,
        action,
        total_price=payload.get("total_price"),
        message=payload.get("message"),
    )
    return jsonify(_booking_payload(booking))
