from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from ofiz.decorators import role_required
from ofiz.services import QuotationService

api_quotation_bp = Blueprint("api_quotation", __name__)


@api_quotation_bp.post("")
@login_required
@role_required("master")
def create_quotation():
    payload = request.get_json(silent=True) or {}
    quotation = QuotationService.create(
        current_user,
        conversation_id=payload.get("conversation_id"),
        title=payload.get("title"),
        items=payload.get("items"),
        discount=payload.get("discount", 0),
        valid_days=payload.get("valid_days", 7),
        description=payload.get("description"),
        booking_id=payload.get("booking_id"),
    )
    return jsonify(quotation.to_dict()), 201


@api_quotation_bp.post("/<int:quotation_id>/respond")
@login_required
@role_required("client")
def respond(quotation_id):
    payload = request.get_json(silent=True) or {}
    quotation = QuotationService.respond(quotation_id, current_user, accept=bool(payload.get("accept")))
    return jsonify(quotation.to_dict())
