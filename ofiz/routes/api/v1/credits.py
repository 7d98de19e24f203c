from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from ofiz.services import CreditService

api_credit_bp = Blueprint("api_credit", __name__)


@api_credit_bp.get("/me")
@login_required
def my_credits():
    return jsonify({"available": str(CreditService.available_balance(current_user.id))})
