from flask import Blueprint

from ofiz.routes.api.v1.bookings import api_booking_bp
from ofiz.routes.api.v1.credits import api_credit_bp
from ofiz.routes.api.v1.notifications import api_notification_bp
from ofiz.routes.api.v1.payments import api_payment_bp
from ofiz.routes.api.v1.quotations import api_quotation_bp

api_v1_bp = Blueprint("api_v1", __name__)
api_v1_bp.register_blueprint(api_booking_bp, url_prefix="/bookings")
api_v1_bp.register_blueprint(api_payment_bp, url_prefix="/payments")
api_v1_bp.register_blueprint(api_credit_bp, url_prefix="/credits")
api_v1_bp.register_blueprint(api_quotation_bp, url_prefix="/quotations")
api_v1_bp.register_blueprint(api_notification_bp, url_prefix="/notifications")
