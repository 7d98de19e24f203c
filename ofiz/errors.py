from flask import jsonify
from sqlalchemy.exc import IntegrityError


class AppError(Exception):
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": self.message}


class NotFound(AppError):
    status_code = 404


class Conflict(AppError):
    status_code = 409


class OwnershipViolation(AppError):
    status_code = 403


class IncompleteFormData(AppError):
    status_code = 400

    def __init__(self, missing_fields):
        self.missing_fields = sorted(missing_fields)
        super().__init__(f"Missing payment form fields: {', '.join(self.missing_fields)}.")

    def to_dict(self):
        return {"error": self.message, "missing_fields": self.missing_fields}


class InvalidTransition(AppError):
    status_code = 409

    def __init__(self, current_status, action, role):
        self.current_status = current_status
        self.action = action
        self.role = role
        super().__init__(f"Cannot {action} a booking in status '{current_status}' as {role}.")

    def to_dict(self):
        return {
            "error": self.message,
            "current_status": self.current_status,
            "action": self.action,
            "role": self.role,
        }


class NoPriorPartialPayment(AppError):
    status_code = 409

    def __init__(self, booking_id):
        self.booking_id = booking_id
        super().__init__("No approved 50% payment was found for this booking.")


class PaymentProviderError(AppError):
    status_code = 402

    def __init__(self, message, provider_status=None, status_detail=None, provider_payment_id=None):
        super().__init__(message)
        self.provider_status = provider_status
        self.status_detail = status_detail
        self.provider_payment_id = provider_payment_id

    def to_dict(self):
        payload = {"error": self.message, "retryable": True}
        if self.provider_status:
            payload["status"] = self.provider_status
        if self.status_detail:
            payload["status_detail"] = self.status_detail
        if self.provider_payment_id:
            payload["payment_id"] = self.provider_payment_id
        return payload


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(err):
        app.logger.info("%s: %s", type(err).__name__, err.message)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(_err):
        app.logger.warning("Database integrity error")
        return jsonify({"error": "Conflict. Resource already exists."}), 409

    @app.errorhandler(400)
    def bad_request(_err):
        return jsonify({"error": "Bad request"}), 400

    @app.errorhandler(401)
    def unauthorized(_err):
        return jsonify({"error": "Unauthorized"}), 401

    @app.errorhandler(403)
    def forbidden(_err):
        return jsonify({"error": "Forbidden"}), 403

    @app.errorhandler(404)
    def not_found(_err):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(429)
    def too_many_requests(_err):
        return jsonify({"error": "Too many requests"}), 429

    @app.errorhandler(500)
    def server_error(_err):
        app.logger.exception("Internal server error")
        return jsonify({"error": "Internal server error"}), 500
