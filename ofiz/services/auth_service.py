from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ofiz.extensions import db
from ofiz.models import User

TOKEN_SALT = "ofiz-auth"


class AuthService:
    """Bearer tokens shared with the identity provider: a signed, timestamped user id."""

    @staticmethod
    def _serializer():
        return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)

    @staticmethod
    def issue_token(user):
        return AuthService._serializer().dumps({"uid": user.id})

    @staticmethod
    def user_from_token(token):
        try:
            payload = AuthService._serializer().loads(token, max_age=current_app.config["AUTH_TOKEN_MAX_AGE"])
        except SignatureExpired:
            current_app.logger.info("Rejected expired auth token")
            return None
        except BadSignature:
            current_app.logger.warning("Rejected auth token with a bad signature")
            return None
        user = db.session.get(User, payload.get("uid"))
        if not user or not user.is_active_user:
            return None
        return user

    @staticmethod
    def user_from_request(request):
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return AuthService.user_from_token(token.strip())
