from functools import wraps

from flask import abort
from flask_login import current_user

from ofiz.errors import OwnershipViolation


def role_required(*roles):
    def wrapper(func):
        @wraps(func)
        def inner(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)
            if current_user.role not in roles:
                raise OwnershipViolation(f"This action is reserved for: {', '.join(roles)}.")
            return func(*args, **kwargs)

        return inner

    return wrapper
