from functools import wraps

from flask import g

from library_api.errors import AuthenticationError, PermissionDeniedError
from library_api.services.auth_service import AuthService


def login_required(fn):
    """Resolve the bearer token into ``g.caller`` or answer 401."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        caller = AuthService.current_caller()
        if caller is None:
            raise AuthenticationError("Login required")
        g.caller = caller
        return fn(*args, **kwargs)
    return wrapper


def role_required(*roles):
    def decorator(fn):
        @wraps(fn)
        @login_required
        def wrapper(*args, **kwargs):
            if g.caller.role not in roles:
                raise PermissionDeniedError("Admin role required" if roles == ("admin",) else "Forbidden")
            return fn(*args, **kwargs)
        return wrapper
    return decorator
