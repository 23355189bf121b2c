"""
Caller identity for API routes

Authentication happens upstream (API gateway / auth service); it forwards
the authenticated user's id in the X-User-Id header. Routes only resolve
that id to a User and compare role strings.
"""
from functools import wraps

from flask import request

from guardforce.error_handlers.exceptions import AuthenticationException, AuthorizationException
from guardforce.models import get_db, get_models

USER_ID_HEADER = 'X-User-Id'

ROLE_ADMIN = 'admin'
ROLE_SUPERVISOR = 'supervisor'
MANAGER_ROLES = (ROLE_ADMIN, ROLE_SUPERVISOR)


def get_current_user():
    """Return the calling User, or None when the header is missing or unknown"""
    user_id = request.headers.get(USER_ID_HEADER)
    if not user_id:
        return None
    return get_db().session.get(get_models()['User'], user_id)


def require_authentication():
    """Decorator to require a known, active caller"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = get_current_user()
            if user is None:
                raise AuthenticationException('Authentication required')
            if user.status != 'active':
                raise AuthenticationException('Account is not active')
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def require_role(*roles):
    """Decorator to restrict a route to callers holding one of roles"""
    def decorator(f):
        @wraps(f)
        @require_authentication()
        def decorated_function(*args, **kwargs):
            user = get_current_user()
            if user.role not in roles:
                raise AuthorizationException(
                    f"This action requires one of the roles: {', '.join(roles)}"
                )
            return f(*args, **kwargs)
        return decorated_function
    return decorator
