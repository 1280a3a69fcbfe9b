"""Custom decorators for authorization."""
from functools import wraps
from flask import g
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from campus_attendance import db
from campus_attendance.models.user import User, UserRole
from campus_attendance.utils.helpers import error_response


def load_current_user():
    """Resolve the JWT identity to an active user, or None."""
    identity = get_jwt_identity()
    try:
        user_id = int(identity)
    except (TypeError, ValueError):
        return None

    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        return None
    return user


def roles_required(*roles: UserRole):
    """Require a valid token whose user holds one of ``roles``.

    The resolved user is stored on ``flask.g.current_user``.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            verify_jwt_in_request()
            user = load_current_user()

            if not user:
                return error_response("User not found", 404)

            if roles and user.role not in roles:
                allowed = ', '.join(role.value for role in roles)
                return error_response(f"Access restricted to: {allowed}", 403, code='forbidden')

            g.current_user = user
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def login_required(f):
    """Require any authenticated, active user."""
    return roles_required()(f)


def faculty_required(f):
    """Decorator to require faculty role or higher."""
    return roles_required(UserRole.FACULTY, UserRole.ADMIN)(f)


def student_required(f):
    """Decorator to require student role."""
    return roles_required(UserRole.STUDENT)(f)
