"""Authentication service for user management."""
from datetime import datetime
from typing import Optional, Tuple

from flask import current_app
from flask_jwt_extended import create_access_token, create_refresh_token

from campus_attendance import db
from campus_attendance.models.user import User
from campus_attendance.utils.validators import Validator


class AuthService:
    @staticmethod
    def login(email: str, password: str) -> Tuple[Optional[dict], Optional[str]]:
        """Authenticate user and return tokens."""
        if not email or not password:
            return None, "Email and password are required"

        if not Validator.validate_email(email):
            return None, "Invalid email format"

        user = User.query.filter_by(email=email.lower().strip()).first()

        if not user or not user.check_password(password):
            current_app.logger.info(f"Failed login for {email}")
            return None, "Invalid email or password"

        if not user.is_active:
            return None, "Account is deactivated"

        user.last_login = datetime.utcnow()
        db.session.commit()

        # Identity travels as a string in the token subject
        return {
            "access_token": create_access_token(identity=str(user.id)),
            "refresh_token": create_refresh_token(identity=str(user.id)),
            "user": user.to_dict()
        }, None

    @staticmethod
    def refresh_token(user_id) -> Tuple[Optional[dict], Optional[str]]:
        """Generate new access token."""
        try:
            user = db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            user = None

        if not user or not user.is_active:
            return None, "User not found or inactive"

        return {
            "access_token": create_access_token(identity=str(user.id)),
            "user": user.to_dict()
        }, None
