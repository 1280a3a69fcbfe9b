"""User model for authentication, rosters and face enrolment."""
from enum import Enum
from werkzeug.security import generate_password_hash, check_password_hash
from campus_attendance import db
from campus_attendance.models.base import BaseModel, enum_column


class UserRole(Enum):
    """User roles enumeration."""
    ADMIN = 'admin'
    FACULTY = 'faculty'
    STUDENT = 'student'


class User(BaseModel):
    """User model for all system users."""

    __tablename__ = 'users'

    # Basic Information
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    role = enum_column(UserRole, nullable=False, default=UserRole.STUDENT)

    # Student fields
    roll_number = db.Column(db.String(50), nullable=True, index=True)
    semester = db.Column(db.Integer, nullable=True)
    branch = db.Column(db.String(20), nullable=True)
    section = db.Column(db.String(10), nullable=True)

    # Faculty fields
    employee_id = db.Column(db.String(50), nullable=True)
    department = db.Column(db.String(100), nullable=True)

    # Stored face feature vector; empty means not enrolled yet
    face_encoding = db.Column(db.JSON, nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login = db.Column(db.DateTime, nullable=True)

    def set_password(self, password: str) -> None:
        """Set user password with hashing."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Check if provided password matches user's password."""
        return check_password_hash(self.password_hash, password)

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def is_faculty(self) -> bool:
        """Faculty or admin."""
        return self.role in [UserRole.FACULTY, UserRole.ADMIN]

    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT

    def has_face_registered(self) -> bool:
        return bool(self.face_encoding)

    @classmethod
    def roster(cls, semester, branch, section):
        """Active students enrolled in a (semester, branch, section) class."""
        return cls.query.filter_by(
            role=UserRole.STUDENT,
            semester=semester,
            branch=branch,
            section=section,
            is_active=True
        ).order_by(cls.roll_number, cls.id).all()

    def to_dict(self, exclude: list = None) -> dict:
        """Convert to dictionary excluding sensitive data."""
        default_exclude = ['password_hash', 'face_encoding']
        exclude = (exclude or []) + default_exclude

        result = super().to_dict(exclude=exclude)
        result['has_face_registered'] = self.has_face_registered()

        return result

    def to_summary(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'roll_number': self.roll_number
        }

    def __repr__(self) -> str:
        return f'<User {self.email}>'
