"""Models package with all models."""
from .base import BaseModel
from .user import User, UserRole
from .subject import Subject, Timetable
from .attendance_session import AttendanceSession, SessionStatus
from .attendance import AttendanceRecord, AttendanceStatus, VerificationMethod
from .wifi_session import WifiSession, WifiStatus, ConnectedDevice

__all__ = [
    'BaseModel', 'User', 'UserRole',
    'Subject', 'Timetable',
    'AttendanceSession', 'SessionStatus',
    'AttendanceRecord', 'AttendanceStatus', 'VerificationMethod',
    'WifiSession', 'WifiStatus', 'ConnectedDevice'
]
