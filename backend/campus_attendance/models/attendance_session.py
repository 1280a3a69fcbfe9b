"""Attendance session: one scheduled or running class meeting."""
from enum import Enum
from typing import Dict, Optional
from campus_attendance import db
from campus_attendance.models.base import BaseModel, enum_column


class SessionStatus(Enum):
    """Session lifecycle: scheduled -> active -> completed | cancelled."""
    SCHEDULED = 'scheduled'
    ACTIVE = 'active'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class AttendanceSession(BaseModel):
    """Session for tracking attendance of one class meeting."""

    __tablename__ = 'attendance_sessions'
    __table_args__ = (
        # At most one active session per faculty member
        db.Index(
            'uq_attendance_sessions_active_faculty',
            'faculty_id',
            unique=True,
            sqlite_where=db.text("status = 'active'"),
            postgresql_where=db.text("status = 'active'")
        ),
        db.Index('ix_attendance_sessions_date_faculty', 'date', 'faculty_id'),
    )

    timetable_id = db.Column(db.Integer, db.ForeignKey('timetables.id'), nullable=False)
    faculty_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    subject_id = db.Column(db.Integer, db.ForeignKey('subjects.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    status = enum_column(SessionStatus, nullable=False, default=SessionStatus.SCHEDULED, index=True)

    # WiFi hotspot configuration
    wifi_ssid = db.Column(db.String(64), nullable=False)
    wifi_bssid = db.Column(db.String(32), nullable=True)
    allowed_ips = db.Column(db.JSON, nullable=False, default=list)
    geofence_radius = db.Column(db.Float, nullable=False, default=50)

    # Classroom location
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    room = db.Column(db.String(50), nullable=True)

    started_at = db.Column(db.DateTime, nullable=True)
    ended_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    # Stats
    total_students = db.Column(db.Integer, nullable=False, default=0)
    present_count = db.Column(db.Integer, nullable=False, default=0)
    absent_count = db.Column(db.Integer, nullable=False, default=0)
    late_count = db.Column(db.Integer, nullable=False, default=0)
    excused_count = db.Column(db.Integer, nullable=False, default=0)

    # Relationships
    timetable = db.relationship('Timetable')
    faculty = db.relationship('User')
    subject = db.relationship('Subject')
    records = db.relationship('AttendanceRecord', backref='session', lazy='dynamic')
    wifi_session = db.relationship('WifiSession', backref='attendance_session', uselist=False)

    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    def is_owned_by(self, user) -> bool:
        """Owning faculty or any admin."""
        return user is not None and (user.is_admin() or self.faculty_id == user.id)

    @classmethod
    def find_active_for_faculty(cls, faculty_id: int) -> Optional['AttendanceSession']:
        return cls.query.filter_by(faculty_id=faculty_id, status=SessionStatus.ACTIVE).first()

    @classmethod
    def adjust_counters(cls, session_id: int, decrement: str = None, increment: str = None) -> int:
        """Move one student between counter buckets in a single UPDATE.

        The new values are computed by the database from the stored row, so
        concurrent verifications never overwrite each other's increments.
        Bucket names are attendance statuses ('present', 'absent', ...).
        Only an active session is touched; returns the number of rows updated.
        """
        if decrement == increment:
            return 0

        values = {}
        if decrement:
            column = cls.counter_column(decrement)
            values[column] = column - 1
        if increment:
            column = cls.counter_column(increment)
            values[column] = column + 1

        return db.session.query(cls).filter(
            cls.id == session_id,
            cls.status == SessionStatus.ACTIVE
        ).update(values, synchronize_session=False)

    @classmethod
    def counter_column(cls, status: str):
        return {
            'present': cls.present_count,
            'absent': cls.absent_count,
            'late': cls.late_count,
            'excused': cls.excused_count,
        }[status]

    def statistics(self) -> Dict[str, int]:
        return {
            'total': self.total_students,
            'present': self.present_count,
            'absent': self.absent_count,
            'late': self.late_count,
            'excused': self.excused_count
        }

    def duration_minutes(self) -> Optional[int]:
        if not self.started_at or not self.ended_at:
            return None
        return round((self.ended_at - self.started_at).total_seconds() / 60)

    def to_dict(self):
        """Convert to dictionary."""
        return {
            'id': self.id,
            'timetable_id': self.timetable_id,
            'faculty_id': self.faculty_id,
            'subject': self.subject.to_summary() if self.subject else None,
            'date': self.date.isoformat() if self.date else None,
            'status': self.status.value,
            'wifi_config': {
                'ssid': self.wifi_ssid,
                'bssid': self.wifi_bssid,
                'allowed_ips': list(self.allowed_ips or []),
                'geofence_radius': self.geofence_radius
            },
            'location': {
                'latitude': self.latitude,
                'longitude': self.longitude,
                'room': self.room
            },
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'ended_at': self.ended_at.isoformat() if self.ended_at else None,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
            'total_students': self.total_students,
            'present_count': self.present_count,
            'absent_count': self.absent_count,
            'late_count': self.late_count,
            'excused_count': self.excused_count
        }
