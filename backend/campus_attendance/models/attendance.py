"""Attendance record with per-factor verification details."""
from enum import Enum
from campus_attendance import db
from campus_attendance.models.base import BaseModel, enum_column


class AttendanceStatus(Enum):
    """Attendance status enumeration."""
    PRESENT = 'present'
    ABSENT = 'absent'
    LATE = 'late'
    EXCUSED = 'excused'


class VerificationMethod(Enum):
    """How the record's status was last set."""
    WIFI_FACE = 'wifi_face'
    MANUAL = 'manual'


class AttendanceRecord(BaseModel):
    """One student's outcome for one attendance session."""

    __tablename__ = 'attendance_records'
    __table_args__ = (
        db.UniqueConstraint('session_id', 'student_id', name='uq_attendance_records_session_student'),
        db.Index('ix_attendance_records_student_date', 'student_id', 'date'),
        db.Index('ix_attendance_records_subject_date', 'subject_id', 'date'),
    )

    session_id = db.Column(db.Integer, db.ForeignKey('attendance_sessions.id'), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    subject_id = db.Column(db.Integer, db.ForeignKey('subjects.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    status = enum_column(AttendanceStatus, nullable=False, default=AttendanceStatus.ABSENT)
    verification_method = enum_column(VerificationMethod, nullable=False, default=VerificationMethod.WIFI_FACE)

    # WiFi verification
    wifi_verified = db.Column(db.Boolean, nullable=False, default=False)
    wifi_ip_address = db.Column(db.String(45), nullable=True)
    wifi_ssid = db.Column(db.String(64), nullable=True)
    wifi_verified_at = db.Column(db.DateTime, nullable=True)

    # Geolocation verification
    location_verified = db.Column(db.Boolean, nullable=False, default=False)
    location_latitude = db.Column(db.Float, nullable=True)
    location_longitude = db.Column(db.Float, nullable=True)
    location_accuracy = db.Column(db.Float, nullable=True)
    location_distance = db.Column(db.Float, nullable=True)
    location_verified_at = db.Column(db.DateTime, nullable=True)

    # Face verification
    face_verified = db.Column(db.Boolean, nullable=False, default=False)
    face_confidence = db.Column(db.Float, nullable=True)
    face_enrolled = db.Column(db.Boolean, nullable=False, default=False)
    face_verified_at = db.Column(db.DateTime, nullable=True)

    # Manual override by faculty
    override_applied = db.Column(db.Boolean, nullable=False, default=False)
    override_reason = db.Column(db.Text, nullable=True)
    overridden_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    overridden_at = db.Column(db.DateTime, nullable=True)

    marked_at = db.Column(db.DateTime, nullable=True)
    remarks = db.Column(db.Text, nullable=True)

    # Relationships
    student = db.relationship('User', foreign_keys=[student_id])
    overridden_by = db.relationship('User', foreign_keys=[overridden_by_id])
    subject = db.relationship('Subject')

    def is_marked(self) -> bool:
        return self.status in (AttendanceStatus.PRESENT, AttendanceStatus.LATE)

    def to_dict(self):
        """Convert to dictionary."""
        def iso(value):
            return value.isoformat() if value else None

        return {
            'id': self.id,
            'session_id': self.session_id,
            'student': self.student.to_summary() if self.student else {'id': self.student_id},
            'subject_id': self.subject_id,
            'date': self.date.isoformat() if self.date else None,
            'status': self.status.value,
            'verification_method': self.verification_method.value,
            'wifi_verification': {
                'verified': self.wifi_verified,
                'ip_address': self.wifi_ip_address,
                'ssid': self.wifi_ssid,
                'verified_at': iso(self.wifi_verified_at)
            },
            'location_verification': {
                'verified': self.location_verified,
                'latitude': self.location_latitude,
                'longitude': self.location_longitude,
                'accuracy': self.location_accuracy,
                'distance_from_class': self.location_distance,
                'verified_at': iso(self.location_verified_at)
            },
            'face_verification': {
                'verified': self.face_verified,
                'confidence': self.face_confidence,
                'enrolled': self.face_enrolled,
                'verified_at': iso(self.face_verified_at)
            },
            'manual_override': {
                'applied': self.override_applied,
                'reason': self.override_reason,
                'overridden_by': self.overridden_by_id,
                'overridden_at': iso(self.overridden_at)
            },
            'marked_at': iso(self.marked_at),
            'remarks': self.remarks
        }

    def __repr__(self):
        return f'<AttendanceRecord {self.session_id}-{self.student_id}>'
