"""Hotspot-proximity session paired 1:1 with an attendance session."""
from datetime import datetime
from enum import Enum
from campus_attendance import db
from campus_attendance.models.base import BaseModel, enum_column


class WifiStatus(Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'


class WifiSession(BaseModel):
    """Faculty hotspot tracking which student devices joined."""

    __tablename__ = 'wifi_sessions'
    __table_args__ = (
        db.Index(
            'uq_wifi_sessions_active_faculty',
            'faculty_id',
            unique=True,
            sqlite_where=db.text("status = 'active'"),
            postgresql_where=db.text("status = 'active'")
        ),
    )

    attendance_session_id = db.Column(
        db.Integer, db.ForeignKey('attendance_sessions.id'), nullable=False, unique=True
    )
    faculty_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    # Hotspot identity
    ssid = db.Column(db.String(64), nullable=False, index=True)
    bssid = db.Column(db.String(32), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    gateway_ip = db.Column(db.String(45), nullable=True)

    # Geofence
    center_latitude = db.Column(db.Float, nullable=True)
    center_longitude = db.Column(db.Float, nullable=True)
    radius = db.Column(db.Float, nullable=False, default=50)

    status = enum_column(WifiStatus, nullable=False, default=WifiStatus.INACTIVE, index=True)
    started_at = db.Column(db.DateTime, nullable=True)
    ended_at = db.Column(db.DateTime, nullable=True)

    devices = db.relationship(
        'ConnectedDevice', backref='wifi_session', lazy='dynamic', cascade='all, delete-orphan'
    )

    def is_active(self) -> bool:
        return self.status == WifiStatus.ACTIVE

    def close(self, when: datetime = None) -> None:
        self.status = WifiStatus.INACTIVE
        self.ended_at = when or datetime.utcnow()

    def matches(self, ssid: str, bssid: str = None) -> bool:
        """Exact, case-sensitive match against the hotspot identity.

        The BSSID is only compared when both sides know it.
        """
        if not ssid or ssid != self.ssid:
            return False
        if self.bssid and bssid and bssid != self.bssid:
            return False
        return True

    def find_device(self, student_id: int):
        return self.devices.filter_by(student_id=student_id).first()

    def to_dict(self, include_devices: bool = False):
        data = {
            'id': self.id,
            'attendance_session_id': self.attendance_session_id,
            'faculty_id': self.faculty_id,
            'hotspot': {
                'ssid': self.ssid,
                'bssid': self.bssid,
                'ip_address': self.ip_address,
                'gateway_ip': self.gateway_ip
            },
            'geofence': {
                'center_latitude': self.center_latitude,
                'center_longitude': self.center_longitude,
                'radius': self.radius
            },
            'status': self.status.value,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'ended_at': self.ended_at.isoformat() if self.ended_at else None,
            'connected_count': self.devices.count()
        }
        if include_devices:
            data['devices'] = [device.to_dict() for device in self.devices.order_by(ConnectedDevice.connected_at)]
        return data


class ConnectedDevice(BaseModel):
    """A student's device on the hotspot; one row per (hotspot, student)."""

    __tablename__ = 'connected_devices'
    __table_args__ = (
        db.UniqueConstraint('wifi_session_id', 'student_id', name='uq_connected_devices_session_student'),
    )

    wifi_session_id = db.Column(db.Integer, db.ForeignKey('wifi_sessions.id'), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    ip_address = db.Column(db.String(45), nullable=True)
    mac_address = db.Column(db.String(32), nullable=True)
    device_info = db.Column(db.String(255), nullable=True)
    connected_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)

    student = db.relationship('User')

    def to_dict(self):
        return {
            'student': self.student.to_summary() if self.student else {'id': self.student_id},
            'ip_address': self.ip_address,
            'mac_address': self.mac_address,
            'device_info': self.device_info,
            'connected_at': self.connected_at.isoformat() if self.connected_at else None,
            'is_verified': self.is_verified
        }
