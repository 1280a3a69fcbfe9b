"""Hotspot proximity: connected devices and IP checks."""
from datetime import datetime
from typing import Dict, List, Optional

from flask import current_app

from campus_attendance import db, notifier
from campus_attendance.models.attendance_session import AttendanceSession, SessionStatus
from campus_attendance.models.wifi_session import ConnectedDevice, WifiSession, WifiStatus
from campus_attendance.utils.exceptions import AuthorizationError, NotFoundError, PreconditionError


def subnet_prefix(ip_address: Optional[str]) -> Optional[str]:
    """First three octets of an IPv4 address ('192.168.43')."""
    if not ip_address or ip_address.count('.') != 3:
        return None
    return '.'.join(ip_address.split('.')[:3])


class WifiService:
    """Operations on the faculty hotspot paired with a session."""

    @staticmethod
    def upsert_device(wifi_session: WifiSession, student_id: int, ip_address: str = None,
                      mac_address: str = None, device_info: str = None,
                      now: datetime = None) -> ConnectedDevice:
        """Add the student's device, or refresh the existing entry in place."""
        now = now or datetime.utcnow()
        device = wifi_session.find_device(student_id)

        if device:
            device.ip_address = ip_address or device.ip_address
            device.mac_address = mac_address or device.mac_address
            device.device_info = device_info or device.device_info
            device.connected_at = now
        else:
            device = ConnectedDevice(
                wifi_session_id=wifi_session.id,
                student_id=student_id,
                ip_address=ip_address,
                mac_address=mac_address,
                device_info=device_info,
                connected_at=now,
                is_verified=False
            )
            db.session.add(device)

        return device

    @staticmethod
    def get_wifi_session(wifi_session_id: int) -> WifiSession:
        wifi_session = db.session.get(WifiSession, wifi_session_id)
        if not wifi_session:
            raise NotFoundError("WiFi session not found")
        return wifi_session

    @classmethod
    def connect(cls, student, ssid: str, ip_address: str = None, mac_address: str = None,
                device_info: str = None) -> WifiSession:
        """Register a student's device on the active hotspot named ``ssid``."""
        wifi_session = WifiSession.query.filter_by(ssid=ssid, status=WifiStatus.ACTIVE).first()
        if not wifi_session:
            raise NotFoundError(
                "No active attendance session found with this WiFi network",
                code='hotspot_not_found'
            )

        cls.upsert_device(wifi_session, student.id, ip_address, mac_address, device_info)
        db.session.commit()

        notifier.device_joined(wifi_session.attendance_session_id, student, ip_address)
        return wifi_session

    @classmethod
    def connected_devices(cls, wifi_session_id: int, actor) -> WifiSession:
        wifi_session = cls.get_wifi_session(wifi_session_id)
        if not actor.is_admin() and wifi_session.faculty_id != actor.id:
            raise AuthorizationError("Not authorized to view this session")
        return wifi_session

    @classmethod
    def verify_ip(cls, wifi_session_id: int, student, ip_address: str) -> bool:
        """Device must be connected with ``ip_address`` inside the hotspot's /24."""
        wifi_session = db.session.get(WifiSession, wifi_session_id)
        if not wifi_session or not wifi_session.is_active():
            raise NotFoundError("WiFi session not found or inactive")

        device = wifi_session.find_device(student.id)
        if not device:
            raise PreconditionError("You are not connected to this WiFi network", code='not_connected')

        hotspot_subnet = subnet_prefix(wifi_session.ip_address)
        is_ip_valid = device.ip_address == ip_address
        is_in_subnet = hotspot_subnet is not None and hotspot_subnet == subnet_prefix(ip_address)

        if is_ip_valid and is_in_subnet:
            device.is_verified = True
            db.session.commit()
            return True

        return False

    @classmethod
    def end_wifi_session(cls, wifi_session_id: int, actor) -> Dict:
        wifi_session = cls.get_wifi_session(wifi_session_id)
        if not actor.is_admin() and wifi_session.faculty_id != actor.id:
            raise AuthorizationError("Not authorized to end this session")

        if wifi_session.is_active():
            wifi_session.close()
            db.session.commit()
            current_app.logger.info(f"WiFi session {wifi_session.id} closed by user {actor.id}")

        duration = None
        if wifi_session.started_at and wifi_session.ended_at:
            duration = round((wifi_session.ended_at - wifi_session.started_at).total_seconds() / 60)

        return {
            'total_connected': wifi_session.devices.count(),
            'duration_minutes': duration
        }

    @staticmethod
    def active_sessions() -> List[WifiSession]:
        """Active hotspots whose attendance session is still running."""
        return WifiSession.query.join(
            AttendanceSession, WifiSession.attendance_session_id == AttendanceSession.id
        ).filter(
            WifiSession.status == WifiStatus.ACTIVE,
            AttendanceSession.status == SessionStatus.ACTIVE
        ).order_by(WifiSession.started_at.desc()).all()
