"""WiFi hotspot API: device registration and IP checks."""
from flask import Blueprint, g, request

from campus_attendance.services.wifi_service import WifiService
from campus_attendance.utils.decorators import faculty_required, student_required
from campus_attendance.utils.helpers import error_response, success_response
from campus_attendance.utils.validators import Validator

wifi_bp = Blueprint('wifi', __name__)


@wifi_bp.route('/connect', methods=['POST'])
@student_required
def connect():
    """Register the student's device on an active hotspot."""
    data = request.get_json(silent=True) or {}

    validation = Validator.validate_required_fields(data, ['ssid'])
    if not validation['is_valid']:
        return error_response(validation['errors'][0], 400)

    wifi_session = WifiService.connect(
        g.current_user,
        data['ssid'],
        ip_address=data.get('ip_address') or request.remote_addr,
        mac_address=data.get('mac_address'),
        device_info=data.get('device_info') or request.headers.get('User-Agent')
    )

    return success_response(
        data={
            'wifi_session_id': wifi_session.id,
            'attendance_session_id': wifi_session.attendance_session_id,
            'next_step': 'location'
        },
        message='Connected to attendance WiFi'
    )


@wifi_bp.route('/session/<int:wifi_session_id>/devices', methods=['GET'])
@faculty_required
def connected_devices(wifi_session_id):
    wifi_session = WifiService.connected_devices(wifi_session_id, g.current_user)
    data = wifi_session.to_dict(include_devices=True)
    return success_response(data=data, meta={'total': len(data['devices'])})


@wifi_bp.route('/session/<int:wifi_session_id>/end', methods=['POST'])
@faculty_required
def end_wifi_session(wifi_session_id):
    summary = WifiService.end_wifi_session(wifi_session_id, g.current_user)
    return success_response(data=summary, message='WiFi session ended')


@wifi_bp.route('/active', methods=['GET'])
@student_required
def active_wifi_sessions():
    """Hotspots a student can join right now."""
    sessions = []
    for wifi_session in WifiService.active_sessions():
        attendance_session = wifi_session.attendance_session
        sessions.append({
            'wifi_session_id': wifi_session.id,
            'attendance_session_id': attendance_session.id,
            'ssid': wifi_session.ssid,
            'subject': attendance_session.subject.to_summary() if attendance_session.subject else None,
            'faculty_name': attendance_session.faculty.name if attendance_session.faculty else None,
            'started_at': wifi_session.started_at.isoformat() if wifi_session.started_at else None
        })

    return success_response(data={'sessions': sessions}, meta={'total': len(sessions)})


@wifi_bp.route('/verify-ip', methods=['POST'])
@student_required
def verify_ip():
    data = request.get_json(silent=True) or {}

    validation = Validator.validate_required_fields(data, ['wifi_session_id', 'ip_address'])
    if not validation['is_valid']:
        return error_response(validation['errors'][0], 400)

    try:
        wifi_session_id = int(data['wifi_session_id'])
    except (TypeError, ValueError):
        return error_response("wifi_session_id must be an integer", 400)

    if WifiService.verify_ip(wifi_session_id, g.current_user, data['ip_address']):
        return success_response(
            data={'verified': True, 'next_step': 'location'},
            message='IP verification successful'
        )

    return error_response(
        'IP verification failed. Make sure you are connected to the correct network.',
        400,
        code='ip_mismatch',
        verified=False
    )
