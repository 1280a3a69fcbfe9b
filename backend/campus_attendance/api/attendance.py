"""Attendance API: session lifecycle, three-factor verification and history."""
from datetime import datetime

from flask import Blueprint, g, request

from campus_attendance.models.attendance import AttendanceStatus
from campus_attendance.services.face_service import FaceService
from campus_attendance.services.session_service import SessionService
from campus_attendance.services.verification_service import (
    FaceEvidence, LocationEvidence, VerificationService, WifiEvidence
)
from campus_attendance.utils.decorators import faculty_required, student_required
from campus_attendance.utils.helpers import error_response, success_response
from campus_attendance.utils.validators import ValidationError, Validator

attendance_bp = Blueprint('attendance', __name__)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be JSON")
    return data


def _parse_date(value):
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD")


def _parse_int(value, name: str):
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")


def _parse_location(data: dict) -> LocationEvidence:
    if not isinstance(data, dict):
        raise ValidationError("location_data must be an object")

    check = Validator.validate_coordinates(data.get('latitude'), data.get('longitude'))
    if not check['is_valid']:
        raise ValidationError(check['errors'][0])

    accuracy = data.get('accuracy')
    try:
        accuracy = float(accuracy) if accuracy is not None else None
    except (TypeError, ValueError):
        raise ValidationError("accuracy must be a number")

    return LocationEvidence(
        latitude=float(data['latitude']),
        longitude=float(data['longitude']),
        accuracy=accuracy
    )


def _parse_wifi(data: dict) -> WifiEvidence:
    if not isinstance(data, dict) or not data.get('ssid'):
        raise ValidationError("wifi_data.ssid is required")

    return WifiEvidence(
        ssid=str(data['ssid']),
        bssid=data.get('bssid'),
        ip_address=data.get('ip_address') or request.remote_addr,
        mac_address=data.get('mac_address'),
        device_info=data.get('device_info') or request.headers.get('User-Agent')
    )


def _start_payload(data: dict) -> dict:
    wifi_config = data.get('wifi_config') or {}
    location = data.get('location') or {}

    if not isinstance(wifi_config, dict) or not isinstance(location, dict):
        raise ValidationError("wifi_config and location must be objects")

    if 'latitude' in location or 'longitude' in location:
        check = Validator.validate_coordinates(location.get('latitude'), location.get('longitude'))
        if not check['is_valid']:
            raise ValidationError(check['errors'][0])
        location = dict(location, latitude=float(location['latitude']),
                        longitude=float(location['longitude']))

    radius = wifi_config.get('geofence_radius')
    if radius is not None:
        try:
            radius = float(radius)
        except (TypeError, ValueError):
            raise ValidationError("geofence_radius must be a number")
        if radius <= 0:
            raise ValidationError("geofence_radius must be positive")
        wifi_config = dict(wifi_config, geofence_radius=radius)

    teacher_ip = wifi_config.get('teacher_ip')
    if teacher_ip and not Validator.validate_ip_address(teacher_ip):
        raise ValidationError("teacher_ip must be a valid IP address")

    return {'wifi_config': wifi_config, 'location': location}


@attendance_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Attendance service is running')


# =================== SESSION LIFECYCLE ===================

@attendance_bp.route('/session/start', methods=['POST'])
@faculty_required
def start_session():
    """Start a session: roster snapshot, absent records, hotspot."""
    data = _json_body()

    validation = Validator.validate_required_fields(data, ['timetable_id'])
    if not validation['is_valid']:
        return error_response(validation['errors'][0], 400)

    payload = _start_payload(data)
    schedule_only = bool(data.get('schedule_only'))

    if schedule_only:
        session = SessionService.schedule_session(
            g.current_user,
            _parse_int(data['timetable_id'], 'timetable_id'),
            subject_id=_parse_int(data.get('subject_id'), 'subject_id'),
            session_date=_parse_date(data.get('date')),
            **payload
        )
        return success_response(
            data=session.to_dict(),
            message='Attendance session scheduled',
            status_code=201
        )

    session = SessionService.start_session(
        g.current_user,
        _parse_int(data['timetable_id'], 'timetable_id'),
        subject_id=_parse_int(data.get('subject_id'), 'subject_id'),
        **payload
    )

    return success_response(
        data={
            'session': session.to_dict(),
            'wifi_session': session.wifi_session.to_dict()
        },
        message='Attendance session started successfully',
        status_code=201
    )


@attendance_bp.route('/session/<int:session_id>/activate', methods=['POST'])
@faculty_required
def activate_session(session_id):
    session = SessionService.activate_session(session_id, g.current_user)
    return success_response(
        data={
            'session': session.to_dict(),
            'wifi_session': session.wifi_session.to_dict()
        },
        message='Attendance session started successfully'
    )


@attendance_bp.route('/session/<int:session_id>/end', methods=['POST'])
@faculty_required
def end_session(session_id):
    """End session and return the reconciled statistics."""
    statistics = SessionService.end_session(session_id, g.current_user)
    return success_response(
        data={'statistics': statistics},
        message='Attendance session ended successfully'
    )


@attendance_bp.route('/session/<int:session_id>/cancel', methods=['POST'])
@faculty_required
def cancel_session(session_id):
    session = SessionService.cancel_session(session_id, g.current_user)
    return success_response(data=session.to_dict(), message='Attendance session cancelled')


@attendance_bp.route('/session/active', methods=['GET'])
@faculty_required
def get_active_session():
    """Faculty's active session with its records, or null."""
    session = SessionService.active_session_for(g.current_user)

    if not session:
        return success_response(data={'session': None}, message='No active session')

    records = SessionService.session_records(session.id, g.current_user)
    return success_response(data={
        'session': session.to_dict(),
        'wifi_session': session.wifi_session.to_dict(include_devices=True) if session.wifi_session else None,
        'records': [record.to_dict() for record in records]
    })


@attendance_bp.route('/session/<int:session_id>/records', methods=['GET'])
@faculty_required
def get_session_records(session_id):
    records = SessionService.session_records(session_id, g.current_user)
    return success_response(
        data={'records': [record.to_dict() for record in records]},
        meta={'total': len(records)}
    )


# =================== VERIFICATION ===================

@attendance_bp.route('/verify', methods=['POST'])
@student_required
def verify_attendance():
    """Run WiFi, location and face checks for the calling student.

    Body: ``session_id`` plus any of ``wifi_data``, ``location_data`` and
    ``face_data``. Stages are evaluated in that order and each needs the
    previous one to pass in the same request.
    """
    data = _json_body()

    session_id = _parse_int(data.get('session_id'), 'session_id')
    if session_id is None:
        return error_response("Missing required field: session_id", 400)

    wifi = _parse_wifi(data['wifi_data']) if data.get('wifi_data') else None
    location = _parse_location(data['location_data']) if data.get('location_data') else None
    face = FaceEvidence(FaceService.encoding_from_payload(data['face_data'])) if data.get('face_data') else None

    outcome = VerificationService.verify(
        session_id,
        g.current_user,
        wifi=wifi,
        location=location,
        face=face
    )

    payload = outcome.to_dict()
    message = payload.pop('message')
    if outcome.success:
        return success_response(data=payload, message=message)

    return error_response(message, 400, **payload)


@attendance_bp.route('/manual-override', methods=['POST'])
@faculty_required
def manual_override():
    """Faculty correction of a single record."""
    data = _json_body()

    validation = Validator.validate_required_fields(data, ['record_id', 'status'])
    if not validation['is_valid']:
        return error_response(validation['errors'][0], 400)

    try:
        new_status = AttendanceStatus(data['status'])
    except ValueError:
        allowed = ', '.join(status.value for status in AttendanceStatus)
        return error_response(f"Invalid status. Must be one of: {allowed}", 400)

    record = SessionService.override_record(
        _parse_int(data['record_id'], 'record_id'),
        g.current_user,
        new_status,
        reason=data.get('reason')
    )

    return success_response(data=record.to_dict(), message='Attendance updated successfully')


# =================== HISTORY ===================

@attendance_bp.route('/student/history', methods=['GET'])
@student_required
def student_history():
    history = SessionService.student_history(
        g.current_user,
        subject_id=_parse_int(request.args.get('subject_id'), 'subject_id'),
        start_date=_parse_date(request.args.get('start_date')),
        end_date=_parse_date(request.args.get('end_date'))
    )

    return success_response(data={
        'stats': history['stats'],
        'records': [record.to_dict() for record in history['records']]
    })


@attendance_bp.route('/student/active-sessions', methods=['GET'])
@student_required
def student_active_sessions():
    sessions = SessionService.active_sessions_for_student(g.current_user)
    return success_response(data={'sessions': sessions}, meta={'total': len(sessions)})


@attendance_bp.route('/faculty/history', methods=['GET'])
@faculty_required
def faculty_history():
    sessions = SessionService.faculty_history(
        g.current_user,
        subject_id=_parse_int(request.args.get('subject_id'), 'subject_id'),
        start_date=_parse_date(request.args.get('start_date')),
        end_date=_parse_date(request.args.get('end_date'))
    )

    return success_response(
        data={'sessions': [session.to_dict() for session in sessions]},
        meta={'total': len(sessions)}
    )
