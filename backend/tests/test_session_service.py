"""Session lifecycle: schedule, activate, end, cancel, override."""
from datetime import datetime, timedelta

import pytest

from campus_attendance import db
from campus_attendance.models.attendance import AttendanceRecord, AttendanceStatus, VerificationMethod
from campus_attendance.models.attendance_session import AttendanceSession, SessionStatus
from campus_attendance.models.wifi_session import WifiSession, WifiStatus
from campus_attendance.services.session_service import SessionService
from campus_attendance.utils.exceptions import AuthorizationError, NotFoundError, PreconditionError


def start(faculty, timetable, **kwargs):
    kwargs.setdefault('wifi_config', {'ssid': 'ATTEND_ANITA_TEST', 'geofence_radius': 15})
    return SessionService.start_session(faculty, timetable.id, **kwargs)


def counters_balanced(session):
    return (session.present_count + session.absent_count + session.late_count
            + session.excused_count) == session.total_students


def test_start_snapshots_roster(faculty, timetable, students, outsider):
    session = start(faculty, timetable)

    assert session.status == SessionStatus.ACTIVE
    assert session.total_students == 3
    assert session.absent_count == 3
    assert session.present_count == 0
    assert session.late_count == 0
    assert session.records.count() == 3
    assert all(record.status == AttendanceStatus.ABSENT for record in session.records)
    assert outsider.id not in {record.student_id for record in session.records}


def test_start_opens_wifi_session(faculty, timetable, students):
    session = start(faculty, timetable, wifi_config={'ssid': 'LAB-HOTSPOT', 'teacher_ip': '192.168.43.1'})

    wifi_session = session.wifi_session
    assert wifi_session.status == WifiStatus.ACTIVE
    assert wifi_session.ssid == 'LAB-HOTSPOT'
    assert wifi_session.gateway_ip == '192.168.43.1'
    assert wifi_session.started_at is not None


def test_start_uses_timetable_defaults(app, faculty, timetable, students):
    session = SessionService.start_session(faculty, timetable.id)

    assert session.latitude == timetable.latitude
    assert session.longitude == timetable.longitude
    assert session.room == 'LH-101'
    assert session.subject_id == timetable.subject_id
    assert session.geofence_radius == app.config['DEFAULT_GEOFENCE_RADIUS']
    assert session.wifi_ssid.startswith('ATTEND_ANITA_')


def test_start_later_than_roster_change(faculty, timetable, students):
    session = start(faculty, timetable)

    from conftest import make_student
    make_student(4)

    assert session.total_students == 3
    assert session.records.count() == 3


def test_second_active_session_rejected(faculty, timetable, students):
    first = start(faculty, timetable)

    with pytest.raises(PreconditionError) as excinfo:
        start(faculty, timetable)

    assert excinfo.value.code == 'active_session_exists'
    assert AttendanceSession.query.filter_by(faculty_id=faculty.id).count() == 1
    assert first.is_active()


def test_concurrent_start_loses_on_unique_index(faculty, timetable, students, monkeypatch):
    first = start(faculty, timetable)
    # Both requests passed the lookup before either committed
    monkeypatch.setattr(AttendanceSession, 'find_active_for_faculty', staticmethod(lambda faculty_id: None))

    with pytest.raises(PreconditionError) as excinfo:
        start(faculty, timetable, wifi_config={'ssid': 'RACE'})

    assert excinfo.value.code == 'active_session_exists'
    assert AttendanceSession.query.filter_by(faculty_id=faculty.id).count() == 1
    assert WifiSession.query.filter_by(faculty_id=faculty.id).count() == 1
    assert AttendanceRecord.query.count() == 3
    assert first.is_active()


def test_other_faculty_can_run_concurrently(faculty, other_faculty, timetable, students):
    start(faculty, timetable)
    second = start(other_faculty, timetable, wifi_config={'ssid': 'ATTEND_RAHUL_TEST'})

    assert second.is_active()


def test_student_cannot_start(students, timetable):
    with pytest.raises(AuthorizationError):
        start(students[0], timetable)


def test_unknown_timetable(faculty):
    with pytest.raises(NotFoundError):
        SessionService.start_session(faculty, 999)


def test_coordinates_required(faculty, timetable, students):
    timetable.latitude = None
    timetable.longitude = None
    db.session.commit()

    with pytest.raises(PreconditionError) as excinfo:
        start(faculty, timetable)

    assert excinfo.value.code == 'location_required'


def test_schedule_then_activate(faculty, timetable, students):
    session = SessionService.schedule_session(faculty, timetable.id, wifi_config={'ssid': 'LATER'})

    assert session.status == SessionStatus.SCHEDULED
    assert session.records.count() == 0
    assert session.wifi_session.status == WifiStatus.INACTIVE

    SessionService.activate_session(session.id, faculty)

    assert session.status == SessionStatus.ACTIVE
    assert session.records.count() == 3
    assert session.wifi_session.status == WifiStatus.ACTIVE


def test_activate_twice_rejected(faculty, timetable, students):
    session = SessionService.schedule_session(faculty, timetable.id)
    SessionService.activate_session(session.id, faculty)

    with pytest.raises(PreconditionError) as excinfo:
        SessionService.activate_session(session.id, faculty)

    assert excinfo.value.code == 'invalid_transition'


def test_activate_with_other_active_session(faculty, timetable, students):
    scheduled = SessionService.schedule_session(faculty, timetable.id, wifi_config={'ssid': 'LATER'})
    start(faculty, timetable)

    with pytest.raises(PreconditionError) as excinfo:
        SessionService.activate_session(scheduled.id, faculty)

    assert excinfo.value.code == 'active_session_exists'


def test_end_session_statistics(faculty, timetable, students):
    now = datetime.utcnow()
    session = start(faculty, timetable, now=now)

    record = session.records.filter_by(student_id=students[0].id).first()
    SessionService.override_record(record.id, faculty, 'present', reason='Seen in class')

    stats = SessionService.end_session(session.id, faculty, now=now + timedelta(minutes=50))

    assert stats == {
        'total': 3,
        'present': 1,
        'absent': 2,
        'late': 0,
        'excused': 0,
        'duration_minutes': 50
    }
    assert session.status == SessionStatus.COMPLETED
    assert session.ended_at is not None
    assert session.wifi_session.status == WifiStatus.INACTIVE
    assert counters_balanced(session)


def test_end_session_recounts_drifted_counters(faculty, timetable, students):
    session = start(faculty, timetable)

    # Simulate a lost increment
    session.present_count = 2
    session.absent_count = 0
    db.session.commit()

    stats = SessionService.end_session(session.id, faculty)

    assert stats['present'] == 0
    assert stats['absent'] == 3
    assert session.present_count == 0
    assert session.absent_count == 3


def test_end_requires_owner(faculty, other_faculty, timetable, students):
    session = start(faculty, timetable)

    with pytest.raises(AuthorizationError):
        SessionService.end_session(session.id, other_faculty)


def test_admin_can_end_any_session(admin, faculty, timetable, students):
    session = start(faculty, timetable)
    SessionService.end_session(session.id, admin)

    assert session.status == SessionStatus.COMPLETED


def test_end_twice_rejected(faculty, timetable, students):
    session = start(faculty, timetable)
    SessionService.end_session(session.id, faculty)

    with pytest.raises(PreconditionError):
        SessionService.end_session(session.id, faculty)


def test_faculty_can_start_again_after_end(faculty, timetable, students):
    session = start(faculty, timetable)
    SessionService.end_session(session.id, faculty)

    assert start(faculty, timetable, wifi_config={'ssid': 'SECOND'}).is_active()


def test_cancel_session(faculty, timetable, students):
    session = start(faculty, timetable)
    SessionService.cancel_session(session.id, faculty)

    assert session.status == SessionStatus.CANCELLED
    assert session.cancelled_at is not None
    assert session.wifi_session.status == WifiStatus.INACTIVE
    assert SessionService.active_session_for(faculty) is None


def test_cannot_cancel_completed(faculty, timetable, students):
    session = start(faculty, timetable)
    SessionService.end_session(session.id, faculty)

    with pytest.raises(PreconditionError):
        SessionService.cancel_session(session.id, faculty)


def test_override_moves_counters(faculty, timetable, students):
    session = start(faculty, timetable)
    record = session.records.filter_by(student_id=students[1].id).first()

    SessionService.override_record(record.id, faculty, AttendanceStatus.EXCUSED, reason='Medical leave')

    assert record.status == AttendanceStatus.EXCUSED
    assert record.verification_method == VerificationMethod.MANUAL
    assert record.override_applied
    assert record.override_reason == 'Medical leave'
    assert record.overridden_by_id == faculty.id
    assert record.overridden_at is not None
    assert session.absent_count == 2
    assert session.excused_count == 1
    assert counters_balanced(session)


def test_override_same_status_keeps_counters(faculty, timetable, students):
    session = start(faculty, timetable)
    record = session.records.first()

    SessionService.override_record(record.id, faculty, 'absent', reason='Confirmed')

    assert session.absent_count == 3
    assert record.override_applied


def test_override_after_concurrent_verification(faculty, timetable, students):
    session = start(faculty, timetable)
    record = session.records.filter_by(student_id=students[0].id).first()
    assert record.status == AttendanceStatus.ABSENT

    # A verification lands after the record was loaded; the loaded object still says absent
    db.session.query(AttendanceRecord).filter(AttendanceRecord.id == record.id).update(
        {AttendanceRecord.status: AttendanceStatus.PRESENT}, synchronize_session=False
    )
    AttendanceSession.adjust_counters(session.id, 'absent', 'present')

    SessionService.override_record(record.id, faculty, 'excused', reason='Sports meet')

    assert record.status == AttendanceStatus.EXCUSED
    assert session.present_count == 0
    assert session.absent_count == 2
    assert session.excused_count == 1
    assert SessionService.recount(session.id) == {'present': 0, 'absent': 2, 'late': 0, 'excused': 1}
    assert counters_balanced(session)


def test_override_requires_owner(faculty, other_faculty, timetable, students):
    session = start(faculty, timetable)
    record = session.records.first()

    with pytest.raises(AuthorizationError) as excinfo:
        SessionService.override_record(record.id, other_faculty, 'present')

    assert excinfo.value.message == 'Not authorized to modify this record'
    assert session.absent_count == 3


def test_override_after_completion_keeps_final_counters(faculty, timetable, students):
    session = start(faculty, timetable)
    SessionService.end_session(session.id, faculty)
    record = session.records.first()

    SessionService.override_record(record.id, faculty, 'present', reason='Late correction')

    assert record.status == AttendanceStatus.PRESENT
    assert session.present_count == 0
    assert session.absent_count == 3


def test_override_rejected_on_cancelled(faculty, timetable, students):
    session = start(faculty, timetable)
    SessionService.cancel_session(session.id, faculty)

    with pytest.raises(PreconditionError):
        SessionService.override_record(session.records.first().id, faculty, 'present')


def test_override_unknown_record(faculty):
    with pytest.raises(NotFoundError):
        SessionService.override_record(12345, faculty, 'present')


def test_student_history_stats(faculty, timetable, students):
    first = start(faculty, timetable)
    record = first.records.filter_by(student_id=students[0].id).first()
    SessionService.override_record(record.id, faculty, 'present')
    SessionService.end_session(first.id, faculty)

    start(faculty, timetable, wifi_config={'ssid': 'SECOND'})

    history = SessionService.student_history(students[0])

    assert history['stats']['total'] == 2
    assert history['stats']['present'] == 1
    assert history['stats']['absent'] == 1
    assert history['stats']['percentage'] == 50


def test_student_history_empty(students):
    history = SessionService.student_history(students[0])

    assert history['stats']['total'] == 0
    assert history['stats']['percentage'] == 0


def test_faculty_history_filters(faculty, timetable, students):
    session = start(faculty, timetable)
    SessionService.end_session(session.id, faculty)

    assert [s.id for s in SessionService.faculty_history(faculty)] == [session.id]
    assert SessionService.faculty_history(faculty, subject_id=999) == []
    tomorrow = session.date + timedelta(days=1)
    assert SessionService.faculty_history(faculty, start_date=tomorrow) == []


def test_active_sessions_for_student(faculty, timetable, students, outsider):
    session = start(faculty, timetable)
    record = session.records.filter_by(student_id=students[0].id).first()
    SessionService.override_record(record.id, faculty, 'present')

    mine = SessionService.active_sessions_for_student(students[0])
    theirs = SessionService.active_sessions_for_student(students[1])

    assert len(mine) == 1
    assert mine[0]['id'] == session.id
    assert mine[0]['student_status'] == 'present'
    assert mine[0]['has_marked'] is True
    assert theirs[0]['has_marked'] is False
    assert SessionService.active_sessions_for_student(outsider) == []


def test_session_records_ordered_by_roll_number(faculty, timetable, students):
    session = start(faculty, timetable)
    records = SessionService.session_records(session.id, faculty)

    assert [r.student.roll_number for r in records] == ['CSE5A001', 'CSE5A002', 'CSE5A003']


def test_records_exist_once_per_student(faculty, timetable, students):
    session = start(faculty, timetable)

    for student in students:
        assert AttendanceRecord.query.filter_by(session_id=session.id, student_id=student.id).count() == 1
