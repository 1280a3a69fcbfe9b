"""Attendance session lifecycle: scheduled -> active -> completed | cancelled."""
import time
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from campus_attendance import db, notifier
from campus_attendance.models.attendance import AttendanceRecord, AttendanceStatus, VerificationMethod
from campus_attendance.models.attendance_session import AttendanceSession, SessionStatus
from campus_attendance.models.subject import Subject, Timetable
from campus_attendance.models.user import User
from campus_attendance.models.wifi_session import WifiSession, WifiStatus
from campus_attendance.services.wifi_service import WifiService
from campus_attendance.utils.exceptions import AuthorizationError, NotFoundError, PreconditionError

ACTIVE_SESSION_EXISTS = 'You already have an active session. Please end it first.'
OVERRIDE_ATTEMPTS = 3


def _base36(number: int) -> str:
    digits = '0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ'
    result = ''
    while number:
        number, remainder = divmod(number, 36)
        result = digits[remainder] + result
    return result or '0'


class SessionService:
    """Creates, activates, closes and corrects attendance sessions."""

    @staticmethod
    def generate_ssid(faculty: User) -> str:
        """Hotspot name used when the faculty does not supply one."""
        first_name = (faculty.name or 'FACULTY').split(' ')[0].upper()
        return f"ATTEND_{first_name}_{_base36(int(time.time() * 1000))}"

    @staticmethod
    def get_session(session_id: int) -> AttendanceSession:
        session = db.session.get(AttendanceSession, session_id)
        if not session:
            raise NotFoundError("Session not found", code='session_not_found')
        return session

    @staticmethod
    def _require_faculty(actor: User) -> None:
        if not actor or not actor.is_faculty():
            raise AuthorizationError("Only faculty can manage attendance sessions")

    @staticmethod
    def _require_owner(session: AttendanceSession, actor: User, action: str) -> None:
        if not session.is_owned_by(actor):
            raise AuthorizationError(f"Not authorized to {action}")

    # =================== LIFECYCLE ===================

    @classmethod
    def _build_session(cls, faculty: User, timetable_id: int, subject_id: int = None,
                       wifi_config: Dict = None, location: Dict = None,
                       session_date: date = None) -> AttendanceSession:
        """Create the session and its inactive hotspot in the current transaction."""
        wifi_config = wifi_config or {}
        location = location or {}

        timetable = db.session.get(Timetable, timetable_id)
        if not timetable:
            raise NotFoundError("Timetable entry not found", code='timetable_not_found')

        subject_id = subject_id or timetable.subject_id
        if not db.session.get(Subject, subject_id):
            raise NotFoundError("Subject not found", code='subject_not_found')

        latitude = location.get('latitude', timetable.latitude)
        longitude = location.get('longitude', timetable.longitude)
        if latitude is None or longitude is None:
            raise PreconditionError("Classroom coordinates are required", code='location_required')

        radius = wifi_config.get('geofence_radius') or current_app.config.get('DEFAULT_GEOFENCE_RADIUS', 50)
        ssid = wifi_config.get('ssid') or cls.generate_ssid(faculty)

        session = AttendanceSession(
            timetable_id=timetable.id,
            faculty_id=faculty.id,
            subject_id=subject_id,
            date=session_date or datetime.utcnow().date(),
            status=SessionStatus.SCHEDULED,
            wifi_ssid=ssid,
            wifi_bssid=wifi_config.get('bssid'),
            allowed_ips=[],
            geofence_radius=float(radius),
            latitude=float(latitude),
            longitude=float(longitude),
            room=location.get('room') or timetable.room
        )
        db.session.add(session)
        db.session.flush()

        teacher_ip = wifi_config.get('teacher_ip')
        gateway_ip = wifi_config.get('gateway_ip')
        if teacher_ip and not gateway_ip and teacher_ip.count('.') == 3:
            gateway_ip = '.'.join(teacher_ip.split('.')[:3]) + '.1'

        db.session.add(WifiSession(
            attendance_session_id=session.id,
            faculty_id=faculty.id,
            ssid=ssid,
            bssid=wifi_config.get('bssid'),
            ip_address=teacher_ip,
            gateway_ip=gateway_ip,
            center_latitude=session.latitude,
            center_longitude=session.longitude,
            radius=session.geofence_radius,
            status=WifiStatus.INACTIVE
        ))
        db.session.flush()

        return session

    @classmethod
    def schedule_session(cls, faculty: User, timetable_id: int, subject_id: int = None,
                         wifi_config: Dict = None, location: Dict = None,
                         session_date: date = None) -> AttendanceSession:
        """Create a session in ``scheduled``; no roster is taken yet."""
        cls._require_faculty(faculty)
        session = cls._build_session(faculty, timetable_id, subject_id, wifi_config, location, session_date)
        db.session.commit()

        current_app.logger.info(f"Session {session.id} scheduled by faculty {faculty.id}")
        return session

    @classmethod
    def _activate(cls, session: AttendanceSession, now: datetime) -> None:
        """Roster snapshot, absent records, counters and hotspot; no commit."""
        timetable = session.timetable
        roster = User.roster(timetable.semester, timetable.branch, timetable.section)
        # Loaded before any change so the index check happens at commit, not on autoflush
        wifi_session = session.wifi_session

        session.status = SessionStatus.ACTIVE
        session.started_at = now

        db.session.add_all([
            AttendanceRecord(
                session_id=session.id,
                student_id=student.id,
                subject_id=session.subject_id,
                date=session.date,
                status=AttendanceStatus.ABSENT
            )
            for student in roster
        ])

        session.total_students = len(roster)
        session.absent_count = len(roster)
        session.present_count = 0
        session.late_count = 0
        session.excused_count = 0

        wifi_session.status = WifiStatus.ACTIVE
        wifi_session.started_at = now

    @classmethod
    def _commit_activation(cls, session: AttendanceSession) -> None:
        try:
            db.session.commit()
        except IntegrityError:
            # Lost the race against a concurrent start for the same faculty
            db.session.rollback()
            raise PreconditionError(ACTIVE_SESSION_EXISTS, code='active_session_exists')

        current_app.logger.info(
            f"Session {session.id} active for faculty {session.faculty_id} "
            f"with {session.total_students} students"
        )
        notifier.session_started(session)

    @classmethod
    def activate_session(cls, session_id: int, actor: User, now: datetime = None) -> AttendanceSession:
        session = cls.get_session(session_id)
        cls._require_owner(session, actor, 'start this session')

        if session.status != SessionStatus.SCHEDULED:
            raise PreconditionError(
                f"Cannot activate a {session.status.value} session", code='invalid_transition'
            )
        if AttendanceSession.find_active_for_faculty(session.faculty_id):
            raise PreconditionError(ACTIVE_SESSION_EXISTS, code='active_session_exists')

        cls._activate(session, now or datetime.utcnow())
        cls._commit_activation(session)
        return session

    @classmethod
    def start_session(cls, faculty: User, timetable_id: int, subject_id: int = None,
                      wifi_config: Dict = None, location: Dict = None,
                      now: datetime = None) -> AttendanceSession:
        """Schedule and activate in one transaction."""
        cls._require_faculty(faculty)

        # The partial unique index still guards the race; this gives a clean error
        if AttendanceSession.find_active_for_faculty(faculty.id):
            raise PreconditionError(ACTIVE_SESSION_EXISTS, code='active_session_exists')

        now = now or datetime.utcnow()
        try:
            session = cls._build_session(faculty, timetable_id, subject_id, wifi_config, location, now.date())
            cls._activate(session, now)
        except IntegrityError:
            db.session.rollback()
            raise PreconditionError(ACTIVE_SESSION_EXISTS, code='active_session_exists')
        except Exception:
            db.session.rollback()
            raise

        cls._commit_activation(session)
        return session

    @staticmethod
    def recount(session_id: int) -> Dict[str, int]:
        """Authoritative per-status counts from the records themselves."""
        rows = db.session.query(
            AttendanceRecord.status, func.count(AttendanceRecord.id)
        ).filter(
            AttendanceRecord.session_id == session_id
        ).group_by(AttendanceRecord.status).all()

        counts = {status.value: 0 for status in AttendanceStatus}
        for status, count in rows:
            counts[status.value] = count
        return counts

    @classmethod
    def end_session(cls, session_id: int, actor: User, now: datetime = None) -> Dict[str, Any]:
        """Complete the session, reconciling counters from the records."""
        session = cls.get_session(session_id)
        cls._require_owner(session, actor, 'end this session')

        if session.status != SessionStatus.ACTIVE:
            raise PreconditionError(
                f"Cannot end a {session.status.value} session", code='invalid_transition'
            )

        counts = cls.recount(session.id)
        drift = counts['present'] != session.present_count or counts['absent'] != session.absent_count \
            or counts['late'] != session.late_count
        if drift:
            current_app.logger.warning(
                f"Session {session.id} counters drifted: stored present={session.present_count} "
                f"absent={session.absent_count} late={session.late_count}, recount {counts}"
            )

        now = now or datetime.utcnow()
        session.present_count = counts['present']
        session.absent_count = counts['absent']
        session.late_count = counts['late']
        session.excused_count = counts['excused']
        session.status = SessionStatus.COMPLETED
        session.ended_at = now

        if session.wifi_session and session.wifi_session.is_active():
            session.wifi_session.close(now)

        db.session.commit()

        statistics = session.statistics()
        statistics['duration_minutes'] = session.duration_minutes()

        current_app.logger.info(f"Session {session.id} completed: {statistics}")
        notifier.session_ended(session, statistics)
        return statistics

    @classmethod
    def cancel_session(cls, session_id: int, actor: User, now: datetime = None) -> AttendanceSession:
        session = cls.get_session(session_id)
        cls._require_owner(session, actor, 'cancel this session')

        if session.status not in (SessionStatus.SCHEDULED, SessionStatus.ACTIVE):
            raise PreconditionError(
                f"Cannot cancel a {session.status.value} session", code='invalid_transition'
            )

        now = now or datetime.utcnow()
        session.status = SessionStatus.CANCELLED
        session.cancelled_at = now
        if session.wifi_session and session.wifi_session.is_active():
            session.wifi_session.close(now)

        db.session.commit()

        current_app.logger.info(f"Session {session.id} cancelled by user {actor.id}")
        notifier.session_cancelled(session)
        return session

    # =================== MANUAL OVERRIDE ===================

    @classmethod
    def override_record(cls, record_id: int, actor: User, new_status, reason: str = None,
                        now: datetime = None) -> AttendanceRecord:
        """Faculty correction of one record, bypassing the verification pipeline.

        Counters move by the delta between the old and new bucket while the
        session is active; once completed the final statistics stay frozen.
        """
        record = db.session.get(AttendanceRecord, record_id)
        if not record:
            raise NotFoundError("Attendance record not found", code='record_not_found')

        session = record.session
        cls._require_owner(session, actor, 'modify this record')

        if session.status == SessionStatus.CANCELLED:
            raise PreconditionError("Session was cancelled", code='invalid_transition')

        new_status = AttendanceStatus(new_status)
        now = now or datetime.utcnow()
        values = {
            AttendanceRecord.status: new_status,
            AttendanceRecord.verification_method: VerificationMethod.MANUAL,
            AttendanceRecord.override_applied: True,
            AttendanceRecord.override_reason: reason,
            AttendanceRecord.overridden_by_id: actor.id,
            AttendanceRecord.overridden_at: now,
            AttendanceRecord.marked_at: now
        }

        # Conditional on the status read, so the counter delta matches what was replaced
        for _ in range(OVERRIDE_ATTEMPTS):
            previous_status = record.status
            updated = db.session.query(AttendanceRecord).filter(
                AttendanceRecord.id == record.id,
                AttendanceRecord.status == previous_status
            ).update(values, synchronize_session=False)
            if updated:
                break
            db.session.refresh(record)
        else:
            db.session.rollback()
            raise PreconditionError("Record is being updated, try again", code='concurrent_update')

        if previous_status != new_status and session.is_active():
            AttendanceSession.adjust_counters(session.id, previous_status.value, new_status.value)

        db.session.commit()
        db.session.refresh(record)

        current_app.logger.info(
            f"Record {record.id} overridden {previous_status.value} -> {new_status.value} by user {actor.id}"
        )
        notifier.attendance_overridden(session, record)
        return record

    # =================== QUERIES ===================

    @staticmethod
    def active_session_for(faculty: User) -> Optional[AttendanceSession]:
        return AttendanceSession.find_active_for_faculty(faculty.id)

    @classmethod
    def session_records(cls, session_id: int, actor: User) -> List[AttendanceRecord]:
        session = cls.get_session(session_id)
        cls._require_owner(session, actor, 'view this session')

        return AttendanceRecord.query.join(
            User, AttendanceRecord.student_id == User.id
        ).filter(
            AttendanceRecord.session_id == session.id
        ).order_by(User.roll_number, User.id).all()

    @staticmethod
    def faculty_history(faculty: User, subject_id: int = None, start_date: date = None,
                        end_date: date = None) -> List[AttendanceSession]:
        query = AttendanceSession.query.filter_by(faculty_id=faculty.id)

        if subject_id:
            query = query.filter_by(subject_id=subject_id)
        if start_date:
            query = query.filter(AttendanceSession.date >= start_date)
        if end_date:
            query = query.filter(AttendanceSession.date <= end_date)

        return query.order_by(AttendanceSession.date.desc(), AttendanceSession.id.desc()).all()

    @staticmethod
    def student_history(student: User, subject_id: int = None, start_date: date = None,
                        end_date: date = None) -> Dict[str, Any]:
        query = AttendanceRecord.query.filter_by(student_id=student.id)

        if subject_id:
            query = query.filter_by(subject_id=subject_id)
        if start_date:
            query = query.filter(AttendanceRecord.date >= start_date)
        if end_date:
            query = query.filter(AttendanceRecord.date <= end_date)

        records = query.order_by(AttendanceRecord.date.desc(), AttendanceRecord.id.desc()).all()

        stats = {status.value: 0 for status in AttendanceStatus}
        for record in records:
            stats[record.status.value] += 1
        stats['total'] = len(records)
        stats['percentage'] = (
            round((stats['present'] + stats['late']) / stats['total'] * 100)
            if stats['total'] > 0 else 0
        )

        return {'stats': stats, 'records': records}

    @staticmethod
    def active_sessions_for_student(student: User) -> List[Dict[str, Any]]:
        """Active sessions for the student's class, with their own status."""
        sessions = AttendanceSession.query.join(
            Timetable, AttendanceSession.timetable_id == Timetable.id
        ).filter(
            AttendanceSession.status == SessionStatus.ACTIVE,
            Timetable.semester == student.semester,
            Timetable.branch == student.branch,
            Timetable.section == (student.section or 'A')
        ).order_by(AttendanceSession.started_at.desc()).all()

        records = {
            record.session_id: record
            for record in AttendanceRecord.query.filter(
                AttendanceRecord.student_id == student.id,
                AttendanceRecord.session_id.in_([s.id for s in sessions])
            ).all()
        } if sessions else {}

        result = []
        for session in sessions:
            record = records.get(session.id)
            data = session.to_dict()
            data['faculty_name'] = session.faculty.name if session.faculty else None
            data['student_status'] = record.status.value if record else AttendanceStatus.ABSENT.value
            data['has_marked'] = bool(record and record.is_marked())
            result.append(data)

        return result
