"""Three-factor attendance verification: hotspot, geofence, face.

Each call is self-contained. All three factors must pass in the same request
for the record to be marked; evidence from a partial attempt is stored on the
record for the faculty dashboard but never changes its status.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from flask import current_app

from campus_attendance import db, notifier
from campus_attendance.models.attendance import AttendanceRecord, AttendanceStatus, VerificationMethod
from campus_attendance.models.attendance_session import AttendanceSession
from campus_attendance.services.face_service import FaceService
from campus_attendance.services.geo_service import GeoService
from campus_attendance.services.wifi_service import WifiService
from campus_attendance.utils.exceptions import DataIntegrityError, PreconditionError


class VerificationStage(Enum):
    """Stages in the order they are evaluated."""
    WIFI = 'wifi'
    LOCATION = 'location'
    FACE = 'face'


class FailureReason(Enum):
    TOO_FAR = 'too_far'
    FACE_MISMATCH = 'face_mismatch'
    INCOMPLETE = 'incomplete'


@dataclass
class WifiEvidence:
    ssid: str
    bssid: Optional[str] = None
    ip_address: Optional[str] = None
    mac_address: Optional[str] = None
    device_info: Optional[str] = None


@dataclass
class LocationEvidence:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None


@dataclass
class FaceEvidence:
    encoding: List[float]


@dataclass
class VerificationResults:
    """Which factors passed in this call."""
    wifi: bool = False
    location: bool = False
    face: bool = False

    def next_step(self) -> Optional[str]:
        for stage in VerificationStage:
            if not getattr(self, stage.value):
                return stage.value
        return None

    def all_passed(self) -> bool:
        return self.wifi and self.location and self.face

    def to_dict(self) -> Dict[str, bool]:
        return {'wifi': self.wifi, 'location': self.location, 'face': self.face}


@dataclass
class VerificationOutcome:
    """Result of one verify call; failures are values, not exceptions."""
    success: bool
    verification_results: VerificationResults
    status: str
    message: str
    reason: Optional[FailureReason] = None
    detail: Dict[str, Any] = field(default_factory=dict)
    already_marked: bool = False
    face_enrolled: bool = False

    @property
    def next_step(self) -> Optional[str]:
        return self.verification_results.next_step()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'status': self.status,
            'message': self.message,
            'reason': self.reason.value if self.reason else None,
            'detail': self.detail,
            'verification_results': self.verification_results.to_dict(),
            'next_step': self.next_step,
            'already_marked': self.already_marked,
            'face_enrolled': self.face_enrolled
        }


class VerificationService:
    """Runs the verification pipeline for one student and one session."""

    @staticmethod
    def _load(session_id: int, student) -> tuple:
        session = db.session.get(AttendanceSession, session_id)
        if not session or not session.is_active():
            raise PreconditionError('No active attendance session found', code='no_active_session')

        record = AttendanceRecord.query.filter_by(session_id=session.id, student_id=student.id).first()
        if not record:
            current_app.logger.error(
                f"No attendance record for student {student.id} in active session {session.id}"
            )
            raise DataIntegrityError('Attendance could not be recorded', code='record_not_found')

        return session, record

    @staticmethod
    def _check_wifi(session: AttendanceSession, record: AttendanceRecord, student,
                    evidence: WifiEvidence, now: datetime, events: List[Callable]) -> bool:
        wifi_session = session.wifi_session
        if not wifi_session or not wifi_session.is_active():
            return False
        if not wifi_session.matches(evidence.ssid, evidence.bssid):
            return False

        record.wifi_verified = True
        record.wifi_ssid = evidence.ssid
        record.wifi_ip_address = evidence.ip_address
        record.wifi_verified_at = now

        WifiService.upsert_device(
            wifi_session, student.id, evidence.ip_address,
            evidence.mac_address, evidence.device_info, now
        )

        allowed_ips = list(session.allowed_ips or [])
        if evidence.ip_address and evidence.ip_address not in allowed_ips:
            # Reassign so the JSON column is flagged dirty
            session.allowed_ips = allowed_ips + [evidence.ip_address]

        events.append(lambda: notifier.device_joined(session.id, student, evidence.ip_address))
        return True

    @classmethod
    def verify(cls, session_id: int, student, wifi: WifiEvidence = None,
               location: LocationEvidence = None, face: FaceEvidence = None,
               now: datetime = None) -> VerificationOutcome:
        """Evaluate the evidence supplied in this call and mark the record if all of it passes.

        Raises ``PreconditionError`` when the session is not active and
        ``DataIntegrityError`` when the student has no pre-created record.
        """
        session, record = cls._load(session_id, student)
        now = now or datetime.utcnow()
        results = VerificationResults()
        events: List[Callable] = []

        def finish(outcome: VerificationOutcome) -> VerificationOutcome:
            db.session.commit()
            for event in events:
                event()
            return outcome

        def failure(reason: FailureReason, message: str, detail: Dict = None) -> VerificationOutcome:
            current_app.logger.info(
                f"Verification {reason.value} for student {student.id} in session {session.id}: {message}"
            )
            return finish(VerificationOutcome(
                success=False,
                verification_results=results,
                status=record.status.value,
                message=message,
                reason=reason,
                detail=detail or {}
            ))

        # Stage 1: hotspot
        if wifi is not None:
            results.wifi = cls._check_wifi(session, record, student, wifi, now, events)

        # Stage 2: geofence
        if results.wifi and location is not None:
            check = GeoService.check_geofence(
                (location.latitude, location.longitude),
                (session.latitude, session.longitude),
                session.geofence_radius
            )
            distance = check['distance']
            if not check['is_inside']:
                return failure(
                    FailureReason.TOO_FAR,
                    f"You are {round(distance)}m away from the classroom. "
                    f"Required: within {round(session.geofence_radius)}m",
                    {'distance': round(distance, 2), 'radius': session.geofence_radius}
                )

            results.location = True
            record.location_verified = True
            record.location_latitude = location.latitude
            record.location_longitude = location.longitude
            record.location_accuracy = location.accuracy
            record.location_distance = round(distance, 2)
            record.location_verified_at = now
            events.append(lambda: notifier.location_confirmed(session.id, student, distance))

        # Stage 3: face
        match = None
        if results.wifi and results.location and face is not None:
            events.append(lambda: notifier.face_check_started(session.id, student))
            match = FaceService.match_user(student, face.encoding)
            if not match.verified:
                return failure(
                    FailureReason.FACE_MISMATCH,
                    'Face verification failed',
                    {
                        'confidence': round(match.confidence, 4),
                        'threshold': match.threshold,
                        'comparable': match.comparable
                    }
                )

            results.face = True
            record.face_verified = True
            record.face_confidence = match.confidence
            record.face_enrolled = match.enrolled
            record.face_verified_at = now

        if not results.all_passed():
            next_step = results.next_step()
            message = {
                'wifi': 'Connect to the session WiFi network to continue',
                'location': 'Share your location to continue',
                'face': 'Face verification required to continue'
            }[next_step]
            return failure(FailureReason.INCOMPLETE, message, {'next_step': next_step})

        # Only an unmarked record moves; present, late and excused stay as they are
        if record.status != AttendanceStatus.ABSENT:
            return finish(VerificationOutcome(
                success=True,
                verification_results=results,
                status=record.status.value,
                message=f"Attendance already marked as {record.status.value}",
                already_marked=True,
                face_enrolled=match.enrolled
            ))

        return cls._mark(session, record, student, results, match, now, events, finish)

    @staticmethod
    def _mark(session: AttendanceSession, record: AttendanceRecord, student,
              results: VerificationResults, match, now: datetime,
              events: List[Callable], finish) -> VerificationOutcome:
        """Move the record out of ``absent`` exactly once."""
        late_threshold = current_app.config.get('LATE_THRESHOLD_MINUTES', 15)
        lateness = (now - session.started_at).total_seconds() / 60 if session.started_at else 0
        new_status = AttendanceStatus.LATE if lateness > late_threshold else AttendanceStatus.PRESENT
        # A concurrent verify or override that got there first wins
        updated = db.session.query(AttendanceRecord).filter(
            AttendanceRecord.id == record.id,
            AttendanceRecord.status == AttendanceStatus.ABSENT
        ).update({
            AttendanceRecord.status: new_status,
            AttendanceRecord.marked_at: now,
            AttendanceRecord.verification_method: VerificationMethod.WIFI_FACE
        }, synchronize_session=False)

        if not updated:
            db.session.commit()
            db.session.refresh(record)
            return VerificationOutcome(
                success=True,
                verification_results=results,
                status=record.status.value,
                message=f"Attendance already marked as {record.status.value}",
                already_marked=True,
                face_enrolled=match.enrolled
            )

        if not AttendanceSession.adjust_counters(session.id, AttendanceStatus.ABSENT.value, new_status.value):
            # Session ended or was cancelled mid-request
            db.session.rollback()
            raise PreconditionError('No active attendance session found', code='no_active_session')

        outcome = finish(VerificationOutcome(
            success=True,
            verification_results=results,
            status=new_status.value,
            message=f"Attendance marked as {new_status.value}",
            face_enrolled=match.enrolled
        ))

        db.session.refresh(record)
        current_app.logger.info(
            f"Student {student.id} marked {new_status.value} in session {session.id} "
            f"({round(lateness, 1)} min after start)"
        )
        notifier.attendance_marked(session, record)
        return outcome
