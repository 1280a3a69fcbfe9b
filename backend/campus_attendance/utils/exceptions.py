"""Exceptions raised by the attendance services.

Blueprints translate these into the JSON error envelope. Verification
failures (too far, face mismatch, incomplete) are not exceptions; they are
returned as ``VerificationOutcome`` values.
"""


class AttendanceError(Exception):
    """Base class for business-rule errors surfaced to API callers."""

    status_code = 400
    code = 'attendance_error'

    def __init__(self, message: str, code: str = None, status_code: int = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code


class PreconditionError(AttendanceError):
    """The caller must fix a precondition before retrying."""

    status_code = 400
    code = 'precondition_failed'


class NotFoundError(PreconditionError):
    """A referenced session, record or hotspot does not exist."""

    status_code = 404
    code = 'not_found'


class AuthorizationError(AttendanceError):
    """Wrong role, or not the owner of the session."""

    status_code = 403
    code = 'forbidden'


class DataIntegrityError(AttendanceError):
    """Stored data contradicts an invariant; not correctable by the user."""

    status_code = 500
    code = 'data_integrity'
