"""Face API: reference vector enrolment and standalone checks."""
from flask import Blueprint, g, request

from campus_attendance.services.face_service import FaceService
from campus_attendance.utils.decorators import login_required, student_required
from campus_attendance.utils.helpers import error_response, success_response

face_bp = Blueprint('face', __name__)


def _capture_encoding():
    """Encoding from a multipart ``face_image`` upload or a JSON body."""
    upload = request.files.get('face_image')
    if upload is not None:
        return FaceService.encoding_from_upload(upload.read())

    payload = request.get_json(silent=True)
    if payload is None:
        payload = request.form.to_dict()
    return FaceService.encoding_from_payload(payload)


@face_bp.route('/register', methods=['POST'])
@login_required
def register():
    encoding = _capture_encoding()
    FaceService.register(g.current_user, encoding)

    return success_response(
        data=FaceService.status(g.current_user),
        message='Face registered successfully'
    )


@face_bp.route('/verify', methods=['POST'])
@student_required
def verify():
    """Compare a capture with the stored vector; a first capture enrols."""
    match = FaceService.verify(g.current_user, _capture_encoding())

    if match.enrolled:
        return success_response(
            data={'verified': True, 'confidence': match.confidence, 'first_time_registration': True},
            message='Face registered and verified'
        )

    if match.verified:
        return success_response(
            data={'verified': True, 'confidence': match.confidence},
            message='Face verification successful'
        )

    return error_response(
        'Face verification failed. Face does not match registered face.',
        400,
        reason='face_mismatch',
        detail={
            'confidence': round(match.confidence, 4),
            'threshold': match.threshold,
            'comparable': match.comparable
        }
    )


@face_bp.route('/status', methods=['GET'])
@login_required
def status():
    return success_response(data=FaceService.status(g.current_user))


@face_bp.route('/remove', methods=['DELETE'])
@login_required
def remove():
    FaceService.remove(g.current_user)
    return success_response(message='Face data removed successfully')
