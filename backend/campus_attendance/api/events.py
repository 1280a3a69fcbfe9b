"""Server-Sent Events stream of realtime attendance events."""
import json

from flask import Blueprint, Response, current_app, g, request

from campus_attendance import notifier
from campus_attendance.models.attendance import AttendanceRecord
from campus_attendance.services.notification_service import session_channel, user_channel
from campus_attendance.services.session_service import SessionService
from campus_attendance.utils.decorators import login_required
from campus_attendance.utils.exceptions import AuthorizationError

events_bp = Blueprint('events', __name__)


def _format(event: dict) -> str:
    return f"event: {event['type']}\ndata: {json.dumps(event, default=str)}\n\n"


def _channels_for(user, session_id):
    """The user's own channel, plus one session channel they may watch."""
    channels = [user_channel(user.id), 'sessions']
    if session_id is None:
        return channels

    session = SessionService.get_session(session_id)
    allowed = session.is_owned_by(user) or AttendanceRecord.query.filter_by(
        session_id=session.id, student_id=user.id
    ).first() is not None
    if not allowed:
        raise AuthorizationError("Not authorized to watch this session")

    channels.append(session_channel(session.id))
    return channels


@events_bp.route('/stream', methods=['GET'])
@login_required
def stream():
    """Stream events; the token may be sent as ``?token=`` for EventSource."""
    session_id = request.args.get('session_id', type=int)
    channels = _channels_for(g.current_user, session_id)
    heartbeat = current_app.config.get('SSE_HEARTBEAT_SECONDS', 30)
    subscription = notifier.subscribe(channels)

    def event_stream():
        try:
            yield _format({'type': 'connected', 'channels': channels})
            while True:
                event = subscription.get(timeout=heartbeat)
                if event is None:
                    yield ": heartbeat\n\n"
                else:
                    yield _format(event)
        finally:
            subscription.close()

    return Response(
        event_stream(),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'}
    )
