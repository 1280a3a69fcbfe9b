"""Realtime notifier: best-effort fan-out of attendance events.

Events are published after the state change they describe has been
committed. Publishing never raises and never waits on a subscriber, so a
slow dashboard or an unreachable redis cannot fail a verification.
Delivery is at-most-once; clients recover current state via the read APIs.
"""
import json
import logging
import queue
import threading
from datetime import datetime
from functools import wraps
from typing import Any, Dict, Iterable, List, Optional

import redis

logger = logging.getLogger(__name__)


def session_channel(session_id: int) -> str:
    return f'session:{session_id}'


def user_channel(user_id: int) -> str:
    return f'user:{user_id}'


def best_effort(method):
    """Log and swallow failures while building or sending an event."""
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            method(self, *args, **kwargs)
        except Exception as e:
            self.logger.warning(f"Realtime event {method.__name__} not sent: {e}")
    return wrapper


class LocalSubscription:
    """Bounded queue fed by the in-process broadcaster."""

    def __init__(self, broadcaster: 'EventBroadcaster', channels: List[str], maxsize: int):
        self.broadcaster = broadcaster
        self.channels = channels
        self.queue = queue.Queue(maxsize=maxsize)

    def get(self, timeout: float = None) -> Optional[Dict[str, Any]]:
        try:
            if timeout == 0:
                return self.queue.get_nowait()
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        self.broadcaster.remove(self)


class EventBroadcaster:
    """In-process channel broadcaster backing the SSE stream."""

    def __init__(self, queue_size: int = 50):
        self.queue_size = queue_size
        self.subscriptions: List[LocalSubscription] = []
        self.lock = threading.Lock()

    def subscribe(self, channels: Iterable[str]) -> LocalSubscription:
        subscription = LocalSubscription(self, list(channels), self.queue_size)
        with self.lock:
            self.subscriptions.append(subscription)
        return subscription

    def remove(self, subscription: LocalSubscription) -> None:
        with self.lock:
            if subscription in self.subscriptions:
                self.subscriptions.remove(subscription)

    def publish(self, channel: str, event: Dict[str, Any]) -> int:
        """Deliver to every subscriber of ``channel``; full queues drop the event."""
        delivered = 0
        with self.lock:
            targets = [s for s in self.subscriptions if channel in s.channels]

        for subscription in targets:
            try:
                subscription.queue.put_nowait(event)
                delivered += 1
            except queue.Full:
                logger.warning("Subscriber queue full on %s, dropping %s", channel, event.get('type'))

        return delivered


class RedisSubscription:
    """Pub/sub subscription for multi-process deployments."""

    def __init__(self, client: 'redis.Redis', channels: List[str]):
        self.pubsub = client.pubsub(ignore_subscribe_messages=True)
        self.pubsub.subscribe(*channels)

    def get(self, timeout: float = None) -> Optional[Dict[str, Any]]:
        message = self.pubsub.get_message(timeout=timeout or 0)
        if not message or message.get('type') != 'message':
            return None
        return json.loads(message['data'])

    def close(self) -> None:
        self.pubsub.close()


class RealtimeNotifier:
    """Flask extension publishing session and verification milestones."""

    def __init__(self, app=None):
        self.broadcaster = EventBroadcaster()
        self.redis_client = None
        self.logger = logger
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self.broadcaster = EventBroadcaster(app.config.get('SSE_QUEUE_SIZE', 50))
        self.logger = app.logger
        self.redis_client = None

        redis_url = app.config.get('REDIS_URL')
        if redis_url:
            self.redis_client = redis.Redis.from_url(
                redis_url,
                socket_timeout=0.5,
                socket_connect_timeout=0.5,
                decode_responses=True
            )

        app.extensions['realtime_notifier'] = self

    def subscribe(self, channels: Iterable[str]):
        if self.redis_client is not None:
            return RedisSubscription(self.redis_client, list(channels))
        return self.broadcaster.subscribe(channels)

    def publish(self, event_type: str, data: Dict[str, Any], channels: Iterable[str]) -> None:
        """Publish ``event_type`` to each channel. Never raises."""
        for channel in channels:
            event = {
                'type': event_type,
                'channel': channel,
                'data': data,
                'timestamp': datetime.utcnow().isoformat()
            }
            try:
                if self.redis_client is not None:
                    self.redis_client.publish(channel, json.dumps(event, default=str))
                else:
                    self.broadcaster.publish(channel, event)
            except Exception as e:
                self.logger.warning(f"Realtime publish of {event_type} to {channel} failed: {e}")

    # =================== EVENT HELPERS ===================

    @best_effort
    def session_started(self, session) -> None:
        self.publish('session_started', {
            'session_id': session.id,
            'wifi_ssid': session.wifi_ssid,
            'room': session.room,
            'subject': session.subject.to_summary() if session.subject else None,
            'faculty_name': session.faculty.name if session.faculty else None,
            'total_students': session.total_students
        }, [session_channel(session.id), 'sessions'])

    @best_effort
    def session_ended(self, session, statistics: Dict) -> None:
        self.publish('session_ended', {
            'session_id': session.id,
            'message': 'Attendance session has ended',
            'statistics': statistics
        }, [session_channel(session.id)])

    @best_effort
    def session_cancelled(self, session) -> None:
        self.publish('session_cancelled', {
            'session_id': session.id,
            'message': 'Attendance session was cancelled'
        }, [session_channel(session.id)])

    @best_effort
    def device_joined(self, session_id: int, student, ip_address: Optional[str]) -> None:
        self.publish('device_joined', {
            'session_id': session_id,
            'student_id': student.id,
            'student_name': student.name,
            'roll_number': student.roll_number,
            'ip_address': ip_address
        }, [session_channel(session_id)])

    @best_effort
    def location_confirmed(self, session_id: int, student, distance: float) -> None:
        self.publish('location_confirmed', {
            'session_id': session_id,
            'student_id': student.id,
            'student_name': student.name,
            'distance': round(distance, 2)
        }, [session_channel(session_id)])

    @best_effort
    def face_check_started(self, session_id: int, student) -> None:
        self.publish('face_check_started', {
            'session_id': session_id,
            'student_id': student.id,
            'student_name': student.name
        }, [session_channel(session_id)])

    @best_effort
    def attendance_marked(self, session, record) -> None:
        student = record.student
        self.publish('attendance_update', {
            'session_id': session.id,
            'student_id': student.id,
            'student_name': student.name,
            'roll_number': student.roll_number,
            'status': record.status.value,
            'marked_at': record.marked_at.isoformat() if record.marked_at else None
        }, [session_channel(session.id)])
        self.publish('attendance_confirmed', {
            'session_id': session.id,
            'status': record.status.value,
            'subject_name': session.subject.name if session.subject else None
        }, [user_channel(student.id)])

    @best_effort
    def attendance_overridden(self, session, record) -> None:
        self.publish('attendance_overridden', {
            'session_id': session.id,
            'record_id': record.id,
            'new_status': record.status.value,
            'reason': record.override_reason,
            'subject_name': session.subject.name if session.subject else None
        }, [user_channel(record.student_id), session_channel(session.id)])
