"""In-process realtime notifier."""
from campus_attendance.services.notification_service import (
    EventBroadcaster, RealtimeNotifier, session_channel, user_channel
)


def test_channel_names():
    assert session_channel(7) == 'session:7'
    assert user_channel(3) == 'user:3'


def test_publish_reaches_only_matching_channel():
    notifier = RealtimeNotifier()
    watching = notifier.subscribe(['session:1'])
    elsewhere = notifier.subscribe(['session:2'])

    notifier.publish('attendance_update', {'student_id': 4}, ['session:1'])

    event = watching.get(timeout=0)
    assert event['type'] == 'attendance_update'
    assert event['channel'] == 'session:1'
    assert event['data'] == {'student_id': 4}
    assert 'timestamp' in event
    assert elsewhere.get(timeout=0) is None


def test_full_queue_drops_events():
    broadcaster = EventBroadcaster(queue_size=2)
    subscription = broadcaster.subscribe(['sessions'])

    delivered = [broadcaster.publish('sessions', {'type': 'tick', 'n': n}) for n in range(3)]

    assert delivered == [1, 1, 0]
    assert subscription.get(timeout=0)['n'] == 0
    assert subscription.get(timeout=0)['n'] == 1
    assert subscription.get(timeout=0) is None


def test_closed_subscription_stops_receiving():
    broadcaster = EventBroadcaster()
    subscription = broadcaster.subscribe(['sessions'])
    subscription.close()

    assert broadcaster.publish('sessions', {'type': 'tick'}) == 0


def test_helper_failures_are_swallowed():
    notifier = RealtimeNotifier()

    # object() has no .id: the helper logs and returns
    notifier.session_started(object())


def test_init_app_registers_extension(app):
    assert app.extensions['realtime_notifier'] is not None
    assert app.extensions['realtime_notifier'].redis_client is None
