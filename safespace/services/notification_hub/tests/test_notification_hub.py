"""Tests for NotificationHub fan-out."""
import threading
import pytest

from safespace.shared.models import StatusSnapshot
from safespace.services.notification_hub import NotificationHub


def snapshot(sequence, school_id="school_001"):
    return StatusSnapshot(school_id=school_id, alerts=(), sequence=sequence)


@pytest.fixture
def hub():
    return NotificationHub(queue_size=4)


class TestSubscribe:
    def test_initial_snapshot_delivered_first(self, hub):
        subscription = hub.subscribe("school_001", initial=snapshot(0))
        hub.publish(snapshot(1))

        assert subscription.get(timeout=1).sequence == 0
        assert subscription.get(timeout=1).sequence == 1

    def test_get_times_out_with_none(self, hub):
        subscription = hub.subscribe("school_001")
        assert subscription.get(timeout=0.01) is None

    def test_subscriber_count(self, hub):
        hub.subscribe("school_001")
        hub.subscribe("school_001")
        assert hub.subscriber_count("school_001") == 2
        assert hub.subscriber_count("school_002") == 0


class TestPublish:
    def test_delivers_to_all_subscribers_of_school(self, hub):
        first = hub.subscribe("school_001")
        second = hub.subscribe("school_001")

        delivered = hub.publish(snapshot(1))

        assert delivered == 2
        assert first.get(timeout=1).sequence == 1
        assert second.get(timeout=1).sequence == 1

    def test_other_schools_not_notified(self, hub):
        other = hub.subscribe("school_002")

        assert hub.publish(snapshot(1)) == 0
        assert other.get(timeout=0.01) is None

    def test_publish_without_subscribers(self, hub):
        assert hub.publish(snapshot(1)) == 0

    def test_slow_subscriber_keeps_newest(self, hub):
        subscription = hub.subscribe("school_001")

        for sequence in range(1, 11):
            hub.publish(snapshot(sequence))

        received = []
        while True:
            item = subscription.get(timeout=0.01)
            if item is None:
                break
            received.append(item.sequence)

        assert received == [7, 8, 9, 10]
        assert subscription.dropped == 6

    def test_publish_never_blocks_on_full_queue(self, hub):
        hub.subscribe("school_001")
        done = threading.Event()

        def flood():
            for sequence in range(1000):
                hub.publish(snapshot(sequence))
            done.set()

        threading.Thread(target=flood).start()
        assert done.wait(timeout=5)


class TestUnsubscribe:
    def test_no_delivery_after_unsubscribe(self, hub):
        subscription = hub.subscribe("school_001")
        hub.unsubscribe(subscription)

        assert hub.publish(snapshot(1)) == 0
        assert subscription.get(timeout=0.01) is None
        assert subscription.closed

    def test_pending_snapshots_discarded(self, hub):
        subscription = hub.subscribe("school_001", initial=snapshot(0))
        hub.unsubscribe(subscription)
        assert subscription.get(timeout=0.01) is None

    def test_unsubscribe_ends_blocked_iterator(self, hub):
        subscription = hub.subscribe("school_001")
        received = []

        def consume():
            for item in subscription:
                received.append(item.sequence)

        consumer = threading.Thread(target=consume)
        consumer.start()
        hub.publish(snapshot(1))
        hub.publish(snapshot(2))

        # Wait until both are consumed before closing
        for _ in range(100):
            if len(received) == 2:
                break
            threading.Event().wait(0.01)
        hub.unsubscribe(subscription)
        consumer.join(timeout=2)

        assert not consumer.is_alive()
        assert received == [1, 2]

    def test_unsubscribe_twice_is_harmless(self, hub):
        subscription = hub.subscribe("school_001")
        hub.unsubscribe(subscription)
        hub.unsubscribe(subscription)
        assert hub.subscriber_count("school_001") == 0
