"""Notification hub - in-process fan-out of live status snapshots.

Failure Handling:
    - Publishing never blocks and never raises to the triggering caller
    - A subscriber that falls behind loses its oldest pending snapshot;
      snapshots are full state, so the newest one supersedes it
    - Drops are logged for the operator, not escalated
"""
import logging
import queue
import threading
import uuid
from typing import Dict, Iterator, Optional

from safespace.shared.models import StatusSnapshot

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """Handle for one observer of one school's live status.

    Iterating yields snapshots lazily and blocks between deliveries. The
    iterator ends once the subscription is closed.
    """

    def __init__(self, school_id: str, queue_size: int = 16):
        self.subscription_id = f"sub_{uuid.uuid4().hex[:12]}"
        self.school_id = school_id
        self.dropped = 0
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def deliver(self, snapshot: StatusSnapshot) -> bool:
        """Enqueue without blocking. Returns False if nothing was queued."""
        if self.closed:
            return False
        try:
            self._queue.put_nowait(snapshot)
            return True
        except queue.Full:
            pass

        try:
            self._queue.get_nowait()
            self.dropped += 1
        except queue.Empty:
            pass

        try:
            self._queue.put_nowait(snapshot)
            return True
        except queue.Full:
            self.dropped += 1
            return False

    def get(self, timeout: Optional[float] = None) -> Optional[StatusSnapshot]:
        """Next snapshot, or None on timeout or once closed."""
        if self.closed:
            return None
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED or self.closed:
            return None
        return item

    def close(self) -> None:
        self._closed.set()
        # Wake a blocked reader
        try:
            self._queue.put_nowait(_CLOSED)
        except queue.Full:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                pass
            try:
                self._queue.put_nowait(_CLOSED)
            except queue.Full:
                pass

    def __iter__(self) -> Iterator[StatusSnapshot]:
        while True:
            snapshot = self.get()
            if snapshot is None:
                return
            yield snapshot


class NotificationHub:
    """Delivers each published snapshot to every subscriber of its school."""

    def __init__(self, queue_size: int = 16):
        """Initialize hub.

        Args:
            queue_size: Pending snapshots kept per subscriber
        """
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._subscribers: Dict[str, Dict[str, Subscription]] = {}

        logger.info(
            "NOTIFICATION_HUB_INITIALIZED",
            extra={"queue_size": queue_size}
        )

    def subscribe(
        self,
        school_id: str,
        initial: Optional[StatusSnapshot] = None,
    ) -> Subscription:
        """Register an observer for a school.

        Args:
            school_id: School to observe
            initial: Snapshot delivered first, typically the current state

        Returns:
            Subscription handle
        """
        subscription = Subscription(school_id, self.queue_size)
        if initial is not None:
            subscription.deliver(initial)

        with self._lock:
            self._subscribers.setdefault(school_id, {})[subscription.subscription_id] = subscription

        logger.info(
            "SUBSCRIPTION_OPENED",
            extra={
                "school_id": school_id,
                "subscription_id": subscription.subscription_id,
            }
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Release a subscription. No deliveries happen after return."""
        with self._lock:
            school_subs = self._subscribers.get(subscription.school_id, {})
            school_subs.pop(subscription.subscription_id, None)
            if not school_subs:
                self._subscribers.pop(subscription.school_id, None)

        subscription.close()

        logger.info(
            "SUBSCRIPTION_CLOSED",
            extra={
                "school_id": subscription.school_id,
                "subscription_id": subscription.subscription_id,
                "dropped": subscription.dropped,
            }
        )

    def publish(self, snapshot: StatusSnapshot) -> int:
        """Fan a snapshot out to the school's subscribers.

        Returns:
            Number of subscribers the snapshot was queued for
        """
        with self._lock:
            targets = list(self._subscribers.get(snapshot.school_id, {}).values())

        delivered = 0
        for subscription in targets:
            dropped_before = subscription.dropped
            if subscription.deliver(snapshot):
                delivered += 1
            if subscription.dropped != dropped_before:
                logger.warning(
                    "SUBSCRIBER_BACKLOG_DROPPED",
                    extra={
                        "school_id": snapshot.school_id,
                        "subscription_id": subscription.subscription_id,
                        "dropped": subscription.dropped,
                    }
                )

        logger.debug(
            "STATUS_SNAPSHOT_PUBLISHED",
            extra={
                "school_id": snapshot.school_id,
                "sequence": snapshot.sequence,
                "active_count": snapshot.active_count,
                "delivered": delivered,
            }
        )
        return delivered

    def subscriber_count(self, school_id: str) -> int:
        return len(self._subscribers.get(school_id, {}))
