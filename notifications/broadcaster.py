"""
In-process fan-out of election events to connected subscribers.

Delivery is best-effort: a subscriber whose queue is full misses the event,
and nothing is stored for subscribers that are not connected.
"""
import itertools
import logging
import queue
import threading

from django.conf import settings

logger = logging.getLogger(__name__)


class Subscriber:
    _ids = itertools.count(1)

    def __init__(self, maxsize):
        self.id = next(self._ids)
        self._queue = queue.Queue(maxsize=maxsize)

    def deliver(self, event, data):
        try:
            self._queue.put_nowait((event, data))
        except queue.Full:
            logger.debug('Subscriber %s is lagging, dropped %s event', self.id, event)
            return False
        return True

    def get(self, timeout=None):
        """Next pending event, or None when ``timeout`` elapses first."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


class Broadcaster:
    """Observer registry for push subscribers."""

    def __init__(self, queue_size=None):
        self.queue_size = queue_size or settings.NOTIFICATION_QUEUE_SIZE
        self._subscribers = set()
        self._lock = threading.Lock()

    def subscribe(self):
        subscriber = Subscriber(maxsize=self.queue_size)
        with self._lock:
            self._subscribers.add(subscriber)
        logger.info('Client connected: %s', subscriber.id)
        return subscriber

    def unsubscribe(self, subscriber):
        with self._lock:
            self._subscribers.discard(subscriber)
        logger.info('Client disconnected: %s', subscriber.id)

    @property
    def subscriber_count(self):
        return len(self._subscribers)

    def publish(self, event, data):
        """Hand ``event`` to every subscriber without blocking."""
        with self._lock:
            subscribers = list(self._subscribers)
        delivered = sum(1 for subscriber in subscribers if subscriber.deliver(event, data))
        return delivered


broadcaster = Broadcaster()
