# live.py
"""In-process publish/subscribe for live notification delivery."""
import logging
import threading
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

Subscriber = Callable[[dict], None]


def topic_for(user_id) -> str:
    return f"notifications.{user_id}"


class NotificationHub:
    def __init__(self):
        self._subscribers: Dict[str, List[Subscriber]] = {}
        self._lock = threading.Lock()

    def subscribe(self, topic: str, callback: Subscriber) -> None:
        with self._lock:
            self._subscribers.setdefault(topic, []).append(callback)

    def unsubscribe(self, topic: str, callback: Subscriber) -> None:
        with self._lock:
            callbacks = self._subscribers.get(topic)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del self._subscribers[topic]

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscribers.get(topic, []))

    def publish(self, topic: str, payload: dict) -> int:
        """Deliver ``payload`` to every subscriber of ``topic``.

        Returns how many subscribers received it. A subscriber that raises
        is dropped; the rest still get the payload.
        """
        with self._lock:
            callbacks = list(self._subscribers.get(topic, []))
        if not callbacks:
            logger.debug("No live subscribers on %s", topic)
            return 0

        delivered = 0
        for callback in callbacks:
            try:
                callback(payload)
                delivered += 1
            except Exception:
                logger.exception("Live subscriber on %s failed, dropping it", topic)
                self.unsubscribe(topic, callback)
        return delivered
