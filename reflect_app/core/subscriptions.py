# reflect_app/core/subscriptions.py

import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

SnapshotCallback = Callable[[Dict[str, Any]], None]


class SnapshotHub:
    """
    Per-user push channel for garden snapshots.

    ``subscribe(user_id, callback)`` registers a listener and returns an
    unsubscribe function; ``publish(user_id, snapshot)`` delivers a snapshot
    to every listener of that user. Callbacks run synchronously on the
    publishing thread, so async adapters must hand off to their own loop.
    """

    def __init__(self):
        self._listeners: Dict[str, List[SnapshotCallback]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, user_id: str, callback: SnapshotCallback) -> Callable[[], None]:
        with self._lock:
            self._listeners[user_id].append(callback)
        logger.debug("Subscribed listener for user %s.", user_id)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(user_id, [])
                if callback in listeners:
                    listeners.remove(callback)
                if not listeners:
                    self._listeners.pop(user_id, None)
            logger.debug("Unsubscribed listener for user %s.", user_id)

        return unsubscribe

    def publish(self, user_id: str, snapshot: Dict[str, Any]) -> int:
        """Deliver *snapshot* to all listeners; returns the number notified."""
        with self._lock:
            listeners = list(self._listeners.get(user_id, []))
        for callback in listeners:
            try:
                callback(snapshot)
            except Exception as e:
                # Delivery continues past a failing listener.
                logger.error("Snapshot listener for user %s failed: %s", user_id, e)
        return len(listeners)

    def listener_count(self, user_id: str) -> int:
        with self._lock:
            return len(self._listeners.get(user_id, []))


garden_hub = SnapshotHub()
