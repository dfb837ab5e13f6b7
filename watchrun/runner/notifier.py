"""Fire-and-forget change notifications for log consumers."""

from __future__ import annotations

import logging
from collections.abc import Callable
from queue import Empty, Full, Queue
from threading import Lock

__all__ = ["SyncNotifier", "SyncSubscription"]

logger = logging.getLogger(__name__)


class SyncSubscription:
    """Bounded queue subscription; a full queue drops new signals."""

    def __init__(self, queue: Queue[bool], closer: Callable[[], None]) -> None:
        self._queue = queue
        self._closer = closer
        self._closed = False

    def offer(self) -> bool:
        try:
            self._queue.put_nowait(True)
        except Full:
            return False
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block until a signal is pending; return ``False`` on timeout."""

        try:
            self._queue.get(timeout=timeout)
        except Empty:
            return False
        return True

    def drain(self) -> int:
        drained = 0
        while True:
            try:
                self._queue.get_nowait()
            except Empty:
                return drained
            drained += 1

    def close(self) -> None:
        if not self._closed:
            self._closer()
            self._closed = True


class SyncNotifier:
    """Tell an external aggregator that observable state changed.

    :meth:`notify` never blocks. Signals are opaque, so when a subscriber
    already has one pending the new one is dropped; a consumer that drains
    its queue always sees at least one signal after the latest change.
    """

    def __init__(self) -> None:
        self._listeners: list[Callable[[], None]] = []
        self._subscriptions: dict[int, SyncSubscription] = {}
        self._lock = Lock()
        self._token = 0
        self.sent = 0
        self.dropped = 0

    def notify(self) -> None:
        with self._lock:
            self.sent += 1
            listeners = list(self._listeners)
            subscriptions = list(self._subscriptions.values())
        for subscription in subscriptions:
            if not subscription.offer():
                with self._lock:
                    self.dropped += 1
        for listener in listeners:
            try:
                listener()
            except Exception:  # noqa: BLE001 - listeners must not break writers
                logger.exception("Sync listener failed")

    def add_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a non-blocking callback; returns a remover."""

        with self._lock:
            self._listeners.append(callback)

        def _remove() -> None:
            with self._lock:
                try:
                    self._listeners.remove(callback)
                except ValueError:  # pragma: no cover - already removed
                    pass

        return _remove

    def subscribe(self, maxsize: int = 1) -> SyncSubscription:
        with self._lock:
            token = self._token
            self._token += 1

        def _close() -> None:
            with self._lock:
                self._subscriptions.pop(token, None)

        subscription = SyncSubscription(Queue(maxsize=maxsize), _close)
        with self._lock:
            self._subscriptions[token] = subscription
        return subscription
