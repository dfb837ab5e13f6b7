"""Append-only, thread-safe log buffer shared by a supervised run."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from threading import Lock

__all__ = ["LIFECYCLE", "STDERR", "STDOUT", "STREAMS", "LogBuffer", "LogEntry"]

STDOUT = "stdout"
STDERR = "stderr"
LIFECYCLE = "lifecycle"
STREAMS = (STDOUT, STDERR, LIFECYCLE)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LogEntry:
    """A single captured line."""

    timestamp: datetime
    text: str


class LogBuffer:
    """Three independently ordered sequences of :class:`LogEntry`.

    ``stdout`` and ``stderr`` hold captured process output, ``lifecycle``
    holds state transitions such as ``Started`` and ``Ended``. The stderr
    sequence doubles as the project error log: tool and command failures are
    appended there.

    Appends from concurrent readers are serialised by a single lock, and
    timestamps are clamped so they never go backwards inside one sequence.
    """

    def __init__(self) -> None:
        self._entries: dict[str, list[LogEntry]] = {stream: [] for stream in STREAMS}
        self._listeners: list[Callable[[str, LogEntry], None]] = []
        self._lock = Lock()

    def append(self, stream: str, text: str) -> LogEntry:
        if stream not in self._entries:
            raise ValueError(f"Unknown log stream '{stream}'")
        now = datetime.now(UTC)
        with self._lock:
            entries = self._entries[stream]
            if entries and entries[-1].timestamp > now:
                now = entries[-1].timestamp
            entry = LogEntry(timestamp=now, text=text)
            entries.append(entry)
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(stream, entry)
            except Exception:  # noqa: BLE001 - listeners must not break capture
                logger.exception("Log listener failed on %s", stream)
        return entry

    def append_stdout(self, text: str) -> LogEntry:
        return self.append(STDOUT, text)

    def append_stderr(self, text: str) -> LogEntry:
        return self.append(STDERR, text)

    def append_lifecycle(self, text: str) -> LogEntry:
        return self.append(LIFECYCLE, text)

    def snapshot(self, stream: str) -> list[LogEntry]:
        """Return a copy of one sequence that is safe to iterate."""

        with self._lock:
            return list(self._entries[stream])

    @property
    def stdout(self) -> list[LogEntry]:
        return self.snapshot(STDOUT)

    @property
    def stderr(self) -> list[LogEntry]:
        return self.snapshot(STDERR)

    @property
    def lifecycle(self) -> list[LogEntry]:
        return self.snapshot(LIFECYCLE)

    errors = stderr

    def counts(self) -> dict[str, int]:
        with self._lock:
            return {stream: len(entries) for stream, entries in self._entries.items()}

    def add_listener(self, callback: Callable[[str, LogEntry], None]) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(callback)

        def _remove() -> None:
            with self._lock:
                try:
                    self._listeners.remove(callback)
                except ValueError:  # pragma: no cover - already removed
                    pass

        return _remove
