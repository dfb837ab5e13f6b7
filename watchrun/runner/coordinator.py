"""Track many concurrent supervised runs."""

from __future__ import annotations

import logging
import threading

from watchrun.runner.errors import RunnerError
from watchrun.runner.supervisor import CompletionGroup, ProcessSupervisor, TerminationSignal
from watchrun.runner.unit import ProcessUnit

__all__ = ["RunCoordinator"]

logger = logging.getLogger(__name__)


class RunCoordinator:
    """Start supervised runs on worker threads and stop them on request."""

    def __init__(self, supervisor: ProcessSupervisor | None = None) -> None:
        self.supervisor = supervisor or ProcessSupervisor()
        self.completion = CompletionGroup()
        self.errors: dict[str, RunnerError] = {}
        self._signals: dict[str, TerminationSignal] = {}
        self._threads: dict[str, threading.Thread] = {}
        self._lock = threading.Lock()

    def start(self, unit: ProcessUnit, *, wait_started: float | None = 5.0) -> bool:
        """Launch ``unit``; return ``True`` once the process is live.

        ``wait_started=None`` returns immediately without waiting.
        """

        with self._lock:
            if unit.name in self._signals:
                raise ValueError(f"Run '{unit.name}' is already active")
            termination = TerminationSignal()
            self._signals[unit.name] = termination
            self.errors.pop(unit.name, None)
        started = threading.Event()
        self.completion.add()
        thread = threading.Thread(
            target=self._run,
            args=(unit, termination, started),
            name=f"supervise-{unit.name}",
            daemon=True,
        )
        with self._lock:
            self._threads[unit.name] = thread
        thread.start()
        if wait_started is None:
            return False
        # a run that fails to start also sets the event, see _run
        started.wait(wait_started)
        with self._lock:
            return started.is_set() and unit.name not in self.errors

    def _run(
        self, unit: ProcessUnit, termination: TerminationSignal, started: threading.Event
    ) -> None:
        try:
            self.supervisor.supervise(unit, termination=termination, started=started)
        except RunnerError as exc:
            with self._lock:
                self.errors[unit.name] = exc
            started.set()
            logger.error("%s: %s", unit.name, exc)
        finally:
            with self._lock:
                self._signals.pop(unit.name, None)
                self._threads.pop(unit.name, None)
            # released last so wait() observes errors and a free name
            self.completion.done()

    @property
    def active(self) -> list[str]:
        with self._lock:
            return sorted(self._signals)

    def stop(self, name: str) -> bool:
        with self._lock:
            termination = self._signals.get(name)
        if termination is None:
            return False
        termination.fire()
        return True

    def stop_all(self) -> None:
        with self._lock:
            signals = list(self._signals.values())
        for termination in signals:
            termination.fire()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until every started run has fully stopped."""

        return self.completion.wait(timeout)
