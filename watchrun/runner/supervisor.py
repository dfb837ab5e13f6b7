"""Process supervisor: start a long-running program, stream it, kill it."""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from collections.abc import Callable, Mapping
from queue import Queue

import psutil

from watchrun.runner.errors import KillFailure, StartupError
from watchrun.runner.log_buffer import STDERR, STDOUT
from watchrun.runner.sink import OutputFileSink
from watchrun.runner.stream_reader import OutputStreamReader
from watchrun.runner.unit import ProcessUnit, RunState

__all__ = [
    "CompletionGroup",
    "ProcessSupervisor",
    "TerminationSignal",
]

logger = logging.getLogger(__name__)

TERMINATED = "terminated"


class TerminationSignal:
    """One-shot stop request for a supervised run."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._listeners: list[Callable[[], None]] = []
        self._lock = threading.Lock()

    def fire(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            listeners = list(self._listeners)
            self._listeners.clear()
        for listener in listeners:
            listener()

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    def add_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call ``callback`` once on fire, immediately if already fired."""

        with self._lock:
            fired = self._event.is_set()
            if not fired:
                self._listeners.append(callback)
        if fired:
            callback()

        def _remove() -> None:
            with self._lock:
                try:
                    self._listeners.remove(callback)
                except ValueError:
                    pass

        return _remove


class CompletionGroup:
    """Count outstanding runs; :meth:`wait` returns once all are done."""

    def __init__(self) -> None:
        self._count = 0
        self._cond = threading.Condition()

    def add(self, n: int = 1) -> None:
        with self._cond:
            self._count += n

    def done(self) -> None:
        with self._cond:
            if self._count <= 0:
                raise RuntimeError("CompletionGroup.done() called more times than add()")
            self._count -= 1
            if self._count == 0:
                self._cond.notify_all()

    @property
    def active(self) -> int:
        with self._cond:
            return self._count

    def wait(self, timeout: float | None = None) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: self._count == 0, timeout)


class ProcessSupervisor:
    """Own the lifetime of one child process per :meth:`supervise` call."""

    def __init__(self, *, base_env: Mapping[str, str] | None = None) -> None:
        self.base_env = dict(base_env or os.environ)

    def supervise(
        self,
        unit: ProcessUnit,
        *,
        termination: TerminationSignal | None = None,
        started: threading.Event | None = None,
        completion: CompletionGroup | None = None,
    ) -> None:
        """Run ``unit`` until it is terminated or one of its streams closes.

        Raises :class:`StartupError` when the process cannot be spawned and
        :class:`KillFailure` when it survives cleanup under the ``REPORT``
        policy. ``completion`` is released on every path.
        """

        try:
            self._supervise(unit, termination, started)
        finally:
            if completion is not None:
                completion.done()

    def _supervise(
        self,
        unit: ProcessUnit,
        termination: TerminationSignal | None,
        started: threading.Event | None,
    ) -> None:
        unit.state = RunState.STARTING
        process = self._spawn(unit)

        unit.pid = process.pid
        unit.state = RunState.RUNNING
        if started is not None:
            started.set()
        unit.buffer.append_lifecycle("Started")
        unit.notifier.notify()
        logger.info("%s : Started (pid=%s)", unit.name, process.pid)

        race: Queue[str] = Queue()
        remove_listener: Callable[[], None] | None = None
        try:
            sink = OutputFileSink(unit.output_path) if unit.config.echo_file else None
            unit.readers = list(self._start_readers(unit, process, sink, race))
            if termination is not None:
                remove_listener = termination.add_listener(lambda: race.put(TERMINATED))
            winner = race.get()
            logger.debug("%s: run ended by %s", unit.name, winner)
        finally:
            if remove_listener is not None:
                remove_listener()
            self._cleanup(unit, process)

    def _spawn(self, unit: ProcessUnit) -> subprocess.Popen[str]:
        argv = unit.argv
        try:
            process = subprocess.Popen(  # noqa: S603
                argv,
                cwd=str(unit.working_dir),
                env=dict(self.base_env),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except (OSError, ValueError) as exc:
            unit.state = RunState.FAILED
            logger.error("%s: failed to start %s: %s", unit.name, argv[0], exc)
            raise StartupError(f"Failed to start {argv[0]}: {exc}") from exc
        if process.stdout is None or process.stderr is None:  # pragma: no cover - Popen invariant
            process.kill()
            process.wait()
            unit.state = RunState.FAILED
            raise StartupError(f"Failed to capture output of {argv[0]}")
        return process

    def _start_readers(
        self,
        unit: ProcessUnit,
        process: subprocess.Popen[str],
        sink: OutputFileSink | None,
        race: Queue[str],
    ) -> tuple[OutputStreamReader, OutputStreamReader]:
        remaining = [2]
        lock = threading.Lock()

        def _finished(stream: str) -> None:
            race.put(stream)
            with lock:
                remaining[0] -= 1
                last = remaining[0] == 0
            # the last reader out owns the sink
            if last and sink is not None:
                sink.close()

        assert process.stdout is not None and process.stderr is not None
        stdout_reader = OutputStreamReader(
            process.stdout, STDOUT, unit, sink=sink, on_finished=_finished
        ).start()
        stderr_reader = OutputStreamReader(
            process.stderr, STDERR, unit, sink=sink, on_finished=_finished
        ).start()
        return stdout_reader, stderr_reader

    def _cleanup(self, unit: ProcessUnit, process: subprocess.Popen[str]) -> None:
        unit.state = RunState.STOPPING
        failure: KillFailure | None = None
        try:
            self._kill(process, unit.config.kill_timeout)
        except KillFailure as exc:
            failure = exc
            unit.buffer.append_lifecycle(f"Failed to stop: {exc}")
            logger.error("%s: failed to stop: %s", unit.name, exc)
        unit.state = RunState.STOPPED
        unit.buffer.append_lifecycle("Ended")
        logger.info("%s : Ended", unit.name)
        unit.notifier.notify()
        if failure is not None and not unit.config.escalate(failure):
            raise failure

    @staticmethod
    def _kill(process: subprocess.Popen[str], timeout: float) -> None:
        """Kill ``process`` and its direct children, then reap it."""

        try:
            children = psutil.Process(process.pid).children(recursive=False)
        except psutil.Error:
            children = []
        try:
            process.kill()
        except OSError as exc:
            raise KillFailure(f"kill pid {process.pid}: {exc}") from exc
        for child in children:
            try:
                child.kill()
            except psutil.NoSuchProcess:
                pass
            except psutil.Error as exc:
                logger.warning("Could not kill child pid %s: %s", child.pid, exc)
        try:
            process.wait(timeout=timeout)
        except subprocess.TimeoutExpired as exc:
            raise KillFailure(f"pid {process.pid} still running after {timeout}s") from exc
