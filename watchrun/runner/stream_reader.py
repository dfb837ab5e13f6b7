"""Line reader that pumps one child stream into the log buffer."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TextIO

from watchrun.runner.errors import SinkWriteFailure
from watchrun.runner.log_buffer import STDERR, STDOUT
from watchrun.runner.sink import OutputFileSink
from watchrun.runner.unit import ProcessUnit

__all__ = ["OutputStreamReader"]

logger = logging.getLogger(__name__)


class OutputStreamReader:
    """Read ``pipe`` until EOF on a daemon thread.

    Each line is appended to the buffer sequence named by ``stream``, the
    notifier is pinged, and the line is optionally echoed to the console
    logger and to ``sink``. ``on_finished`` is called exactly once when the
    stream closes.
    """

    def __init__(
        self,
        pipe: TextIO,
        stream: str,
        unit: ProcessUnit,
        *,
        sink: OutputFileSink | None = None,
        on_finished: Callable[[str], None] | None = None,
    ) -> None:
        if stream not in (STDOUT, STDERR):
            raise ValueError(f"Cannot read into '{stream}'")
        self.pipe = pipe
        self.stream = stream
        self.unit = unit
        self.sink = sink
        self.on_finished = on_finished
        self.finished = threading.Event()
        self.lines = 0
        self._thread: threading.Thread | None = None

    def start(self) -> OutputStreamReader:
        self._thread = threading.Thread(
            target=self._run,
            name=f"{self.unit.name}-{self.stream}",
            daemon=True,
        )
        self._thread.start()
        return self

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        try:
            with self.pipe:
                for line in iter(self.pipe.readline, ""):
                    self._handle(line.rstrip("\r\n"))
        except (OSError, ValueError) as exc:
            # pipe closed underneath us after a kill
            logger.debug("%s %s reader stopped: %s", self.unit.name, self.stream, exc)
        finally:
            self.finished.set()
            if self.on_finished is not None:
                self.on_finished(self.stream)

    def _handle(self, text: str) -> None:
        entry = self.unit.buffer.append(self.stream, text)
        self.lines += 1
        self.unit.notifier.notify()
        if self.unit.config.echo_console:
            logger.info("%s : %s", self.unit.name, text, extra={"stream": self.stream})
        if self.sink is not None and self.unit.config.echo_file:
            try:
                self.sink.write(text, entry.timestamp)
            except SinkWriteFailure as exc:
                if not self.unit.config.escalate(exc):
                    logger.warning("%s: %s", self.unit.name, exc)
