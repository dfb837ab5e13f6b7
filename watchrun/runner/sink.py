"""Per-project output file that mirrors captured lines."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from threading import Lock

from watchrun.runner.errors import SinkWriteFailure

__all__ = ["OutputFileSink", "format_line"]

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_line(text: str, when: datetime) -> str:
    return f"{when.astimezone().strftime(TIME_FORMAT)} : {text}\r\n"


class OutputFileSink:
    """Append timestamped lines to one file for the duration of a run.

    The file is opened lazily on first write and kept open until
    :meth:`close`; both stream readers of a run share the instance.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._handle = None
        self._lock = Lock()
        self._closed = False

    def __enter__(self) -> OutputFileSink:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def write(self, text: str, when: datetime) -> None:
        line = format_line(text, when)
        with self._lock:
            if self._closed:
                raise SinkWriteFailure(f"Output file {self.path} is closed")
            try:
                if self._handle is None:
                    self.path.parent.mkdir(parents=True, exist_ok=True)
                    self._handle = self.path.open("a", encoding="utf-8", newline="")
                self._handle.write(line)
                self._handle.flush()
            except OSError as exc:
                raise SinkWriteFailure(f"Failed to write {self.path}: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            self._closed = True
            if self._handle is not None and not self._handle.closed:
                self._handle.close()
