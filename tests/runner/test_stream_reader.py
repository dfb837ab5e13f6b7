from __future__ import annotations

import io
from datetime import datetime
from pathlib import Path

import pytest

from watchrun.runner import (
    FailurePolicy,
    LogBuffer,
    OutputStreamReader,
    ProcessUnit,
    RunConfig,
    SinkWriteFailure,
    SyncNotifier,
)


class BrokenSink:
    def __init__(self) -> None:
        self.attempts = 0

    def write(self, text: str, when: datetime) -> None:
        self.attempts += 1
        raise SinkWriteFailure("disk full")


def _unit(tmp_path: Path, **config: object) -> ProcessUnit:
    return ProcessUnit(
        name="reader",
        working_dir=tmp_path,
        executable=tmp_path / "bin",
        buffer=LogBuffer(),
        config=RunConfig(**config),  # type: ignore[arg-type]
        notifier=SyncNotifier(),
    )


def test_reader_appends_lines_and_signals_once(tmp_path: Path) -> None:
    unit = _unit(tmp_path)
    finished: list[str] = []
    reader = OutputStreamReader(
        io.StringIO("one\r\ntwo\nthree"), "stderr", unit, on_finished=finished.append
    ).start()
    reader.join(5)

    assert reader.finished.is_set()
    assert finished == ["stderr"]
    assert [entry.text for entry in unit.buffer.stderr] == ["one", "two", "three"]
    assert unit.buffer.stdout == []
    assert reader.lines == 3


def test_reader_rejects_lifecycle_stream(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        OutputStreamReader(io.StringIO(""), "lifecycle", _unit(tmp_path))


def test_sink_failure_is_reported_and_streaming_continues(tmp_path: Path, caplog) -> None:
    unit = _unit(tmp_path, echo_file=True)
    sink = BrokenSink()
    reader = OutputStreamReader(io.StringIO("a\nb\n"), "stdout", unit, sink=sink).start()  # type: ignore[arg-type]
    reader.join(5)

    assert [entry.text for entry in unit.buffer.stdout] == ["a", "b"]
    assert sink.attempts == 2
    assert "disk full" in caplog.text


def test_sink_failure_escalates_under_abort_policy(tmp_path: Path) -> None:
    fatal: list[BaseException] = []
    unit = _unit(
        tmp_path,
        echo_file=True,
        failure_policy=FailurePolicy.ABORT,
        fatal_handler=fatal.append,
    )
    reader = OutputStreamReader(io.StringIO("a\n"), "stdout", unit, sink=BrokenSink()).start()  # type: ignore[arg-type]
    reader.join(5)

    assert len(fatal) == 1
    assert isinstance(fatal[0], SinkWriteFailure)


def test_console_echo_logs_each_line(tmp_path: Path, caplog) -> None:
    caplog.set_level("INFO", logger="watchrun.runner.stream_reader")
    unit = _unit(tmp_path, echo_console=True)
    reader = OutputStreamReader(io.StringIO("hello\n"), "stdout", unit).start()
    reader.join(5)

    assert "reader : hello" in caplog.text
