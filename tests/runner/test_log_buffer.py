from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime, timedelta

import pytest

from watchrun.runner import LogBuffer, LogEntry
from watchrun.runner import log_buffer as log_buffer_module


def test_concurrent_appends_are_not_lost() -> None:
    buffer = LogBuffer()

    def _writer(stream: str) -> None:
        for i in range(500):
            buffer.append(stream, f"{stream}-{i}")

    threads = [
        threading.Thread(target=_writer, args=(stream,))
        for stream in ("stdout", "stderr", "lifecycle", "stdout")
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert buffer.counts() == {"stdout": 1000, "stderr": 500, "lifecycle": 500}
    assert [e.text for e in buffer.stderr] == [f"stderr-{i}" for i in range(500)]


def test_timestamps_are_clamped_when_clock_goes_back(monkeypatch: pytest.MonkeyPatch) -> None:
    base = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
    ticks = iter([base, base - timedelta(seconds=5), base + timedelta(seconds=1)])

    class _Clock(datetime):
        @classmethod
        def now(cls, tz=None):  # type: ignore[override]
            return next(ticks)

    monkeypatch.setattr(log_buffer_module, "datetime", _Clock)
    buffer = LogBuffer()
    for text in ("a", "b", "c"):
        buffer.append_stdout(text)

    stamps = [entry.timestamp for entry in buffer.stdout]
    assert stamps == [base, base, base + timedelta(seconds=1)]


def test_snapshot_is_a_copy_and_unknown_stream_rejected() -> None:
    buffer = LogBuffer()
    buffer.append_lifecycle("Started")
    snapshot = buffer.lifecycle
    buffer.append_lifecycle("Ended")

    assert [entry.text for entry in snapshot] == ["Started"]
    assert buffer.errors is not None
    with pytest.raises(ValueError):
        buffer.append("stdin", "nope")


def test_listeners_receive_stream_and_entry() -> None:
    buffer = LogBuffer()
    seen: list[tuple[str, LogEntry]] = []
    remove = buffer.add_listener(lambda stream, entry: seen.append((stream, entry)))
    buffer.append_stderr("boom")
    remove()
    buffer.append_stderr("quiet")

    assert [(stream, entry.text) for stream, entry in seen] == [("stderr", "boom")]


def test_failing_listener_does_not_interrupt_append(caplog: pytest.LogCaptureFixture) -> None:
    buffer = LogBuffer()
    seen: list[str] = []

    def explode(stream: str, entry: LogEntry) -> None:
        raise RuntimeError("listener broke")

    buffer.add_listener(explode)
    buffer.add_listener(lambda stream, entry: seen.append(entry.text))
    with caplog.at_level(logging.ERROR, logger="watchrun.runner.log_buffer"):
        entry = buffer.append_stdout("still captured")

    assert entry.text == "still captured"
    assert [e.text for e in buffer.stdout] == ["still captured"]
    assert seen == ["still captured"]
    assert "Log listener failed on stdout" in caplog.text
