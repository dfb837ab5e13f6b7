from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from watchrun.runner import OutputFileSink, SinkWriteFailure
from watchrun.runner.sink import format_line


def test_sink_appends_without_truncating(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "outputs.log"
    when = datetime(2024, 5, 1, 8, 30, 15).astimezone()
    with OutputFileSink(path) as sink:
        sink.write("first", when)
        sink.write("second", when)

    assert path.read_bytes() == (
        b"2024-05-01 08:30:15 : first\r\n2024-05-01 08:30:15 : second\r\n"
    )


def test_format_line_uses_local_time() -> None:
    when = datetime(2024, 5, 1, 8, 30, 15).astimezone()
    assert format_line("x", when) == "2024-05-01 08:30:15 : x\r\n"


def test_write_after_close_fails(tmp_path: Path) -> None:
    sink = OutputFileSink(tmp_path / "out.log")
    sink.close()
    with pytest.raises(SinkWriteFailure):
        sink.write("late", datetime.now().astimezone())


def test_unwritable_target_raises_sink_failure(tmp_path: Path) -> None:
    target = tmp_path / "dir-not-file"
    target.mkdir()
    with pytest.raises(SinkWriteFailure):
        OutputFileSink(target).write("x", datetime.now().astimezone())
