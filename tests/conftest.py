"""Shared pytest fixtures."""

from __future__ import annotations

import sys
import textwrap
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from watchrun.runner import LogBuffer, ProcessUnit, RunConfig, SyncNotifier


@pytest.fixture()
def buffer() -> LogBuffer:
    return LogBuffer()


@pytest.fixture()
def notifier() -> SyncNotifier:
    return SyncNotifier()


@pytest.fixture()
def write_script(tmp_path: Path) -> Callable[..., Path]:
    """Write a Python script under ``tmp_path`` and return its path."""

    def _write(name: str, body: str) -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(body), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def make_unit(tmp_path: Path, buffer: LogBuffer, notifier: SyncNotifier) -> Callable[..., ProcessUnit]:
    """Build a unit that runs ``script`` with the current interpreter."""

    def _make(script: Path, *, name: str = "demo", **config: object) -> ProcessUnit:
        return ProcessUnit(
            name=name,
            working_dir=tmp_path,
            executable=Path(sys.executable),
            params=("-u", str(script)),
            buffer=buffer,
            config=RunConfig(**config),  # type: ignore[arg-type]
            notifier=notifier,
        )

    return _make


@pytest.fixture()
def write_executable(tmp_path: Path) -> Callable[..., Path]:
    """Write an executable ``#!/bin/sh`` script."""

    def _write(name: str, body: str, directory: Path | None = None) -> Path:
        target_dir = directory or tmp_path / "bin"
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / name
        path.write_text("#!/bin/sh\n" + textwrap.dedent(body), encoding="utf-8")
        path.chmod(0o755)
        return path

    return _write


def _wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture()
def wait_until() -> Callable[..., bool]:
    """Poll ``predicate`` until it holds or ``timeout`` expires."""

    return _wait_until
