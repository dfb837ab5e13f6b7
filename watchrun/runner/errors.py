"""Exceptions raised by the runner package."""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "KillFailure",
    "RunnerError",
    "SinkWriteFailure",
    "StartupError",
    "ToolExitError",
]


class RunnerError(RuntimeError):
    """Base class for runner failures."""


class StartupError(RunnerError):
    """Raised when a supervised process cannot be spawned."""


class KillFailure(RunnerError):
    """Raised when a supervised process survives cleanup."""


class SinkWriteFailure(RunnerError):
    """Raised when the per-project output file cannot be written."""


class ToolExitError(RunnerError):
    """A tool or command exited non-zero or could not be spawned."""

    def __init__(
        self,
        argv: Sequence[str],
        message: str,
        *,
        returncode: int | None = None,
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.argv = list(argv)
        self.returncode = returncode
        self.output = output
