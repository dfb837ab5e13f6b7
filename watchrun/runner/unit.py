"""Run configuration and the per-run process unit."""

from __future__ import annotations

import enum
import logging
import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from watchrun.runner.log_buffer import LogBuffer
from watchrun.runner.notifier import SyncNotifier

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from watchrun.config import ProjectSettings
    from watchrun.runner.stream_reader import OutputStreamReader

__all__ = [
    "FailurePolicy",
    "ProcessUnit",
    "RunConfig",
    "RunState",
    "abort_process",
    "resolve_executable",
]

logger = logging.getLogger(__name__)


class FailurePolicy(str, enum.Enum):
    """How kill and output-file failures are escalated."""

    REPORT = "report"
    ABORT = "abort"


class RunState(str, enum.Enum):
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


def abort_process(exc: BaseException) -> None:
    """Terminate the host program immediately."""

    logger.critical("Unrecoverable runner failure: %s", exc)
    os._exit(1)


@dataclass(slots=True)
class RunConfig:
    """Per-run flags supplied by the project descriptor."""

    echo_console: bool = False
    echo_file: bool = False
    output_file: str = "outputs.log"
    failure_policy: FailurePolicy = FailurePolicy.REPORT
    kill_timeout: float = 5.0
    fatal_handler: Callable[[BaseException], None] = abort_process

    def escalate(self, exc: BaseException) -> bool:
        """Hand ``exc`` to the fatal handler under ``ABORT``.

        Returns ``False`` when the caller should report the failure itself.
        """

        if self.failure_policy is FailurePolicy.ABORT:
            self.fatal_handler(exc)
            return True
        return False


def resolve_executable(install_dir: Path, binary: str | Path) -> Path:
    """Locate an installed binary: ``install_dir`` plus the binary's base name."""

    return Path(install_dir) / Path(binary).name


@dataclass(slots=True)
class ProcessUnit:
    """Everything one supervised run needs, plus its observable state."""

    name: str
    working_dir: Path
    executable: Path
    params: Sequence[str] = ()
    buffer: LogBuffer = field(default_factory=LogBuffer)
    config: RunConfig = field(default_factory=RunConfig)
    notifier: SyncNotifier = field(default_factory=SyncNotifier)
    state: RunState = RunState.STARTING
    pid: int | None = None
    readers: list[OutputStreamReader] = field(default_factory=list)

    @classmethod
    def from_settings(
        cls,
        project: ProjectSettings,
        *,
        install_dir: Path,
        buffer: LogBuffer | None = None,
        notifier: SyncNotifier | None = None,
        failure_policy: FailurePolicy = FailurePolicy.REPORT,
        kill_timeout: float = 5.0,
    ) -> ProcessUnit:
        config = RunConfig(
            echo_console=project.echo_console,
            echo_file=project.echo_file,
            output_file=project.output_file,
            failure_policy=failure_policy,
            kill_timeout=kill_timeout,
        )
        return cls(
            name=project.name,
            working_dir=project.path,
            executable=resolve_executable(install_dir, project.binary or project.path),
            params=tuple(project.params),
            buffer=buffer or LogBuffer(),
            config=config,
            notifier=notifier or SyncNotifier(),
        )

    @property
    def argv(self) -> list[str]:
        argv = [str(self.executable)]
        if self.params:
            argv.extend(self.params)
        return argv

    @property
    def output_path(self) -> Path:
        return Path(self.working_dir) / self.config.output_file

    def wait_streams(self, timeout: float | None = None) -> bool:
        """Wait for both stream readers to reach end of stream."""

        return all(reader.finished.wait(timeout) for reader in self.readers)
