"""Synchronous toolchain invocations: build, install, test, generate, fmt."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from watchrun.runner.errors import ToolExitError
from watchrun.runner.log_buffer import LogBuffer
from watchrun.runner.notifier import SyncNotifier

__all__ = ["Toolchain", "ToolchainSettings", "ToolResult"]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolchainSettings:
    """Names of the external tools and the install-target variable."""

    compiler: str = "go"
    formatter: str = "gofmt"
    install_env_var: str = "GOBIN"


@dataclass(slots=True)
class ToolResult:
    """Captured diagnostics of a failed invocation, empty on success."""

    output: str = ""
    error: ToolExitError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Toolchain:
    """Run one fixed tool at a time in a project directory.

    Output is captured locally; only failures reach the shared buffer, as a
    single entry in its error sequence. Every call pings the notifier.
    """

    def __init__(
        self,
        working_dir: Path,
        *,
        buffer: LogBuffer,
        notifier: SyncNotifier | None = None,
        settings: ToolchainSettings | None = None,
        base_env: Mapping[str, str] | None = None,
    ) -> None:
        self.working_dir = Path(working_dir)
        self.buffer = buffer
        self.notifier = notifier
        self.settings = settings or ToolchainSettings()
        self.base_env = dict(base_env or os.environ)

    def build(self) -> ToolResult:
        return self._invoke([self.settings.compiler, "build"], self.working_dir)

    def install(self, install_dir: Path) -> ToolResult:
        """Install into ``install_dir`` without touching this process's environment."""

        env = {self.settings.install_env_var: str(install_dir)}
        return self._invoke([self.settings.compiler, "install"], self.working_dir, env=env)

    def test(self, path: Path | None = None) -> ToolResult:
        return self._invoke(
            [self.settings.compiler, "test"], Path(path or self.working_dir), combined=True
        )

    def generate(self, path: Path | None = None) -> ToolResult:
        return self._invoke(
            [self.settings.compiler, "generate"], Path(path or self.working_dir), combined=True
        )

    def fmt(self, path: Path) -> ToolResult:
        argv = [self.settings.formatter, "-s", "-w", "-e", str(path)]
        return self._invoke(argv, self.working_dir, combined=True)

    def _invoke(
        self,
        argv: Sequence[str],
        cwd: Path,
        *,
        env: Mapping[str, str] | None = None,
        combined: bool = False,
    ) -> ToolResult:
        child_env = dict(self.base_env)
        if env:
            child_env.update(env)
        try:
            return self._run(list(argv), cwd, child_env, combined)
        finally:
            if self.notifier is not None:
                self.notifier.notify()

    def _run(
        self, argv: list[str], cwd: Path, env: dict[str, str], combined: bool
    ) -> ToolResult:
        logger.debug("Running %s in %s", shlex.join(argv), cwd)
        try:
            completed = subprocess.run(  # noqa: S603
                argv,
                cwd=str(cwd),
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if combined else subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
            )
        except OSError as exc:
            error = ToolExitError(argv, f"{argv[0]}: {exc}")
            return self._failed(error, "")
        if completed.returncode == 0:
            return ToolResult()
        output = completed.stdout if combined else completed.stderr
        error = ToolExitError(
            argv,
            f"{shlex.join(argv)}: exit status {completed.returncode}",
            returncode=completed.returncode,
            output=output or "",
        )
        return self._failed(error, output or "")

    def _failed(self, error: ToolExitError, output: str) -> ToolResult:
        self.buffer.append_stderr(str(error))
        logger.warning("%s", error)
        return ToolResult(output=output, error=error)
