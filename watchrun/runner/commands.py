"""Run user-declared command lists, stopping at the first failure."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

from watchrun.runner.errors import ToolExitError
from watchrun.runner.log_buffer import LogBuffer
from watchrun.runner.notifier import SyncNotifier

__all__ = ["run_all", "split_command", "split_naive"]

logger = logging.getLogger(__name__)


def split_command(command: str) -> list[str]:
    """Shell-style tokenizer; quoted arguments keep their spaces."""

    return shlex.split(command)


def split_naive(command: str) -> list[str]:
    """Legacy tokenizer: drop every quote character, split on whitespace."""

    return command.replace("'", "").replace('"', "").split()


def run_all(
    commands: Sequence[str],
    working_dir: Path,
    *,
    buffer: LogBuffer,
    notifier: SyncNotifier | None = None,
    env: Mapping[str, str] | None = None,
    tokenizer: Callable[[str], list[str]] = split_command,
) -> list[ToolExitError]:
    """Run ``commands`` in order inside ``working_dir``.

    The first failing command is recorded in the buffer's error sequence and
    returned; the commands after it are not attempted.
    """

    errors: list[ToolExitError] = []
    for command in commands:
        try:
            argv = tokenizer(command)
        except ValueError as exc:
            errors.append(_record(buffer, ToolExitError([command], f"{command}: {exc}")))
            break
        if not argv:
            continue
        logger.debug("Running %s in %s", shlex.join(argv), working_dir)
        error = _run_one(argv, working_dir, env)
        if error is not None:
            errors.append(_record(buffer, error))
            break
    if notifier is not None:
        notifier.notify()
    return errors


def _run_one(
    argv: list[str], working_dir: Path, env: Mapping[str, str] | None
) -> ToolExitError | None:
    try:
        completed = subprocess.run(  # noqa: S603
            argv,
            cwd=str(working_dir),
            env=dict(env) if env is not None else dict(os.environ),
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
    except OSError as exc:
        return ToolExitError(argv, f"{argv[0]}: {exc}")
    if completed.returncode != 0:
        return ToolExitError(
            argv,
            f"{shlex.join(argv)}: exit status {completed.returncode}",
            returncode=completed.returncode,
            output=completed.stderr or completed.stdout,
        )
    return None


def _record(buffer: LogBuffer, error: ToolExitError) -> ToolExitError:
    buffer.append_stderr(str(error))
    logger.warning("Command failed: %s", error)
    return error
