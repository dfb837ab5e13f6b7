"""Process supervision, stream capture, and toolchain helpers."""

from .commands import run_all, split_command, split_naive
from .coordinator import RunCoordinator
from .errors import KillFailure, RunnerError, SinkWriteFailure, StartupError, ToolExitError
from .log_buffer import LogBuffer, LogEntry
from .notifier import SyncNotifier, SyncSubscription
from .sink import OutputFileSink
from .stream_reader import OutputStreamReader
from .supervisor import CompletionGroup, ProcessSupervisor, TerminationSignal
from .tools import Toolchain, ToolchainSettings, ToolResult
from .unit import FailurePolicy, ProcessUnit, RunConfig, RunState, resolve_executable

__all__ = [
    "CompletionGroup",
    "FailurePolicy",
    "KillFailure",
    "LogBuffer",
    "LogEntry",
    "OutputFileSink",
    "OutputStreamReader",
    "ProcessSupervisor",
    "ProcessUnit",
    "RunConfig",
    "RunCoordinator",
    "RunState",
    "RunnerError",
    "SinkWriteFailure",
    "StartupError",
    "SyncNotifier",
    "SyncSubscription",
    "TerminationSignal",
    "ToolExitError",
    "ToolResult",
    "Toolchain",
    "ToolchainSettings",
    "resolve_executable",
    "run_all",
    "split_command",
    "split_naive",
]
