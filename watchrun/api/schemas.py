"""Pydantic schemas shared across API routers."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from watchrun.runner import LogBuffer, LogEntry


class APIMessage(BaseModel):
    """Simple message envelope."""

    message: str


class LogEntryResponse(BaseModel):
    timestamp: datetime
    text: str


class ProjectLogsResponse(BaseModel):
    project: str
    stdout: list[LogEntryResponse] = Field(default_factory=list)
    stderr: list[LogEntryResponse] = Field(default_factory=list)
    lifecycle: list[LogEntryResponse] = Field(default_factory=list)


def entry_to_response(entry: LogEntry) -> LogEntryResponse:
    return LogEntryResponse(timestamp=entry.timestamp, text=entry.text)


def buffer_to_response(project: str, buffer: LogBuffer) -> ProjectLogsResponse:
    return ProjectLogsResponse(
        project=project,
        stdout=[entry_to_response(entry) for entry in buffer.stdout],
        stderr=[entry_to_response(entry) for entry in buffer.stderr],
        lifecycle=[entry_to_response(entry) for entry in buffer.lifecycle],
    )


__all__ = [
    "APIMessage",
    "LogEntryResponse",
    "ProjectLogsResponse",
    "buffer_to_response",
    "entry_to_response",
]
