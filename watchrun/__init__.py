"""Supervise local build and run subprocesses for a watch workflow."""

from .version import __version__  # noqa: F401
