"""Click-based CLI for supervising watched projects."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

import click
import uvicorn

from watchrun.api.context import AppContext
from watchrun.api.main import create_app
from watchrun.config import ConfigError, ProjectSettings, WatchSettings, load_settings
from watchrun.runner import (
    LogBuffer,
    ProcessUnit,
    RunCoordinator,
    SyncNotifier,
    Toolchain,
    ToolResult,
    run_all,
    split_command,
    split_naive,
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class CLIState:
    settings: WatchSettings
    notifier: SyncNotifier = field(default_factory=SyncNotifier)
    buffers: dict[str, LogBuffer] = field(default_factory=dict)

    def buffer(self, name: str) -> LogBuffer:
        return self.buffers.setdefault(name, LogBuffer())

    def select(self, names: Iterable[str]) -> list[ProjectSettings]:
        names = list(names)
        if not self.settings.projects:
            raise click.UsageError("No projects configured. Add [[projects]] to watchrun.toml.")
        if not names:
            return list(self.settings.projects)
        try:
            return [self.settings.project(name) for name in names]
        except ConfigError as exc:
            raise click.BadParameter(str(exc), param_hint="--project") from exc

    def toolchain(self, project: ProjectSettings) -> Toolchain:
        return Toolchain(
            project.path,
            buffer=self.buffer(project.name),
            notifier=self.notifier,
            settings=self.settings.toolchain,
        )


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
    )


project_option = click.option(
    "--project",
    "projects",
    multiple=True,
    help="Limit the command to this project (repeatable). Defaults to all.",
)


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to watchrun.toml (defaults to $WATCHRUN_CONFIG or ./watchrun.toml).",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def app(ctx: click.Context, config_file: Path | None, verbose: bool) -> None:
    """Supervise build and run subprocesses for watched projects."""

    _configure_logging(verbose)
    try:
        settings = load_settings(config_file)
    except ConfigError as exc:
        raise click.UsageError(str(exc)) from exc
    ctx.obj = CLIState(settings=settings)


@app.command()
@project_option
@click.option("--serve/--no-serve", default=False, help="Expose captured logs over HTTP.")
@click.pass_obj
def run(state: CLIState, projects: tuple[str, ...], serve: bool) -> None:
    """Run installed project binaries until interrupted or they exit."""

    settings = state.settings
    coordinator = RunCoordinator()
    selected = state.select(projects)
    server = _start_server(state) if serve else None
    try:
        for project in selected:
            unit = ProcessUnit.from_settings(
                project,
                install_dir=settings.install_dir,
                buffer=state.buffer(project.name),
                notifier=state.notifier,
                failure_policy=settings.failure_policy,
                kill_timeout=settings.kill_timeout,
            )
            if not coordinator.start(unit):
                click.echo(f"{project.name}: not started", err=True)
        while not coordinator.wait(0.5):
            pass
    except KeyboardInterrupt:
        click.echo("Stopping...", err=True)
        coordinator.stop_all()
        coordinator.wait(settings.kill_timeout + 1)
    finally:
        if server is not None:
            server.should_exit = True
    if coordinator.errors:
        details = "; ".join(f"{name}: {exc}" for name, exc in sorted(coordinator.errors.items()))
        raise click.ClickException(details)


def _start_server(state: CLIState) -> uvicorn.Server:
    context = AppContext(buffers=state.buffers, notifier=state.notifier)
    config = uvicorn.Config(
        create_app(context),
        host=state.settings.server.host,
        port=state.settings.server.port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    threading.Thread(target=server.run, name="watchrun-api", daemon=True).start()
    click.echo(f"Serving logs on http://{config.host}:{config.port}", err=True)
    return server


def _run_tool(
    state: CLIState,
    projects: Iterable[ProjectSettings],
    label: str,
    invoke: Callable[[Toolchain, ProjectSettings], ToolResult],
) -> None:
    failures: list[str] = []
    for project in projects:
        result = invoke(state.toolchain(project), project)
        if result.ok:
            click.echo(f"{project.name}: {label} ok")
            continue
        if result.output:
            click.echo(result.output.rstrip("\n"), err=True)
        failures.append(f"{project.name}: {result.error}")
    if failures:
        raise click.ClickException("; ".join(failures))


@app.command()
@project_option
@click.pass_obj
def build(state: CLIState, projects: tuple[str, ...]) -> None:
    """Compile each project."""

    _run_tool(state, state.select(projects), "build", lambda tools, _: tools.build())


@app.command()
@project_option
@click.pass_obj
def install(state: CLIState, projects: tuple[str, ...]) -> None:
    """Install each project into the configured install directory."""

    install_dir = state.settings.install_dir
    _run_tool(
        state, state.select(projects), "install", lambda tools, _: tools.install(install_dir)
    )


@app.command("test")
@project_option
@click.argument("path", required=False, type=click.Path(file_okay=False, path_type=Path))
@click.pass_obj
def test_command(state: CLIState, projects: tuple[str, ...], path: Path | None) -> None:
    """Run the test tool for each project (or PATH)."""

    _run_tool(state, state.select(projects), "test", lambda tools, _: tools.test(path))


@app.command()
@project_option
@click.argument("path", required=False, type=click.Path(file_okay=False, path_type=Path))
@click.pass_obj
def generate(state: CLIState, projects: tuple[str, ...], path: Path | None) -> None:
    """Run the generate tool for each project (or PATH)."""

    _run_tool(state, state.select(projects), "generate", lambda tools, _: tools.generate(path))


@app.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--project", "project_name", help="Project whose directory to run in.")
@click.pass_obj
def fmt(state: CLIState, path: Path, project_name: str | None) -> None:
    """Format PATH in place."""

    selected = state.select([project_name] if project_name else [])[:1]
    _run_tool(state, selected, "fmt", lambda tools, _: tools.fmt(path.resolve()))


@app.command()
@project_option
@click.pass_obj
def cmds(state: CLIState, projects: tuple[str, ...]) -> None:
    """Run each project's configured command list, stopping on failure."""

    tokenizer = split_naive if state.settings.legacy_tokenizer else split_command
    failures: list[str] = []
    for project in state.select(projects):
        errors = run_all(
            project.commands,
            project.path,
            buffer=state.buffer(project.name),
            notifier=state.notifier,
            tokenizer=tokenizer,
        )
        for error in errors:
            if error.output:
                click.echo(error.output.rstrip("\n"), err=True)
            failures.append(f"{project.name}: {error}")
        if not errors:
            click.echo(f"{project.name}: {len(project.commands)} command(s) ok")
    if failures:
        raise click.ClickException("; ".join(failures))


if __name__ == "__main__":  # pragma: no cover
    app()
