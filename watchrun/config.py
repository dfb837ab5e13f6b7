"""Load project descriptors from ``watchrun.toml`` plus environment overrides."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from watchrun.runner.tools import ToolchainSettings
from watchrun.runner.unit import FailurePolicy

__all__ = [
    "ConfigError",
    "ProjectSettings",
    "ServerSettings",
    "WatchSettings",
    "config_path",
    "default_install_dir",
    "load_settings",
]

_CONFIG_FILENAME = "watchrun.toml"
_ENV_CONFIG = "WATCHRUN_CONFIG"
_ENV_INSTALL_DIR = "WATCHRUN_INSTALL_DIR"


class ConfigError(ValueError):
    """Raised when the configuration file is malformed."""


def default_install_dir(env: Mapping[str, str] | None = None) -> Path:
    env = os.environ if env is None else env
    gopath = env.get("GOPATH")
    base = Path(gopath.split(os.pathsep)[0]) if gopath else Path.home() / "go"
    return base / "bin"


@dataclass(slots=True)
class ProjectSettings:
    """One watched project."""

    name: str
    path: Path
    binary: str | None = None
    params: Sequence[str] = ()
    commands: Sequence[str] = ()
    echo_console: bool = True
    echo_file: bool = False
    output_file: str = "outputs.log"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, base: Path) -> ProjectSettings:
        if "path" not in data:
            raise ConfigError("Every [[projects]] entry needs a 'path'")
        path = Path(str(data["path"]))
        if not path.is_absolute():
            path = base / path
        name = str(data.get("name") or path.name)
        return cls(
            name=name,
            path=path,
            binary=data.get("binary"),
            params=_string_list(data.get("params", []), f"{name}.params"),
            commands=_string_list(data.get("commands", []), f"{name}.commands"),
            echo_console=bool(data.get("echo_console", True)),
            echo_file=bool(data.get("echo_file", False)),
            output_file=str(data.get("output_file", "outputs.log")),
        )


@dataclass(slots=True)
class ServerSettings:
    host: str = "127.0.0.1"
    port: int = 5001


@dataclass(slots=True)
class WatchSettings:
    """Top-level settings (parsed from TOML)."""

    projects: list[ProjectSettings] = field(default_factory=list)
    install_dir: Path = field(default_factory=default_install_dir)
    failure_policy: FailurePolicy = FailurePolicy.REPORT
    kill_timeout: float = 5.0
    legacy_tokenizer: bool = False
    server: ServerSettings = field(default_factory=ServerSettings)
    toolchain: ToolchainSettings = field(default_factory=ToolchainSettings)

    @classmethod
    def from_toml(cls, path: Path, *, env: Mapping[str, str] | None = None) -> WatchSettings:
        path = Path(path)
        try:
            data = tomllib.loads(path.read_text("utf-8"))
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"{path}: {exc}") from exc
        return cls.from_mapping(data, base=path.parent, env=env)

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        *,
        base: Path,
        env: Mapping[str, str] | None = None,
    ) -> WatchSettings:
        env = os.environ if env is None else env
        settings = _table(data, "settings")
        server = _table(data, "server")
        toolchain = _table(data, "toolchain")
        install_dir = env.get(_ENV_INSTALL_DIR) or settings.get("install_dir")
        try:
            policy = FailurePolicy(settings.get("failure_policy", FailurePolicy.REPORT.value))
        except ValueError as exc:
            raise ConfigError(f"Unknown failure_policy {settings.get('failure_policy')!r}") from exc
        projects = [ProjectSettings.from_mapping(p, base=base) for p in data.get("projects", [])]
        names = [project.name for project in projects]
        if len(names) != len(set(names)):
            raise ConfigError("Project names must be unique")
        return cls(
            projects=projects,
            install_dir=Path(install_dir) if install_dir else default_install_dir(env),
            failure_policy=policy,
            kill_timeout=_number(float, settings.get("kill_timeout", 5.0), "settings.kill_timeout"),
            legacy_tokenizer=bool(settings.get("legacy_tokenizer", False)),
            server=ServerSettings(
                host=str(server.get("host", "127.0.0.1")),
                port=_number(int, server.get("port", 5001), "server.port"),
            ),
            toolchain=ToolchainSettings(
                compiler=str(toolchain.get("compiler", "go")),
                formatter=str(toolchain.get("formatter", "gofmt")),
                install_env_var=str(toolchain.get("install_env_var", "GOBIN")),
            ),
        )

    def project(self, name: str) -> ProjectSettings:
        for project in self.projects:
            if project.name == name:
                return project
        raise ConfigError(f"Unknown project '{name}'")


def config_path(explicit: Path | None = None) -> Path:
    """Return the configuration path: explicit, ``$WATCHRUN_CONFIG``, or ``./watchrun.toml``."""

    if explicit is not None:
        return Path(explicit)
    custom = os.environ.get(_ENV_CONFIG)
    return Path(custom) if custom else Path.cwd() / _CONFIG_FILENAME


def load_settings(path: Path | None = None) -> WatchSettings:
    """Load settings from disk; a missing file yields defaults."""

    resolved = config_path(path)
    if not resolved.exists():
        if path is not None:
            raise ConfigError(f"Configuration file {resolved} not found")
        return WatchSettings.from_mapping({}, base=Path.cwd())
    return WatchSettings.from_toml(resolved)


def _string_list(value: Any, label: str) -> tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise ConfigError(f"{label} must be a list of strings")
    return tuple(str(item) for item in value)


def _table(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, Mapping):
        raise ConfigError(f"[{key}] must be a table")
    return value


def _number(kind: type[float] | type[int], value: Any, label: str) -> Any:
    if isinstance(value, bool):
        raise ConfigError(f"{label} must be a number")
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{label} must be a number, got {value!r}") from exc
