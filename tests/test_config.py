from __future__ import annotations

from pathlib import Path

import pytest

from watchrun.config import ConfigError, WatchSettings, default_install_dir, load_settings
from watchrun.runner import FailurePolicy, ProcessUnit


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "watchrun.toml"
    path.write_text(text.strip())
    return path


def test_from_toml_reads_projects_and_settings(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        """
[settings]
install_dir = "/opt/bin"
failure_policy = "abort"
kill_timeout = 1.5
legacy_tokenizer = true

[server]
port = 9000

[toolchain]
compiler = "go1.22"

[[projects]]
name = "api"
path = "services/api"
binary = "api-server"
params = ["--port", "8080"]
commands = ["go vet ./..."]
echo_file = true
""",
    )
    settings = WatchSettings.from_toml(path, env={})

    assert settings.install_dir == Path("/opt/bin")
    assert settings.failure_policy is FailurePolicy.ABORT
    assert settings.kill_timeout == 1.5
    assert settings.legacy_tokenizer is True
    assert settings.server.port == 9000
    assert settings.toolchain.compiler == "go1.22"
    project = settings.project("api")
    assert project.path == tmp_path / "services" / "api"
    assert project.params == ("--port", "8080")
    assert project.commands == ("go vet ./...",)
    assert project.echo_file is True and project.echo_console is True


def test_env_override_for_install_dir(tmp_path: Path) -> None:
    path = _write(tmp_path, '[settings]\ninstall_dir = "/opt/bin"\n')
    settings = WatchSettings.from_toml(path, env={"WATCHRUN_INSTALL_DIR": "/custom/bin"})
    assert settings.install_dir == Path("/custom/bin")


def test_default_install_dir_uses_gopath() -> None:
    assert default_install_dir({"GOPATH": "/work/go"}) == Path("/work/go/bin")
    assert default_install_dir({}) == Path.home() / "go" / "bin"


@pytest.mark.parametrize(
    "text",
    [
        '[settings]\nfailure_policy = "explode"\n',
        "[[projects]]\nname = 'x'\n",
        "[[projects]]\npath = 'a'\nparams = 'not-a-list'\n",
        "[[projects]]\npath = 'a'\n[[projects]]\npath = 'a'\n",
        "not = [valid",
        '[settings]\nkill_timeout = "soon"\n',
        '[server]\nport = "http"\n',
        "[server]\nport = true\n",
        "settings = 3\n",
        "toolchain = 'go'\n",
    ],
)
def test_invalid_configuration(tmp_path: Path, text: str) -> None:
    with pytest.raises(ConfigError):
        WatchSettings.from_toml(_write(tmp_path, text), env={})


def test_load_settings_without_file_uses_defaults(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("WATCHRUN_CONFIG", raising=False)
    settings = load_settings()
    assert settings.projects == []
    assert settings.failure_policy is FailurePolicy.REPORT


def test_unit_from_settings_resolves_binary(tmp_path: Path) -> None:
    path = _write(tmp_path, "[[projects]]\npath = 'src/tool'\nparams = ['-v']\n")
    settings = WatchSettings.from_toml(path, env={})
    unit = ProcessUnit.from_settings(settings.projects[0], install_dir=Path("/opt/bin"))

    assert unit.name == "tool"
    assert unit.executable == Path("/opt/bin/tool")
    assert unit.argv == ["/opt/bin/tool", "-v"]
    assert unit.output_path == tmp_path / "src" / "tool" / "outputs.log"
