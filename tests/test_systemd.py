import subprocess
from unittest import mock

import pytest

from faasd.systemd import (
    SystemdError,
    daemon_reload,
    enable,
    install_unit,
    render_unit,
    start,
)


def completed(code, stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=code, stdout="", stderr=stderr)


@pytest.mark.parametrize(
    "action, expected",
    [
        (lambda: enable("faasd"), ["systemctl", "enable", "faasd"]),
        (lambda: start("faasd-provider"), ["systemctl", "start", "faasd-provider"]),
        (daemon_reload, ["systemctl", "daemon-reload"]),
    ],
)
def test_systemctl_commands(action, expected):
    with mock.patch("faasd.systemd.subprocess.run", return_value=completed(0)) as run:
        result = action()
    assert result is None
    assert run.call_count == 1
    assert run.call_args.args[0] == expected


def test_systemctl_failure_reports_stderr():
    with mock.patch("faasd.systemd.subprocess.run", return_value=completed(1, "unit missing")):
        with pytest.raises(SystemdError) as excinfo:
            enable("faasd")
    assert "stderr: unit missing" in str(excinfo.value)
    assert "[enable faasd]" in str(excinfo.value)


def test_render_unit_substitutes_tokens():
    text = render_unit("WorkingDirectory={{.Cwd}}\n", {"Cwd": "/var/lib/faasd"})
    assert text == "WorkingDirectory=/var/lib/faasd\n"


def test_render_unit_missing_key():
    assert render_unit("X={{.Missing}}", {"Cwd": "/tmp"}) == "X=<no value>"


def test_render_unit_rejects_other_actions():
    with pytest.raises(SystemdError):
        render_unit("{{if .Cwd}}x{{end}}", {"Cwd": "/tmp"})


def test_install_unit_writes_rendered_file(tmp_path):
    templates = tmp_path / "hack"
    units = tmp_path / "units"
    templates.mkdir()
    units.mkdir()
    (templates / "faasd.service").write_text(
        "WorkingDirectory={{.Cwd}}\nEnv={{.SecretMountPath}}\n", encoding="utf-8"
    )
    tokens = {"Cwd": "/var/lib/faasd", "SecretMountPath": "/var/lib/faasd/secrets"}

    path = install_unit("faasd", tokens, str(templates), str(units))

    assert path == str(units / "faasd.service")
    content = (units / "faasd.service").read_text(encoding="utf-8")
    assert content == render_unit((templates / "faasd.service").read_text(), tokens)
    assert "/var/lib/faasd/secrets" in content


def test_install_unit_requires_cwd(tmp_path):
    with pytest.raises(SystemdError, match="key Cwd expected in tokens parameter"):
        install_unit("faasd", {}, str(tmp_path), str(tmp_path))


def test_install_unit_missing_template(tmp_path):
    with pytest.raises(SystemdError, match="error loading template"):
        install_unit("faasd", {"Cwd": "/var/lib/faasd"}, str(tmp_path), str(tmp_path))