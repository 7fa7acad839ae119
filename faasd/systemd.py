"""Installing and controlling systemd units through systemctl."""

from __future__ import annotations

import os
import re
import subprocess
from typing import Mapping

DEFAULT_TEMPLATE_DIR = "./hack"
DEFAULT_UNIT_DIR = "/lib/systemd/system"

_ACTION = re.compile(
    r"(?P<lead>\s*)\{\{(?P<ltrim>-\s)?\s*\.(?P<key>[A-Za-z_][A-Za-z0-9_]*)\s*(?P<rtrim>\s-)?\}\}"
    r"(?P<trail>\s*)"
)


class SystemdError(Exception):
    """Raised when a unit cannot be installed or systemctl fails."""


def _systemctl(*args: str) -> None:
    command = ["systemctl", *args]
    result = subprocess.run(command, capture_output=True, text=True, check=False)
    if result.returncode != 0:
        raise SystemdError(
            f"error executing task systemctl [{' '.join(args)}], stderr: {result.stderr}"
        )


def enable(unit: str) -> None:
    """Enable a unit."""
    _systemctl("enable", unit)


def start(unit: str) -> None:
    """Start a unit."""
    _systemctl("start", unit)


def daemon_reload() -> None:
    """Reload the systemd manager configuration."""
    _systemctl("daemon-reload")


def render_unit(template: str, tokens: Mapping[str, str]) -> str:
    """Fill ``{{.Key}}`` fields in a unit template from tokens.

    Missing keys render as "<no value>". Raises SystemdError for any other
    template action.
    """

    def replace(match: re.Match[str]) -> str:
        lead = "" if match.group("ltrim") else match.group("lead")
        trail = "" if match.group("rtrim") else match.group("trail")
        value = tokens.get(match.group("key"), "<no value>")
        return f"{lead}{value}{trail}"

    actions = template.count("{{")
    if actions != len(_ACTION.findall(template)):
        raise SystemdError("unsupported action in unit template")
    return _ACTION.sub(replace, template)


def install_unit(
    name: str,
    tokens: Mapping[str, str],
    template_dir: str = DEFAULT_TEMPLATE_DIR,
    unit_dir: str = DEFAULT_UNIT_DIR,
) -> str:
    """Render ``<name>.service`` from template_dir into unit_dir and return its path."""
    if not tokens.get("Cwd"):
        raise SystemdError("key Cwd expected in tokens parameter")

    template_path = os.path.join(template_dir, f"{name}.service")
    try:
        with open(template_path, encoding="utf-8") as handle:
            template = handle.read()
    except OSError as exc:
        raise SystemdError(f"error loading template {template_path}, error {exc}") from exc

    unit_path = os.path.join(unit_dir, f"{name}.service")
    with open(unit_path, "w", encoding="utf-8") as handle:
        handle.write(render_unit(template, tokens))
    return unit_path