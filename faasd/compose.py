"""Loading compose files into service definitions and ordering their start-up."""

from __future__ import annotations

import logging
import os
import platform
import re
import shlex
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import yaml

from .depgraph import Graph, Node

logger = logging.getLogger(__name__)

ArchGetter = Callable[[], "tuple[str, str]"]


class ComposeError(Exception):
    """Raised when a compose file cannot be loaded or converted."""


@dataclass
class ServicePort:
    """A published port: traffic on ``port`` goes to ``target_port``."""

    target_port: int
    port: int
    host_ip: str = ""


@dataclass
class Mount:
    """A bind mount from ``src`` on the host to ``dest`` in the container."""

    src: str
    dest: str
    read_only: bool = False


@dataclass
class Service:
    """A core service to be run by the supervisor."""

    name: str
    image: str = ""
    env: list[str] = field(default_factory=list)
    mounts: list[Mount] = field(default_factory=list)
    caps: list[str] = field(default_factory=list)
    args: list[str] = field(default_factory=list)
    depends_on: list[str] = field(default_factory=list)
    ports: list[ServicePort] = field(default_factory=list)
    # A user id, user name, uid:gid or user:group.
    user: str = ""


_TEMPLATE = re.compile(
    r"\$(?:(?P<escaped>\$)"
    r"|\{(?P<braced>[^}]*)\}"
    r"|(?P<named>[_A-Za-z][_A-Za-z0-9]*)"
    r"|(?P<invalid>))"
)
_BRACED = re.compile(
    r"(?P<name>[_A-Za-z][_A-Za-z0-9]*)(?:(?P<op>:?[-?])(?P<arg>.*))?", re.DOTALL
)


def interpolate(text: str, environment: Mapping[str, str]) -> str:
    """Substitute ``$VAR`` and ``${VAR}`` forms in text from environment.

    Supports ``$$``, ``${VAR:-default}``, ``${VAR-default}``,
    ``${VAR:?message}`` and ``${VAR?message}``. Unset variables become "".
    """

    def replace(match: re.Match[str]) -> str:
        if match.group("escaped"):
            return "$"
        named = match.group("named")
        if named:
            return environment.get(named, "")
        braced = match.group("braced")
        if braced is None:
            raise ComposeError(f"invalid template: {text!r}")
        parts = _BRACED.fullmatch(braced)
        if parts is None:
            raise ComposeError(f"invalid template: {text!r}")
        name, op, arg = parts.group("name", "op", "arg")
        value = environment.get(name)
        if op is None:
            return value or ""
        if op == ":-":
            return value if value else arg
        if op == "-":
            return arg if value is None else value
        if op == ":?" and not value or op == "?" and value is None:
            raise ComposeError(f"required variable {name} is missing a value: {arg}")
        return value or ""

    return _TEMPLATE.sub(replace, text)


def _interpolate_tree(value: Any, environment: Mapping[str, str]) -> Any:
    if isinstance(value, str):
        return interpolate(value, environment)
    if isinstance(value, Mapping):
        return {key: _interpolate_tree(item, environment) for key, item in value.items()}
    if isinstance(value, list):
        return [_interpolate_tree(item, environment) for item in value]
    return value


def _stringify(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _normalise_environment(raw: Any) -> dict[str, str | None]:
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return {str(key): _stringify(value) for key, value in raw.items()}
    if isinstance(raw, list):
        env: dict[str, str | None] = {}
        for entry in raw:
            key, sep, value = str(entry).partition("=")
            env[key] = value if sep else None
        return env
    raise ComposeError(f"invalid environment: {raw!r}")


def _resolve_source(source: str, working_dir: str) -> str:
    expanded = os.path.expanduser(source)
    if os.path.isabs(expanded):
        return expanded
    return os.path.normpath(os.path.join(working_dir, expanded))


def _normalise_volume(raw: Any, working_dir: str) -> dict[str, Any]:
    if isinstance(raw, Mapping):
        volume = {
            "type": str(raw.get("type", "volume")),
            "source": str(raw.get("source", "") or ""),
            "target": str(raw.get("target", "") or ""),
            "read_only": bool(raw.get("read_only", False)),
        }
    else:
        parts = str(raw).split(":")
        mode = ""
        if len(parts) == 1:
            source, target = "", parts[0]
        elif len(parts) == 2:
            source, target = parts
        elif len(parts) == 3:
            source, target, mode = parts
        else:
            raise ComposeError(f"invalid volume specification: {raw!r}")
        volume_type = "bind" if source[:1] in (".", "/", "~") and source else "volume"
        volume = {
            "type": volume_type,
            "source": source,
            "target": target,
            "read_only": "ro" in mode.split(","),
        }

    if volume["type"] == "bind":
        if not volume["source"]:
            raise ComposeError("invalid mount config for type bind: source must not be empty")
        volume["source"] = _resolve_source(volume["source"], working_dir)
    return volume


def _port_range(text: str) -> list[int]:
    start, sep, end = text.partition("-")
    try:
        first = int(start)
        last = int(end) if sep else first
    except ValueError:
        raise ComposeError(f"invalid port: {text!r}") from None
    if last < first:
        raise ComposeError(f"invalid port range: {text!r}")
    return list(range(first, last + 1))


def _normalise_ports(raw: Any) -> list[dict[str, Any]]:
    if isinstance(raw, Mapping):
        try:
            return [
                {
                    "target": int(raw.get("target", 0) or 0),
                    "published": int(raw.get("published", 0) or 0),
                    "host_ip": str(raw.get("host_ip", "") or ""),
                }
            ]
        except ValueError:
            raise ComposeError(f"invalid port: {raw!r}") from None

    spec = str(raw).partition("/")[0]
    parts = spec.rsplit(":", 2)
    host_ip = ""
    if len(parts) == 3:
        host_ip, published, target = parts
    elif len(parts) == 2:
        published, target = parts
    else:
        published, target = "", parts[0]

    targets = _port_range(target)
    publishes = _port_range(published) if published else [0] * len(targets)
    if len(publishes) != len(targets):
        raise ComposeError(f"port ranges do not match: {raw!r}")
    return [
        {"target": t, "published": p, "host_ip": host_ip}
        for p, t in zip(publishes, targets)
    ]


def _normalise_command(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return shlex.split(raw)
    if isinstance(raw, list):
        return [str(item) for item in raw]
    raise ComposeError(f"invalid command: {raw!r}")


def _normalise_service(name: str, raw: Any, working_dir: str) -> dict[str, Any]:
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ComposeError(f"service {name} must be a mapping")

    depends_on = raw.get("depends_on") or []
    if isinstance(depends_on, Mapping):
        depends_on = list(depends_on)

    return {
        "name": name,
        "image": str(raw.get("image", "") or ""),
        "environment": _normalise_environment(raw.get("environment")),
        "volumes": [_normalise_volume(v, working_dir) for v in raw.get("volumes") or []],
        "command": _normalise_command(raw.get("command")),
        "cap_add": [str(cap) for cap in raw.get("cap_add") or []],
        "depends_on": [str(dep) for dep in depends_on],
        "user": _stringify(raw.get("user")) or "",
        "ports": [p for spec in raw.get("ports") or [] for p in _normalise_ports(spec)],
    }


def parse_compose(config: Mapping[str, Any]) -> list[Service]:
    """Convert a loaded compose configuration into a list of services.

    Raises ComposeError when a volume is not a bind mount.
    """
    services = []
    for definition in config.get("services", []):
        name = definition["name"]
        environment = definition.get("environment", {})
        env = [
            f'{key}=""' if environment[key] is None else f"{key}={environment[key]}"
            for key in sorted(environment)
        ]

        mounts = []
        for volume in definition.get("volumes", []):
            if volume["type"] != "bind":
                raise ComposeError(
                    f"unsupported volume mount type '{volume['type']}' "
                    f"when parsing service '{name}'"
                )
            mounts.append(
                Mount(
                    src=volume["source"],
                    dest=volume["target"],
                    read_only=volume.get("read_only", False),
                )
            )

        services.append(
            Service(
                name=name,
                image=definition.get("image", ""),
                args=list(definition.get("command", [])),
                caps=list(definition.get("cap_add", [])),
                env=env,
                mounts=mounts,
                depends_on=list(definition.get("depends_on", [])),
                user=definition.get("user", ""),
                ports=[
                    ServicePort(
                        port=p["published"], target_port=p["target"], host_ip=p["host_ip"]
                    )
                    for p in definition.get("ports", [])
                ],
            )
        )
    return services


def client_arch() -> tuple[str, str]:
    """Return the machine architecture and operating system name."""
    return platform.machine(), platform.system()


def get_arch_suffix(arch_getter: ArchGetter) -> str:
    """Return the image suffix for the client's architecture.

    Raises ComposeError when the client is not running Linux.
    """
    arch, system = arch_getter()
    if system != "Linux":
        raise ComposeError("you can only use faasd with Linux")
    if arch in ("arm64", "aarch64"):
        return "-arm64"
    return ""


def load_compose_file(
    working_dir: str, file: str, arch_getter: ArchGetter = client_arch
) -> dict[str, Any]:
    """Read, interpolate and normalise a compose file in working_dir.

    ``ARCH_SUFFIX`` is the only variable available to the file. Relative
    bind-mount sources are resolved against working_dir.
    """
    path = os.path.join(working_dir, file)
    with open(path, encoding="utf-8") as handle:
        try:
            raw = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ComposeError(f"cannot parse {path}: {exc}") from exc

    suffix = get_arch_suffix(arch_getter)

    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ComposeError(f"{path} must hold a mapping at the top level")

    config = _interpolate_tree(raw, {"ARCH_SUFFIX": suffix})
    services = config.get("services") or {}
    if not isinstance(services, Mapping):
        raise ComposeError("services must be a mapping")

    return {
        "services": [
            _normalise_service(str(name), definition, working_dir)
            for name, definition in services.items()
        ]
    }


def build_service_graph(services: list[Service]) -> Graph:
    """Build a dependency graph from the services' depends_on lists."""
    graph = Graph()
    nodes: dict[str, Node] = {}
    for service in services:
        node = Node(service.name)
        nodes[service.name] = node
        graph.add(node)

    for service in services:
        for dependency in service.depends_on:
            if dependency not in nodes:
                raise ComposeError(
                    f"service {service.name} depends on unknown service {dependency}"
                )
            nodes[service.name].edges.append(nodes[dependency])

    return graph


def build_deployment_order(services: list[Service]) -> list[str]:
    """Return service names in the order they must be started."""
    order = build_service_graph(services).resolve()
    logger.info("Start-up order:")
    for name in order:
        logger.info("- %s", name)
    return order