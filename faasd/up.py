"""Configuration and set-up for starting the core faasd services."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from .compose import Service, client_arch, load_compose_file, parse_compose
from .install import FAASD_WD
from .proxy import Proxy
from .resolver import Resolver

logger = logging.getLogger(__name__)

DEFAULT_COMPOSE_FILE = "docker-compose.yaml"
DEFAULT_PROXY_TIMEOUT = 60.0


@dataclass
class UpConfig:
    """Where to find the compose file describing the core services."""

    # Name of the compose file inside working_dir.
    compose_file_path: str = DEFAULT_COMPOSE_FILE
    working_dir: str = FAASD_WD
    arch_getter: Callable[[], tuple[str, str]] = client_arch


def parse_up_config(file: str = DEFAULT_COMPOSE_FILE, working_dir: str = FAASD_WD) -> UpConfig:
    """Return the configuration for starting services from file in working_dir."""
    return UpConfig(compose_file_path=file, working_dir=working_dir)


def load_service_definition(config: UpConfig) -> list[Service]:
    """Load the compose file named by config and return its services."""
    compose = load_compose_file(config.working_dir, config.compose_file_path, config.arch_getter)
    return parse_compose(compose)


def build_proxies(
    services: Iterable[Service],
    resolver: Resolver,
    timeout: float = DEFAULT_PROXY_TIMEOUT,
) -> dict[int, Proxy]:
    """Return one proxy per published port, keyed by the port it listens on.

    Raises ValueError when two services publish the same port.
    """
    proxies: dict[int, Proxy] = {}
    for service in services:
        for port in service.ports:
            listen_port = port.port
            if listen_port in proxies:
                raise ValueError(f"port {listen_port} already allocated")
            host_ip = port.host_ip or "0.0.0.0"
            upstream = f"{service.name}:{port.target_port}"
            proxies[listen_port] = Proxy(upstream, listen_port, host_ip, timeout, resolver)
    return proxies