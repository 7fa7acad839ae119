"""Provider configuration read from environment variables."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Mapping

_INT = re.compile(r"[+-]?[0-9]+")
_DURATION_PART = re.compile(r"([0-9]+\.?[0-9]*|\.[0-9]+)(ns|us|µs|μs|ms|s|m|h)")
_NANOS_PER_UNIT = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}

DEFAULT_SOCK = "/run/containerd/containerd.sock"


@dataclass
class FaaSConfig:
    """HTTP server settings for the provider. Timeouts are in seconds."""

    tcp_port: int = 8081
    read_timeout: float = 60.0
    write_timeout: float = 60.0
    enable_basic_auth: bool = True
    max_idle_conns: int = 1024
    max_idle_conns_per_host: int = 1024


@dataclass
class ProviderConfig:
    """Containerd-specific settings."""

    # Address of the containerd socket.
    sock: str = DEFAULT_SOCK


def parse_int(value: str, fallback: int) -> int:
    """Return value as an integer, or fallback when it is empty or not one."""
    if value and _INT.fullmatch(value):
        return int(value)
    return fallback


def _parse_duration(text: str) -> float | None:
    body = text
    sign = 1
    if body and body[0] in "+-":
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return 0.0
    if not body:
        return None
    total = 0.0
    pos = 0
    while pos < len(body):
        match = _DURATION_PART.match(body, pos)
        if match is None:
            return None
        total += float(match.group(1)) * _NANOS_PER_UNIT[match.group(2)]
        pos = match.end()
    return sign * total / 1_000_000_000


def parse_int_or_duration(value: str, fallback: float) -> float:
    """Return seconds from a whole number of seconds or a duration such as "1m30s".

    Returns fallback when value is neither.
    """
    if value and _INT.fullmatch(value):
        seconds = int(value)
        if seconds >= 0:
            return float(seconds)
    parsed = _parse_duration(value)
    return fallback if parsed is None else parsed


def parse_string(value: str, fallback: str) -> str:
    """Return value, or fallback when it is empty."""
    return value if value else fallback


def _fraction(value: int, unit: int, digits: int) -> str:
    whole, rest = divmod(value, unit)
    if not rest:
        return str(whole)
    return f"{whole}." + f"{rest:0{digits}d}".rstrip("0")


def format_duration(seconds: float) -> str:
    """Format seconds the way durations are conventionally printed, e.g. "1m0s"."""
    nanos = round(seconds * 1_000_000_000)
    if nanos == 0:
        return "0s"
    sign = "-" if nanos < 0 else ""
    nanos = abs(nanos)
    if nanos < 1_000:
        return f"{sign}{nanos}ns"
    if nanos < 1_000_000:
        return f"{sign}{_fraction(nanos, 1_000, 3)}µs"
    if nanos < 1_000_000_000:
        return f"{sign}{_fraction(nanos, 1_000_000, 6)}ms"

    secs = _fraction(nanos % 60_000_000_000, 1_000_000_000, 9)
    hours, minutes = divmod(nanos // 60_000_000_000, 60)
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{sign}{minutes}m{secs}s"
    return f"{sign}{secs}s"


def read_from_env(env: Mapping[str, str] | None = None) -> tuple[FaaSConfig, ProviderConfig]:
    """Load the provider and containerd configuration from environment variables."""
    if env is None:
        env = os.environ

    def getenv(key: str) -> str:
        return env.get(key, "") or ""

    service_timeout = parse_int_or_duration(getenv("service_timeout"), 60.0)

    config = FaaSConfig(
        tcp_port=parse_int(getenv("port"), 8081),
        read_timeout=service_timeout,
        write_timeout=service_timeout,
        enable_basic_auth=True,
        max_idle_conns=parse_int(getenv("max_idle_conns"), 1024),
        max_idle_conns_per_host=parse_int(getenv("max_idle_conns_per_host"), 1024),
    )
    provider = ProviderConfig(sock=parse_string(getenv("sock"), DEFAULT_SOCK))
    return config, provider