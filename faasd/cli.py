"""Command-line entry point for faasd."""

from __future__ import annotations

import argparse
import logging
import os
import signal
import socket
import subprocess
import sys
import threading
import time
from datetime import datetime, timedelta
from typing import BinaryIO, Callable, Sequence

from .config import parse_int_or_duration
from .connectivity import ConnectivityError, connectivity_check
from .install import make_basic_auth_files, run_install
from .resolver import LocalResolver
from .up import DEFAULT_COMPOSE_FILE, DEFAULT_PROXY_TIMEOUT, build_proxies, load_service_definition, parse_up_config
from .version import FAASD_NAMESPACE, GIT_COMMIT, get_version

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = "Welcome to faasd"

LOGO = r"""  __                     _ 
 / _| __ _  __ _ ___  __| |
| |_ / _` |/ _` / __|/ _` |
|  _| (_| | (_| \__ \ (_| |
|_|  \__,_|\__,_|___/\__,_|
"""

_WHITE = "\x1b[37m"
_RESET = "\x1b[0m"

DEFAULT_SINCE = 600.0
JOURNAL_SOCKET = "/run/systemd/journal/socket"
_JOURNAL_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_PRIORITY_ERR = 3
_PRIORITY_INFO = 6
_SHUTDOWN_TIMEOUT = 1.0

_EULA_MESSAGE = (
    "the OpenFaaS CE EULA requires Internet access, upgrade to faasd Pro to continue"
)


class CommandError(Exception):
    """Raised when a command cannot run."""


def print_logo() -> None:
    """Print the faasd logo in white."""
    print(f"{_WHITE}{LOGO}{_RESET}")


def print_version() -> None:
    """Print the version and commit."""
    print(f"faasd Community Edition (CE) version: {get_version()}\tcommit: {GIT_COMMIT}")


def build_journal_args(
    name: str,
    namespace: str,
    follow: bool = False,
    since: float = DEFAULT_SINCE,
    now: datetime | None = None,
) -> list[str]:
    """Return the journalctl command that shows a service's logs.

    since is a number of seconds before now; 0 means no lower bound.
    """
    args = ["journalctl", "-o", "cat", "-t", f"{namespace}:{name}"]
    if follow:
        args.append("-f")
    if since != 0:
        if now is None:
            now = datetime.now()
        start = now - timedelta(seconds=since)
        args.append(f"--since={start.strftime(_JOURNAL_TIME_FORMAT)}")
    return args


def run_service_logs(
    name: str,
    namespace: str = FAASD_NAMESPACE,
    follow: bool = False,
    since: float = DEFAULT_SINCE,
) -> None:
    """Stream a service's logs from the journal to standard output."""
    if not name:
        raise CommandError("service name is required as an argument")
    if not namespace:
        raise CommandError("namespace is required")

    args = build_journal_args(name, namespace, follow, since)
    result = subprocess.run(args, stderr=subprocess.PIPE, text=True, check=False)
    if result.stderr:
        sys.stderr.write(result.stderr)
    if result.returncode != 0:
        raise CommandError(f"failed to get logs for service {name}: {result.stderr}")


def _duration(text: str) -> float:
    missing = float("nan")
    value = parse_int_or_duration(text, missing)
    if value != value:
        raise argparse.ArgumentTypeError(f"invalid duration: {text!r}")
    return value


def _pre_run_connectivity() -> None:
    try:
        connectivity_check()
    except ConnectivityError as exc:
        raise CommandError(_EULA_MESSAGE) from exc


def _run_root(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    print_logo()
    parser.print_help()


def _run_version(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    print_logo()
    print_version()


def _run_install(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    run_install()


def _run_service(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    args.service_parser.print_help()


def _run_service_logs(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    if os.geteuid() != 0:
        raise CommandError("this command must be run as root")
    if not args.name:
        raise CommandError("service name is required as an argument")
    if not args.namespace:
        raise CommandError("namespace is required")
    run_service_logs(args.name, args.namespace, args.follow, args.since)


def _in_background(target: Callable[[], object], label: str) -> threading.Thread:
    def run() -> None:
        try:
            target()
        except Exception as exc:
            logger.error("%s stopped: %s", label, exc)

    thread = threading.Thread(target=run, name=label, daemon=True)
    thread.start()
    return thread


def _run_up(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    _pre_run_connectivity()
    print_version()

    config = parse_up_config(args.file)
    services = load_service_definition(config)

    try:
        make_basic_auth_files(os.path.join(config.working_dir, "secrets"))
    except OSError as exc:
        raise CommandError(f"cannot create basic-auth-* files: {exc}") from exc

    resolver = LocalResolver(os.path.join(config.working_dir, "hosts"))
    proxies = build_proxies(services, resolver, DEFAULT_PROXY_TIMEOUT)

    stop = threading.Event()

    def on_signal(signum: int, frame: object) -> None:
        stop.set()

    signal.signal(signal.SIGTERM, on_signal)
    signal.signal(signal.SIGINT, on_signal)

    _in_background(resolver.start, "resolver")
    for port, proxy in proxies.items():
        _in_background(proxy.start, f"proxy-{port}")

    logger.info("faasd: waiting for SIGTERM or SIGINT")
    while not stop.wait(0.5):
        pass

    logger.info("Signal received.. shutting down server in %ss", _SHUTDOWN_TIMEOUT)
    resolver.stop()
    for proxy in proxies.values():
        proxy.stop()
    time.sleep(_SHUTDOWN_TIMEOUT)


def _journal_send(sock: socket.socket, message: str, priority: int, identifier: str) -> None:
    payload = (
        f"MESSAGE={message}\nPRIORITY={priority}\nSYSLOG_IDENTIFIER={identifier}\n"
    ).encode("utf-8", errors="replace")
    try:
        sock.sendto(payload, JOURNAL_SOCKET)
    except OSError as exc:
        logger.error("unable to write to the journal: %s", exc)


def _forward(stream: BinaryIO, priority: int, identifier: str, sock: socket.socket) -> None:
    with stream:
        for raw in stream:
            line = raw.rstrip(b"\n")
            if line.endswith(b"\r"):
                line = line[:-1]
            _journal_send(sock, line.decode("utf-8", errors="replace"), priority, identifier)


def _run_collect() -> None:
    """Forward a container's stdout and stderr, given on fds 3 and 4, to the journal."""
    namespace = os.environ.get("CONTAINER_NAMESPACE", "")
    container_id = os.environ.get("CONTAINER_ID", "")
    identifier = f"{namespace}:{container_id}"

    stdout = os.fdopen(3, "rb")
    stderr = os.fdopen(4, "rb")
    wait_fd = 5

    with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM) as sock:
        threads = [
            threading.Thread(target=_forward, args=(stdout, _PRIORITY_INFO, identifier, sock)),
            threading.Thread(target=_forward, args=(stderr, _PRIORITY_ERR, identifier, sock)),
        ]
        for thread in threads:
            thread.start()
        # Closing the wait descriptor tells the runtime the container may start.
        os.close(wait_fd)
        for thread in threads:
            thread.join()


def _run_collect_command(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    _run_collect()


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for all faasd commands."""
    parser = argparse.ArgumentParser(
        prog="faasd",
        description="Start faasd\n\nfaasd Community Edition (CE)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.set_defaults(handler=_run_root)
    commands = parser.add_subparsers(dest="command", metavar="command")

    version = commands.add_parser("version", help="Display version information.")
    version.set_defaults(handler=_run_version)

    up = commands.add_parser("up", help="Start faasd")
    up.add_argument(
        "-f",
        "--file",
        default=DEFAULT_COMPOSE_FILE,
        help="compose file specifying the faasd service configuration",
    )
    up.set_defaults(handler=_run_up)

    install = commands.add_parser("install", help="Install faasd")
    install.set_defaults(handler=_run_install)

    collect = commands.add_parser("collect", help="Collect logs to the journal")
    collect.set_defaults(handler=_run_collect_command)

    service = commands.add_parser(
        "service",
        help="Manage services",
        description="Manage services created by faasd from the docker-compose.yml file",
    )
    service.set_defaults(handler=_run_service, service_parser=service)
    service_commands = service.add_subparsers(dest="service_command", metavar="command")

    logs = service_commands.add_parser(
        "logs",
        help="View logs for a service",
        description=(
            "View logs for a service created by faasd from the docker-compose.yml file."
        ),
        epilog=(
            "  ## View logs for the gateway for the last hour\n"
            "  faasd service logs gateway --since 1h\n\n"
            "  ## View logs for the cron-connector, and tail them\n"
            "  faasd service logs cron-connector -f\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    logs.add_argument("name", nargs="?", default="", help="name of the service")
    logs.add_argument(
        "--since",
        type=_duration,
        default=DEFAULT_SINCE,
        help="How far back in time to include logs",
    )
    logs.add_argument("-f", "--follow", action="store_true", help="Follow the logs")
    logs.add_argument(
        "--namespace", default=FAASD_NAMESPACE, help="namespace the service runs in"
    )
    logs.set_defaults(handler=_run_service_logs)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run faasd with argv and return the process exit status."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    if "CONTAINER_ID" in os.environ:
        try:
            _run_collect()
        except Exception as exc:
            sys.stderr.write(str(exc))
            return 1
        return 0

    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.handler(args, parser)
    except KeyboardInterrupt:
        return 1
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0