"""A TCP proxy that exposes a private container port on the host."""

from __future__ import annotations

import contextlib
import logging
import re
import socket
import threading

from .resolver import Resolver

logger = logging.getLogger(__name__)

_INT = re.compile(r"[+-]?[0-9]+")


def get_upstream(value: str, default_port: int) -> tuple[str, int]:
    """Split "host[:port]" into a host and port, using default_port when absent.

    Raises ValueError when the port is not a 32-bit integer.
    """
    host, sep, port_text = value.partition(":")
    if not sep:
        return value, default_port
    if not _INT.fullmatch(port_text):
        raise ValueError(f"invalid port in upstream {value!r}")
    port = int(port_text)
    if not -(2**31) <= port < 2**31:
        raise ValueError(f"port out of range in upstream {value!r}")
    return host, port & 0xFFFFFFFF


def _pipe(source: socket.socket, dest: socket.socket) -> None:
    try:
        while True:
            data = source.recv(65536)
            if not data:
                break
            dest.sendall(data)
    except OSError:
        pass
    finally:
        with contextlib.suppress(OSError):
            dest.shutdown(socket.SHUT_RDWR)
        dest.close()


class Proxy:
    """Forwards TCP connections on host_ip:port to a resolved upstream."""

    def __init__(
        self,
        upstream: str,
        port: int,
        host_ip: str,
        timeout: float,
        resolver: Resolver,
    ) -> None:
        self.upstream = upstream
        self.port = port
        self.host_ip = host_ip
        self.timeout = timeout
        self.resolver = resolver
        # Set once the listener is bound; bound_address holds its address.
        self.ready = threading.Event()
        self.bound_address: tuple[str, int] | None = None
        self._stopped = threading.Event()
        self._listener: socket.socket | None = None

    def start(self) -> None:
        """Resolve the upstream, listen, and forward connections until stopped.

        Raises LookupError when the upstream host cannot be resolved and
        OSError when the listener cannot be bound.
        """
        upstream_host, upstream_port = get_upstream(self.upstream, self.port)

        logger.info("Looking up IP for: %r", upstream_host)
        ip_address = self.resolver.get(upstream_host, 5.0)
        if not ip_address:
            raise LookupError(f"unable to resolve upstream host {upstream_host!r}")

        upstream_addr = (ip_address, upstream_port)
        logger.info(
            "Proxy from: %s:%d, to: %s (%s)", self.host_ip, self.port, self.upstream, ip_address
        )

        try:
            listener = socket.create_server((self.host_ip, self.port))
        except OSError as exc:
            logger.error("Error: %s", exc)
            raise

        self._listener = listener
        listener.settimeout(0.2)
        self.bound_address = listener.getsockname()[:2]
        self.ready.set()

        with listener:
            while not self._stopped.is_set():
                try:
                    conn, _ = listener.accept()
                except socket.timeout:
                    continue
                except OSError as exc:
                    if self._stopped.is_set():
                        return
                    logger.error("Unable to accept on: %d, error: %s", self.port, exc)
                    raise

                try:
                    upstream = socket.create_connection(upstream_addr)
                except OSError as exc:
                    conn.close()
                    logger.error("Unable to dial: %s:%d, error: %s", *upstream_addr, exc)
                    continue

                threading.Thread(target=_pipe, args=(upstream, conn), daemon=True).start()
                threading.Thread(target=_pipe, args=(conn, upstream), daemon=True).start()

    def stop(self) -> None:
        """Stop accepting connections; start() then returns."""
        self._stopped.set()
        if self._listener is not None:
            with contextlib.suppress(OSError):
                self._listener.close()