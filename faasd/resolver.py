"""Resolving core service hostnames to IP addresses from a hosts file."""

from __future__ import annotations

import abc
import logging
import os
import threading
import time

logger = logging.getLogger(__name__)


class Resolver(abc.ABC):
    """Resolves the IP address of an upstream host."""

    @abc.abstractmethod
    def start(self) -> None:
        """Run any polling or connections needed to resolve names."""

    @abc.abstractmethod
    def get(self, upstream: str, timeout: float) -> str | None:
        """Return the IP for upstream, or None once timeout seconds have passed."""


class LocalResolver(Resolver):
    """Looks up hostnames in a tab-separated hosts file that is polled for changes."""

    def __init__(self, path: str, poll_interval: float = 3.0) -> None:
        self.path = path
        self.poll_interval = poll_interval
        self.map: dict[str, str] = {}
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._retry_interval = 0.25

    def start(self) -> None:
        """Poll the hosts file, rebuilding the map whenever it changes, until stopped."""
        self._stopped.clear()
        last_mtime: int | None = None
        while not self._stopped.is_set():
            rebuild = False
            try:
                info = os.stat(self.path)
            except OSError:
                pass
            else:
                if last_mtime is None or last_mtime != info.st_mtime_ns:
                    rebuild = True
                last_mtime = info.st_mtime_ns

            if rebuild:
                logger.info("Resolver rebuilding map")
                self.rebuild()
            self._stopped.wait(self.poll_interval)

    def stop(self) -> None:
        """Ask a running start() loop to return."""
        self._stopped.set()

    def rebuild(self) -> None:
        """Read the hosts file and add its entries to the map."""
        with self._lock:
            try:
                with open(self.path, encoding="utf-8", errors="replace") as handle:
                    data = handle.read()
            except OSError as exc:
                logger.error("resolver rebuild error: %s", exc)
                return

            for line in data.split("\n"):
                ip, sep, host = line.partition("\t")
                if line and sep:
                    logger.info("Resolver: %r=%r", host, ip)
                    self.map[host] = ip

    def lookup(self, upstream: str) -> str:
        """Return the IP known for upstream, or "" if none is known."""
        with self._lock:
            return self.map.get(upstream, "")

    def get(self, upstream: str, timeout: float) -> str | None:
        """Wait up to timeout seconds for upstream to appear and return its IP."""
        deadline = time.monotonic() + timeout
        while True:
            value = self.lookup(upstream)
            if value:
                return value
            if time.monotonic() > deadline:
                logger.warning("Timed out after %ss getting host %r", timeout, upstream)
                return None
            time.sleep(self._retry_interval)