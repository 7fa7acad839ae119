"""Reading function logs from the systemd journal with journalctl."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import IO, Iterable, Iterator, Mapping

from .version import DEFAULT_FUNCTION_NAMESPACE

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_DEFAULT_WINDOW = timedelta(minutes=5)
_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class LogParseError(ValueError):
    """Raised when a journal entry cannot be turned into a log message."""


@dataclass
class LogRequest:
    """A request for the logs of one function."""

    name: str
    namespace: str = ""
    follow: bool = False
    since: datetime | None = None
    tail: int = 0


@dataclass
class LogMessage:
    """One log line from a function instance."""

    name: str
    namespace: str
    instance: str
    text: str
    timestamp: datetime


def build_command(request: LogRequest, now: datetime | None = None) -> list[str]:
    """Return the journalctl command line that answers request.

    Logs start five minutes before now unless the request gives an earlier
    ``since``.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    since = now - _DEFAULT_WINDOW
    if request.since is not None and request.since < now:
        since = request.since

    namespace = request.namespace or DEFAULT_FUNCTION_NAMESPACE

    args = [
        "journalctl",
        "--utc",
        "--no-pager",
        "--output=json",
        f"--identifier={namespace}:{request.name}",
        f"--since={since.astimezone(timezone.utc).strftime(_TIME_FORMAT)}",
    ]
    if request.follow:
        args.append("--follow")
    if request.tail > 0:
        args.append(f"--lines={request.tail}")
    return args


def parse_entry(entry: Mapping[str, str]) -> LogMessage:
    """Build a LogMessage from a decoded journal entry.

    Uses MESSAGE, _PID, SYSLOG_IDENTIFIER and __REALTIME_TIMESTAMP.
    """
    parts = entry.get("SYSLOG_IDENTIFIER", "").split(":")
    if len(parts) != 2:
        raise LogParseError("invalid SYSLOG_IDENTIFIER")
    namespace, name = parts

    if "__REALTIME_TIMESTAMP" not in entry:
        raise LogParseError("missing required field __REALTIME_TIMESTAMP")
    raw = entry["__REALTIME_TIMESTAMP"]
    try:
        micros = int(raw)
    except ValueError as exc:
        raise LogParseError(f"invalid timestamp: {exc}") from exc
    if str(raw).strip() != str(raw) or "_" in str(raw):
        raise LogParseError(f"invalid timestamp: {raw!r}")

    return LogMessage(
        name=name,
        namespace=namespace,
        instance=entry.get("_PID", ""),
        text=entry.get("MESSAGE", ""),
        timestamp=_EPOCH + timedelta(microseconds=micros),
    )


def iter_messages(lines: Iterable[str]) -> Iterator[LogMessage]:
    """Yield messages from journalctl JSON output, stopping at the first bad entry."""
    for line in lines:
        if not line.strip():
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError as exc:
            logger.error("error decoding journalctl output: %s", exc)
            return
        if not isinstance(entry, dict) or not all(
            isinstance(value, str) for value in entry.values()
        ):
            logger.error("error decoding journalctl output: entry is not a map of strings")
            return
        try:
            message = parse_entry(entry)
        except LogParseError as exc:
            logger.error("error parsing journalctl output: %s", exc)
            return
        yield message


def _log_stderr(stream: IO[str]) -> None:
    with stream:
        for line in stream:
            logger.info("%s", line.rstrip("\n"))


class JournalRequester:
    """Queries function logs from journalctl."""

    def query(self, request: LogRequest) -> Iterator[LogMessage]:
        """Start journalctl for request and return an iterator over its messages.

        Raises FileNotFoundError when journalctl is not installed and OSError
        when it cannot be started.
        """
        if shutil.which("journalctl") is None:
            raise FileNotFoundError("can not find journalctl")

        args = build_command(request)
        try:
            process = subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            raise OSError(f"failed to create journalctl: {exc}") from exc

        threading.Thread(target=_log_stderr, args=(process.stderr,), daemon=True).start()
        return self._stream(process, args)

    @staticmethod
    def _stream(process: subprocess.Popen, args: list[str]) -> Iterator[LogMessage]:
        logger.info("starting journal stream using %s", " ".join(args))
        try:
            yield from iter_messages(process.stdout)
        finally:
            if process.poll() is None:
                process.terminate()
            code = process.wait()
            if process.stdout is not None:
                process.stdout.close()
            if code not in (0, -15):
                logger.error("journalctl exited with error: exit status %d", code)