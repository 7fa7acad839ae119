"""Preparing the provider's working directory and wrapping its HTTP handlers."""

from __future__ import annotations

import logging
import os
import shutil
from typing import Any, Callable, Iterable

from .install import SECRET_DIR_PERMISSION, WORKING_DIRECTORY_PERMISSION, ensure_secrets_dir
from .version import DEFAULT_FUNCTION_NAMESPACE

logger = logging.getLogger(__name__)

HOSTS_CONTENT = "127.0.0.1\tlocalhost"
RESOLV_CONTENT = "nameserver 8.8.8.8\nnameserver 8.8.4.4"

EULA_HEADER = "X-OpenFaaS-EULA"
EULA_VALUE = "openfaas-ce"


def _write(path: str, content: str) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, WORKING_DIRECTORY_PERMISSION)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(content)


def write_network_files(directory: str) -> None:
    """Write the hosts and resolv.conf files the functions mount into directory."""
    try:
        _write(os.path.join(directory, "hosts"), HOSTS_CONTENT)
    except OSError as exc:
        raise OSError(f"cannot write hosts file: {exc}") from exc
    try:
        _write(os.path.join(directory, "resolv.conf"), RESOLV_CONTENT)
    except OSError as exc:
        raise OSError(f"cannot write resolv.conf file: {exc}") from exc


def copy_file(src: str, dst: str) -> None:
    """Append the contents of src to dst, creating dst when missing."""
    try:
        source = open(src, "rb")
    except OSError as exc:
        raise OSError(f"opening {src} failed {exc}") from exc
    with source:
        try:
            fd = os.open(dst, os.O_CREAT | os.O_WRONLY | os.O_APPEND, SECRET_DIR_PERMISSION)
        except OSError as exc:
            raise OSError(f"opening {dst} failed {exc}") from exc
        with os.fdopen(fd, "wb") as out:
            try:
                shutil.copyfileobj(source, out)
            except OSError as exc:
                raise OSError(f"writing into {dst} failed {exc}") from exc


def move_secrets_to_default_namespace(
    base_secret_path: str, default_namespace: str = DEFAULT_FUNCTION_NAMESPACE
) -> list[str]:
    """Copy secrets kept directly in base_secret_path into the default namespace's folder.

    Secrets already present in the namespace folder are left alone. Returns
    the paths that were written.
    """
    new_secret_path = os.path.join(base_secret_path, default_namespace)
    ensure_secrets_dir(new_secret_path)

    copied = []
    with os.scandir(base_secret_path) as entries:
        files = sorted(entry.name for entry in entries if not entry.is_dir())

    for name in files:
        new_path = os.path.join(new_secret_path, name)
        if os.path.exists(new_path):
            continue
        old_path = os.path.join(base_secret_path, name)
        copy_file(old_path, new_path)
        logger.info("[Migration] Copied %s to %s", old_path, new_path)
        copied.append(new_path)
    return copied


def header_middleware(app: Callable[..., Iterable[bytes]]) -> Callable[..., Iterable[bytes]]:
    """Wrap a WSGI app so every response carries the EULA header."""

    def wrapped(environ: dict[str, Any], start_response: Callable[..., Any]) -> Iterable[bytes]:
        def start(status: str, headers: list[tuple[str, str]], exc_info: Any = None) -> Any:
            headers = [(k, v) for k, v in headers if k.lower() != EULA_HEADER.lower()]
            headers.append((EULA_HEADER, EULA_VALUE))
            if exc_info is None:
                return start_response(status, headers)
            return start_response(status, headers, exc_info)

        return app(environ, start)

    return wrapped