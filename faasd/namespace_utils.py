"""Helpers for choosing and validating the namespace a request refers to."""

from __future__ import annotations

import logging
import posixpath
from typing import Iterable

from werkzeug.wrappers import Request

from .labeller import Labeller
from .namespace_handler import NamespaceStore
from .version import DEFAULT_FUNCTION_NAMESPACE, NAMESPACE_LABEL

logger = logging.getLogger(__name__)


def get_request_namespace(namespace: str | None) -> str:
    """Return namespace, or the default function namespace when it is empty."""
    return namespace or DEFAULT_FUNCTION_NAMESPACE


def read_namespace_from_query(request: Request) -> str:
    """Return the ``namespace`` query parameter, or "" when absent."""
    return request.args.get("namespace", "")


def get_namespace_secret_mount_path(user_secret_path: str, namespace: str) -> str:
    """Return the directory holding the secrets of a namespace."""
    return posixpath.normpath(posixpath.join(user_secret_path, namespace))


def valid_namespace(store: Labeller | None, namespace: str) -> bool:
    """Return True if namespace may hold functions.

    The default namespace is always valid; any other needs the openfaas
    label set to "true" or "1". Errors from the store propagate.
    """
    if namespace == DEFAULT_FUNCTION_NAMESPACE:
        return True
    if store is None:
        raise LookupError(f"no label store to look up namespace {namespace}")
    labels = store.labels(namespace)
    return labels.get(NAMESPACE_LABEL) in ("true", "1")


def find_namespace(target: str, items: Iterable[str]) -> bool:
    """Return True if target is among items."""
    return target in items


def list_namespaces(store: NamespaceStore) -> list[str]:
    """Return the default namespace followed by every namespace carrying the openfaas label."""
    found = [DEFAULT_FUNCTION_NAMESPACE]
    try:
        names = store.list()
    except Exception as exc:
        logger.error("Error listing namespaces: %s", exc)
        return found

    for name in names:
        try:
            labels = store.labels(name)
        except Exception as exc:
            logger.error("Error listing label for namespace %s: %s", name, exc)
            continue
        if NAMESPACE_LABEL in labels:
            found.append(name)

    return found