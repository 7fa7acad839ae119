"""HTTP handler that creates, reads, updates and deletes function namespaces."""

from __future__ import annotations

import abc
import json
import logging
from http import HTTPStatus
from typing import Any, Mapping

from werkzeug.wrappers import Request, Response

from .labeller import Labeller

logger = logging.getLogger(__name__)


class HttpError(Exception):
    """An error that carries the HTTP status to answer with."""

    def __init__(self, message: str, status: int) -> None:
        super().__init__(message)
        self.status = status


class NamespaceStore(Labeller):
    """A store of namespaces and their labels."""

    @abc.abstractmethod
    def list(self) -> list[str]:
        """Return the names of all namespaces."""

    @abc.abstractmethod
    def set_label(self, namespace: str, key: str, value: str) -> None:
        """Set a label; an empty value removes it."""

    @abc.abstractmethod
    def create(self, namespace: str, labels: Mapping[str, str]) -> None:
        """Create a namespace with labels."""

    @abc.abstractmethod
    def delete(self, namespace: str) -> None:
        """Delete a namespace; raises LookupError when it does not exist."""


class MemoryNamespaceStore(NamespaceStore):
    """A namespace store held in memory."""

    def __init__(self, namespaces: Mapping[str, Mapping[str, str]] | None = None) -> None:
        self._namespaces = {name: dict(labels) for name, labels in (namespaces or {}).items()}

    def _get(self, namespace: str) -> dict[str, str]:
        try:
            return self._namespaces[namespace]
        except KeyError:
            raise LookupError(f"namespace {namespace}: not found") from None

    def list(self) -> list[str]:
        return list(self._namespaces)

    def labels(self, namespace: str) -> dict[str, str]:
        return dict(self._get(namespace))

    def set_label(self, namespace: str, key: str, value: str) -> None:
        labels = self._get(namespace)
        if value:
            labels[key] = value
        else:
            labels.pop(key, None)

    def create(self, namespace: str, labels: Mapping[str, str]) -> None:
        if namespace in self._namespaces:
            raise ValueError(f"namespace {namespace}: already exists")
        self._namespaces[namespace] = dict(labels or {})

    def delete(self, namespace: str) -> None:
        self._get(namespace)
        del self._namespaces[namespace]


def has_openfaas_label(labels: Mapping[str, str] | None) -> bool:
    """Return True if labels carry openfaas=1."""
    return bool(labels) and labels.get("openfaas") == "1"


def _parse_body(body: bytes | str) -> tuple[str, dict[str, str]]:
    try:
        data: Any = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise HttpError(f"error parsing request body: {exc}", HTTPStatus.BAD_REQUEST) from exc
    if not isinstance(data, dict):
        raise HttpError("error parsing request body: expected an object", HTTPStatus.BAD_REQUEST)
    name = data.get("name") or ""
    labels = data.get("labels") or {}
    if not isinstance(name, str):
        raise HttpError("error parsing request body: name must be a string", HTTPStatus.BAD_REQUEST)
    if not isinstance(labels, dict) or not all(
        isinstance(value, str) for value in labels.values()
    ):
        raise HttpError(
            "error parsing request body: labels must be a map of strings", HTTPStatus.BAD_REQUEST
        )
    return name, labels


def parse_namespace_request(
    method: str, name_in_path: str, body: bytes | str
) -> tuple[str, dict[str, str]]:
    """Return the namespace name and labels a request refers to.

    Raises HttpError with a 400 status when the request is invalid.
    """
    if method == "GET":
        if not name_in_path:
            raise HttpError("namespace not specified in URL", HTTPStatus.BAD_REQUEST)
        return name_in_path, {}

    name, labels = _parse_body(body)

    if method != "POST":
        if not name_in_path:
            raise HttpError("namespace not specified in URL", HTTPStatus.BAD_REQUEST)
        if name != name_in_path:
            raise HttpError(
                "namespace in request body does not match namespace in URL",
                HTTPStatus.BAD_REQUEST,
            )

    if not name:
        raise HttpError("namespace not specified in request body", HTTPStatus.BAD_REQUEST)

    if not has_openfaas_label(labels):
        raise HttpError("request does not have openfaas=1 label", HTTPStatus.BAD_REQUEST)

    return name, labels


def _error(message: str, status: int) -> Response:
    response = Response(message + "\n", status=status, content_type="text/plain; charset=utf-8")
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


class NamespaceHandler:
    """Dispatches namespace requests by HTTP method."""

    def __init__(self, store: NamespaceStore) -> None:
        self.store = store

    def __call__(self, request: Request, name: str = "") -> Response:
        """Answer a request for the namespace named in the path."""
        handlers = {
            "POST": self._create,
            "GET": self._get,
            "DELETE": self._delete,
            "PUT": self._update,
        }
        handler = handlers.get(request.method)
        if handler is None:
            return Response(status=HTTPStatus.METHOD_NOT_ALLOWED)
        try:
            namespace, labels = parse_namespace_request(request.method, name, request.get_data())
        except HttpError as exc:
            return _error(str(exc), exc.status)
        return handler(namespace, labels)

    def _exists(self, namespace: str) -> bool:
        return namespace in self.store.list()

    def _update(self, namespace: str, labels: dict[str, str]) -> Response:
        try:
            exists = self._exists(namespace)
        except Exception as exc:
            return _error(str(exc), HTTPStatus.BAD_REQUEST)
        if not exists:
            return _error(f"namespace {namespace} not found", HTTPStatus.NOT_FOUND)

        try:
            original = self.store.labels(namespace)
        except Exception as exc:
            return _error(str(exc), HTTPStatus.BAD_REQUEST)

        if not has_openfaas_label(original):
            return _error(
                f"namespace {namespace} is not an openfaas namespace", HTTPStatus.BAD_REQUEST
            )

        exclusions = [key for key in original if key not in labels]
        try:
            for key in exclusions:
                self.store.set_label(namespace, key, "")
            for key, value in labels.items():
                self.store.set_label(namespace, key, value)
        except Exception as exc:
            return _error(str(exc), HTTPStatus.INTERNAL_SERVER_ERROR)

        return Response(status=HTTPStatus.ACCEPTED)

    def _delete(self, namespace: str, labels: dict[str, str]) -> Response:
        try:
            self.store.delete(namespace)
        except Exception as exc:
            if isinstance(exc, LookupError) or "not found" in str(exc):
                return _error(f"namespace {namespace} not found", HTTPStatus.NOT_FOUND)
            return _error(str(exc), HTTPStatus.INTERNAL_SERVER_ERROR)
        return Response(status=HTTPStatus.ACCEPTED)

    def _get(self, namespace: str, labels: dict[str, str]) -> Response:
        try:
            exists = self._exists(namespace)
        except Exception as exc:
            return _error(str(exc), HTTPStatus.BAD_REQUEST)
        if not exists:
            return _error(f"namespace {namespace} not found", HTTPStatus.NOT_FOUND)

        try:
            stored = self.store.labels(namespace)
        except Exception as exc:
            return _error(str(exc), HTTPStatus.BAD_REQUEST)

        if not has_openfaas_label(stored):
            return _error(f"namespace {namespace} not found", HTTPStatus.NOT_FOUND)

        body = json.dumps(
            {"name": namespace, "labels": dict(sorted(stored.items()))}, separators=(",", ":")
        )
        return Response(body + "\n", status=HTTPStatus.OK, content_type="application/json")

    def _create(self, namespace: str, labels: dict[str, str]) -> Response:
        try:
            exists = self._exists(namespace)
        except Exception as exc:
            return _error(str(exc), HTTPStatus.BAD_REQUEST)
        if exists:
            return _error(f"namespace {namespace} already exists", HTTPStatus.CONFLICT)

        try:
            self.store.create(namespace, labels)
        except Exception as exc:
            return _error(str(exc), HTTPStatus.BAD_REQUEST)
        return Response(status=HTTPStatus.CREATED)