"""HTTP handler that lists, creates and deletes function secrets on disk."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any

from werkzeug.wrappers import Request, Response

from .labeller import Labeller
from .namespace_utils import (
    get_namespace_secret_mount_path,
    get_request_namespace,
    read_namespace_from_query,
    valid_namespace,
)

logger = logging.getLogger(__name__)

SECRET_FILE_PERMISSION = 0o644
SECRET_DIR_PERMISSION = 0o755

TRAVERSE_ERROR = "directory traversal found in name"


class SecretValidationError(ValueError):
    """Raised when a secret's name is not acceptable."""


@dataclass
class Secret:
    """A named secret in a namespace, given as text or raw bytes."""

    name: str = ""
    namespace: str = ""
    value: str = ""
    raw_value: bytes = b""

    def to_json(self) -> dict[str, str]:
        data = {"name": self.name}
        if self.namespace:
            data["namespace"] = self.namespace
        if self.value:
            data["value"] = self.value
        if self.raw_value:
            data["rawValue"] = base64.b64encode(self.raw_value).decode("ascii")
        return data


def _string_field(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key} must be a string")
    return value


def parse_secret(body: bytes | str) -> Secret:
    """Decode a secret from a JSON body; rawValue is base64. Raises ValueError."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValueError(str(exc)) from exc
    if not isinstance(data, dict):
        raise ValueError("secret must be a JSON object")

    raw_text = _string_field(data, "rawValue")
    try:
        raw_value = base64.b64decode(raw_text, validate=True) if raw_text else b""
    except binascii.Error as exc:
        raise ValueError(f"illegal base64 data in rawValue: {exc}") from exc

    return Secret(
        name=_string_field(data, "name"),
        namespace=_string_field(data, "namespace"),
        value=_string_field(data, "value"),
        raw_value=raw_value,
    )


def is_traversal(name: str) -> bool:
    """Return True if name could escape the secrets directory."""
    return os.sep in name or ".." in name


def validate_secret(secret: Secret) -> None:
    """Raise SecretValidationError unless the secret has a safe, non-empty name."""
    if not secret.name.strip():
        raise SecretValidationError("non-empty name is required")
    if is_traversal(secret.name):
        raise SecretValidationError(TRAVERSE_ERROR)


def _error(message: str, status: int) -> Response:
    response = Response(message + "\n", status=status, content_type="text/plain; charset=utf-8")
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


def _json(data: Any) -> Response:
    return Response(
        json.dumps(data, separators=(",", ":")),
        status=HTTPStatus.OK,
        content_type="application/json",
    )


class SecretHandler:
    """Dispatches secret requests by HTTP method."""

    def __init__(self, store: Labeller | None, mount_path: str) -> None:
        self.store = store
        self.mount_path = mount_path

    def __call__(self, request: Request) -> Response:
        """Answer a secret request."""
        if request.method == "GET":
            return self._list(request)
        if request.method in ("POST", "PUT"):
            return self._create(request)
        if request.method == "DELETE":
            return self._delete(request)
        return Response(status=HTTPStatus.BAD_REQUEST)

    def _list(self, request: Request) -> Response:
        namespace = get_request_namespace(read_namespace_from_query(request))
        try:
            valid = valid_namespace(self.store, namespace)
        except Exception as exc:
            return _error(str(exc), HTTPStatus.BAD_REQUEST)
        if not valid:
            return _error("namespace not valid", HTTPStatus.BAD_REQUEST)

        directory = get_namespace_secret_mount_path(self.mount_path, namespace)
        try:
            names = sorted(os.listdir(directory))
        except FileNotFoundError:
            return _json([])
        except OSError as exc:
            logger.error("[Secret] Error listing secrets: %s", exc)
            return _error(str(exc), HTTPStatus.INTERNAL_SERVER_ERROR)

        return _json([Secret(name=name, namespace=namespace).to_json() for name in names])

    def _create(self, request: Request) -> Response:
        try:
            secret = parse_secret(request.get_data())
        except ValueError as exc:
            logger.error("[secret] error %s", exc)
            return _error(str(exc), HTTPStatus.INTERNAL_SERVER_ERROR)

        try:
            validate_secret(secret)
        except SecretValidationError as exc:
            logger.error("[secret] error %s", exc)
            return _error(str(exc), HTTPStatus.BAD_REQUEST)

        logger.info("[secret] is valid: %r", secret.name)
        namespace = get_request_namespace(secret.namespace)
        directory = get_namespace_secret_mount_path(self.mount_path, namespace)

        data = secret.raw_value or secret.value.encode("utf-8")
        path = os.path.join(directory, secret.name)
        try:
            os.makedirs(directory, mode=SECRET_DIR_PERMISSION, exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, SECRET_FILE_PERMISSION)
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
        except OSError as exc:
            logger.error("[secret] error %s", exc)
            return _error(str(exc), HTTPStatus.INTERNAL_SERVER_ERROR)
        return Response(status=HTTPStatus.OK)

    def _delete(self, request: Request) -> Response:
        try:
            secret = parse_secret(request.get_data())
        except ValueError as exc:
            logger.error("[secret] error %s", exc)
            return _error(str(exc), HTTPStatus.INTERNAL_SERVER_ERROR)

        namespace = get_request_namespace(read_namespace_from_query(request))
        directory = get_namespace_secret_mount_path(self.mount_path, namespace)
        try:
            os.remove(os.path.join(directory, secret.name))
        except OSError as exc:
            logger.error("[secret] error %s", exc)
            return _error(str(exc), HTTPStatus.INTERNAL_SERVER_ERROR)
        return Response(status=HTTPStatus.OK)


def make_secret_handler(store: Labeller | None, mount_path: str) -> SecretHandler:
    """Create the secrets directory if needed and return a handler serving it."""
    try:
        os.makedirs(mount_path, mode=SECRET_FILE_PERMISSION, exist_ok=True)
    except OSError as exc:
        logger.error("Creating path: %s, error: %s", mount_path, exc)
    return SecretHandler(store, mount_path)