"""Function metadata: environment, labels, mounts, limits and invocation addresses."""

from __future__ import annotations

import os
import posixpath
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from .info_handler import FAASD_MAX_FUNCTIONS, FAASD_MAX_NS

ANNOTATION_LABEL_PREFIX = "com.openfaas.annotations."
SECRETS_DIR = "/var/openfaas/secrets"
WATCHDOG_PORT = 8080
DEFAULT_HOSTS_DIR = "/var/lib/faasd"


class LabelConflictError(ValueError):
    """Raised when an annotation's label key is already used by a label."""


class FunctionLimitError(Exception):
    """Raised when a deployment would exceed the allowed functions or namespaces."""


@dataclass
class SpecMount:
    """A mount in a container runtime spec."""

    destination: str
    type: str = ""
    source: str = ""
    options: list[str] = field(default_factory=list)


def read_env_from_process_env(env: Iterable[str] | None) -> tuple[dict[str, str], str]:
    """Split a process environment into user variables and the fprocess value.

    PATH and entries without "=" are skipped.
    """
    found: dict[str, str] = {}
    fprocess = ""
    for entry in env or []:
        parts = entry.split("=")
        if len(parts) == 1:
            continue
        key, value = parts[0], parts[1]
        if key == "PATH":
            continue
        if key == "fprocess":
            fprocess = value
            continue
        found[key] = value
    return found, fprocess


def read_secrets_from_mounts(mounts: Iterable[SpecMount] | None) -> list[str]:
    """Return the names of secrets mounted under the secrets directory."""
    secrets = []
    for mount in mounts or []:
        parts = mount.destination.split(SECRETS_DIR + "/")
        if len(parts) > 1:
            secrets.append(parts[1])
    return secrets


def build_labels_and_annotations(
    container_labels: Mapping[str, str] | None,
) -> tuple[dict[str, str], dict[str, str]]:
    """Separate container labels into plain labels and prefixed annotations."""
    labels: dict[str, str] = {}
    annotations: dict[str, str] = {}
    for key, value in (container_labels or {}).items():
        if key.startswith(ANNOTATION_LABEL_PREFIX):
            annotations[key[len(ANNOTATION_LABEL_PREFIX):]] = value
        else:
            labels[key] = value
    return labels, annotations


def read_memory_limit_from_spec(spec: Mapping[str, Any] | None) -> int:
    """Return linux.resources.memory.limit from a runtime spec, or 0 when unset."""
    node: Any = spec
    for key in ("linux", "resources", "memory", "limit"):
        if not isinstance(node, Mapping):
            return 0
        node = node.get(key)
    return int(node) if node is not None else 0


def build_labels(
    labels: Mapping[str, str] | None, annotations: Mapping[str, str] | None
) -> dict[str, str]:
    """Merge labels with annotations stored under the annotation prefix.

    Raises LabelConflictError when an annotation's key is already a label.
    """
    result = dict(labels or {})
    for key, value in (annotations or {}).items():
        prefixed = f"{ANNOTATION_LABEL_PREFIX}{key}"
        if prefixed in result:
            raise LabelConflictError(
                f"Key {key} cannot be used as a label due to a conflict with "
                f"annotation prefix {ANNOTATION_LABEL_PREFIX}"
            )
        result[prefixed] = value
    return result


def prepare_env(env_process: str, env_vars: Mapping[str, str] | None) -> list[str]:
    """Build the KEY=value environment of a function, with fprocess last."""
    envs = []
    fprocess_found = bool(env_process)
    fprocess = "fprocess=" + env_process
    for key, value in (env_vars or {}).items():
        if key == "fprocess":
            fprocess_found = True
            fprocess = value
        else:
            envs.append(f"{key}={value}")
    if fprocess_found:
        envs.append(fprocess)
    return envs


def get_os_mounts(environ: Mapping[str, str] | None = None) -> list[SpecMount]:
    """Return read-only bind mounts for resolv.conf and hosts from hosts_dir."""
    if environ is None:
        environ = os.environ
    hosts_dir = environ.get("hosts_dir") or DEFAULT_HOSTS_DIR
    return [
        SpecMount(
            destination="/etc/resolv.conf",
            type="bind",
            source=posixpath.join(hosts_dir, "resolv.conf"),
            options=["rbind", "ro"],
        ),
        SpecMount(
            destination="/etc/hosts",
            type="bind",
            source=posixpath.join(hosts_dir, "hosts"),
            options=["rbind", "ro"],
        ),
    ]


def secret_mounts(secret_mount_path: str, secrets: Iterable[str]) -> list[SpecMount]:
    """Return read-only bind mounts placing each secret in the secrets directory."""
    return [
        SpecMount(
            destination=posixpath.join(SECRETS_DIR, secret),
            type="bind",
            source=posixpath.join(secret_mount_path, secret),
            options=["rbind", "ro"],
        )
        for secret in secrets
    ]


def validate_secrets(secret_mount_path: str, secrets: Iterable[str]) -> None:
    """Raise FileNotFoundError for the first secret missing from secret_mount_path."""
    for secret in secrets:
        if not os.path.exists(os.path.join(secret_mount_path, secret)):
            raise FileNotFoundError(f"unable to find secret: {secret}")


def check_function_limits(count: int, namespace_count: int, additional: int) -> None:
    """Raise FunctionLimitError when the function or namespace limit would be exceeded."""
    if count + additional > FAASD_MAX_FUNCTIONS:
        raise FunctionLimitError(
            f"the OpenFaaS CE EULA allows {FAASD_MAX_FUNCTIONS}/{count + additional} "
            "function(s), upgrade to faasd Pro to continue"
        )
    if namespace_count > FAASD_MAX_NS:
        raise FunctionLimitError(
            f"the OpenFaaS CE EULA allows {FAASD_MAX_NS}/{namespace_count} "
            "namespace(s), upgrade to faasd Pro to continue"
        )


def get_namespace_or_default(name: str, default_namespace: str) -> str:
    """Return the text after the last "." in name, or default_namespace if there is none."""
    if "." in name:
        return name[name.rfind(".") + 1:]
    return default_namespace


def function_url(ip: str) -> str:
    """Return the URL of a function's watchdog at ip."""
    return f"http://{ip}:{WATCHDOG_PORT}"