"""HTTP handler for the provider's system information endpoint."""

from __future__ import annotations

import json
from http import HTTPStatus
from typing import Callable

from werkzeug.wrappers import Request, Response

# Identifier of the orchestration the provider uses.
ORCHESTRATION_IDENTIFIER = "containerd"

# Name of the provider.
PROVIDER_NAME = "faasd-ce"

FAASD_MAX_FUNCTIONS = 15
FAASD_MAX_NS = 1


def make_info_handler(version: str, sha: str) -> Callable[[Request], Response]:
    """Return a handler answering with the provider name, orchestration and version."""
    body = json.dumps(
        {
            "provider": PROVIDER_NAME,
            "orchestration": ORCHESTRATION_IDENTIFIER,
            "version": {"sha": sha, "release": version},
        },
        separators=(",", ":"),
    )

    def handler(request: Request) -> Response:
        return Response(body, status=HTTPStatus.OK, content_type="application/json")

    return handler