"""A check that the public Internet is reachable over HTTPS."""

from __future__ import annotations

import urllib.error
import urllib.request

from .version import VERSION

CHECK_URL = "https://checkip.amazonaws.com"


class ConnectivityError(Exception):
    """Raised when the connectivity check fails."""


def connectivity_check(url: str = CHECK_URL, timeout: float = 10.0) -> None:
    """Issue a GET to url and raise ConnectivityError unless it answers 200."""
    request = urllib.request.Request(
        url,
        method="GET",
        headers={"User-Agent": f"openfaas-ce/{VERSION} faas-netes"},
    )
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            status = response.status
            body = response.read() if status != 200 else b""
    except urllib.error.HTTPError as exc:
        status = exc.code
        body = exc.read() or b""
    except (urllib.error.URLError, OSError) as exc:
        raise ConnectivityError(str(exc)) from exc

    if status != 200:
        text = body.decode("utf-8", errors="replace").strip()
        raise ConnectivityError(
            f"unexpected status code checking connectivity: {status}, body: {text}"
        )