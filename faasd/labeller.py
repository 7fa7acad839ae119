"""Sources of labels attached to containerd namespaces."""

from __future__ import annotations

import abc
from typing import Mapping


class Labeller(abc.ABC):
    """Returns the labels of a namespace."""

    @abc.abstractmethod
    def labels(self, namespace: str) -> dict[str, str]:
        """Return the labels set on namespace."""


class FakeLabeller(Labeller):
    """Returns the same fixed labels for every namespace."""

    def __init__(self, labels: Mapping[str, str] | None = None) -> None:
        self._labels = dict(labels or {})

    def labels(self, namespace: str) -> dict[str, str]:
        """Return the fixed labels, whatever the namespace."""
        return self._labels