"""A small dependency graph that yields a start-up order for named nodes."""

from __future__ import annotations

from dataclasses import dataclass, field


class CircularDependencyError(Exception):
    """Raised when resolving a graph finds a dependency cycle."""

    def __init__(self, name: str) -> None:
        super().__init__(f"edge: {name} may be a circular dependency")
        self.name = name


@dataclass(eq=False)
class Node:
    """A named node with zero or more outgoing edges (its dependencies)."""

    name: str
    edges: list[Node] = field(default_factory=list)


@dataclass
class Graph:
    """An ordered collection of nodes."""

    nodes: list[Node] = field(default_factory=list)

    def contains(self, target: Node) -> bool:
        """Return True if a node with the target's name is in the graph."""
        return any(node.name == target.name for node in self.nodes)

    def add(self, target: Node) -> None:
        """Append a node to the graph."""
        self.nodes.append(target)

    def remove(self, target: Node) -> None:
        """Remove the first reference to exactly this node, if present."""
        index = next((i for i, node in enumerate(self.nodes) if node is target), None)
        if index is not None:
            del self.nodes[index]

    def resolve(self) -> list[str]:
        """Return node names ordered so that dependencies come first.

        Raises CircularDependencyError when a cycle is found.
        """
        resolved = Graph()
        unresolved = Graph()
        for node in self.nodes:
            _resolve(node, resolved, unresolved)
        return [node.name for node in resolved.nodes]


def _resolve(node: Node, resolved: Graph, unresolved: Graph) -> None:
    unresolved.add(node)

    for edge in node.edges:
        if not resolved.contains(edge) and unresolved.contains(edge):
            raise CircularDependencyError(edge.name)
        _resolve(edge, resolved, unresolved)

    if resolved.contains(node):
        return

    resolved.add(node)
    unresolved.remove(node)