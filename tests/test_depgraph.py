import pytest

from faasd.depgraph import CircularDependencyError, Graph, Node


def _abc():
    a = Node("A")
    b = Node("B")
    c = Node("C")
    return a, b, c


def test_remove_medial():
    a, b, c = _abc()
    g = Graph(nodes=[a, b, c])

    g.remove(b)

    assert [n.name for n in g.nodes] == ["A", "C"]


def test_remove_final():
    a, b, c = _abc()
    g = Graph(nodes=[a, b, c])

    g.remove(c)

    assert [n.name for n in g.nodes] == ["A", "B"]


def test_remove_uses_identity_not_name():
    a, b, c = _abc()
    g = Graph(nodes=[a, b, c])

    g.remove(Node("B"))

    assert [n.name for n in g.nodes] == ["A", "B", "C"]


def test_contains_matches_by_name():
    a, b, _ = _abc()
    g = Graph()
    g.add(a)

    assert g.contains(Node("A")) is True
    assert g.contains(b) is False


def test_resolve_dependencies_first():
    a, b, c = _abc()
    a.edges = [b]
    b.edges = [c]
    g = Graph(nodes=[a, b, c])

    assert g.resolve() == ["C", "B", "A"]


def test_resolve_shared_dependency_listed_once():
    a, b, c = _abc()
    a.edges = [c]
    b.edges = [c]
    g = Graph(nodes=[a, b, c])

    order = g.resolve()

    assert order == ["C", "A", "B"]


def test_resolve_circular_raises():
    a, b, _ = _abc()
    a.edges = [b]
    b.edges = [a]
    g = Graph(nodes=[a, b])

    with pytest.raises(CircularDependencyError) as info:
        g.resolve()
    assert info.value.name == "A"
    assert str(info.value) == "edge: A may be a circular dependency"


def test_resolve_self_dependency_raises():
    a = Node("A")
    a.edges = [a]
    with pytest.raises(CircularDependencyError):
        Graph(nodes=[a]).resolve()