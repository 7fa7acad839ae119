import pytest

from faasd.labeller import FakeLabeller, Labeller


def test_fake_labeller_returns_given_labels():
    labeller = FakeLabeller({"openfaas": "1"})
    assert labeller.labels("any-namespace") == {"openfaas": "1"}
    assert labeller.labels("other") == {"openfaas": "1"}


def test_fake_labeller_without_labels():
    assert FakeLabeller(None).labels("ns") == {}


def test_labeller_is_abstract():
    with pytest.raises(TypeError):
        Labeller()