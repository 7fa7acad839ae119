import json
from http import HTTPStatus

import pytest
from werkzeug.wrappers import Request

from faasd.namespace_handler import (
    HttpError,
    MemoryNamespaceStore,
    NamespaceHandler,
    has_openfaas_label,
    parse_namespace_request,
)


def make_request(method, payload=None, raw=None):
    if raw is not None:
        data = raw
    elif payload is not None:
        data = json.dumps(payload)
    else:
        data = b""
    return Request.from_values(method=method, data=data, content_type="application/json")


@pytest.mark.parametrize(
    "labels, expected",
    [({"openfaas": "1"}, True), ({"openfaas": "true"}, False), ({}, False), (None, False)],
)
def test_has_openfaas_label(labels, expected):
    assert has_openfaas_label(labels) is expected


def test_parse_get_requires_name_in_path():
    with pytest.raises(HttpError) as excinfo:
        parse_namespace_request("GET", "", b"")
    assert excinfo.value.status == HTTPStatus.BAD_REQUEST
    assert str(excinfo.value) == "namespace not specified in URL"


def test_parse_get_uses_path():
    assert parse_namespace_request("GET", "fn", b"") == ("fn", {})


def test_parse_post_body():
    body = json.dumps({"name": "fn", "labels": {"openfaas": "1"}})
    assert parse_namespace_request("POST", "", body) == ("fn", {"openfaas": "1"})


def test_parse_invalid_json():
    with pytest.raises(HttpError) as excinfo:
        parse_namespace_request("POST", "", b"{nope")
    assert str(excinfo.value).startswith("error parsing request body: ")


def test_parse_path_mismatch():
    body = json.dumps({"name": "fn", "labels": {"openfaas": "1"}})
    with pytest.raises(HttpError, match="namespace in request body does not match namespace in URL"):
        parse_namespace_request("PUT", "other", body)


def test_parse_put_without_path():
    body = json.dumps({"name": "fn", "labels": {"openfaas": "1"}})
    with pytest.raises(HttpError, match="namespace not specified in URL"):
        parse_namespace_request("DELETE", "", body)


def test_parse_empty_name():
    with pytest.raises(HttpError, match="namespace not specified in request body"):
        parse_namespace_request("POST", "", json.dumps({"labels": {"openfaas": "1"}}))


def test_parse_missing_label():
    with pytest.raises(HttpError, match="request does not have openfaas=1 label"):
        parse_namespace_request("POST", "", json.dumps({"name": "fn"}))


def test_create_namespace():
    store = MemoryNamespaceStore()
    handler = NamespaceHandler(store)
    response = handler(make_request("POST", {"name": "fn", "labels": {"openfaas": "1"}}))
    assert response.status_code == HTTPStatus.CREATED
    assert store.list() == ["fn"]
    assert store.labels("fn") == {"openfaas": "1"}


def test_create_existing_namespace_conflicts():
    store = MemoryNamespaceStore({"fn": {"openfaas": "1"}})
    response = NamespaceHandler(store)(
        make_request("POST", {"name": "fn", "labels": {"openfaas": "1"}})
    )
    assert response.status_code == HTTPStatus.CONFLICT
    assert response.get_data(as_text=True) == "namespace fn already exists\n"


def test_create_without_label_is_rejected():
    store = MemoryNamespaceStore()
    response = NamespaceHandler(store)(make_request("POST", {"name": "fn"}))
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.get_data(as_text=True) == "request does not have openfaas=1 label\n"
    assert store.list() == []


def test_get_namespace():
    labels = {"openfaas": "1", "team": "a"}
    store = MemoryNamespaceStore({"fn": labels})
    response = NamespaceHandler(store)(make_request("GET"), "fn")
    assert response.status_code == HTTPStatus.OK
    assert response.mimetype == "application/json"
    assert json.loads(response.get_data(as_text=True)) == {"name": "fn", "labels": labels}


def test_get_missing_namespace():
    response = NamespaceHandler(MemoryNamespaceStore())(make_request("GET"), "nope")
    assert response.status_code == HTTPStatus.NOT_FOUND
    assert response.get_data(as_text=True) == "namespace nope not found\n"


def test_get_non_openfaas_namespace_is_hidden():
    store = MemoryNamespaceStore({"default": {}})
    response = NamespaceHandler(store)(make_request("GET"), "default")
    assert response.status_code == HTTPStatus.NOT_FOUND


def test_update_replaces_labels():
    store = MemoryNamespaceStore({"fn": {"openfaas": "1", "old": "x"}})
    wanted = {"openfaas": "1", "new": "y"}
    response = NamespaceHandler(store)(make_request("PUT", {"name": "fn", "labels": wanted}), "fn")
    assert response.status_code == HTTPStatus.ACCEPTED
    assert store.labels("fn") == wanted


def test_update_non_openfaas_namespace():
    store = MemoryNamespaceStore({"fn": {"other": "x"}})
    response = NamespaceHandler(store)(
        make_request("PUT", {"name": "fn", "labels": {"openfaas": "1"}}), "fn"
    )
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.get_data(as_text=True) == "namespace fn is not an openfaas namespace\n"
    assert store.labels("fn") == {"other": "x"}


def test_update_missing_namespace():
    response = NamespaceHandler(MemoryNamespaceStore())(
        make_request("PUT", {"name": "fn", "labels": {"openfaas": "1"}}), "fn"
    )
    assert response.status_code == HTTPStatus.NOT_FOUND


def test_delete_namespace():
    store = MemoryNamespaceStore({"fn": {"openfaas": "1"}})
    response = NamespaceHandler(store)(
        make_request("DELETE", {"name": "fn", "labels": {"openfaas": "1"}}), "fn"
    )
    assert response.status_code == HTTPStatus.ACCEPTED
    assert "fn" not in store.list()


def test_delete_missing_namespace():
    response = NamespaceHandler(MemoryNamespaceStore())(
        make_request("DELETE", {"name": "fn", "labels": {"openfaas": "1"}}), "fn"
    )
    assert response.status_code == HTTPStatus.NOT_FOUND
    assert response.get_data(as_text=True) == "namespace fn not found\n"


def test_unsupported_method():
    response = NamespaceHandler(MemoryNamespaceStore())(make_request("PATCH"), "fn")
    assert response.status_code == HTTPStatus.METHOD_NOT_ALLOWED


def test_memory_store_set_empty_label_removes_it():
    store = MemoryNamespaceStore({"fn": {"openfaas": "1", "team": "a"}})
    store.set_label("fn", "team", "")
    assert store.labels("fn") == {"openfaas": "1"}


def test_memory_store_missing_namespace():
    store = MemoryNamespaceStore()
    with pytest.raises(LookupError):
        store.labels("nope")
    with pytest.raises(LookupError):
        store.delete("nope")