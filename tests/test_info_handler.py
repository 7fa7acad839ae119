import json

from werkzeug.wrappers import Request

from faasd.info_handler import ORCHESTRATION_IDENTIFIER, PROVIDER_NAME, make_info_handler


def test_info_handler():
    sha = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"
    version = "0.0.1"
    handler = make_info_handler(version, sha)
    response = handler(Request.from_values("/", method="GET"))

    assert response.status_code == 200
    assert response.headers["Content-Type"] == "application/json"
    data = json.loads(response.get_data())
    assert data["provider"] == PROVIDER_NAME == "faasd-ce"
    assert data["orchestration"] == ORCHESTRATION_IDENTIFIER == "containerd"
    assert data["version"]["sha"] == sha
    assert data["version"]["release"] == version