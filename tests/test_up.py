from types import SimpleNamespace

import pytest

from faasd.compose import ComposeError
from faasd.resolver import LocalResolver
from faasd.up import UpConfig, build_proxies, load_service_definition, parse_up_config


def _service(name, *ports):
    return SimpleNamespace(
        name=name,
        ports=[SimpleNamespace(port=p, target_port=t, host_ip=h) for p, t, h in ports],
    )


def test_parse_up_config_defaults():
    config = parse_up_config()
    assert config.compose_file_path == "docker-compose.yaml"
    assert config.working_dir == "/var/lib/faasd"


def test_parse_up_config_custom():
    config = parse_up_config("other.yaml", "/tmp/wd")
    assert (config.compose_file_path, config.working_dir) == ("other.yaml", "/tmp/wd")


def test_build_proxies(tmp_path):
    resolver = LocalResolver(str(tmp_path / "hosts"))
    services = [
        _service("gateway", (8080, 8080, "")),
        _service("prometheus", (9090, 9090, "127.0.0.1")),
        _service("nats"),
    ]
    proxies = build_proxies(services, resolver, 5.0)

    assert sorted(proxies) == [8080, 9090]
    gateway = proxies[8080]
    assert gateway.upstream == "gateway:8080"
    assert gateway.host_ip == "0.0.0.0"
    assert gateway.timeout == 5.0
    assert gateway.resolver is resolver
    assert proxies[9090].host_ip == "127.0.0.1"
    assert proxies[9090].upstream == "prometheus:9090"


def test_build_proxies_duplicate_port(tmp_path):
    resolver = LocalResolver(str(tmp_path / "hosts"))
    services = [_service("a", (8080, 80, "")), _service("b", (8080, 81, ""))]
    with pytest.raises(ValueError, match="port 8080 already allocated"):
        build_proxies(services, resolver)


def test_load_service_definition(tmp_path):
    (tmp_path / "docker-compose.yaml").write_text(
        'version: "3.7"\n'
        "services:\n"
        "  nats:\n"
        "    image: docker.io/library/nats-streaming:0.11.2\n"
        "  gateway:\n"
        "    image: docker.io/openfaas/gateway:0.18.17\n"
        "    depends_on:\n"
        "      - nats\n"
    )
    config = UpConfig(
        compose_file_path="docker-compose.yaml",
        working_dir=str(tmp_path),
        arch_getter=lambda: ("x86_64", "Linux"),
    )
    services = load_service_definition(config)
    by_name = {service.name: service for service in services}
    assert sorted(by_name) == ["gateway", "nats"]
    assert by_name["gateway"].image == "docker.io/openfaas/gateway:0.18.17"
    assert list(by_name["gateway"].depends_on) == ["nats"]


def test_load_service_definition_missing_file(tmp_path):
    config = UpConfig(
        compose_file_path="missing.yaml",
        working_dir=str(tmp_path),
        arch_getter=lambda: ("x86_64", "Linux"),
    )
    with pytest.raises((OSError, ComposeError)):
        load_service_definition(config)