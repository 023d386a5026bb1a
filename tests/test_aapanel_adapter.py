from __future__ import annotations

import hashlib
from urllib.parse import parse_qs

import httpx
import pytest

from hostpanel.services.aapanel_adapter import AAPanelClient, sign_request
from hostpanel.services.errors import ConfigurationException


def _form(request: httpx.Request) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


def _client(handler, *, secret_key: str = "dns-secret", security_entrance: str = "") -> AAPanelClient:
    return AAPanelClient(
        host="dns.test",
        port=9000,
        secret_key=secret_key,
        security_entrance=security_entrance,
        transport=httpx.MockTransport(handler),
        clock=lambda: 1700000000.5,
    )


def test_sign_request_matches_panel_token_scheme() -> None:
    inner = hashlib.md5(b"dns-secret").hexdigest()
    expected = hashlib.md5(f"1700000000{inner}".encode()).hexdigest()
    assert sign_request("dns-secret", 1700000000) == expected


def test_add_a_record_posts_signed_form() -> None:
    seen: list[tuple[str, dict[str, str]]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((str(request.url), _form(request)))
        return httpx.Response(200, json={"status": True, "msg": "ok", "data": {"id": 17}})

    result = _client(handler, security_entrance="/entry/").add_a_record(
        primary_domain="lumicloude.my.id", subdomain="jane1a2b3", ip="198.41.192.67", ttl=600
    )

    assert result.success is True
    assert result.data == {"id": 17}
    url, form = seen[0]
    assert url == "https://dns.test:9000/entry/api/dns/add_record"
    assert form["request_time"] == "1700000000"
    assert form["request_token"] == sign_request("dns-secret", 1700000000)
    assert form["domain"] == "lumicloude.my.id"
    assert form["host"] == "jane1a2b3"
    assert form["type"] == "A"
    assert form["value"] == "198.41.192.67"
    assert form["ttl"] == "600"


def test_rejected_request_carries_panel_message() -> None:
    result = _client(lambda request: httpx.Response(200, json={"status": False, "msg": "Record exists"})).add_record(
        domain="example.com", name="www", record_type="CNAME", value="site.example.com"
    )

    assert result.success is False
    assert result.error == "Record exists"


def test_other_json_is_passed_through_as_success() -> None:
    result = _client(lambda request: httpx.Response(200, json=[{"name": "example.com"}])).list_zones()
    assert result.success is True
    assert result.data == [{"name": "example.com"}]


def test_record_exists() -> None:
    records = {"status": True, "data": [{"name": "www", "type": "CNAME"}, {"name": "jane", "type": "A"}]}
    client = _client(lambda request: httpx.Response(200, json=records))

    assert client.record_exists("example.com", "jane", "A") is True
    assert client.record_exists("example.com", "jane", "CNAME") is False


def test_missing_secret_is_a_configuration_error() -> None:
    client = _client(lambda request: httpx.Response(200, json={}), secret_key="")
    with pytest.raises(ConfigurationException):
        client.list_zones()


def test_transport_failure_is_not_raised() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    result = _client(handler).add_a_record(primary_domain="example.com", subdomain="x", ip="1.2.3.4")
    assert result.success is False
    assert result.kind == "transport"
