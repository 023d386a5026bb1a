from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest

from hostpanel.services.errors import ConfigurationException, RemoteServiceException
from hostpanel.services.hestia_adapter import HestiaClient


def _form(request: httpx.Request) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


def _client(handler, **overrides) -> HestiaClient:
    options = dict(host="panel.test", port=8083, user="admin", password="admin-secret")
    options.update(overrides)
    return HestiaClient(transport=httpx.MockTransport(handler), **options)


def test_invoke_sends_credentials_apart_from_positional_args() -> None:
    seen: list[dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == "https://panel.test:8083/api/"
        seen.append(_form(request))
        return httpx.Response(200, text="0")

    with _client(handler) as hestia:
        result = hestia.create_user(
            username="custjane1a2b",
            password="Pw#1abcd",
            email="jane@example.com",
            package="Starter",
            first_name="Jane",
            last_name="Doe",
        )

    assert result.success is True
    assert result.kind == "returncode"
    form = seen[0]
    assert form["user"] == "admin"
    assert form["password"] == "admin-secret"
    assert form["returncode"] == "yes"
    assert form["cmd"] == "v-add-user"
    assert [form[f"arg{i}"] for i in range(1, 7)] == [
        "custjane1a2b",
        "Pw#1abcd",
        "jane@example.com",
        "Starter",
        "Jane",
        "Doe",
    ]


def test_access_key_auth_is_used_without_password() -> None:
    seen: list[dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(_form(request))
        return httpx.Response(200, text="0")

    hestia = _client(handler, password=None, access_key="AK", secret_key="SK")
    hestia.delete_user("jane")

    assert seen[0]["access_key"] == "AK"
    assert seen[0]["secret_key"] == "SK"
    assert "password" not in seen[0]


def test_missing_credentials_raise_configuration_error() -> None:
    hestia = _client(lambda request: httpx.Response(200, text="0"), password=None)
    with pytest.raises(ConfigurationException):
        hestia.delete_user("jane")


def test_nonzero_returncode_is_a_failure() -> None:
    hestia = _client(lambda request: httpx.Response(200, text="4"))
    result = hestia.add_web_domain("jane", "jane.example.com", aliases=["www.jane.example.com"])

    assert result.success is False
    assert result.returncode == 4


@pytest.mark.parametrize("body", ["", "Error: authentication failed", "<html>login</html>", '{"ok": true}'])
def test_non_numeric_reply_to_returncode_command_is_a_failure(body) -> None:
    hestia = _client(lambda request: httpx.Response(200, text=body))

    result = hestia.create_user(username="custjane1a2b", password="Pw#1abcd", email="jane@example.com")

    assert result.success is False
    assert result.returncode is None
    assert result.category == "fatal"
    assert "unexpected reply" in result.error


def test_add_web_domain_joins_aliases() -> None:
    seen: list[dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(_form(request))
        return httpx.Response(200, text="0")

    _client(handler).add_web_domain("jane", "jane.example.com", aliases=["www.jane.example.com", "jane.org"])

    assert seen[0]["cmd"] == "v-add-web-domain"
    assert seen[0]["arg4"] == "yes"
    assert seen[0]["arg5"] == "www.jane.example.com,jane.org"


def test_user_exists_uses_data_reply() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        form = _form(request)
        assert "returncode" not in form
        if form["arg1"] == "jane":
            return httpx.Response(200, json={"jane": {"PACKAGE": "default"}})
        return httpx.Response(200, text="Error: user bob doesn't exist")

    hestia = _client(handler)
    assert hestia.user_exists("jane") is True
    assert hestia.user_exists("bob") is False


def test_user_exists_raises_when_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(RemoteServiceException):
        _client(handler).user_exists("jane")


def test_list_packages_parses_table_listing() -> None:
    listing = (
        "PKG      TPL      WEB  DNS  MAIL  DB  SHELL    DISK  BW\n"
        "---      ---      ---  ---  ----  --  -----    ----  --\n"
        "Starter  default  1    1    1     1   nologin  500   1000\n"
    )
    result = _client(lambda request: httpx.Response(200, text=listing)).list_packages()

    assert result.success is True
    package = result.data["Starter"]
    assert package.web_domains == "1"
    assert package.disk_quota == "500"
    assert package.bandwidth == "1000"


def test_list_packages_parses_json_listing() -> None:
    payload = {"Business": {"WEB_DOMAINS": "3", "DATABASES": "3", "DISK_QUOTA": "2930", "BANDWIDTH": "20000"}}
    result = _client(lambda request: httpx.Response(200, json=payload)).list_packages()

    assert result.kind == "json"
    assert result.data["Business"].databases == "3"


def test_create_database_sends_mysql_type_and_charset() -> None:
    seen: list[dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(_form(request))
        return httpx.Response(200, text="0")

    _client(handler).create_database(
        user="jane", database="jane_db", dbuser="jane_user", dbpass="pw", charset="utf8mb4"
    )

    form = seen[0]
    assert [form[f"arg{i}"] for i in range(1, 8)] == ["jane", "jane_db", "jane_user", "pw", "mysql", "localhost", "utf8mb4"]


def test_alias_and_php_commands() -> None:
    seen: list[dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(_form(request))
        return httpx.Response(200, text="0")

    hestia = _client(handler)
    hestia.add_web_domain_alias("jane", "jane.example.com", "jane.org")
    hestia.delete_web_domain_alias("jane", "jane.example.com", "jane.org")
    hestia.change_php_version("jane", "jane.example.com", "8.2")

    assert [(f["cmd"], f["arg3"]) for f in seen] == [
        ("v-add-web-domain-alias", "jane.org"),
        ("v-delete-web-domain-alias", "jane.org"),
        ("v-change-web-domain-backend-tpl", "PHP-8_2"),
    ]
    assert seen[0]["arg4"] == "yes"
