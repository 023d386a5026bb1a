from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Iterable, Sequence

import httpx

from hostpanel.config import Settings
from hostpanel.rpc import RemoteResult, TableReply, post_form
from hostpanel.services.errors import ConfigurationException, RemoteServiceException

logger = logging.getLogger(__name__)

# HestiaCP return codes (see /usr/local/hestia/func/main.sh)
E_NOTEXIST = 3
E_FORBIDEN = 10

# Minimum cells in a v-list-user-packages row: PKG TPL WEB DNS MAIL DB SHELL
_PACKAGE_ROW_MIN_COLUMNS = 7


@dataclass(frozen=True)
class HestiaPackage:
    name: str
    web_templates: str = "default"
    web_domains: str = "0"
    dns_domains: str = "0"
    mail_domains: str = "0"
    databases: str = "0"
    disk_quota: str = "0"
    bandwidth: str = "unlimited"


class HestiaClient:
    """Client for the HestiaCP command API (``POST /api/``).

    Every command is sent as ``cmd`` plus positional ``arg1..argN`` fields, with
    the credentials in their own named fields so they never collide with the
    command's arguments.
    """

    def __init__(
        self,
        *,
        host: str,
        port: str | int,
        user: str,
        password: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        verify_tls: bool = False,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = f"https://{host}:{port}/api/"
        self._user = user
        self._password = password
        self._access_key = access_key
        self._secret_key = secret_key
        self._client = httpx.Client(verify=verify_tls, timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings, *, transport: httpx.BaseTransport | None = None) -> "HestiaClient":
        return cls(
            host=settings.hestia_host,
            port=settings.hestia_port,
            user=settings.hestia_user,
            password=settings.hestia_password,
            access_key=settings.hestia_access_key,
            secret_key=settings.hestia_secret_key,
            verify_tls=settings.hestia_verify_tls,
            timeout=settings.remote_timeout_sec,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HestiaClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _auth_fields(self) -> dict[str, str]:
        # Password auth is preferred: access keys lack permission for admin commands.
        if self._password:
            return {"user": self._user, "password": self._password}
        if self._access_key and self._secret_key:
            return {"user": self._user, "access_key": self._access_key, "secret_key": self._secret_key}
        raise ConfigurationException("No HestiaCP authentication credentials configured")

    def invoke(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        return_data: bool = False,
        min_columns: int | None = None,
    ) -> RemoteResult:
        form = self._auth_fields()
        if not return_data:
            form["returncode"] = "yes"
        form["cmd"] = command
        for index, arg in enumerate(args, start=1):
            form[f"arg{index}"] = str(arg)

        logger.debug("Invoking HestiaCP command %s with %d argument(s)", command, len(args))
        result = post_form(
            self._client,
            self.url,
            data=form,
            error_message=f"HestiaCP command {command} failed",
            min_columns=min_columns,
        )
        if result.success and not return_data and result.kind != "returncode":
            result = RemoteResult(
                success=False,
                kind=result.kind,
                data=result.data,
                error=f"HestiaCP command {command} gave an unexpected reply: {_describe_reply(result.data)}",
                category="fatal",
            )
        if not result.success:
            logger.warning(
                "HestiaCP command %s failed kind=%s returncode=%s error=%s",
                command,
                result.kind,
                result.returncode,
                result.error,
            )
        return result

    # users

    def create_user(
        self,
        *,
        username: str,
        password: str,
        email: str,
        package: str = "default",
        first_name: str = "",
        last_name: str = "",
    ) -> RemoteResult:
        logger.info("Creating HestiaCP user %s (package=%s)", username, package)
        return self.invoke("v-add-user", [username, password, email, package, first_name, last_name])

    def delete_user(self, username: str) -> RemoteResult:
        logger.info("Deleting HestiaCP user %s", username)
        return self.invoke("v-delete-user", [username])

    def suspend_user(self, username: str) -> RemoteResult:
        logger.info("Suspending HestiaCP user %s", username)
        return self.invoke("v-suspend-user", [username, "no"])

    def unsuspend_user(self, username: str) -> RemoteResult:
        logger.info("Unsuspending HestiaCP user %s", username)
        return self.invoke("v-unsuspend-user", [username, "no"])

    def user_exists(self, username: str) -> bool:
        result = self.invoke("v-list-user", [username, "json"], return_data=True)
        if result.kind == "transport":
            raise RemoteServiceException(result.error or f"Unable to look up HestiaCP user {username}")
        return result.success and result.kind == "json"

    # web domains

    def add_web_domain(
        self,
        user: str,
        domain: str,
        *,
        aliases: Iterable[str] = (),
        ip: str = "",
        restart: bool = True,
    ) -> RemoteResult:
        alias_list = ",".join(aliases)
        logger.info("Adding web domain %s for %s (aliases=%s)", domain, user, alias_list or "-")
        return self.invoke("v-add-web-domain", [user, domain, ip, "yes" if restart else "no", alias_list])

    def delete_web_domain(self, user: str, domain: str) -> RemoteResult:
        return self.invoke("v-delete-web-domain", [user, domain])

    def list_web_domains(self, user: str) -> RemoteResult:
        return self.invoke("v-list-web-domains", [user, "json"], return_data=True)

    def add_web_domain_alias(self, user: str, domain: str, alias: str, *, restart: bool = True) -> RemoteResult:
        logger.info("Adding alias %s to web domain %s for %s", alias, domain, user)
        return self.invoke("v-add-web-domain-alias", [user, domain, alias, "yes" if restart else "no"])

    def delete_web_domain_alias(self, user: str, domain: str, alias: str) -> RemoteResult:
        logger.info("Removing alias %s from web domain %s for %s", alias, domain, user)
        return self.invoke("v-delete-web-domain-alias", [user, domain, alias])

    def change_php_version(self, user: str, domain: str, version: str) -> RemoteResult:
        # Backend templates are named after the php-fpm pool, e.g. PHP-8_1.
        template = f"PHP-{version.replace('.', '_')}"
        logger.info("Switching %s to backend template %s", domain, template)
        return self.invoke("v-change-web-domain-backend-tpl", [user, domain, template])

    def enable_ssl(self, user: str, domain: str, *, aliases: Iterable[str] = ()) -> RemoteResult:
        args = [user, domain]
        alias_list = ",".join(aliases)
        if alias_list:
            args.append(alias_list)
        logger.info("Requesting Let's Encrypt certificate for %s", domain)
        return self.invoke("v-add-letsencrypt-domain", args)

    def force_ssl(self, user: str, domain: str) -> RemoteResult:
        return self.invoke("v-add-web-domain-ssl-force", [user, domain])

    # databases

    def create_database(
        self,
        *,
        user: str,
        database: str,
        dbuser: str,
        dbpass: str,
        host: str = "localhost",
        charset: str = "utf8",
    ) -> RemoteResult:
        logger.info("Creating database %s for %s", database, user)
        return self.invoke("v-add-database", [user, database, dbuser, dbpass, "mysql", host, charset])

    def delete_database(self, user: str, database: str) -> RemoteResult:
        return self.invoke("v-delete-database", [user, database])

    def list_databases(self, user: str) -> RemoteResult:
        return self.invoke("v-list-databases", [user, "json"], return_data=True)

    # packages

    def list_packages(self) -> RemoteResult:
        """List the server's user packages.

        On success ``data`` is a ``dict[str, HestiaPackage]`` keyed by package
        name. HestiaCP answers either with its plain table listing or, on newer
        releases, with JSON; both are accepted.
        """
        result = self.invoke("v-list-user-packages", [], return_data=True, min_columns=_PACKAGE_ROW_MIN_COLUMNS)
        if not result.success:
            return result
        if result.kind == "table":
            packages = _packages_from_table(result.data)
        elif result.kind == "json" and isinstance(result.data, dict):
            packages = _packages_from_json(result.data)
        else:
            packages = {}
        return RemoteResult(success=True, kind=result.kind, data=packages)

    def test_connection(self) -> bool:
        return self.invoke("v-list-sys-info", ["json"], return_data=True).success


def _describe_reply(data: Any) -> str:
    text = data if isinstance(data, str) else repr(data)
    text = " ".join(text.split())
    if not text:
        return "empty body"
    return text if len(text) <= 120 else f"{text[:117]}..."


def _packages_from_table(table: TableReply) -> dict[str, HestiaPackage]:
    packages: dict[str, HestiaPackage] = {}
    for row in table.rows:
        name = row.get("pkg") or row.get("package") or row.get(table.columns[0])
        if not name:
            continue
        packages[name] = HestiaPackage(
            name=name,
            web_templates=row.get("tpl", "default"),
            web_domains=row.get("web", "0"),
            dns_domains=row.get("dns", "0"),
            mail_domains=row.get("mail", "0"),
            databases=row.get("db", "0"),
            disk_quota=row.get("disk", "0"),
            bandwidth=row.get("bw", "unlimited"),
        )
    return packages


def _packages_from_json(payload: dict[str, Any]) -> dict[str, HestiaPackage]:
    packages: dict[str, HestiaPackage] = {}
    for name, fields in payload.items():
        if not isinstance(fields, dict):
            continue
        packages[name] = HestiaPackage(
            name=name,
            web_templates=str(fields.get("WEB_TEMPLATE", "default")),
            web_domains=str(fields.get("WEB_DOMAINS", "0")),
            dns_domains=str(fields.get("DNS_DOMAINS", "0")),
            mail_domains=str(fields.get("MAIL_DOMAINS", "0")),
            databases=str(fields.get("DATABASES", "0")),
            disk_quota=str(fields.get("DISK_QUOTA", "0")),
            bandwidth=str(fields.get("BANDWIDTH", "unlimited")),
        )
    return packages
