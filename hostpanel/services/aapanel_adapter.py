from __future__ import annotations

import hashlib
import logging
import time
from typing import Any, Callable

import httpx

from hostpanel.config import Settings
from hostpanel.rpc import RemoteResult, post_form
from hostpanel.services.errors import ConfigurationException

logger = logging.getLogger(__name__)

DEFAULT_TTL = 600
DEFAULT_MX_PRIORITY = 10


def _md5(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def sign_request(secret_key: str, request_time: int) -> str:
    """aaPanel request token: ``md5(request_time + md5(secret_key))``."""
    return _md5(f"{request_time}{_md5(secret_key)}")


class AAPanelClient:
    """Client for the aaPanel DNS API."""

    def __init__(
        self,
        *,
        host: str,
        port: str | int,
        secret_key: str,
        security_entrance: str = "",
        verify_tls: bool = False,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.base_url = f"https://{host}:{port}{security_entrance.rstrip('/')}"
        self._secret_key = secret_key
        self._clock = clock
        self._client = httpx.Client(verify=verify_tls, timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings, *, transport: httpx.BaseTransport | None = None) -> "AAPanelClient":
        return cls(
            host=settings.aapanel_host,
            port=settings.aapanel_port,
            secret_key=settings.aapanel_secret_key,
            security_entrance=settings.aapanel_security_entrance,
            verify_tls=settings.aapanel_verify_tls,
            timeout=settings.remote_timeout_sec,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "AAPanelClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def request(self, endpoint: str, params: dict[str, Any] | None = None) -> RemoteResult:
        if not self._secret_key:
            raise ConfigurationException("No aaPanel API secret key configured")
        request_time = int(self._clock())
        form = {
            "request_time": str(request_time),
            "request_token": sign_request(self._secret_key, request_time),
        }
        form.update({key: str(value) for key, value in (params or {}).items()})

        result = post_form(
            self._client,
            f"{self.base_url}{endpoint}",
            data=form,
            error_message=f"aaPanel request {endpoint} failed",
        )
        if not result.success or result.kind != "json" or not isinstance(result.data, dict):
            return result

        payload = result.data
        if payload.get("status") is True or payload.get("success") is True:
            return RemoteResult(success=True, kind="json", data=payload.get("data") or payload)
        if payload.get("status") is False or payload.get("success") is False:
            error = payload.get("msg") or payload.get("message") or "Unknown error"
            logger.warning("aaPanel request %s rejected: %s", endpoint, error)
            return RemoteResult(success=False, kind="json", data=payload, error=str(error), category="fatal")
        return result

    # zones

    def list_zones(self) -> RemoteResult:
        return self.request("/api/dns/get_list")

    # records

    def list_records(self, domain: str) -> RemoteResult:
        return self.request("/api/dns/get_records", {"domain": domain})

    def add_record(
        self,
        *,
        domain: str,
        name: str,
        record_type: str,
        value: str,
        ttl: int = DEFAULT_TTL,
        priority: int = DEFAULT_MX_PRIORITY,
    ) -> RemoteResult:
        logger.info("Adding %s record %s.%s -> %s (ttl=%s)", record_type, name, domain, value, ttl)
        return self.request(
            "/api/dns/add_record",
            {
                "domain": domain,
                "host": name,
                "type": record_type,
                "value": value,
                "ttl": ttl,
                "mx_priority": priority,
            },
        )

    def delete_record(self, domain: str, record_id: int) -> RemoteResult:
        logger.info("Deleting DNS record id=%s from %s", record_id, domain)
        return self.request("/api/dns/delete_record", {"domain": domain, "id": record_id})

    def add_a_record(self, *, primary_domain: str, subdomain: str, ip: str, ttl: int = DEFAULT_TTL) -> RemoteResult:
        return self.add_record(domain=primary_domain, name=subdomain, record_type="A", value=ip, ttl=ttl)

    def add_cname_record(self, *, domain: str, name: str, target: str, ttl: int = DEFAULT_TTL) -> RemoteResult:
        return self.add_record(domain=domain, name=name, record_type="CNAME", value=target, ttl=ttl)

    def record_exists(self, domain: str, name: str, record_type: str) -> bool:
        result = self.list_records(domain)
        if not result.success or not isinstance(result.data, list):
            return False
        return any(
            isinstance(record, dict) and record.get("name") == name and record.get("type") == record_type
            for record in result.data
        )

    def test_connection(self) -> bool:
        return self.list_zones().success
