from __future__ import annotations

from dataclasses import dataclass
import os

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the panel and its two remote APIs."""

    database_url: str
    hestia_host: str
    hestia_port: str
    hestia_user: str
    hestia_password: str | None
    hestia_access_key: str | None
    hestia_secret_key: str | None
    hestia_verify_tls: bool
    aapanel_host: str
    aapanel_port: str
    aapanel_secret_key: str
    aapanel_security_entrance: str
    aapanel_verify_tls: bool
    primary_domain: str
    edge_ip: str
    remote_timeout_sec: float

    @property
    def hestia_url(self) -> str:
        return f"https://{self.hestia_host}:{self.hestia_port}"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./hostpanel.db"),
        hestia_host=os.getenv("HESTIA_HOST", "localhost"),
        hestia_port=os.getenv("HESTIA_PORT", "8083"),
        hestia_user=os.getenv("HESTIA_USER", "admin"),
        hestia_password=os.getenv("HESTIA_PASSWORD") or None,
        hestia_access_key=os.getenv("HESTIA_ACCESS_KEY_ID") or None,
        hestia_secret_key=os.getenv("HESTIA_SECRET_KEY") or None,
        # HestiaCP ships with a self-signed certificate
        hestia_verify_tls=_env_bool("HESTIA_VERIFY_TLS", False),
        aapanel_host=os.getenv("AAPANEL_HOST", "localhost"),
        aapanel_port=os.getenv("AAPANEL_PORT", "9000"),
        aapanel_secret_key=os.getenv("AAPANEL_SECRET_KEY", ""),
        aapanel_security_entrance=os.getenv("AAPANEL_SECURITY_ENTRANCE", ""),
        aapanel_verify_tls=_env_bool("AAPANEL_VERIFY_TLS", False),
        primary_domain=os.getenv("PRIMARY_DOMAIN", "lumicloude.my.id"),
        edge_ip=os.getenv("EDGE_IP", "198.41.192.67"),
        remote_timeout_sec=_env_float("REMOTE_TIMEOUT_SEC", 30.0),
    )
