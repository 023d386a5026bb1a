from __future__ import annotations

from dataclasses import dataclass
import logging

from hostpanel.models import PackageCatalogRead, PackageRead
from hostpanel.services.errors import ConfigurationException
from hostpanel.services.hestia_adapter import E_FORBIDEN, HestiaClient, HestiaPackage

logger = logging.getLogger(__name__)

UNLIMITED = "Unlimited"


@dataclass(frozen=True)
class Package:
    """A resource tier. Counts of 0 mean unlimited."""

    id: str
    name: str
    hestia_package_name: str
    billing_cycle: str
    disk_space: int  # MB
    bandwidth: float  # GB
    websites: int
    databases: int
    email_accounts: int
    subdomains: int
    ftp_accounts: int
    cron_jobs: int
    backups: int
    features: tuple[str, ...]
    ssl_included: bool
    dedicated_ip: bool
    priority: str


PACKAGES: tuple[Package, ...] = (
    Package(
        id="starter",
        name="Starter",
        hestia_package_name="Starter",
        billing_cycle="MONTHLY",
        disk_space=500,
        bandwidth=0.98,
        websites=1,
        databases=1,
        email_accounts=1,
        subdomains=5,
        ftp_accounts=1,
        cron_jobs=1,
        backups=1,
        features=(
            "500 MB Disk Space",
            "10 GB Bandwidth",
            "1 Website",
            "1 Database",
            "1 Email Account",
            "5 Subdomains",
            "Free SSL Certificate",
            "24/7 Support",
        ),
        ssl_included=True,
        dedicated_ip=False,
        priority="low",
    ),
    Package(
        id="business",
        name="Business",
        hestia_package_name="Business",
        billing_cycle="MONTHLY",
        disk_space=2930,
        bandwidth=19.53,
        websites=3,
        databases=3,
        email_accounts=1,
        subdomains=0,
        ftp_accounts=1,
        cron_jobs=5,
        backups=3,
        features=(
            "2.93 GB Disk Space",
            "19.53 GB Bandwidth",
            "3 Websites",
            "3 Databases",
            "Unlimited Email Accounts",
            "Unlimited Subdomains",
            "Free SSL Certificate",
            "Priority Support",
            "Weekly Backups",
        ),
        ssl_included=True,
        dedicated_ip=False,
        priority="medium",
    ),
    Package(
        id="enterprise",
        name="Enterprise",
        hestia_package_name="Enterprise",
        billing_cycle="MONTHLY",
        disk_space=6840,
        bandwidth=0,
        websites=7,
        databases=7,
        email_accounts=1,
        subdomains=0,
        ftp_accounts=1,
        cron_jobs=0,
        backups=7,
        features=(
            "6.84 GB Disk Space",
            "Unlimited Bandwidth",
            "7 Websites",
            "7 Databases",
            "Unlimited Email Accounts",
            "Unlimited Subdomains",
            "Free SSL Certificate",
            "Dedicated IP Address",
            "Priority Support 24/7",
            "Daily Backups",
            "Free Migration",
        ),
        ssl_included=True,
        dedicated_ip=True,
        priority="high",
    ),
)

def get_package(package_id: str) -> Package | None:
    return next((p for p in PACKAGES if p.id == package_id), None)


def format_bandwidth(gb: float) -> str:
    if gb == 0:
        return UNLIMITED
    return f"{gb:g} GB"


def format_limit(limit: int) -> int | str:
    return UNLIMITED if limit == 0 else limit


def resource_limits(package: Package) -> dict[str, int | str]:
    return {
        "disk_space": f"{package.disk_space} MB",
        "bandwidth": format_bandwidth(package.bandwidth),
        "websites": format_limit(package.websites),
        "databases": format_limit(package.databases),
    }


def to_read(package: Package) -> PackageRead:
    return PackageRead(
        id=package.id,
        name=package.name,
        hestia_package_name=package.hestia_package_name,
        billing_cycle=package.billing_cycle,
        disk_space=package.disk_space,
        bandwidth=package.bandwidth,
        websites=package.websites,
        databases=package.databases,
        email_accounts=package.email_accounts,
        subdomains=package.subdomains,
        ftp_accounts=package.ftp_accounts,
        cron_jobs=package.cron_jobs,
        backups=package.backups,
        features=list(package.features),
        ssl_included=package.ssl_included,
        dedicated_ip=package.dedicated_ip,
        priority=package.priority,
    )


def _parse_count(value: str) -> int:
    try:
        return int(float(value))
    except ValueError:
        # "unlimited"
        return 0


def _from_hestia(package: HestiaPackage) -> PackageRead:
    bandwidth_mb = _parse_count(package.bandwidth)
    return PackageRead(
        id=package.name.lower(),
        name=package.name,
        hestia_package_name=package.name,
        disk_space=_parse_count(package.disk_quota),
        bandwidth=round(bandwidth_mb / 1024, 2),
        websites=_parse_count(package.web_domains),
        databases=_parse_count(package.databases),
    )


def _default_catalog(warning: str) -> PackageCatalogRead:
    logger.warning("Serving default package table: %s", warning)
    return PackageCatalogRead(packages=[to_read(p) for p in PACKAGES], source="default", warning=warning)


def list_catalog(hestia: HestiaClient) -> PackageCatalogRead:
    """Live HestiaCP package catalog, falling back to the built-in table."""
    try:
        result = hestia.list_packages()
    except ConfigurationException as exc:
        return _default_catalog(f"HestiaCP is not configured ({exc}), using default packages")

    if not result.success or result.returncode == E_FORBIDEN or not result.data:
        return _default_catalog(
            "Using default packages. HestiaCP packages API requires IP whitelisting or proper permissions."
        )
    packages = [_from_hestia(pkg) for pkg in result.data.values()]
    return PackageCatalogRead(packages=packages, source="hestiacp")
