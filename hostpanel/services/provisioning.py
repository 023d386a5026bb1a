from __future__ import annotations

from dataclasses import dataclass, field
import logging
import random
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from hostpanel.config import Settings
from hostpanel.models import CustomerORM, DatabaseORM, WebsiteORM, utcnow
from hostpanel.rpc import attempt
from hostpanel.schemas import (
    Credentials,
    CustomerSummary,
    DatabaseCredentials,
    ProvisioningRequest,
    ProvisioningResult,
    ResourceLimits,
    WebsiteSummary,
    parse_payload,
)
from hostpanel.services.aapanel_adapter import AAPanelClient
from hostpanel.services.activity import record_activity, record_failure_safely
from hostpanel.services.billing import add_months
from hostpanel.services.compensation import CompensationStack
from hostpanel.services.constants import (
    ACTION_CREATE_CUSTOMER,
    CUSTOMER_STATUS_ACTIVE,
    RESOURCE_CUSTOMER,
    WEBSITE_STATUS_ACTIVE,
    WEBSITE_STATUS_SSL_PENDING,
)
from hostpanel.services.errors import (
    ConfigurationException,
    HostPanelException,
    PersistenceException,
    ProvisioningException,
    RemoteAccountException,
    RemoteHostException,
)
from hostpanel.services.hestia_adapter import HestiaClient
from hostpanel.services.naming import generate_password, generate_subdomain, generate_username, subdomain_label
from hostpanel.services.packages import Package, get_package, resource_limits

logger = logging.getLogger(__name__)

DNS_TTL = 600
CNAME_TTL = 3600
DATABASE_HOST = "localhost"
DATABASE_PORT = 3306
DATABASE_CHARSET = "utf8mb4"
PASSWORD_LENGTH = 16


@dataclass
class _Progress:
    """What has happened remotely so far, for the failure audit entry."""

    username: str | None = None
    subdomain: str | None = None
    user_created: bool = False
    dns_created: bool = False
    compensations: list[dict[str, Any]] = field(default_factory=list)

    def as_details(self) -> dict[str, Any]:
        details: dict[str, Any] = {}
        if self.username:
            details["hestiaUsername"] = self.username
        if self.subdomain:
            details["subdomain"] = self.subdomain
        if self.user_created:
            details["userCreated"] = True
        if self.dns_created:
            # The A record is not compensated and needs manual cleanup.
            details["orphanedDnsRecord"] = self.subdomain
        if self.compensations:
            details["compensations"] = self.compensations
        return details


def validate_request(payload: Any) -> ProvisioningRequest:
    return parse_payload(ProvisioningRequest, payload)


def _split_name(name: str) -> tuple[str, str]:
    first, _, rest = name.partition(" ")
    return first, rest.strip()


def _aliases(subdomain: str, custom_domain: str | None) -> list[str]:
    aliases = [f"www.{subdomain}"]
    if custom_domain:
        aliases.extend([custom_domain, f"www.{custom_domain}"])
    return aliases


def _next_steps(subdomain: str, custom_domain: str | None) -> list[str]:
    if not custom_domain:
        return [f"Website is ready at {subdomain}"]
    return [
        "Customer needs to add CNAME record:",
        "Type: CNAME",
        "Name: www",
        f"Value: {subdomain}",
        f"TTL: {CNAME_TTL}",
    ]


class CustomerProvisioner:
    """Create a hosting account end to end: remote user, site, TLS, DNS, database, local records."""

    def __init__(
        self,
        *,
        session: Session,
        hestia: HestiaClient,
        dns: AAPanelClient,
        settings: Settings,
        rng: random.Random | None = None,
        package_resolver: Callable[[str], Package | None] = get_package,
    ) -> None:
        self._session = session
        self._hestia = hestia
        self._dns = dns
        self._settings = settings
        self._rng = rng
        self._resolve_package = package_resolver

    def provision(self, payload: Any) -> ProvisioningResult:
        progress = _Progress()
        compensations = CompensationStack()
        try:
            request = validate_request(payload)
            return self._provision(request, progress, compensations)
        except Exception as exc:
            logger.error("Customer provisioning failed: %s", exc)
            if len(compensations):
                self._unwind(compensations, progress)
            record_failure_safely(
                self._session,
                action=ACTION_CREATE_CUSTOMER,
                resource=RESOURCE_CUSTOMER,
                description="Failed to create customer",
                error=str(exc),
                details=progress.as_details() or None,
            )
            if isinstance(exc, HostPanelException):
                raise
            raise ProvisioningException(str(exc)) from exc

    def _provision(
        self,
        request: ProvisioningRequest,
        progress: _Progress,
        compensations: CompensationStack,
    ) -> ProvisioningResult:
        package = self._resolve_package(request.package_id)
        if package is None:
            raise ConfigurationException(f"Invalid package selected: {request.package_id}")

        primary_domain = self._settings.primary_domain
        username = generate_username(request.email, prefix="cust", rng=self._rng)
        password = generate_password(PASSWORD_LENGTH, rng=self._rng)
        subdomain = generate_subdomain(request.name, primary_domain, rng=self._rng)
        progress.username = username
        progress.subdomain = subdomain
        logger.info(
            "Provisioning customer name=%s subdomain=%s username=%s package=%s",
            request.name,
            subdomain,
            username,
            package.name,
        )

        # account
        first_name, last_name = _split_name(request.name)
        user_result = self._hestia.create_user(
            username=username,
            password=password,
            email=request.email,
            package=package.hestia_package_name,
            first_name=first_name,
            last_name=last_name,
        )
        if not user_result.success:
            raise RemoteAccountException(f"Failed to create Hestia user: {user_result.error}")
        progress.user_created = True
        compensations.push(f"delete HestiaCP user {username}", lambda: self._hestia.delete_user(username))

        # web domain
        aliases = _aliases(subdomain, request.custom_domain)
        domain_result = self._hestia.add_web_domain(username, subdomain, aliases=aliases, restart=True)
        if not domain_result.success:
            self._unwind(compensations, progress)
            raise RemoteHostException(f"Failed to create domain: {domain_result.error}")

        # certificate
        ssl_enabled = attempt("TLS certificate", lambda: self._hestia.enable_ssl(username, subdomain)).success
        ssl_forced = False
        if ssl_enabled:
            ssl_forced = attempt("HTTPS redirect", lambda: self._hestia.force_ssl(username, subdomain)).success
        else:
            logger.warning("TLS certificate for %s not issued; website stays SSL_PENDING", subdomain)

        # dns
        dns_result = attempt(
            "DNS A record",
            lambda: self._dns.add_a_record(
                primary_domain=primary_domain,
                subdomain=subdomain_label(subdomain, primary_domain),
                ip=self._settings.edge_ip,
                ttl=DNS_TTL,
            ),
        )
        progress.dns_created = dns_result.success
        if not dns_result.success:
            logger.warning("DNS creation failed for %s: %s", subdomain, dns_result.error)

        database = self._create_database(username) if request.need_database else None

        customer = self._persist(
            request,
            package=package,
            username=username,
            password=password,
            subdomain=subdomain,
            aliases=aliases,
            ssl_enabled=ssl_enabled,
            ssl_forced=ssl_forced,
            dns_created=dns_result.success,
            database=database,
            compensations=compensations,
            progress=progress,
        )
        compensations.clear()

        self._record_success(
            action=ACTION_CREATE_CUSTOMER,
            resource=RESOURCE_CUSTOMER,
            resource_id=customer.id,
            description=f"Created customer: {request.name} ({subdomain}) - Package: {package.name}",
            details={
                "subdomain": subdomain,
                "hestiaUsername": username,
                "sslEnabled": ssl_enabled,
                "dnsCreated": dns_result.success,
                "databaseCreated": database is not None,
                "package": package.name,
            },
        )
        logger.info("Provisioned customer id=%s username=%s", customer.id, username)

        return ProvisioningResult(
            customer=CustomerSummary(
                id=customer.id,
                name=customer.name,
                email=customer.email,
                subdomain=subdomain,
                custom_domain=request.custom_domain,
                package=package.name,
            ),
            credentials=Credentials(
                hestia_username=username,
                hestia_password=password,
                hestia_url=self._settings.hestia_url,
            ),
            website=WebsiteSummary(
                url=f"https://{subdomain}",
                status=WEBSITE_STATUS_ACTIVE if ssl_enabled else WEBSITE_STATUS_SSL_PENDING,
                ssl_enabled=ssl_enabled,
                dns_created=dns_result.success,
            ),
            database=database,
            resource_limits=ResourceLimits(**resource_limits(package)),
            next_steps=_next_steps(subdomain, request.custom_domain),
        )

    def _create_database(self, username: str) -> DatabaseCredentials | None:
        credentials = DatabaseCredentials(
            name=f"{username}_db",
            username=f"{username}_user",
            password=generate_password(PASSWORD_LENGTH, rng=self._rng),
            host=DATABASE_HOST,
            port=DATABASE_PORT,
        )
        result = attempt(
            "database",
            lambda: self._hestia.create_database(
                user=username,
                database=credentials.name,
                dbuser=credentials.username,
                dbpass=credentials.password,
                host=DATABASE_HOST,
                charset=DATABASE_CHARSET,
            ),
        )
        if not result.success:
            logger.warning("Database creation failed for %s: %s", username, result.error)
            return None
        return credentials

    def _persist(
        self,
        request: ProvisioningRequest,
        *,
        package: Package,
        username: str,
        password: str,
        subdomain: str,
        aliases: list[str],
        ssl_enabled: bool,
        ssl_forced: bool,
        dns_created: bool,
        database: DatabaseCredentials | None,
        compensations: CompensationStack,
        progress: _Progress,
    ) -> CustomerORM:
        now = utcnow()
        customer = CustomerORM(
            name=request.name,
            email=request.email,
            phone=request.phone,
            company=request.company,
            hestia_username=username,
            hestia_password=password,
            package_id=package.id,
            status=CUSTOMER_STATUS_ACTIVE,
            monthly_price=0,
            billing_cycle=package.billing_cycle,
            next_billing_date=add_months(now, 1),
        )
        customer.websites.append(
            WebsiteORM(
                subdomain=subdomain,
                custom_domain=request.custom_domain,
                aliases=aliases,
                ip_address=self._settings.edge_ip,
                ssl_enabled=ssl_enabled,
                ssl_force=ssl_enabled and ssl_forced,
                ssl_verified=ssl_enabled,
                dns_verified=dns_created,
                php_version=request.php_version,
                status=WEBSITE_STATUS_ACTIVE if ssl_enabled else WEBSITE_STATUS_SSL_PENDING,
            )
        )
        if database is not None:
            customer.databases.append(
                DatabaseORM(
                    name=database.name,
                    username=database.username,
                    password=database.password,
                    host=database.host,
                    port=database.port,
                    charset=DATABASE_CHARSET,
                )
            )
        try:
            self._session.add(customer)
            self._session.commit()
            self._session.refresh(customer)
        except SQLAlchemyError as exc:
            logger.exception("Persisting customer %s failed; reverting remote account", username)
            self._session.rollback()
            self._unwind(compensations, progress)
            raise PersistenceException(f"Failed to save customer: {exc}") from exc
        return customer

    def _record_success(self, **fields: Any) -> None:
        # The account already exists; a failed audit write must not report it as failed.
        try:
            record_activity(self._session, **fields)
        except SQLAlchemyError:
            logger.exception("Unable to write audit entry for action=%s", fields.get("action"))
            self._session.rollback()

    @staticmethod
    def _unwind(compensations: CompensationStack, progress: _Progress) -> None:
        for outcome in compensations.unwind():
            progress.compensations.append(
                {"action": outcome.description, "succeeded": outcome.succeeded, "error": outcome.error}
            )
        progress.user_created = any(not entry["succeeded"] for entry in progress.compensations)
