from __future__ import annotations

import logging
import random

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from hostpanel.config import Settings
from hostpanel.models import WebsiteORM, WebsiteRead
from hostpanel.rpc import attempt
from hostpanel.schemas import CustomDomainResult, DnsInstructions, WebsiteCreate, WebsiteUpdate
from hostpanel.services.aapanel_adapter import AAPanelClient
from hostpanel.services.activity import record_activity
from hostpanel.services.compensation import CompensationStack
from hostpanel.services.constants import (
    ACTION_ADD_CUSTOM_DOMAIN,
    ACTION_CREATE_WEBSITE,
    ACTION_DELETE_WEBSITE,
    ACTION_ENABLE_SSL,
    ACTION_UPDATE_WEBSITE,
    RESOURCE_WEBSITE,
    WEBSITE_STATUS_ACTIVE,
    WEBSITE_STATUS_SSL_PENDING,
)
from hostpanel.services.customers import get_customer_orm
from hostpanel.services.errors import (
    IntegrityException,
    NotFoundException,
    PersistenceException,
    QuotaExceededException,
    RemoteHostException,
    RemoteServiceException,
)
from hostpanel.services.hestia_adapter import E_NOTEXIST, HestiaClient
from hostpanel.services.naming import generate_subdomain, subdomain_label
from hostpanel.services.packages import get_package
from hostpanel.services.provisioning import DNS_TTL

logger = logging.getLogger(__name__)

CUSTOM_DOMAIN_TTL = 3600


def _get_website_orm(session: Session, *, website_id: int) -> WebsiteORM:
    stmt = select(WebsiteORM).options(selectinload(WebsiteORM.customer)).where(WebsiteORM.id == website_id)
    if not (website := session.exec(stmt).one_or_none()):
        raise NotFoundException("Website not found")
    return website


def get_website(session: Session, *, website_id: int) -> WebsiteRead:
    return WebsiteRead.model_validate(_get_website_orm(session, website_id=website_id))


def _custom_domain_in_use(session: Session, domain: str, *, exclude_id: int | None = None) -> bool:
    stmt = select(WebsiteORM.id).where(WebsiteORM.custom_domain == domain)
    if exclude_id is not None:
        stmt = stmt.where(WebsiteORM.id != exclude_id)
    return session.exec(stmt).first() is not None


def _enable_tls(hestia: HestiaClient, user: str, domain: str) -> tuple[bool, bool]:
    enabled = attempt("TLS certificate", lambda: hestia.enable_ssl(user, domain))
    if not enabled.success:
        logger.warning("TLS certificate for %s not issued: %s", domain, enabled.error)
        return False, False
    forced = attempt("HTTPS redirect", lambda: hestia.force_ssl(user, domain))
    if not forced.success:
        logger.warning("HTTPS redirect for %s not enabled: %s", domain, forced.error)
    return True, forced.success


def create_website(
    session: Session,
    hestia: HestiaClient,
    dns: AAPanelClient,
    settings: Settings,
    *,
    request: WebsiteCreate,
    rng: random.Random | None = None,
) -> WebsiteRead:
    """Add another web domain to an existing customer, within the package's website limit."""
    customer = get_customer_orm(session, customer_id=request.customer_id)
    package = get_package(customer.package_id)
    limit = package.websites if package else 1
    if limit > 0 and len(customer.websites) >= limit:
        package_name = package.name if package else "Basic"
        raise QuotaExceededException(
            f"Website limit reached. The {package_name} package allows {limit} website(s); "
            f"the customer already has {len(customer.websites)}."
        )

    primary_domain = settings.primary_domain
    subdomain = generate_subdomain(request.name, primary_domain, rng=rng)
    if session.exec(select(WebsiteORM.id).where(WebsiteORM.subdomain == subdomain)).first() is not None:
        raise IntegrityException("A website with this name already exists. Please choose a different name.")

    username = customer.hestia_username
    logger.info("Creating website %s for customer_id=%s", subdomain, customer.id)
    domain_result = hestia.add_web_domain(username, subdomain, aliases=[], restart=True)
    if not domain_result.success:
        raise RemoteHostException(f"Failed to create website: {domain_result.error or 'Unknown error'}")
    compensations = CompensationStack()
    compensations.push(
        f"delete web domain {subdomain}", lambda: hestia.delete_web_domain(username, subdomain)
    )

    ssl_enabled, ssl_forced = _enable_tls(hestia, username, subdomain) if request.enable_ssl else (False, False)

    dns_result = attempt(
        "DNS A record",
        lambda: dns.add_a_record(
            primary_domain=primary_domain,
            subdomain=subdomain_label(subdomain, primary_domain),
            ip=settings.edge_ip,
            ttl=DNS_TTL,
        ),
    )
    if not dns_result.success:
        logger.warning("DNS creation failed for %s: %s", subdomain, dns_result.error)

    website = WebsiteORM(
        customer_id=customer.id,
        subdomain=subdomain,
        aliases=[],
        ip_address=settings.edge_ip,
        ssl_enabled=ssl_enabled,
        ssl_force=ssl_forced,
        ssl_verified=ssl_enabled,
        dns_verified=dns_result.success,
        php_version=request.php_version,
        status=WEBSITE_STATUS_ACTIVE if ssl_enabled else WEBSITE_STATUS_SSL_PENDING,
    )
    try:
        session.add(website)
        session.commit()
        session.refresh(website)
    except SQLAlchemyError as exc:
        logger.exception("Persisting website %s failed; removing web domain", subdomain)
        session.rollback()
        compensations.unwind()
        raise PersistenceException(f"Failed to save website: {exc}") from exc

    record_activity(
        session,
        action=ACTION_CREATE_WEBSITE,
        resource=RESOURCE_WEBSITE,
        resource_id=website.id,
        description=f"Created website {subdomain} for customer {customer.name}",
        details={"subdomain": subdomain, "customerId": customer.id, "sslEnabled": ssl_enabled},
    )
    return WebsiteRead.model_validate(website)


def _swap_custom_domain(
    hestia: HestiaClient,
    website: WebsiteORM,
    new_domain: str | None,
) -> None:
    username = website.customer.hestia_username
    old_domain = website.custom_domain
    if new_domain and new_domain != old_domain:
        added = hestia.add_web_domain_alias(username, website.subdomain, new_domain)
        if not added.success:
            raise RemoteServiceException(f"Failed to add custom domain: {added.error or 'Unknown error'}")
    if old_domain and old_domain != new_domain:
        removed = hestia.delete_web_domain_alias(username, website.subdomain, old_domain)
        if not removed.success:
            logger.warning("Failed to remove alias %s from %s: %s", old_domain, website.subdomain, removed.error)

    kept = [alias for alias in website.aliases if alias not in (old_domain, f"www.{old_domain}")]
    website.aliases = kept + ([new_domain] if new_domain else [])
    website.custom_domain = new_domain


def attach_custom_domain(
    session: Session,
    hestia: HestiaClient,
    *,
    website_id: int,
    custom_domain: str,
) -> CustomDomainResult:
    """Serve ``custom_domain`` as an alias of the website's subdomain."""
    website = _get_website_orm(session, website_id=website_id)
    if _custom_domain_in_use(session, custom_domain, exclude_id=website.id):
        raise IntegrityException("This custom domain is already in use")

    _swap_custom_domain(hestia, website, custom_domain)
    session.add(website)
    session.commit()
    record_activity(
        session,
        action=ACTION_ADD_CUSTOM_DOMAIN,
        resource=RESOURCE_WEBSITE,
        resource_id=website.id,
        description=f"Added custom domain {custom_domain} to {website.subdomain}",
    )
    return CustomDomainResult(
        custom_domain=custom_domain,
        subdomain=website.subdomain,
        dns_instructions=DnsInstructions(value=website.subdomain, ttl=CUSTOM_DOMAIN_TTL),
    )


def update_website(session: Session, hestia: HestiaClient, *, website_id: int, update: WebsiteUpdate) -> WebsiteRead:
    website = _get_website_orm(session, website_id=website_id)
    username = website.customer.hestia_username
    changed: list[str] = []

    if update.php_version and update.php_version != website.php_version:
        result = hestia.change_php_version(username, website.subdomain, update.php_version)
        if not result.success:
            logger.error("Failed to change PHP version for %s: %s", website.subdomain, result.error)
        website.php_version = update.php_version
        changed.append("php_version")

    if "custom_domain" in update.model_fields_set and update.custom_domain != website.custom_domain:
        if update.custom_domain and _custom_domain_in_use(session, update.custom_domain, exclude_id=website.id):
            raise IntegrityException("This domain is already connected to another website")
        _swap_custom_domain(hestia, website, update.custom_domain)
        changed.append("custom_domain")

    if not changed:
        return WebsiteRead.model_validate(website)

    session.add(website)
    session.commit()
    record_activity(
        session,
        action=ACTION_UPDATE_WEBSITE,
        resource=RESOURCE_WEBSITE,
        resource_id=website.id,
        description=f"Updated website {website.subdomain}",
        details={"fields": changed},
    )
    return get_website(session, website_id=website_id)


def enable_website_ssl(session: Session, hestia: HestiaClient, *, website_id: int) -> WebsiteRead:
    """Issue a certificate for a website left SSL_PENDING, then force HTTPS."""
    website = _get_website_orm(session, website_id=website_id)
    username = website.customer.hestia_username

    result = hestia.enable_ssl(username, website.subdomain)
    if not result.success:
        raise RemoteServiceException(f"SSL enable failed: {result.error or 'Unknown error'}")
    forced = hestia.force_ssl(username, website.subdomain)
    if not forced.success:
        logger.warning("HTTPS redirect for %s not enabled: %s", website.subdomain, forced.error)

    website.ssl_enabled = True
    website.ssl_verified = True
    website.ssl_force = forced.success
    website.status = WEBSITE_STATUS_ACTIVE
    session.add(website)
    session.commit()
    record_activity(
        session,
        action=ACTION_ENABLE_SSL,
        resource=RESOURCE_WEBSITE,
        resource_id=website.id,
        description=f"Enabled SSL for {website.subdomain}",
    )
    return get_website(session, website_id=website_id)


def delete_website(session: Session, hestia: HestiaClient, *, website_id: int) -> None:
    website = _get_website_orm(session, website_id=website_id)
    subdomain = website.subdomain

    result = hestia.delete_web_domain(website.customer.hestia_username, subdomain)
    if not result.success:
        if result.returncode == E_NOTEXIST:
            logger.warning("Web domain %s already gone; deleting local record only", subdomain)
        else:
            raise RemoteServiceException(f"Failed to delete website from Hestia: {result.error or 'Unknown error'}")

    session.delete(website)
    session.commit()
    record_activity(
        session,
        action=ACTION_DELETE_WEBSITE,
        resource=RESOURCE_WEBSITE,
        resource_id=website_id,
        description=f"Deleted website {subdomain}",
    )
    logger.info("Deleted website id=%s subdomain=%s", website_id, subdomain)
