from __future__ import annotations

import calendar
from datetime import datetime
import logging
import math

from sqlmodel import Session, select

from hostpanel.models import BillingRead, CustomerORM, CustomerRead, ExpiredSuspension, as_utc, utcnow
from hostpanel.services.activity import record_activity
from hostpanel.services.constants import (
    ACTION_AUTO_SUSPEND,
    ACTION_BILLING_EXTENDED,
    BILLING_MAX_MONTHS,
    BILLING_MIN_MONTHS,
    CUSTOMER_STATUS_ACTIVE,
    CUSTOMER_STATUS_SUSPENDED,
    RESOURCE_CUSTOMER,
)
from hostpanel.services.customers import get_customer, get_customer_orm
from hostpanel.services.errors import ValidationException
from hostpanel.services.hestia_adapter import HestiaClient

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 24 * 60 * 60


def add_months(value: datetime, months: int) -> datetime:
    """Calendar month arithmetic; the day is clamped to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def get_billing(session: Session, *, customer_id: int, now: datetime | None = None) -> BillingRead:
    customer = get_customer_orm(session, customer_id=customer_id)
    now = as_utc(now) if now else utcnow()

    days_remaining = None
    is_expired = False
    if customer.expires_at is not None:
        seconds = (as_utc(customer.expires_at) - now).total_seconds()
        days_remaining = math.ceil(seconds / _SECONDS_PER_DAY)
        is_expired = seconds < 0

    return BillingRead(
        id=customer.id,
        name=customer.name,
        email=customer.email,
        package_id=customer.package_id,
        billing_cycle=customer.billing_cycle,
        monthly_price=customer.monthly_price,
        status=customer.status,
        expires_at=customer.expires_at,
        days_remaining=days_remaining,
        is_expired=is_expired,
    )


def extend_billing(
    session: Session,
    hestia: HestiaClient,
    *,
    customer_id: int,
    months: int,
    now: datetime | None = None,
) -> CustomerRead:
    """Extend a subscription by whole months and reactivate the account."""
    if not BILLING_MIN_MONTHS <= months <= BILLING_MAX_MONTHS:
        raise ValidationException(f"Months must be between {BILLING_MIN_MONTHS} and {BILLING_MAX_MONTHS}")

    customer = get_customer_orm(session, customer_id=customer_id)
    now = as_utc(now) if now else utcnow()
    current_expiry = as_utc(customer.expires_at) if customer.expires_at else None
    start = current_expiry if current_expiry and current_expiry > now else now
    new_expiry = add_months(start, months)
    was_suspended = customer.status == CUSTOMER_STATUS_SUSPENDED

    customer.expires_at = new_expiry
    customer.next_billing_date = new_expiry
    customer.status = CUSTOMER_STATUS_ACTIVE
    customer.updated_at = now
    session.add(customer)
    session.commit()

    if was_suspended:
        result = hestia.unsuspend_user(customer.hestia_username)
        if not result.success:
            logger.error("Failed to unsuspend %s after billing extension: %s", customer.hestia_username, result.error)

    record_activity(
        session,
        action=ACTION_BILLING_EXTENDED,
        resource=RESOURCE_CUSTOMER,
        resource_id=customer.id,
        description=(
            f"Extended subscription for {customer.email} by {months} month(s). "
            f"New expiration: {new_expiry.isoformat()}"
        ),
        details={"months": months, "expiresAt": new_expiry.isoformat(), "wasSuspended": was_suspended},
    )
    logger.info("Extended billing for customer_id=%s by %s month(s) until %s", customer_id, months, new_expiry)
    return get_customer(session, customer_id=customer_id)


def suspend_expired_customers(
    session: Session,
    hestia: HestiaClient,
    *,
    now: datetime | None = None,
) -> list[ExpiredSuspension]:
    """Suspend every ACTIVE customer whose subscription has lapsed."""
    now = as_utc(now) if now else utcnow()
    stmt = (
        select(CustomerORM)
        .where(CustomerORM.status == CUSTOMER_STATUS_ACTIVE, CustomerORM.expires_at < now)
        .order_by(CustomerORM.id)
    )
    expired = list(session.exec(stmt).all())
    logger.info("Found %d expired customer(s)", len(expired))

    results: list[ExpiredSuspension] = []
    for customer in expired:
        result = hestia.suspend_user(customer.hestia_username)
        if not result.success:
            logger.error("Failed to suspend expired customer %s: %s", customer.hestia_username, result.error)
            results.append(
                ExpiredSuspension(
                    customer_id=customer.id,
                    hestia_username=customer.hestia_username,
                    suspended=False,
                    error=result.error,
                )
            )
            continue

        expired_at = customer.expires_at
        customer.status = CUSTOMER_STATUS_SUSPENDED
        customer.updated_at = now
        session.add(customer)
        session.commit()
        record_activity(
            session,
            action=ACTION_AUTO_SUSPEND,
            resource=RESOURCE_CUSTOMER,
            resource_id=customer.id,
            description=(
                f"Auto-suspended expired customer: {customer.name} ({customer.email}). "
                f"Expired on: {expired_at.isoformat()}"
            ),
        )
        results.append(
            ExpiredSuspension(customer_id=customer.id, hestia_username=customer.hestia_username, suspended=True)
        )
    return results
