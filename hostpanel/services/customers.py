from __future__ import annotations

import logging

from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from hostpanel.models import CustomerORM, CustomerRead, utcnow
from hostpanel.schemas import CustomerUpdate
from hostpanel.services.activity import record_activity
from hostpanel.services.constants import (
    ACTION_DELETE_CUSTOMER,
    ACTION_SUSPEND_CUSTOMER,
    ACTION_UNSUSPEND_CUSTOMER,
    ACTION_UPDATE_CUSTOMER,
    CUSTOMER_STATUS_ACTIVE,
    CUSTOMER_STATUS_SUSPENDED,
    RESOURCE_CUSTOMER,
)
from hostpanel.services.errors import NotFoundException, RemoteServiceException
from hostpanel.services.hestia_adapter import E_NOTEXIST, HestiaClient

logger = logging.getLogger(__name__)


def get_customer_orm(session: Session, *, customer_id: int) -> CustomerORM:
    stmt = (
        select(CustomerORM)
        .options(selectinload(CustomerORM.websites), selectinload(CustomerORM.databases))
        .where(CustomerORM.id == customer_id)
    )
    if not (customer := session.exec(stmt).one_or_none()):
        raise NotFoundException("Customer not found")
    return customer


def list_customers(session: Session, *, status: str | None = None) -> list[CustomerRead]:
    stmt = select(CustomerORM).options(selectinload(CustomerORM.websites), selectinload(CustomerORM.databases))
    if status is not None:
        stmt = stmt.where(CustomerORM.status == status.upper())
    stmt = stmt.order_by(CustomerORM.created_at.desc(), CustomerORM.id.desc())
    return [CustomerRead.model_validate(c) for c in session.exec(stmt).all()]


def get_customer(session: Session, *, customer_id: int) -> CustomerRead:
    return CustomerRead.model_validate(get_customer_orm(session, customer_id=customer_id))


_REQUIRED_FIELDS = {"name", "email", "package_id", "billing_cycle", "monthly_price"}


def update_customer(session: Session, *, customer_id: int, update: CustomerUpdate) -> CustomerRead:
    """Apply the fields present in ``update``; null clears only optional contact fields."""
    customer = get_customer_orm(session, customer_id=customer_id)
    changes = {
        key: value
        for key, value in update.model_dump(exclude_unset=True).items()
        if value is not None or key not in _REQUIRED_FIELDS
    }
    if not changes:
        return CustomerRead.model_validate(customer)

    for key, value in changes.items():
        setattr(customer, key, value)
    customer.updated_at = utcnow()
    session.add(customer)
    session.commit()
    record_activity(
        session,
        action=ACTION_UPDATE_CUSTOMER,
        resource=RESOURCE_CUSTOMER,
        resource_id=customer_id,
        description=f"Updated customer: {customer.name}",
        details={"fields": sorted(changes)},
    )
    logger.info("Updated customer id=%s fields=%s", customer_id, ",".join(sorted(changes)))
    return get_customer(session, customer_id=customer_id)


def delete_customer(session: Session, hestia: HestiaClient, *, customer_id: int) -> None:
    """Remove the control-panel user, then the local customer graph."""
    customer = get_customer_orm(session, customer_id=customer_id)
    username = customer.hestia_username

    result = hestia.delete_user(username)
    if not result.success:
        if result.returncode == E_NOTEXIST:
            logger.warning("HestiaCP user %s already gone; deleting local records only", username)
        else:
            raise RemoteServiceException(f"Failed to delete user from Hestia: {result.error or 'Unknown error'}")

    name = customer.name
    session.delete(customer)
    session.commit()
    record_activity(
        session,
        action=ACTION_DELETE_CUSTOMER,
        resource=RESOURCE_CUSTOMER,
        resource_id=customer_id,
        description=f"Deleted customer: {name}",
    )
    logger.info("Deleted customer id=%s username=%s", customer_id, username)


def _set_status(session: Session, customer: CustomerORM, status: str) -> None:
    customer.status = status
    customer.updated_at = utcnow()
    session.add(customer)
    session.commit()


def suspend_customer(session: Session, hestia: HestiaClient, *, customer_id: int) -> CustomerRead:
    customer = get_customer_orm(session, customer_id=customer_id)
    if customer.status == CUSTOMER_STATUS_SUSPENDED:
        return CustomerRead.model_validate(customer)

    result = hestia.suspend_user(customer.hestia_username)
    if not result.success:
        raise RemoteServiceException(result.error or "Failed to suspend user in HestiaCP")

    _set_status(session, customer, CUSTOMER_STATUS_SUSPENDED)
    record_activity(
        session,
        action=ACTION_SUSPEND_CUSTOMER,
        resource=RESOURCE_CUSTOMER,
        resource_id=customer_id,
        description=f"Suspended customer: {customer.name} ({customer.email}) and {len(customer.websites)} websites",
    )
    return get_customer(session, customer_id=customer_id)


def unsuspend_customer(session: Session, hestia: HestiaClient, *, customer_id: int) -> CustomerRead:
    customer = get_customer_orm(session, customer_id=customer_id)
    if customer.status == CUSTOMER_STATUS_ACTIVE:
        return CustomerRead.model_validate(customer)

    result = hestia.unsuspend_user(customer.hestia_username)
    if not result.success:
        raise RemoteServiceException(result.error or "Failed to unsuspend user in HestiaCP")

    _set_status(session, customer, CUSTOMER_STATUS_ACTIVE)
    record_activity(
        session,
        action=ACTION_UNSUSPEND_CUSTOMER,
        resource=RESOURCE_CUSTOMER,
        resource_id=customer_id,
        description=f"Unsuspended customer: {customer.name} ({customer.email}) and {len(customer.websites)} websites",
    )
    return get_customer(session, customer_id=customer_id)
