from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, status
from sqlmodel import Session

from hostpanel.api.deps import get_hestia_client, get_provisioner
from hostpanel.db import get_session
from hostpanel.models import BillingExtend, BillingRead, CustomerRead, ExpiredSuspension
from hostpanel.schemas import CustomerUpdate, ProvisioningResponse
from hostpanel.services import billing as billing_service, customers as customer_service
from hostpanel.services.hestia_adapter import HestiaClient
from hostpanel.services.provisioning import CustomerProvisioner

router = APIRouter(prefix="/customers", tags=["customers"])


@router.post("/create", response_model=ProvisioningResponse, status_code=status.HTTP_201_CREATED)
def create_customer(
    payload: Any = Body(None),
    provisioner: CustomerProvisioner = Depends(get_provisioner),
) -> ProvisioningResponse:
    # Validated by the provisioner so rejected requests are audited too.
    return ProvisioningResponse(success=True, data=provisioner.provision(payload))


@router.get("", response_model=list[CustomerRead])
def list_customers(status: str | None = None, session: Session = Depends(get_session)) -> list[CustomerRead]:
    return customer_service.list_customers(session, status=status)


@router.post("/suspend-expired", response_model=list[ExpiredSuspension])
def suspend_expired(
    session: Session = Depends(get_session),
    hestia: HestiaClient = Depends(get_hestia_client),
) -> list[ExpiredSuspension]:
    return billing_service.suspend_expired_customers(session, hestia)


@router.get("/{customer_id}", response_model=CustomerRead)
def get_customer(customer_id: int, session: Session = Depends(get_session)) -> CustomerRead:
    return customer_service.get_customer(session, customer_id=customer_id)


@router.patch("/{customer_id}", response_model=CustomerRead)
@router.put("/{customer_id}", response_model=CustomerRead)
def update_customer(
    customer_id: int,
    payload: CustomerUpdate,
    session: Session = Depends(get_session),
) -> CustomerRead:
    return customer_service.update_customer(session, customer_id=customer_id, update=payload)


@router.delete("/{customer_id}", status_code=204)
def delete_customer(
    customer_id: int,
    session: Session = Depends(get_session),
    hestia: HestiaClient = Depends(get_hestia_client),
) -> None:
    customer_service.delete_customer(session, hestia, customer_id=customer_id)


@router.post("/{customer_id}/suspend", response_model=CustomerRead)
def suspend_customer(
    customer_id: int,
    session: Session = Depends(get_session),
    hestia: HestiaClient = Depends(get_hestia_client),
) -> CustomerRead:
    return customer_service.suspend_customer(session, hestia, customer_id=customer_id)


@router.post("/{customer_id}/unsuspend", response_model=CustomerRead)
def unsuspend_customer(
    customer_id: int,
    session: Session = Depends(get_session),
    hestia: HestiaClient = Depends(get_hestia_client),
) -> CustomerRead:
    return customer_service.unsuspend_customer(session, hestia, customer_id=customer_id)


@router.get("/{customer_id}/billing", response_model=BillingRead)
def get_billing(customer_id: int, session: Session = Depends(get_session)) -> BillingRead:
    return billing_service.get_billing(session, customer_id=customer_id)


@router.post("/{customer_id}/billing", response_model=CustomerRead)
def extend_billing(
    customer_id: int,
    payload: BillingExtend,
    session: Session = Depends(get_session),
    hestia: HestiaClient = Depends(get_hestia_client),
) -> CustomerRead:
    return billing_service.extend_billing(session, hestia, customer_id=customer_id, months=payload.months)
