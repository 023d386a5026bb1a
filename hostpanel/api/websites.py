from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from hostpanel.api.deps import get_dns_client, get_hestia_client, get_settings
from hostpanel.config import Settings
from hostpanel.db import get_session
from hostpanel.models import WebsiteRead
from hostpanel.schemas import CustomDomainAttach, CustomDomainResult, SslEnable, WebsiteCreate, WebsiteUpdate
from hostpanel.services import websites as website_service
from hostpanel.services.aapanel_adapter import AAPanelClient
from hostpanel.services.hestia_adapter import HestiaClient

router = APIRouter(prefix="/websites", tags=["websites"])


@router.post("/create", response_model=WebsiteRead, status_code=status.HTTP_201_CREATED)
def create_website(
    payload: WebsiteCreate,
    session: Session = Depends(get_session),
    hestia: HestiaClient = Depends(get_hestia_client),
    dns: AAPanelClient = Depends(get_dns_client),
    settings: Settings = Depends(get_settings),
) -> WebsiteRead:
    return website_service.create_website(session, hestia, dns, settings, request=payload)


@router.post("/custom-domain", response_model=CustomDomainResult)
def attach_custom_domain(
    payload: CustomDomainAttach,
    session: Session = Depends(get_session),
    hestia: HestiaClient = Depends(get_hestia_client),
) -> CustomDomainResult:
    return website_service.attach_custom_domain(
        session, hestia, website_id=payload.website_id, custom_domain=payload.custom_domain
    )


@router.post("/ssl/enable", response_model=WebsiteRead)
def enable_ssl(
    payload: SslEnable,
    session: Session = Depends(get_session),
    hestia: HestiaClient = Depends(get_hestia_client),
) -> WebsiteRead:
    return website_service.enable_website_ssl(session, hestia, website_id=payload.website_id)


@router.get("/{website_id}", response_model=WebsiteRead)
def get_website(website_id: int, session: Session = Depends(get_session)) -> WebsiteRead:
    return website_service.get_website(session, website_id=website_id)


@router.put("/{website_id}", response_model=WebsiteRead)
@router.patch("/{website_id}", response_model=WebsiteRead)
def update_website(
    website_id: int,
    payload: WebsiteUpdate,
    session: Session = Depends(get_session),
    hestia: HestiaClient = Depends(get_hestia_client),
) -> WebsiteRead:
    return website_service.update_website(session, hestia, website_id=website_id, update=payload)


@router.delete("/{website_id}", status_code=204)
def delete_website(
    website_id: int,
    session: Session = Depends(get_session),
    hestia: HestiaClient = Depends(get_hestia_client),
) -> None:
    website_service.delete_website(session, hestia, website_id=website_id)
