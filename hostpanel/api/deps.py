from __future__ import annotations

from typing import Generator

from fastapi import Depends
from sqlmodel import Session

from hostpanel.config import Settings, load_settings
from hostpanel.db import get_session
from hostpanel.services.aapanel_adapter import AAPanelClient
from hostpanel.services.hestia_adapter import HestiaClient
from hostpanel.services.provisioning import CustomerProvisioner


def get_settings() -> Settings:
    return load_settings()


def get_hestia_client(settings: Settings = Depends(get_settings)) -> Generator[HestiaClient, None, None]:
    with HestiaClient.from_settings(settings) as client:
        yield client


def get_dns_client(settings: Settings = Depends(get_settings)) -> Generator[AAPanelClient, None, None]:
    with AAPanelClient.from_settings(settings) as client:
        yield client


def get_provisioner(
    session: Session = Depends(get_session),
    hestia: HestiaClient = Depends(get_hestia_client),
    dns: AAPanelClient = Depends(get_dns_client),
    settings: Settings = Depends(get_settings),
) -> CustomerProvisioner:
    return CustomerProvisioner(session=session, hestia=hestia, dns=dns, settings=settings)
