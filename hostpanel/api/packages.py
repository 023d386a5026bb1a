from __future__ import annotations

from fastapi import APIRouter, Depends

from hostpanel.api.deps import get_hestia_client
from hostpanel.models import PackageCatalogRead
from hostpanel.services import packages as package_service
from hostpanel.services.hestia_adapter import HestiaClient

router = APIRouter(prefix="/packages", tags=["packages"])


@router.get("", response_model=PackageCatalogRead)
def list_packages(hestia: HestiaClient = Depends(get_hestia_client)) -> PackageCatalogRead:
    return package_service.list_catalog(hestia)
