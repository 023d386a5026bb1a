from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlmodel import Session

from hostpanel.db import get_session
from hostpanel.models import DashboardStats
from hostpanel.services import dashboard as dashboard_service

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStats)
def get_stats(session: Session = Depends(get_session)) -> DashboardStats:
    return dashboard_service.get_stats(session)
