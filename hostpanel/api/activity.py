from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlmodel import Session

from hostpanel.db import get_session
from hostpanel.models import ActivityPage
from hostpanel.services import activity as activity_service

router = APIRouter(prefix="/activity", tags=["activity"])


@router.get("", response_model=ActivityPage)
def list_activity(
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
    session: Session = Depends(get_session),
) -> ActivityPage:
    return activity_service.list_activity(session, status=status, search=search, page=page, limit=limit)
