from __future__ import annotations

import logging
import math
from typing import Any

from sqlalchemy import func, or_
from sqlmodel import Session, select

from hostpanel.models import ActivityLogORM, ActivityLogRead, ActivityPage
from hostpanel.services.constants import ACTIVITY_STATUS_FAILED, ACTIVITY_STATUS_SUCCESS
from hostpanel.services.errors import ValidationException

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def record_activity(
    session: Session,
    *,
    action: str,
    resource: str,
    description: str,
    status: str = ACTIVITY_STATUS_SUCCESS,
    resource_id: int | None = None,
    error: str | None = None,
    details: dict[str, Any] | None = None,
) -> ActivityLogORM:
    """Append an audit entry in its own commit."""
    entry = ActivityLogORM(
        action=action,
        resource=resource,
        resource_id=resource_id,
        description=description,
        status=status,
        error=error,
        details_json=details,
    )
    session.add(entry)
    session.commit()
    session.refresh(entry)
    logger.debug("Recorded activity id=%s action=%s status=%s", entry.id, action, status)
    return entry


def record_failure_safely(session: Session, **fields: Any) -> None:
    """Record a FAILED entry; problems writing it are logged, never raised."""
    try:
        session.rollback()
        record_activity(session, status=ACTIVITY_STATUS_FAILED, **fields)
    except Exception:
        logger.exception("Unable to write audit entry for action=%s", fields.get("action"))
        session.rollback()


def list_activity(
    session: Session,
    *,
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> ActivityPage:
    if page < 1:
        raise ValidationException("page must be >= 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationException(f"limit must be between 1 and {MAX_PAGE_SIZE}")

    filters = []
    if status:
        filters.append(ActivityLogORM.status == status.upper())
    if search:
        pattern = f"%{search}%"
        filters.append(
            or_(
                ActivityLogORM.description.ilike(pattern),
                ActivityLogORM.action.ilike(pattern),
                ActivityLogORM.resource.ilike(pattern),
            )
        )

    total = session.exec(select(func.count()).select_from(ActivityLogORM).where(*filters)).one()
    stmt = (
        select(ActivityLogORM)
        .where(*filters)
        .order_by(ActivityLogORM.created_at.desc(), ActivityLogORM.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    activities = [ActivityLogRead.model_validate(entry) for entry in session.exec(stmt).all()]
    return ActivityPage(
        activities=activities,
        page=page,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit) if total else 0,
    )
