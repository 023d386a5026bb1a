from __future__ import annotations

from sqlalchemy import func
from sqlmodel import Session, select

from hostpanel.models import (
    ActivityLogORM,
    ActivityLogRead,
    CustomerCounts,
    CustomerORM,
    DashboardStats,
    DatabaseCounts,
    DatabaseORM,
    WebsiteCounts,
    WebsiteORM,
)
from hostpanel.services.constants import (
    CUSTOMER_STATUS_ACTIVE,
    CUSTOMER_STATUS_SUSPENDED,
    WEBSITE_PENDING_STATUSES,
    WEBSITE_STATUS_ACTIVE,
)

RECENT_ACTIVITY_LIMIT = 10


def _count(session: Session, model, *criteria) -> int:
    return session.exec(select(func.count()).select_from(model).where(*criteria)).one()


def get_stats(session: Session) -> DashboardStats:
    recent = session.exec(
        select(ActivityLogORM)
        .order_by(ActivityLogORM.created_at.desc(), ActivityLogORM.id.desc())
        .limit(RECENT_ACTIVITY_LIMIT)
    ).all()
    return DashboardStats(
        customers=CustomerCounts(
            total=_count(session, CustomerORM),
            active=_count(session, CustomerORM, CustomerORM.status == CUSTOMER_STATUS_ACTIVE),
            suspended=_count(session, CustomerORM, CustomerORM.status == CUSTOMER_STATUS_SUSPENDED),
        ),
        websites=WebsiteCounts(
            total=_count(session, WebsiteORM),
            active=_count(session, WebsiteORM, WebsiteORM.status == WEBSITE_STATUS_ACTIVE),
            pending=_count(session, WebsiteORM, WebsiteORM.status.in_(WEBSITE_PENDING_STATUSES)),
        ),
        databases=DatabaseCounts(total=_count(session, DatabaseORM)),
        recent_activities=[ActivityLogRead.model_validate(entry) for entry in recent],
    )
