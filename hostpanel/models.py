from datetime import datetime, timezone
from typing import Optional, Any

from sqlmodel import Field, SQLModel, Relationship
from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, Text
from sqlalchemy.types import TypeDecorator

from hostpanel.services.constants import (
    ACTIVITY_STATUS_SUCCESS,
    CUSTOMER_STATUS_ACTIVE,
    WEBSITE_STATUS_ACTIVE,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive values and convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetimes stored as UTC.

    SQLite has no timezone support, so values are written without an offset
    and read back with UTC attached.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class CustomerBase(SQLModel):
    name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None


class CustomerORM(CustomerBase, table=True):
    __tablename__ = "customer"

    id: Optional[int] = Field(default=None, primary_key=True)
    hestia_username: str = Field(nullable=False, unique=True, index=True)
    hestia_password: str = Field(nullable=False)
    package_id: str = Field(nullable=False, index=True)
    status: str = Field(default=CUSTOMER_STATUS_ACTIVE, nullable=False, index=True)
    monthly_price: float = Field(default=0, nullable=False)
    billing_cycle: str = Field(default="MONTHLY", nullable=False)
    next_billing_date: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    expires_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True, index=True))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False))
    websites: list["WebsiteORM"] = Relationship(
        back_populates="customer", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    databases: list["DatabaseORM"] = Relationship(
        back_populates="customer", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


class WebsiteBase(SQLModel):
    subdomain: str
    custom_domain: Optional[str] = None
    php_version: str = "8.1"


class WebsiteORM(WebsiteBase, table=True):
    __tablename__ = "website"

    id: Optional[int] = Field(default=None, primary_key=True)
    customer_id: int = Field(
        sa_column=Column(Integer, ForeignKey("customer.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    # Uniqueness comes from the random suffix at generation time; the index only guards against reuse.
    subdomain: str = Field(nullable=False, unique=True, index=True)
    aliases: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    ip_address: Optional[str] = Field(default=None)
    ssl_enabled: bool = Field(default=False, nullable=False)
    ssl_force: bool = Field(default=False, nullable=False)
    ssl_verified: bool = Field(default=False, nullable=False)
    dns_verified: bool = Field(default=False, nullable=False)
    status: str = Field(default=WEBSITE_STATUS_ACTIVE, nullable=False)
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False))
    customer: CustomerORM = Relationship(back_populates="websites")


class DatabaseBase(SQLModel):
    name: str
    username: str
    host: str = "localhost"
    port: int = 3306
    charset: str = "utf8mb4"


class DatabaseORM(DatabaseBase, table=True):
    __tablename__ = "hosted_database"

    id: Optional[int] = Field(default=None, primary_key=True)
    customer_id: int = Field(
        sa_column=Column(Integer, ForeignKey("customer.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    password: str = Field(nullable=False)
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False))
    customer: CustomerORM = Relationship(back_populates="databases")


class WebsiteRead(WebsiteBase):
    id: int
    customer_id: int
    aliases: list[str] = []
    ip_address: Optional[str] = None
    ssl_enabled: bool
    ssl_force: bool
    ssl_verified: bool
    dns_verified: bool
    status: str
    created_at: datetime


class DatabaseRead(DatabaseBase):
    id: int
    customer_id: int
    created_at: datetime


class CustomerRead(CustomerBase):
    id: int
    hestia_username: str
    package_id: str
    status: str
    monthly_price: float
    billing_cycle: str
    next_billing_date: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime
    websites: list[WebsiteRead] = []
    databases: list[DatabaseRead] = []


class BillingRead(SQLModel):
    id: int
    name: str
    email: str
    package_id: str
    billing_cycle: str
    monthly_price: float
    status: str
    expires_at: Optional[datetime] = None
    days_remaining: Optional[int] = None
    is_expired: bool = False


class BillingExtend(SQLModel):
    months: int


class ExpiredSuspension(SQLModel):
    customer_id: int
    hestia_username: str
    suspended: bool
    error: Optional[str] = None


class ActivityLogBase(SQLModel):
    action: str
    resource: str
    resource_id: Optional[int] = None
    description: str
    status: str = ACTIVITY_STATUS_SUCCESS
    error: Optional[str] = None
    details_json: Optional[dict[str, Any]] = None


class ActivityLogORM(ActivityLogBase, table=True):
    __tablename__ = "activity_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    action: str = Field(nullable=False, index=True)
    status: str = Field(default=ACTIVITY_STATUS_SUCCESS, nullable=False, index=True)
    error: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    details_json: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False, index=True))


class ActivityLogRead(ActivityLogBase):
    id: int
    created_at: datetime


class ActivityPage(SQLModel):
    activities: list[ActivityLogRead]
    page: int
    limit: int
    total: int
    total_pages: int


class PackageRead(SQLModel):
    id: str
    name: str
    hestia_package_name: str
    billing_cycle: str = "MONTHLY"
    disk_space: int
    bandwidth: float
    websites: int
    databases: int
    email_accounts: Optional[int] = None
    subdomains: Optional[int] = None
    ftp_accounts: Optional[int] = None
    cron_jobs: Optional[int] = None
    backups: Optional[int] = None
    features: list[str] = []
    ssl_included: bool = True
    dedicated_ip: bool = False
    priority: Optional[str] = None


class PackageCatalogRead(SQLModel):
    packages: list[PackageRead]
    source: str
    warning: Optional[str] = None


class CustomerCounts(SQLModel):
    total: int
    active: int
    suspended: int


class WebsiteCounts(SQLModel):
    total: int
    active: int
    pending: int


class DatabaseCounts(SQLModel):
    total: int


class DashboardStats(SQLModel):
    customers: CustomerCounts
    websites: WebsiteCounts
    databases: DatabaseCounts
    recent_activities: list[ActivityLogRead]
