from __future__ import annotations

import re
from typing import Any, Literal, Optional, TypeVar

from email_validator import EmailNotValidError, validate_email
import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from hostpanel.services.constants import PHP_VERSIONS
from hostpanel.services.errors import ValidationException

PackageId = Literal["starter", "business", "enterprise"]
BillingCycle = Literal["MONTHLY", "QUARTERLY", "YEARLY"]

_DOMAIN_RE = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9-]*[a-z0-9])?)*\.[a-z]{2,}$")


def check_email(value: str) -> str:
    # Reserved names such as .test are accepted; deliverability is not checked.
    try:
        checked = validate_email(value.strip(), check_deliverability=False, test_environment=True)
    except EmailNotValidError as exc:
        raise ValueError(f"value is not a valid email address: {exc}") from exc
    return checked.normalized


def check_domain(value: str) -> str:
    value = value.strip().lower().rstrip(".")
    if len(value) < 3 or not _DOMAIN_RE.match(value):
        raise ValueError("Invalid domain format")
    return value


def check_name(value: str) -> str:
    value = value.strip()
    if len(value) < 2:
        raise ValueError("name must contain at least 2 non-blank characters")
    return value


def blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_payload(model: type[ModelT], payload: Any) -> ModelT:
    """Validate ``payload`` as ``model``, reporting errors as ``ValidationException``."""
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as exc:
        details = [
            {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
            for err in exc.errors()
        ]
        raise ValidationException(details=details) from exc


class ProvisioningRequest(_CamelModel):
    name: str = Field(min_length=2)
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    custom_domain: Optional[str] = None
    package_id: PackageId = "starter"
    php_version: str = "8.1"
    need_database: bool = False

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return check_name(value)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return check_email(value)

    @field_validator("phone", "company", "custom_domain", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        return blank_to_none(value)

    @field_validator("custom_domain")
    @classmethod
    def _normalize_domain(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip().lower().rstrip(".")


class CustomerSummary(_CamelModel):
    id: int
    name: str
    email: str
    subdomain: str
    custom_domain: Optional[str] = None
    package: str


class Credentials(_CamelModel):
    hestia_username: str
    hestia_password: str
    hestia_url: str


class WebsiteSummary(_CamelModel):
    url: str
    status: str
    ssl_enabled: bool
    dns_created: bool


class DatabaseCredentials(_CamelModel):
    name: str
    username: str
    password: str
    host: str = "localhost"
    port: int = 3306


class ResourceLimits(_CamelModel):
    disk_space: str
    bandwidth: str
    websites: int | str
    databases: int | str


class ProvisioningResult(_CamelModel):
    customer: CustomerSummary
    credentials: Credentials
    website: WebsiteSummary
    database: Optional[DatabaseCredentials] = None
    resource_limits: ResourceLimits
    next_steps: list[str]


class ProvisioningResponse(_CamelModel):
    success: bool = True
    data: ProvisioningResult


class CustomerUpdate(_CamelModel):
    """Editable customer fields. Status changes go through suspend and unsuspend."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    package_id: Optional[PackageId] = None
    billing_cycle: Optional[BillingCycle] = None
    monthly_price: Optional[float] = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else check_name(value)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else check_email(value)

    @field_validator("phone", "company", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        return blank_to_none(value)


class WebsiteCreate(_CamelModel):
    customer_id: int
    name: str
    php_version: str = "8.1"
    enable_ssl: bool = True

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return check_name(value)

    @field_validator("php_version")
    @classmethod
    def _check_php_version(cls, value: str) -> str:
        if value not in PHP_VERSIONS:
            raise ValueError("Invalid PHP version")
        return value


class WebsiteUpdate(_CamelModel):
    """``custom_domain`` set to null detaches the current custom domain."""

    custom_domain: Optional[str] = None
    php_version: Optional[str] = None

    @field_validator("custom_domain", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        return blank_to_none(value)

    @field_validator("custom_domain")
    @classmethod
    def _check_domain(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else check_domain(value)

    @field_validator("php_version")
    @classmethod
    def _check_php_version(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in PHP_VERSIONS:
            raise ValueError("Invalid PHP version")
        return value


class CustomDomainAttach(_CamelModel):
    website_id: int
    custom_domain: str

    @field_validator("custom_domain")
    @classmethod
    def _check_domain(cls, value: str) -> str:
        return check_domain(value)


class SslEnable(_CamelModel):
    website_id: int


class DnsInstructions(_CamelModel):
    type: str = "CNAME"
    name: str = "@"
    value: str
    ttl: int = 3600
    note: str = (
        "If your DNS provider doesn't support CNAME on the root domain, use an A record "
        "pointing to the server IP, or use a subdomain like www."
    )


class CustomDomainResult(_CamelModel):
    custom_domain: str
    subdomain: str
    dns_instructions: DnsInstructions
