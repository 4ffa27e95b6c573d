"""Customer-related Pydantic schemas.

Includes strict validation for tenant domains.
"""

import re
from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator

from app.schemas.common import CamelModel

DOMAIN_PATTERN = re.compile(
    r"^(?=.{1,253}$)(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.(?!-)[A-Za-z0-9-]{1,63}(?<!-))*\.[A-Za-z]{2,63}$"
)

CustomerStatus = Literal["active", "inactive", "pending", "deleted"]


def is_valid_domain(domain: str | None) -> bool:
    return bool(domain) and bool(DOMAIN_PATTERN.match(domain))


def normalize_domain(domain: str) -> str:
    """Validate and lowercase a tenant domain (e.g. 'contoso.onmicrosoft.com')."""
    domain = (domain or "").strip()
    if not is_valid_domain(domain):
        raise ValueError(f"'{domain}' is not a valid domain (e.g., 'contoso.onmicrosoft.com')")
    return domain.lower()


class AppCredentialRef(CamelModel):
    """Reference to a customer's consented app registration.

    SECURITY: only the Key Vault secret name is stored, never the secret.
    """

    application_id: str | None = None
    client_id: str = Field(..., min_length=1, max_length=64)
    service_principal_id: str | None = None
    client_secret_ref: str = Field(..., min_length=1, max_length=500, pattern=r"^[\w\-_.:]+$")
    permissions: list[str] = Field(default_factory=list)


class CustomerCreate(CamelModel):
    """Schema for registering a customer with an already-provisioned app."""

    tenant_name: str = Field(..., min_length=1, max_length=255)
    tenant_domain: str = Field(..., max_length=253)
    tenant_id: str | None = Field(None, max_length=255)
    contact_email: str | None = Field(None, max_length=255)
    notes: str | None = Field(None, max_length=2000)
    app_registration: AppCredentialRef | None = None

    @field_validator("tenant_domain")
    @classmethod
    def validate_tenant_domain(cls, v: str) -> str:
        return normalize_domain(v)


class CustomerResponse(CamelModel):
    """Schema for customer response."""

    id: str
    tenant_id: str
    tenant_domain: str
    tenant_name: str
    contact_email: str | None = None
    notes: str | None = None
    status: CustomerStatus
    created_date: datetime
    last_assessment_date: datetime | None = None
    total_assessments: int = 0
    app_registration: AppCredentialRef | None = None
    has_credentials: bool = False

    @classmethod
    def from_model(cls, customer) -> "CustomerResponse":
        reg = customer.app_registration
        return cls(
            id=customer.id,
            tenant_id=customer.tenant_id,
            tenant_domain=customer.tenant_domain,
            tenant_name=customer.tenant_name,
            contact_email=customer.contact_email,
            notes=customer.notes,
            status=customer.status,
            created_date=customer.created_date,
            last_assessment_date=customer.last_assessment_date,
            total_assessments=customer.total_assessments or 0,
            app_registration=AppCredentialRef.model_validate(reg) if customer.has_usable_credentials else None,
            has_credentials=customer.has_usable_credentials,
        )
