"""Customer (assessed tenant) model.

A customer embeds a reference to its app registration. The client secret
itself lives in Key Vault; only the secret's name is stored here.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base

CUSTOMER_STATUSES = ("active", "inactive", "pending", "deleted")


class Customer(Base):
    """A client organization under assessment."""

    __tablename__ = "customers"
    __table_args__ = (
        Index("idx_customers_domain", "tenant_domain"),
        Index("idx_customers_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)
    tenant_domain: Mapped[str] = mapped_column(String(255), nullable=False)
    tenant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String(255))
    notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default="active")  # active, inactive, pending, deleted
    created_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_assessment_date: Mapped[datetime | None] = mapped_column(DateTime)
    total_assessments: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # applicationId, clientId, servicePrincipalId, clientSecretRef, permissions
    app_registration: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    def __repr__(self) -> str:
        return f"<Customer {self.tenant_name} ({self.tenant_domain})>"

    @property
    def has_usable_credentials(self) -> bool:
        """A client ID and a secret reference are both required for real data."""
        reg = self.app_registration or {}
        return bool(reg.get("clientId") and reg.get("clientSecretRef"))
