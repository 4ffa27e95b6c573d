"""Assessment and assessment history models."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base

ASSESSMENT_STATUSES = ("completed", "completed-limited-data", "incomplete", "failed")


class Assessment(Base):
    """One point-in-time evaluation of a customer."""

    __tablename__ = "assessments"
    __table_args__ = (
        Index("idx_assessments_customer", "customer_id"),
        Index("idx_assessments_tenant_date", "tenant_id", "assessment_date"),
        Index("idx_assessments_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    customer_id: Mapped[str] = mapped_column(String(64), default="")
    tenant_id: Mapped[str] = mapped_column(String(255), default="")
    tenant_name: Mapped[str | None] = mapped_column(String(255))
    assessment_name: Mapped[str | None] = mapped_column(String(255))
    assessment_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    status: Mapped[str] = mapped_column(String(40), default="completed")
    categories: Mapped[list[str]] = mapped_column(JSON, default=list)
    metrics: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    overall_score: Mapped[float] = mapped_column(Float, default=0)
    notification_email: Mapped[str | None] = mapped_column(String(255))
    auto_schedule: Mapped[bool] = mapped_column(Boolean, default=False)
    schedule_frequency: Mapped[str] = mapped_column(String(20), default="monthly")
    created_by: Mapped[str] = mapped_column(String(100), default="system")
    last_modified: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<Assessment {self.id} {self.status} ({self.tenant_id})>"


class AssessmentHistory(Base):
    """Append-only trend record, one row per persisted assessment."""

    __tablename__ = "assessment_history"
    __table_args__ = (
        Index("idx_history_tenant_date", "tenant_id", "date"),
        Index("idx_history_customer_date", "customer_id", "date"),
    )

    row_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    assessment_id: Mapped[str] = mapped_column(String(64), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(255), default="")
    customer_id: Mapped[str | None] = mapped_column(String(64))
    date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    overall_score: Mapped[float] = mapped_column(Float, default=0)
    category_scores: Mapped[dict[str, float]] = mapped_column(JSON, default=dict)

    def __repr__(self) -> str:
        return f"<AssessmentHistory {self.assessment_id}: {self.overall_score}>"
