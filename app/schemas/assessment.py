"""Assessment request/response schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, Field

from app.schemas.common import CamelModel

AssessmentCategory = Literal[
    "license",
    "secureScore",
    "identity",
    "dataProtection",
    "cloudApps",
    "endpoint",
]
AssessmentStatus = Literal["completed", "completed-limited-data", "incomplete", "failed"]

DEFAULT_CATEGORIES: list[str] = ["license", "secureScore", "identity", "dataProtection", "cloudApps"]


class CreateAssessmentRequest(CamelModel):
    """Body of POST /api/assessment/create."""

    customer_id: str | None = None
    included_categories: list[AssessmentCategory] | None = Field(
        default=None,
        validation_alias=AliasChoices("includedCategories", "included_categories", "categories"),
    )
    assessment_name: str | None = Field(None, max_length=255)
    notification_email: str | None = Field(None, max_length=255)
    auto_schedule: bool = False
    schedule_frequency: Literal["weekly", "monthly", "quarterly"] = "monthly"


class SaveAssessmentRequest(CamelModel):
    """Body of POST /api/save-assessment (update when id and customerId are given)."""

    id: str | None = None
    customer_id: str | None = None
    tenant_id: str | None = None
    tenant_name: str | None = None
    assessment_name: str | None = None
    status: AssessmentStatus = "completed"
    categories: list[str] = Field(default_factory=list)
    metrics: dict[str, Any] = Field(default_factory=dict)
    score: float | None = Field(None, ge=0, le=100)


class AssessmentResponse(CamelModel):
    """Schema for assessment response."""

    id: str
    customer_id: str
    tenant_id: str
    tenant_name: str | None = None
    assessment_name: str | None = None
    assessment_date: datetime
    status: str
    categories: list[str] = Field(default_factory=list)
    metrics: dict[str, Any] = Field(default_factory=dict)
    overall_score: float = 0
    notification_email: str | None = None
    auto_schedule: bool = False
    schedule_frequency: str = "monthly"
    created_by: str = "system"
    last_modified: datetime


class AssessmentHistoryEntry(CamelModel):
    """Trend record; ``id`` mirrors the assessment it was derived from."""

    id: str
    tenant_id: str
    customer_id: str | None = None
    date: datetime
    overall_score: float
    category_scores: dict[str, float] = Field(default_factory=dict)

    @classmethod
    def from_model(cls, row) -> "AssessmentHistoryEntry":
        return cls(
            id=row.assessment_id,
            tenant_id=row.tenant_id,
            customer_id=row.customer_id,
            date=row.date,
            overall_score=row.overall_score,
            category_scores=row.category_scores or {},
        )


class TenantMetrics(CamelModel):
    """Most recent assessment metrics for a tenant (zeroed when none exists)."""

    tenant_id: str
    has_assessment: bool
    assessment_id: str | None = None
    assessment_date: datetime | None = None
    status: str | None = None
    score: dict[str, float] = Field(default_factory=dict)
    recommendations: list[str] = Field(default_factory=list)
    data_collected: bool = False
    message: str | None = None
