"""Pydantic schemas for API request/response validation."""

from app.schemas.assessment import (
    AssessmentHistoryEntry,
    AssessmentResponse,
    CreateAssessmentRequest,
    SaveAssessmentRequest,
    TenantMetrics,
)
from app.schemas.customer import (
    AppCredentialRef,
    CustomerCreate,
    CustomerResponse,
)
from app.schemas.directory import (
    ControlScore,
    LicenseReport,
    LicenseSku,
    SecureScoreReport,
    UserAssignmentSummary,
)

__all__ = [
    # Assessment
    "CreateAssessmentRequest",
    "SaveAssessmentRequest",
    "AssessmentResponse",
    "AssessmentHistoryEntry",
    "TenantMetrics",
    # Customer
    "AppCredentialRef",
    "CustomerCreate",
    "CustomerResponse",
    # Directory reports
    "LicenseSku",
    "LicenseReport",
    "UserAssignmentSummary",
    "ControlScore",
    "SecureScoreReport",
]
