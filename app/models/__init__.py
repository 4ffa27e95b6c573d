"""Database models module."""

from app.models.assessment import Assessment, AssessmentHistory
from app.models.customer import Customer

__all__ = [
    "Customer",
    "Assessment",
    "AssessmentHistory",
]
