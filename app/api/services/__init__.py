"""API services module."""

from app.api.services.assessment_service import AssessmentOrchestrator
from app.api.services.customer_service import CustomerService
from app.api.services.directory_client import DirectoryClient
from app.api.services.store_gateway import GuardedStore, StoreGateway

__all__ = [
    "AssessmentOrchestrator",
    "CustomerService",
    "DirectoryClient",
    "GuardedStore",
    "StoreGateway",
]
