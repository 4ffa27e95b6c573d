"""API routes module."""

from app.api.routes.assessments import router as assessments_router
from app.api.routes.customers import router as customers_router

__all__ = [
    "assessments_router",
    "customers_router",
]
