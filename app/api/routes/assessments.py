"""Assessment API routes."""

from fastapi import APIRouter, Depends, Query, status

from app.api.dependencies import get_orchestrator
from app.api.services.assessment_service import AssessmentOrchestrator
from app.core.cache import cache_manager, cached
from app.core.result import Result, to_response
from app.schemas.assessment import CreateAssessmentRequest, SaveAssessmentRequest

router = APIRouter(prefix="/api", tags=["assessments"])


async def _invalidate_lists() -> None:
    # New assessments change both the assessment list and customer counters
    await cache_manager.invalidate_data_type("assessment_list")
    await cache_manager.invalidate_data_type("customer_list")


@router.post("/assessment/create", status_code=status.HTTP_201_CREATED)
async def create_assessment(
    body: CreateAssessmentRequest,
    orchestrator: AssessmentOrchestrator = Depends(get_orchestrator),
):
    """Run an assessment against the customer's tenant and persist it."""
    result = await orchestrator.create_assessment(body)
    if result.ok:
        await _invalidate_lists()
    return to_response(result, success_status=status.HTTP_201_CREATED)


@router.post("/save-assessment")
async def save_assessment(
    body: SaveAssessmentRequest,
    orchestrator: AssessmentOrchestrator = Depends(get_orchestrator),
):
    """Create or update an assessment record (always appends history)."""
    result = await orchestrator.save_assessment(body)
    if result.ok:
        await _invalidate_lists()
    return to_response(result)


@router.get("/assessment-history")
async def get_assessment_history(
    tenant_id: str | None = Query(None, alias="tenantId"),
    customer_id: str | None = Query(None, alias="customerId"),
    limit: int = Query(10, ge=1),
    orchestrator: AssessmentOrchestrator = Depends(get_orchestrator),
):
    """Assessment history, most recent first."""
    return to_response(await orchestrator.list_history(tenant_id, customer_id, limit))


@router.get("/assessment-history/customer/{customer_id}")
async def get_customer_assessment_history(
    customer_id: str,
    limit: int = Query(10, ge=1),
    orchestrator: AssessmentOrchestrator = Depends(get_orchestrator),
):
    return to_response(await orchestrator.list_history(customer_id=customer_id, limit=limit))


@router.get("/assessment-history/{tenant_id}")
async def get_tenant_assessment_history(
    tenant_id: str,
    limit: int = Query(10, ge=1),
    orchestrator: AssessmentOrchestrator = Depends(get_orchestrator),
):
    return to_response(await orchestrator.list_history(tenant_id=tenant_id, limit=limit))


@router.get("/GetMetrics")
async def get_metrics(
    tenant_id: str | None = Query(None, alias="tenantId"),
    orchestrator: AssessmentOrchestrator = Depends(get_orchestrator),
):
    """Latest assessment metrics for a tenant."""
    return to_response(await orchestrator.get_metrics(tenant_id))


def _assessment_list_key(orchestrator, customer_id, status_filter, limit) -> str:
    return cache_manager.generate_key("assessment_list", customer_id, status_filter, limit)


@cached("assessment_list", key_generator=_assessment_list_key)
async def _list_assessments(
    orchestrator: AssessmentOrchestrator,
    customer_id: str | None,
    status_filter: str | None,
    limit: int,
) -> Result:
    return await orchestrator.list_assessments(customer_id, status_filter, limit)


@router.get("/assessments")
async def list_assessments(
    customer_id: str | None = Query(None, alias="customerId"),
    status_filter: str | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    orchestrator: AssessmentOrchestrator = Depends(get_orchestrator),
):
    """List assessments, newest first (short-TTL cached)."""
    return to_response(await _list_assessments(orchestrator, customer_id, status_filter, limit))


@router.get("/assessments/{assessment_id}")
async def get_assessment(
    assessment_id: str,
    orchestrator: AssessmentOrchestrator = Depends(get_orchestrator),
):
    return to_response(await orchestrator.get_assessment(assessment_id))
