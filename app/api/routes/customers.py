"""Customer API routes.

Customers are registered with an already-provisioned app registration
reference; provisioning itself happens elsewhere.
"""

from fastapi import APIRouter, Depends, Query, status

from app.api.dependencies import get_customer_service
from app.api.services.customer_service import CustomerService
from app.core.cache import cache_manager, cached
from app.core.result import Result, to_response
from app.schemas.customer import CustomerCreate

router = APIRouter(prefix="/api/customers", tags=["customers"])


def _customer_list_key(service, status_filter, include_deleted, limit) -> str:
    return cache_manager.generate_key("customer_list", None, status_filter, include_deleted, limit)


@cached("customer_list", key_generator=_customer_list_key)
async def _list_customers(
    service: CustomerService,
    status_filter: str | None,
    include_deleted: bool,
    limit: int,
) -> Result:
    return await service.list_customers(status_filter, include_deleted, limit)


@router.get("")
async def list_customers(
    status_filter: str | None = Query(None, alias="status"),
    include_deleted: bool = Query(False, alias="includeDeleted"),
    limit: int = Query(100, ge=1, le=500),
    service: CustomerService = Depends(get_customer_service),
):
    """List customers, newest first. Deleted customers are hidden by default."""
    return to_response(await _list_customers(service, status_filter, include_deleted, limit))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_customer(
    body: CustomerCreate,
    service: CustomerService = Depends(get_customer_service),
):
    result = await service.create_customer(body)
    if result.ok:
        await cache_manager.invalidate_data_type("customer_list")
    return to_response(result, success_status=status.HTTP_201_CREATED)


@router.get("/by-domain/{domain}")
async def get_customer_by_domain(
    domain: str,
    service: CustomerService = Depends(get_customer_service),
):
    return to_response(await service.get_customer_by_domain(domain))


@router.get("/{customer_id}")
async def get_customer(
    customer_id: str,
    service: CustomerService = Depends(get_customer_service),
):
    return to_response(await service.get_customer(customer_id))


@router.delete("/{customer_id}")
async def delete_customer(
    customer_id: str,
    service: CustomerService = Depends(get_customer_service),
):
    """Soft delete a customer."""
    result = await service.delete_customer(customer_id)
    if result.ok:
        await cache_manager.invalidate_data_type("customer_list")
    return to_response(result)


@router.get("/{customer_id}/assessments")
async def list_customer_assessments(
    customer_id: str,
    limit: int = Query(50, ge=1, le=100),
    service: CustomerService = Depends(get_customer_service),
):
    return to_response(await service.list_customer_assessments(customer_id, limit))
