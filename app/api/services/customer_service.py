"""Customer registry operations."""

import logging

from app.api.services.store_gateway import AssessmentFilter, CustomerFilter, GuardedStore
from app.core.exceptions import ErrorKind, InvalidDomainFormat, RecordExists, StoreError
from app.core.result import Err, Ok, Result
from app.schemas.assessment import AssessmentResponse
from app.schemas.customer import CustomerCreate, CustomerResponse

logger = logging.getLogger(__name__)

STORE_TROUBLESHOOTING = [
    "Verify DATABASE_URL points to a reachable database",
    "Retry the request; the store is re-initialized automatically",
]


class CustomerService:
    """Thin service over the store gateway for customer records."""

    def __init__(self, store: GuardedStore):
        self.store = store
        self.gateway = store.gateway

    def _store_failure(self, error: StoreError) -> Err:
        return Err.from_store_error(error, STORE_TROUBLESHOOTING)

    async def list_customers(
        self,
        status: str | None = None,
        include_deleted: bool = False,
        limit: int = 100,
    ) -> Result:
        filter = CustomerFilter(status=status, include_deleted=include_deleted, limit=limit)
        try:
            customers = await self.store.call(self.gateway.list_customers, filter)
        except StoreError as e:
            return self._store_failure(e)
        items = [CustomerResponse.from_model(c) for c in customers]
        return Ok(items, extra={"count": len(items)})

    async def get_customer(self, customer_id: str) -> Result:
        try:
            customer = await self.store.call(self.gateway.get_customer, customer_id)
        except StoreError as e:
            return self._store_failure(e)
        if customer is None:
            return Err(ErrorKind.CUSTOMER_NOT_FOUND, f"Customer {customer_id} not found")
        return Ok(CustomerResponse.from_model(customer))

    async def get_customer_by_domain(self, domain: str) -> Result:
        try:
            customer = await self.store.call(self.gateway.get_customer_by_domain, domain)
        except InvalidDomainFormat as e:
            return Err.from_exception(e)
        except StoreError as e:
            return self._store_failure(e)
        if customer is None:
            return Err(ErrorKind.CUSTOMER_NOT_FOUND, f"No customer registered for {domain}")
        return Ok(CustomerResponse.from_model(customer))

    async def create_customer(self, data: CustomerCreate) -> Result:
        """Register a customer with an already-provisioned credential reference."""
        fields = data.model_dump(exclude={"app_registration"})
        try:
            customer = await self.store.call(
                self.gateway.create_customer, fields, data.app_registration
            )
        except RecordExists:
            return Err(
                ErrorKind.ALREADY_EXISTS, f"A customer for {data.tenant_domain} already exists"
            )
        except StoreError as e:
            return self._store_failure(e)
        return Ok(CustomerResponse.from_model(customer))

    async def delete_customer(self, customer_id: str) -> Result:
        """Soft delete: the row stays, with status 'deleted'."""
        try:
            customer = await self.store.call(
                self.gateway.update_customer, customer_id, {"status": "deleted"}
            )
        except StoreError as e:
            return self._store_failure(e)
        if customer is None:
            return Err(ErrorKind.CUSTOMER_NOT_FOUND, f"Customer {customer_id} not found")
        logger.info(f"Customer {customer_id} marked deleted")
        return Ok({"id": customer_id, "status": "deleted"})

    async def list_customer_assessments(self, customer_id: str, limit: int = 50) -> Result:
        try:
            customer = await self.store.call(self.gateway.get_customer, customer_id)
            if customer is None:
                return Err(ErrorKind.CUSTOMER_NOT_FOUND, f"Customer {customer_id} not found")
            rows = await self.store.call(
                self.gateway.list_customer_assessments, customer_id, AssessmentFilter(limit=limit)
            )
        except StoreError as e:
            return self._store_failure(e)
        items = [AssessmentResponse.model_validate(r) for r in rows]
        return Ok(items, extra={"count": len(items)})
