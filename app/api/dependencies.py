"""Shared service wiring for the API layer.

One ``ServiceContainer`` per process holds the store gateway handle behind
its initialization guard, the directory client and the secret resolver.
The store is initialized lazily by the first request that needs it.
Tests replace the container via ``app.dependency_overrides[get_services]``.
"""

from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends

from app.api.services.assessment_service import AssessmentOrchestrator
from app.api.services.customer_service import CustomerService
from app.api.services.directory_client import DirectoryClient
from app.api.services.secret_resolver import SecretResolver, build_secret_resolver
from app.api.services.store_gateway import GuardedStore, StoreGateway
from app.core.config import get_settings
from app.core.database import build_engine
from app.core.init_guard import InitializeOnce


@dataclass
class ServiceContainer:
    store: GuardedStore
    directory: DirectoryClient
    secrets: SecretResolver

    @property
    def gateway(self) -> StoreGateway:
        return self.store.gateway

    @property
    def store_init(self) -> InitializeOnce:
        return self.store.guard


def build_services(
    gateway: StoreGateway,
    directory: DirectoryClient | None = None,
    secrets: SecretResolver | None = None,
) -> ServiceContainer:
    """Wire a container around an existing gateway."""
    async def initialize_store() -> None:
        gateway.initialize()

    guard = InitializeOnce(initialize_store, name="backing store")
    return ServiceContainer(
        store=GuardedStore(gateway, guard),
        directory=directory or DirectoryClient(),
        secrets=secrets or build_secret_resolver(),
    )


@lru_cache
def get_services() -> ServiceContainer:
    """Process-wide container built from settings."""
    settings = get_settings()
    return build_services(StoreGateway(build_engine(settings.database_url)))


def get_orchestrator(services: ServiceContainer = Depends(get_services)) -> AssessmentOrchestrator:
    return AssessmentOrchestrator(services.store, services.directory, services.secrets)


def get_customer_service(services: ServiceContainer = Depends(get_services)) -> CustomerService:
    return CustomerService(services.store)
