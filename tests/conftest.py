"""Shared test fixtures.

Every test gets its own in-memory SQLite store and a mocked directory
client; nothing talks to Microsoft Graph or Key Vault.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import build_services, get_services
from app.api.services.assessment_service import AssessmentOrchestrator
from app.api.services.directory_client import DirectoryClient
from app.api.services.secret_resolver import LocalSecretResolver
from app.api.services.store_gateway import StoreGateway
from app.core.cache import InMemoryCache, cache_manager
from app.core.database import build_engine
from app.schemas.customer import AppCredentialRef
from app.schemas.directory import LicenseReport, LicenseSku, SecureScoreReport

CUSTOMER_SECRET_REF = "contoso-graph-secret"


@pytest.fixture(autouse=True)
def fresh_cache(monkeypatch):
    """Isolate the global response cache per test."""
    monkeypatch.setattr(cache_manager, "_cache", InMemoryCache())
    yield


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    yield engine
    engine.dispose()


@pytest.fixture
def gateway(engine):
    """Store gateway that has not been initialized yet."""
    return StoreGateway(engine)


@pytest.fixture
def ready_gateway(gateway):
    gateway.initialize()
    return gateway


@pytest.fixture
def mock_directory():
    """Directory client mock; each test configures the fetches it expects."""
    return AsyncMock(spec=DirectoryClient)


@pytest.fixture
def secrets():
    return LocalSecretResolver({CUSTOMER_SECRET_REF: "s3cret-value"})


@pytest.fixture
def services(gateway, mock_directory, secrets):
    return build_services(gateway, directory=mock_directory, secrets=secrets)


@pytest.fixture
def orchestrator(services):
    return AssessmentOrchestrator(services.store, services.directory, services.secrets)


@pytest.fixture
def client(services):
    """Test client wired to the per-test services."""
    from app.main import app

    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def customer(ready_gateway):
    """A customer with a usable app registration."""
    return ready_gateway.create_customer(
        {
            "tenant_domain": "contoso.onmicrosoft.com",
            "tenant_name": "Contoso Ltd",
            "tenant_id": "tenant-contoso",
        },
        AppCredentialRef(client_id="client-123", client_secret_ref=CUSTOMER_SECRET_REF),
    )


@pytest.fixture
def customer_without_credentials(ready_gateway):
    return ready_gateway.create_customer(
        {"tenant_domain": "fabrikam.com", "tenant_name": "Fabrikam"},
        None,
    )


def make_license_report(total: int, assigned: int, part_number: str = "SPE_E3") -> LicenseReport:
    sku = LicenseSku.from_graph(
        {
            "skuId": "sku-1",
            "skuPartNumber": part_number,
            "prepaidUnits": {"enabled": total},
            "consumedUnits": assigned,
            "capabilityStatus": "Enabled",
        }
    )
    return LicenseReport.from_skus([sku])


def make_secure_score(current: float, maximum: float, controls=None) -> SecureScoreReport:
    return SecureScoreReport.build(current, maximum, controls or [])


@pytest.fixture
def license_report():
    """100 licenses, 45 assigned."""
    return make_license_report(100, 45)


@pytest.fixture
def secure_score():
    """Secure score 30/100."""
    return make_secure_score(30, 100)


@pytest.fixture
def license_factory():
    return make_license_report


@pytest.fixture
def secure_score_factory():
    return make_secure_score
