"""Microsoft Graph client for per-customer license and secure-score reports.

Each fetch authenticates on its own with the customer's app registration
(client-credentials) and either returns a fully populated report or raises
one of the ``DirectoryError`` subclasses. There are no retries here; the
orchestrator decides what a failed category means.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

import httpx
from azure.core.credentials import TokenCredential
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import ClientSecretCredential

from app.core.config import get_settings
from app.core.exceptions import (
    AuthenticationFailed,
    DirectoryError,
    InsufficientPermissions,
    NotAvailable,
    UpstreamError,
)
from app.schemas.directory import (
    ControlScore,
    LicenseReport,
    LicenseSku,
    SecureScoreReport,
    UserAssignmentSummary,
)

logger = logging.getLogger(__name__)

CredentialFactory = Callable[[str, str, str], TokenCredential]

# Permission hints surfaced when Graph answers 403
LICENSE_PERMISSIONS = "Organization.Read.All and User.Read.All"
SECURE_SCORE_PERMISSIONS = "SecurityEvents.Read.All"


def _default_credential_factory(tenant_id: str, client_id: str, client_secret: str) -> TokenCredential:
    return ClientSecretCredential(
        tenant_id=tenant_id,
        client_id=client_id,
        client_secret=client_secret,
    )


class DirectoryClient:
    """Read-only Microsoft Graph client scoped to one customer call at a time."""

    def __init__(
        self,
        credential_factory: CredentialFactory | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        settings = get_settings()
        self._credential_factory = credential_factory or _default_credential_factory
        self._transport = transport
        self._base_url = (base_url or settings.graph_api_base).rstrip("/")
        self._scope = settings.graph_scope
        self._timeout = timeout if timeout is not None else settings.directory_api_timeout_seconds

    def _get_token(self, tenant_id: str, client_id: str, client_secret: str) -> str:
        """Exchange the customer's client credentials for a Graph token."""
        try:
            credential = self._credential_factory(tenant_id, client_id, client_secret)
            token = credential.get_token(self._scope)
        except ClientAuthenticationError as e:
            raise AuthenticationFailed(
                "Authentication failed. Please verify the app registration has been "
                f"consented to by the customer tenant admin. ({e.message})"
            ) from e
        except ValueError as e:
            # azure-identity rejects malformed tenant/client IDs with ValueError
            raise AuthenticationFailed(f"Invalid app registration credentials: {e}") from e

        if not token or not token.token:
            raise AuthenticationFailed("Failed to obtain access token - empty response")
        return token.token

    async def _request(
        self,
        client: httpx.AsyncClient,
        token: str,
        endpoint: str,
        params: dict | None = None,
        permissions: str = "",
    ) -> dict[str, Any]:
        """Make an authenticated GET and translate failures into DirectoryErrors."""
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        try:
            response = await client.get(f"{self._base_url}{endpoint}", headers=headers, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 401:
                raise AuthenticationFailed(
                    "Authentication failed. Please verify the app registration has been "
                    "consented to by the customer tenant admin."
                ) from e
            if status == 403:
                raise InsufficientPermissions(
                    f"Insufficient permissions for {endpoint}. Ensure {permissions} "
                    "permission is granted and consented."
                ) from e
            if status == 404:
                raise NotAvailable(f"{endpoint} is not available for this tenant") from e
            raise UpstreamError(f"Graph API returned {status} for {endpoint}") from e
        except httpx.TimeoutException as e:
            raise UpstreamError(f"Graph API request to {endpoint} timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Graph API request to {endpoint} failed: {e}") from e
        except ValueError as e:
            raise UpstreamError(f"Graph API returned invalid JSON for {endpoint}") from e

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    async def fetch_license_report(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
    ) -> LicenseReport:
        """Fetch subscribed SKUs and (best-effort) user assignment counts."""
        logger.info(f"Fetching license report for tenant {tenant_id}")
        try:
            token = self._get_token(tenant_id, client_id, client_secret)
            async with self._client() as client:
                data = await self._request(
                    client, token, "/subscribedSkus", permissions=LICENSE_PERMISSIONS
                )
                skus = [LicenseSku.from_graph(sku) for sku in data.get("value", [])]

                users = None
                try:
                    users = await self._get_user_assignment_summary(client, token)
                except DirectoryError as e:
                    logger.warning(f"Could not fetch user information for tenant {tenant_id}: {e}")
        except DirectoryError:
            raise
        except Exception as e:
            raise UpstreamError(f"Failed to fetch license report: {e}") from e

        report = LicenseReport.from_skus(skus, users)
        logger.info(f"License report for tenant {tenant_id}: {report.summary}")
        return report

    async def _get_user_assignment_summary(
        self,
        client: httpx.AsyncClient,
        token: str,
    ) -> UserAssignmentSummary:
        data = await self._request(
            client,
            token,
            "/users",
            params={"$select": "id,assignedLicenses", "$top": 999},
            permissions=LICENSE_PERMISSIONS,
        )
        users = data.get("value", [])
        licensed = sum(1 for u in users if u.get("assignedLicenses"))
        return UserAssignmentSummary(
            total_users=len(users),
            licensed_users=licensed,
            unlicensed_users=len(users) - licensed,
        )

    async def fetch_secure_score(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
    ) -> SecureScoreReport:
        """Fetch the latest secure score plus its control profiles."""
        logger.info(f"Fetching secure score for tenant {tenant_id}")
        try:
            token = self._get_token(tenant_id, client_id, client_secret)
            async with self._client() as client:
                scores = await self._request(
                    client,
                    token,
                    "/security/secureScores",
                    params={"$top": 1, "$orderby": "createdDateTime desc"},
                    permissions=SECURE_SCORE_PERMISSIONS,
                )
                values = scores.get("value") or []
                if not values:
                    raise NotAvailable("No secure score data available for this tenant")
                latest = values[0]

                profiles = await self._request(
                    client,
                    token,
                    "/security/secureScoreControlProfiles",
                    permissions=SECURE_SCORE_PERMISSIONS,
                )
        except DirectoryError:
            raise
        except Exception as e:
            raise UpstreamError(f"Failed to fetch secure score: {e}") from e

        report = SecureScoreReport.build(
            current_score=latest.get("currentScore") or 0,
            max_score=latest.get("maxScore") or 0,
            control_scores=[ControlScore.from_graph(c) for c in profiles.get("value", [])],
            last_updated=_parse_datetime(latest.get("createdDateTime")),
        )
        logger.info(f"Secure score for tenant {tenant_id}: {report.summary}")
        return report


def _parse_datetime(value: str | None) -> datetime | None:
    """Parse a Graph ISO timestamp, or None if it cannot be parsed."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
