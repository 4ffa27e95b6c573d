"""Tests for the Microsoft Graph directory client."""

from unittest.mock import MagicMock

import httpx
import pytest
from azure.core.exceptions import ClientAuthenticationError

from app.api.services.directory_client import DirectoryClient
from app.core.exceptions import (
    AuthenticationFailed,
    InsufficientPermissions,
    NotAvailable,
    UpstreamError,
)
from app.schemas.directory import (
    LicenseReport,
    LicenseSku,
    UserAssignmentSummary,
    license_recommendations,
)

BASE = "https://graph.test/v1.0"

SKUS = {
    "value": [
        {
            "skuId": "sku-e5",
            "skuPartNumber": "SPE_E5",
            "prepaidUnits": {"enabled": 50},
            "consumedUnits": 40,
            "capabilityStatus": "Enabled",
            "servicePlans": [{"servicePlanName": "EXCHANGE_S_ENTERPRISE"}],
        },
        {
            "skuId": "sku-e1",
            "skuPartNumber": "STANDARDPACK",
            "prepaidUnits": {"enabled": 50},
            "consumedUnits": 5,
        },
    ]
}

USERS = {
    "value": [
        {"id": "u1", "assignedLicenses": [{"skuId": "sku-e5"}]},
        {"id": "u2", "assignedLicenses": []},
    ]
}

SCORES = {
    "value": [
        {"currentScore": 42.0, "maxScore": 84.0, "createdDateTime": "2026-05-01T00:00:00Z"}
    ]
}

PROFILES = {
    "value": [
        {
            "title": "Require MFA for administrative roles",
            "controlCategory": "Identity",
            "score": 0,
            "maxScore": 10,
            "implementationStatus": "Not Implemented",
        }
    ]
}


def _credential_factory(token: str = "token-abc"):
    credential = MagicMock()
    credential.get_token.return_value = MagicMock(token=token)
    return MagicMock(return_value=credential)


def _client(routes: dict[str, httpx.Response], credential_factory=None) -> DirectoryClient:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        response = routes.get(request.url.path)
        if response is None:
            return httpx.Response(404)
        return response

    client = DirectoryClient(
        credential_factory=credential_factory or _credential_factory(),
        transport=httpx.MockTransport(handler),
        base_url=BASE,
        timeout=5.0,
    )
    client.seen = seen
    return client


class TestLicenseReport:
    @pytest.mark.asyncio
    async def test_builds_report_from_skus_and_users(self):
        client = _client({
            "/v1.0/subscribedSkus": httpx.Response(200, json=SKUS),
            "/v1.0/users": httpx.Response(200, json=USERS),
        })

        report = await client.fetch_license_report("tenant-1", "client-1", "secret")

        assert report.total_licenses == 100
        assert report.assigned_licenses == 45
        assert report.available_licenses == 55
        assert report.utilization_rate == 45
        assert report.license_details[0].category == "Premium"
        assert report.license_details[0].estimated_monthly_cost == 50 * 38.0
        assert report.license_details[1].category == "Standard"
        assert report.user_assignment_summary.licensed_users == 1
        assert report.recommendations == [
            "1 license type(s) have low utilization. Review: STANDARDPACK",
            "1 users may not have proper license assignments.",
        ]
        assert client.seen[0].headers["Authorization"] == "Bearer token-abc"

    @pytest.mark.asyncio
    async def test_user_lookup_failure_is_tolerated(self):
        client = _client({
            "/v1.0/subscribedSkus": httpx.Response(200, json=SKUS),
            "/v1.0/users": httpx.Response(403),
        })

        report = await client.fetch_license_report("tenant-1", "client-1", "secret")
        assert report.total_licenses == 100
        assert report.user_assignment_summary is None

    @pytest.mark.asyncio
    async def test_empty_tenant_has_zero_utilization(self):
        client = _client({
            "/v1.0/subscribedSkus": httpx.Response(200, json={"value": []}),
            "/v1.0/users": httpx.Response(200, json={"value": []}),
        })
        report = await client.fetch_license_report("tenant-1", "client-1", "secret")
        assert report.total_licenses == 0
        assert report.utilization_rate == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status_code,error",
        [
            (401, AuthenticationFailed),
            (403, InsufficientPermissions),
            (404, NotAvailable),
            (500, UpstreamError),
            (503, UpstreamError),
        ],
    )
    async def test_status_codes_map_to_errors(self, status_code, error):
        client = _client({"/v1.0/subscribedSkus": httpx.Response(status_code)})
        with pytest.raises(error):
            await client.fetch_license_report("tenant-1", "client-1", "secret")

    @pytest.mark.asyncio
    async def test_timeout_is_upstream_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = DirectoryClient(
            credential_factory=_credential_factory(),
            transport=httpx.MockTransport(handler),
            base_url=BASE,
        )
        with pytest.raises(UpstreamError):
            await client.fetch_license_report("tenant-1", "client-1", "secret")

    @pytest.mark.asyncio
    async def test_credential_rejection_is_authentication_failure(self):
        credential = MagicMock()
        credential.get_token.side_effect = ClientAuthenticationError(message="AADSTS7000215")
        client = _client({}, credential_factory=MagicMock(return_value=credential))

        with pytest.raises(AuthenticationFailed):
            await client.fetch_license_report("tenant-1", "client-1", "bad-secret")
        assert client.seen == []


class TestLicenseRecommendations:
    def _sku(self, part_number: str, total: int, assigned: int) -> LicenseSku:
        return LicenseSku.from_graph(
            {"skuPartNumber": part_number, "prepaidUnits": {"enabled": total}, "consumedUnits": assigned}
        )

    def test_lists_every_underused_sku(self):
        skus = [self._sku("SPE_E3", 10, 4), self._sku("SPE_E5", 10, 9), self._sku("EMS", 10, 0)]
        assert license_recommendations(skus) == [
            "2 license type(s) have low utilization. Review: SPE_E3, EMS"
        ]

    def test_half_utilized_sku_is_not_flagged(self):
        assert license_recommendations([self._sku("SPE_E3", 10, 5)]) == []

    def test_unlicensed_users_below_eighty_percent(self):
        users = UserAssignmentSummary(total_users=10, licensed_users=7, unlicensed_users=3)
        assert license_recommendations([], users) == [
            "3 users may not have proper license assignments."
        ]

    def test_eighty_percent_licensed_is_enough(self):
        users = UserAssignmentSummary(total_users=10, licensed_users=8, unlicensed_users=2)
        assert license_recommendations([], users) == []

    def test_no_users_means_no_assignment_finding(self):
        assert license_recommendations([], UserAssignmentSummary()) == []

    def test_report_carries_its_findings(self):
        report = LicenseReport.from_skus([self._sku("SPE_E3", 10, 1)])
        assert report.recommendations == ["1 license type(s) have low utilization. Review: SPE_E3"]


class TestSecureScore:
    @pytest.mark.asyncio
    async def test_builds_report_with_controls(self):
        client = _client({
            "/v1.0/security/secureScores": httpx.Response(200, json=SCORES),
            "/v1.0/security/secureScoreControlProfiles": httpx.Response(200, json=PROFILES),
        })

        report = await client.fetch_secure_score("tenant-1", "client-1", "secret")

        assert report.current_score == 42
        assert report.max_score == 84
        assert report.percentage == 50
        assert report.control_scores[0].control_name == "Require MFA for administrative roles"
        assert report.control_scores[0].category == "Identity"
        assert report.last_updated.year == 2026
        assert client.seen[0].url.params["$top"] == "1"

    @pytest.mark.asyncio
    async def test_no_scores_is_not_available(self):
        client = _client({
            "/v1.0/security/secureScores": httpx.Response(200, json={"value": []}),
        })
        with pytest.raises(NotAvailable):
            await client.fetch_secure_score("tenant-1", "client-1", "secret")

    @pytest.mark.asyncio
    async def test_forbidden_is_insufficient_permissions(self):
        client = _client({"/v1.0/security/secureScores": httpx.Response(403)})
        with pytest.raises(InsufficientPermissions) as exc_info:
            await client.fetch_secure_score("tenant-1", "client-1", "secret")
        assert "SecurityEvents.Read.All" in exc_info.value.message
