"""Assessment orchestration.

A run moves through Resolving -> Fetching -> Scoring -> Persisting -> Done.
Only Resolving can abort (no customer ID, unknown customer, incomplete
credentials) and nothing is written when it does. Directory failures are
recorded per category and degrade the assessment instead of failing it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from app.api.services.directory_client import DirectoryClient
from app.api.services.recommendations import generate_recommendations
from app.api.services.scoring import SCORE_CATEGORIES, ScoreCard, compute_scores
from app.api.services.secret_resolver import SecretResolver
from app.api.services.store_gateway import (
    AssessmentFilter,
    GuardedStore,
    HistoryFilter,
    generate_id,
)
from app.core.exceptions import (
    DirectoryError,
    ErrorKind,
    RecordExists,
    SecretResolutionError,
    StoreError,
)
from app.core.result import Err, Ok, Result
from app.models.assessment import Assessment, AssessmentHistory
from app.models.customer import Customer
from app.schemas.assessment import (
    DEFAULT_CATEGORIES,
    AssessmentHistoryEntry,
    AssessmentResponse,
    CreateAssessmentRequest,
    SaveAssessmentRequest,
    TenantMetrics,
)
from app.schemas.directory import LicenseReport, SecureScoreReport

logger = logging.getLogger(__name__)

DATA_SOURCE = "Microsoft Graph API"
MAX_LIST_LIMIT = 100

# Categories that need the secure-score report to be scored
SECURE_SCORE_CATEGORIES = {"secureScore", "identity", "dataProtection", "cloudApps", "endpoint"}

TROUBLESHOOTING_HINTS: dict[ErrorKind, list[str]] = {
    ErrorKind.AUTHENTICATION_FAILED: [
        "Verify the app registration has been consented to by the customer tenant admin",
        "Check that the client secret has not expired and the secret reference is correct",
    ],
    ErrorKind.INSUFFICIENT_PERMISSIONS: [
        "Grant Organization.Read.All and SecurityEvents.Read.All application permissions",
        "Ask the customer tenant admin to re-consent after adding permissions",
    ],
    ErrorKind.NOT_AVAILABLE: [
        "Secure Score may not have been generated yet for this tenant; try again in 24 hours",
    ],
    ErrorKind.UPSTREAM_ERROR: [
        "Retry the assessment in a few minutes",
        "Check Microsoft Graph service health",
    ],
}

STORE_TROUBLESHOOTING = [
    "Verify DATABASE_URL points to a reachable database",
    "Check that the service account can create tables",
    "Retry the request; the store is re-initialized automatically",
]


def clamp_limit(limit: int | None, default: int) -> int:
    if not limit or limit < 1:
        return default
    return min(limit, MAX_LIST_LIMIT)


@dataclass
class FetchOutcome:
    """Result of one directory fetch attempt."""

    success: bool
    error: ErrorKind | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "error": self.error.value if self.error else None,
            "message": self.message,
        }


@dataclass
class CollectedData:
    license: LicenseReport | None = None
    secure_score: SecureScoreReport | None = None
    outcomes: dict[str, FetchOutcome] | None = None

    @property
    def data_collected(self) -> bool:
        return any(o.success for o in (self.outcomes or {}).values())

    @property
    def all_succeeded(self) -> bool:
        return bool(self.outcomes) and all(o.success for o in self.outcomes.values())


def plan_fetches(categories: list[str]) -> list[str]:
    """Which directory reports a category list needs ('license', 'secureScore')."""
    if not categories:
        return ["license", "secureScore"]
    plan = []
    if "license" in categories:
        plan.append("license")
    if SECURE_SCORE_CATEGORIES.intersection(categories):
        plan.append("secureScore")
    return plan


def _cost_analysis(license: LicenseReport) -> dict[str, Any]:
    rate = license.utilization_rate
    if rate >= 70:
        efficiency = "Good"
    elif rate >= 50:
        efficiency = "Fair"
    else:
        efficiency = "Poor"
    return {
        "estimatedMonthlyCost": license.estimated_monthly_cost,
        "potentialSavings": license.available_licenses * 25,
        "utilizationEfficiency": efficiency,
    }


def _dump(report: LicenseReport | SecureScoreReport) -> dict[str, Any]:
    data = report.model_dump(mode="json", by_alias=True)
    data["summary"] = report.summary
    return data


def _unavailable(outcome: FetchOutcome | None) -> dict[str, Any]:
    reason = outcome.message if outcome else "Not requested"
    return {"unavailable": True, "reason": reason}


class AssessmentOrchestrator:
    """Runs assessments and serves assessment history and metrics."""

    def __init__(
        self,
        store: GuardedStore,
        directory: DirectoryClient,
        secrets: SecretResolver,
    ):
        self.store = store
        self.directory = directory
        self.secrets = secrets

    @property
    def gateway(self):
        return self.store.gateway

    # =============================================================================
    # Create
    # =============================================================================

    async def create_assessment(self, request: CreateAssessmentRequest) -> Result:
        """Run one assessment for a customer and persist it with history."""
        # Resolving
        if not request.customer_id:
            return Err(ErrorKind.CUSTOMER_ID_REQUIRED, "customerId is required")

        try:
            customer = await self.store.call(self.gateway.get_customer, request.customer_id)
        except StoreError as e:
            return self._store_failure(e)

        if customer is None or customer.status == "deleted":
            return Err(ErrorKind.CUSTOMER_NOT_FOUND, f"Customer {request.customer_id} not found")
        if not customer.has_usable_credentials:
            return Err(
                ErrorKind.CREDENTIALS_INCOMPLETE,
                "Customer app registration is incomplete. A client ID and client secret "
                "reference are required to collect real data.",
            )

        categories = list(request.included_categories or DEFAULT_CATEGORIES)

        # Fetching
        collected = await self._collect(customer, plan_fetches(categories))

        # Scoring
        scores = compute_scores(collected.license, collected.secure_score)
        recommendations = [
            *(collected.license.recommendations if collected.license else []),
            *generate_recommendations(collected.license, collected.secure_score),
        ]

        # Persisting
        status = "completed" if collected.all_succeeded else "completed-limited-data"
        metrics = self._build_metrics(customer, collected, scores, recommendations)
        now = datetime.utcnow()
        assessment_id = generate_id("assessment")

        def persist() -> Assessment:
            assessment = Assessment(
                id=assessment_id,
                customer_id=customer.id,
                tenant_id=customer.tenant_id,
                tenant_name=customer.tenant_name,
                assessment_name=request.assessment_name or f"Security Assessment - {now:%Y-%m-%d}",
                assessment_date=now,
                status=status,
                categories=categories,
                metrics=metrics,
                overall_score=scores.overall,
                notification_email=request.notification_email,
                auto_schedule=request.auto_schedule,
                schedule_frequency=request.schedule_frequency,
                created_by="system",
                last_modified=now,
            )
            history = AssessmentHistory(
                tenant_id=customer.tenant_id,
                customer_id=customer.id,
                date=now,
                overall_score=scores.overall,
                category_scores=dict(scores.per_category),
            )
            return self.gateway.persist_assessment(assessment, history)

        try:
            assessment = await self.store.call(persist)
        except StoreError as e:
            return self._store_failure(e)

        await self._bump_customer_counter(customer.id, now)

        logger.info(
            f"Assessment {assessment.id} for customer {customer.id}: {status}, "
            f"overall {scores.overall:g}"
        )
        return Ok(
            AssessmentResponse.model_validate(assessment),
            extra={"realData": collected.data_collected},
        )

    async def _collect(self, customer: Customer, plan: list[str]) -> CollectedData:
        """Attempt each planned fetch; every failure is recorded, none aborts."""
        collected = CollectedData(outcomes={})
        reg = customer.app_registration or {}

        try:
            client_secret = self.secrets.resolve(reg["clientSecretRef"])
        except SecretResolutionError as e:
            logger.warning(f"Could not resolve client secret for customer {customer.id}: {e.message}")
            for category in plan:
                collected.outcomes[category] = FetchOutcome(False, e.kind, e.message)
            return collected

        fetchers = {
            "license": self.directory.fetch_license_report,
            "secureScore": self.directory.fetch_secure_score,
        }
        for category in plan:
            try:
                report = await fetchers[category](customer.tenant_id, reg["clientId"], client_secret)
            except DirectoryError as e:
                logger.warning(
                    f"{category} fetch failed for tenant {customer.tenant_id}: "
                    f"{e.kind.value}: {e.message}"
                )
                collected.outcomes[category] = FetchOutcome(False, e.kind, e.message)
                continue

            collected.outcomes[category] = FetchOutcome(True)
            if category == "license":
                collected.license = report
            else:
                collected.secure_score = report

        return collected

    def _build_metrics(
        self,
        customer: Customer,
        collected: CollectedData,
        scores: ScoreCard,
        recommendations: list[str],
    ) -> dict[str, Any]:
        outcomes = collected.outcomes or {}
        real_data: dict[str, Any] = {
            "licenseReport": (
                _dump(collected.license) if collected.license else _unavailable(outcomes.get("license"))
            ),
            "secureScore": (
                _dump(collected.secure_score)
                if collected.secure_score
                else _unavailable(outcomes.get("secureScore"))
            ),
            "dataSource": DATA_SOURCE,
            "lastUpdated": datetime.utcnow().isoformat(),
            "tenantInfo": {
                "tenantId": customer.tenant_id,
                "tenantName": customer.tenant_name,
                "tenantDomain": customer.tenant_domain,
            },
        }
        if collected.license:
            real_data["costAnalysis"] = _cost_analysis(collected.license)

        metrics: dict[str, Any] = {
            "score": scores.to_dict(),
            "confidence": scores.confidence,
            "realData": real_data,
            "recommendations": recommendations,
            "dataCollected": collected.data_collected,
            "assessmentType": "real-data" if collected.data_collected else "limited-data",
            "fetchResults": {category: o.to_dict() for category, o in outcomes.items()},
        }

        if outcomes and not collected.data_collected:
            kinds = []
            for o in outcomes.values():
                if o.error and o.error not in kinds:
                    kinds.append(o.error)
            hints = [hint for kind in kinds for hint in TROUBLESHOOTING_HINTS.get(kind, [])]
            first = next(iter(outcomes.values()))
            metrics["dataIssue"] = {
                "error": first.message,
                "errors": {category: o.message for category, o in outcomes.items()},
                "troubleshooting": hints,
                "dataSource": DATA_SOURCE,
            }

        return metrics

    async def _bump_customer_counter(self, customer_id: str, assessed_at: datetime) -> None:
        """Best-effort counter update; the assessment is already the record of truth."""
        try:
            await self.store.call(self.gateway.increment_assessment_count, customer_id, assessed_at)
        except StoreError as e:
            logger.warning(f"Failed to update assessment counter for customer {customer_id}: {e}")

    def _store_failure(self, error: StoreError) -> Err:
        return Err.from_store_error(error, STORE_TROUBLESHOOTING)

    # =============================================================================
    # Save (upsert)
    # =============================================================================

    async def save_assessment(self, request: SaveAssessmentRequest) -> Result:
        """Update when both id and customerId are given, otherwise create.

        Either way exactly one history row is appended.
        """
        score = request.metrics.get("score")
        category_scores = {}
        if isinstance(score, dict):
            category_scores = {
                k: v for k, v in score.items()
                if k != "overall" and isinstance(v, int | float)
            }

        try:
            if request.id and request.customer_id:
                return await self._update_saved(request, category_scores)
            return await self._create_saved(request, category_scores)
        except RecordExists:
            return Err(
                ErrorKind.ALREADY_EXISTS,
                f"Assessment {request.id} already exists; include customerId to update it",
            )
        except StoreError as e:
            return self._store_failure(e)

    async def _update_saved(self, request: SaveAssessmentRequest, category_scores: dict) -> Result:
        patch: dict[str, Any] = {}
        if "status" in request.model_fields_set:
            patch["status"] = request.status
        if request.tenant_name is not None:
            patch["tenant_name"] = request.tenant_name
        if request.assessment_name is not None:
            patch["assessment_name"] = request.assessment_name
        if request.categories:
            patch["categories"] = request.categories
        if request.metrics:
            patch["metrics"] = request.metrics
        if request.score is not None:
            patch["overall_score"] = request.score

        def update() -> Assessment | None:
            history = AssessmentHistory(
                tenant_id=request.tenant_id,
                customer_id=request.customer_id,
                date=datetime.utcnow(),
                overall_score=request.score,
                category_scores=category_scores,
            )
            return self.gateway.update_assessment(request.id, request.customer_id, patch, history)

        assessment = await self.store.call(update)
        if assessment is None:
            return Err(ErrorKind.ASSESSMENT_NOT_FOUND, f"Assessment {request.id} not found")

        logger.info(f"Assessment {assessment.id} updated")
        return Ok(AssessmentResponse.model_validate(assessment))

    async def _create_saved(self, request: SaveAssessmentRequest, category_scores: dict) -> Result:
        customer = None
        if request.customer_id:
            customer = await self.store.call(self.gateway.get_customer, request.customer_id)

        tenant_id = request.tenant_id or (customer.tenant_id if customer else None)
        if not tenant_id:
            return Err(ErrorKind.TENANT_ID_REQUIRED, "tenantId or a known customerId is required")

        now = datetime.utcnow()
        assessment_id = request.id or generate_id("assessment")
        score = request.score if request.score is not None else 0

        def persist() -> Assessment:
            assessment = Assessment(
                id=assessment_id,
                customer_id=request.customer_id or "",
                tenant_id=tenant_id,
                tenant_name=request.tenant_name or (customer.tenant_name if customer else None),
                assessment_name=request.assessment_name or f"Security Assessment - {now:%Y-%m-%d}",
                assessment_date=now,
                status=request.status,
                categories=request.categories,
                metrics=request.metrics,
                overall_score=score,
                created_by="system",
                last_modified=now,
            )
            history = AssessmentHistory(
                tenant_id=tenant_id,
                customer_id=request.customer_id,
                date=now,
                overall_score=score,
                category_scores=category_scores,
            )
            return self.gateway.persist_assessment(assessment, history)

        assessment = await self.store.call(persist)
        if customer is not None:
            await self._bump_customer_counter(customer.id, now)

        logger.info(f"Assessment {assessment.id} saved for tenant {tenant_id}")
        return Ok(AssessmentResponse.model_validate(assessment))

    # =============================================================================
    # Queries
    # =============================================================================

    async def list_history(
        self,
        tenant_id: str | None = None,
        customer_id: str | None = None,
        limit: int | None = None,
    ) -> Result:
        """History rows, most recent first."""
        filter = HistoryFilter(tenant_id=tenant_id, customer_id=customer_id, limit=clamp_limit(limit, 10))
        try:
            rows = await self.store.call(self.gateway.list_assessment_history, filter)
        except StoreError as e:
            return self._store_failure(e)

        entries = [AssessmentHistoryEntry.from_model(r) for r in rows]
        return Ok(entries, extra={"count": len(entries)})

    async def get_metrics(self, tenant_id: str | None) -> Result:
        """Latest assessment metrics for a tenant, or zeroed scores if none exists."""
        if not tenant_id:
            return Err(ErrorKind.TENANT_ID_REQUIRED, "tenantId query parameter is required")

        try:
            latest = await self.store.call(self.gateway.latest_assessment_for_tenant, tenant_id)
        except StoreError as e:
            return self._store_failure(e)

        if latest is None:
            return Ok(
                TenantMetrics(
                    tenant_id=tenant_id,
                    has_assessment=False,
                    score={"overall": 0, **{c: 0 for c in SCORE_CATEGORIES}},
                    message="No assessment found for this tenant. Run an assessment to see metrics.",
                )
            )

        metrics = latest.metrics or {}
        return Ok(
            TenantMetrics(
                tenant_id=tenant_id,
                has_assessment=True,
                assessment_id=latest.id,
                assessment_date=latest.assessment_date,
                status=latest.status,
                score=metrics.get("score") or {"overall": latest.overall_score},
                recommendations=metrics.get("recommendations") or [],
                data_collected=bool(metrics.get("dataCollected")),
            )
        )

    async def list_assessments(
        self,
        customer_id: str | None = None,
        status: str | None = None,
        limit: int | None = None,
    ) -> Result:
        filter = AssessmentFilter(status=status, limit=clamp_limit(limit, 50))
        try:
            if customer_id:
                rows = await self.store.call(self.gateway.list_customer_assessments, customer_id, filter)
            else:
                rows = await self.store.call(self.gateway.list_assessments, filter)
        except StoreError as e:
            return self._store_failure(e)

        items = [AssessmentResponse.model_validate(r) for r in rows]
        return Ok(items, extra={"count": len(items)})

    async def get_assessment(self, assessment_id: str) -> Result:
        try:
            assessment = await self.store.call(self.gateway.get_assessment, assessment_id)
        except StoreError as e:
            return self._store_failure(e)
        if assessment is None:
            return Err(ErrorKind.ASSESSMENT_NOT_FOUND, f"Assessment {assessment_id} not found")
        return Ok(AssessmentResponse.model_validate(assessment))
