"""Reports fetched from the directory (Microsoft Graph) API.

These are ephemeral: they are only persisted embedded in an assessment's
metrics snapshot.
"""

import math
from datetime import datetime
from typing import Literal

from pydantic import Field

from app.schemas.common import CamelModel

SkuCategory = Literal["Basic", "Standard", "Premium", "Enterprise", "Other"]

# (part-number markers, category, estimated USD per seat per month); first match wins
SKU_TIERS: list[tuple[tuple[str, ...], SkuCategory, float]] = [
    (("E1", "BASIC"), "Basic", 6.0),
    (("E3", "STANDARD"), "Standard", 22.0),
    (("E5", "PREMIUM"), "Premium", 38.0),
    (("ENTERPRISE", "BUSINESS_PREMIUM"), "Enterprise", 32.0),
]


LOW_SKU_UTILIZATION = 50
MIN_LICENSED_USER_RATIO = 0.8


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percentage(part: float, whole: float) -> int:
    """Rounded part/whole*100, or 0 when there is nothing to divide by."""
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


def classify_sku(sku_part_number: str) -> tuple[SkuCategory, float]:
    name = (sku_part_number or "").upper()
    for markers, category, unit_cost in SKU_TIERS:
        if any(marker in name for marker in markers):
            return category, unit_cost
    return "Other", 0.0


class LicenseSku(CamelModel):
    """Per-SKU license counts."""

    sku_id: str | None = None
    sku_part_number: str = ""
    service_plan_name: str = ""
    total_units: int = 0
    assigned_units: int = 0
    available_units: int = 0
    utilization_percentage: int = 0
    category: SkuCategory = "Other"
    estimated_monthly_cost: float = 0.0
    capability_status: str = "Unknown"

    @classmethod
    def from_graph(cls, sku: dict) -> "LicenseSku":
        """Build from a /subscribedSkus entry."""
        total = (sku.get("prepaidUnits") or {}).get("enabled") or 0
        assigned = sku.get("consumedUnits") or 0
        part_number = sku.get("skuPartNumber") or ""
        plans = sku.get("servicePlans") or []
        category, unit_cost = classify_sku(part_number)
        return cls(
            sku_id=sku.get("skuId"),
            sku_part_number=part_number,
            service_plan_name=(plans[0].get("servicePlanName") if plans else None) or part_number,
            total_units=total,
            assigned_units=assigned,
            available_units=total - assigned,
            utilization_percentage=percentage(assigned, total),
            category=category,
            estimated_monthly_cost=total * unit_cost,
            capability_status=sku.get("capabilityStatus") or "Unknown",
        )


class UserAssignmentSummary(CamelModel):
    total_users: int = 0
    licensed_users: int = 0
    unlicensed_users: int = 0


def license_recommendations(
    skus: list[LicenseSku],
    users: UserAssignmentSummary | None = None,
) -> list[str]:
    """Findings from the license inventory itself, ahead of the assessment-wide rules."""
    recommendations = []

    underused = [s.sku_part_number for s in skus if s.utilization_percentage < LOW_SKU_UTILIZATION]
    if underused:
        recommendations.append(
            f"{len(underused)} license type(s) have low utilization. Review: {', '.join(underused)}"
        )

    if users and users.total_users > 0:
        if users.licensed_users / users.total_users < MIN_LICENSED_USER_RATIO:
            recommendations.append(
                f"{users.total_users - users.licensed_users} users may not have proper license assignments."
            )

    return recommendations


class LicenseReport(CamelModel):
    """License and seat utilization for a tenant."""

    total_licenses: int = 0
    assigned_licenses: int = 0
    available_licenses: int = 0
    utilization_rate: int = 0
    estimated_monthly_cost: float = 0.0
    license_details: list[LicenseSku] = Field(default_factory=list)
    user_assignment_summary: UserAssignmentSummary | None = None
    recommendations: list[str] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def from_skus(
        cls,
        skus: list[LicenseSku],
        users: UserAssignmentSummary | None = None,
    ) -> "LicenseReport":
        total = sum(s.total_units for s in skus)
        assigned = sum(s.assigned_units for s in skus)
        return cls(
            total_licenses=total,
            assigned_licenses=assigned,
            available_licenses=total - assigned,
            utilization_rate=percentage(assigned, total),
            estimated_monthly_cost=round(sum(s.estimated_monthly_cost for s in skus)),
            license_details=skus,
            user_assignment_summary=users,
            recommendations=license_recommendations(skus, users),
        )

    @property
    def summary(self) -> str:
        return (
            f"{self.assigned_licenses} of {self.total_licenses} licenses assigned "
            f"({self.utilization_rate}% utilization)"
        )


class ControlScore(CamelModel):
    """One secure-score control profile."""

    control_name: str = "Unknown Control"
    category: str = "General"
    current_score: float = 0.0
    max_score: float = 0.0
    implementation_status: str = "Not Implemented"

    @classmethod
    def from_graph(cls, control: dict) -> "ControlScore":
        """Build from a /security/secureScoreControlProfiles entry."""
        return cls(
            control_name=control.get("title") or control.get("controlName") or "Unknown Control",
            category=control.get("controlCategory") or "General",
            current_score=control.get("score") or 0,
            max_score=control.get("maxScore") or 0,
            implementation_status=control.get("implementationStatus") or "Not Implemented",
        )


class SecureScoreReport(CamelModel):
    """Secure score with per-control breakdown."""

    current_score: float = 0.0
    max_score: float = 0.0
    percentage: int = 0
    control_scores: list[ControlScore] = Field(default_factory=list)
    last_updated: datetime | None = None

    @classmethod
    def build(
        cls,
        current_score: float,
        max_score: float,
        control_scores: list[ControlScore] | None = None,
        last_updated: datetime | None = None,
    ) -> "SecureScoreReport":
        return cls(
            current_score=current_score,
            max_score=max_score,
            percentage=percentage(current_score, max_score),
            control_scores=control_scores or [],
            last_updated=last_updated,
        )

    @property
    def summary(self) -> str:
        return f"Security score: {self.current_score:g}/{self.max_score:g} ({self.percentage}%)"
