"""Recommendation generator.

Rules run in declaration order and every applicable rule fires. Output is
not de-duplicated: utilization and secure-score rules may both point at
the same theme.
"""

from app.schemas.directory import LicenseReport, SecureScoreReport

FALLBACK_RECOMMENDATION = (
    "Complete app registration setup to access real tenant data and get "
    "personalized recommendations."
)

IDENTITY_KEYWORDS = ("mfa", "conditional")


def _utilization_recommendations(license: LicenseReport) -> list[str]:
    rate = license.utilization_rate
    if rate < 40:
        return [
            f"Consider reviewing your license usage - only {rate}% of licenses are assigned. "
            "You may be able to optimize costs by reducing unused licenses."
        ]
    if rate > 90:
        return [
            f"License utilization is very high ({rate}%). Consider purchasing additional "
            "licenses to avoid service disruptions."
        ]
    if rate < 70:
        return [
            f"License utilization is moderate ({rate}%). Monitor usage trends and consider "
            "optimization opportunities."
        ]
    return []


def _sku_recommendations(license: LicenseReport) -> list[str]:
    part_numbers = [(sku.sku_part_number or "").upper() for sku in license.license_details]
    recommendations = []
    if any("E5" in p or "PREMIUM" in p for p in part_numbers):
        recommendations.append(
            "Premium licenses detected. Ensure you're leveraging advanced security features "
            "like Conditional Access and Identity Protection."
        )
    if any("E1" in p or "BASIC" in p for p in part_numbers):
        recommendations.append(
            "Basic licenses in use. Consider upgrading to higher tiers for enhanced security "
            "and compliance features."
        )
    return recommendations


def _secure_score_recommendations(secure_score: SecureScoreReport) -> list[str]:
    pct = secure_score.percentage
    if pct < 50:
        return [
            f"Secure Score is below 50% ({pct}%). Immediate action required to improve "
            "security posture."
        ]
    if pct < 70:
        return [
            f"Secure Score is moderate ({pct}%). Focus on implementing high-impact "
            "security controls."
        ]
    if pct >= 80:
        return [
            f"Excellent Secure Score ({pct}%). Continue monitoring and maintain current "
            "security practices."
        ]
    return []


def _identity_recommendations(secure_score: SecureScoreReport) -> list[str]:
    def is_identity_control(control) -> bool:
        category = (control.category or "").lower()
        name = (control.control_name or "").lower()
        return "identity" in category or any(k in name for k in IDENTITY_KEYWORDS)

    unimplemented = [
        c for c in secure_score.control_scores
        if is_identity_control(c) and c.implementation_status == "Not Implemented"
    ]
    if unimplemented:
        return [
            "Identity security controls need attention. Implement Multi-Factor "
            "Authentication and Conditional Access policies."
        ]
    return []


def generate_recommendations(
    license: LicenseReport | None = None,
    secure_score: SecureScoreReport | None = None,
) -> list[str]:
    """Build the ordered recommendation list for the collected data."""
    recommendations: list[str] = []

    if license is not None:
        recommendations.extend(_utilization_recommendations(license))
        recommendations.extend(_sku_recommendations(license))

    if secure_score is not None:
        recommendations.extend(_secure_score_recommendations(secure_score))
        recommendations.extend(_identity_recommendations(secure_score))

    if license is None and secure_score is None:
        recommendations.append(FALLBACK_RECOMMENDATION)

    return recommendations
