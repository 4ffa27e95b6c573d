"""Scoring engine.

Pure, deterministic scoring from whatever directory data was collected.
When a category cannot be measured directly it is derived from ``overall``
with a small fixed offset, so the per-category vector is always complete.
The offsets are an approximation, not a measurement.
"""

from dataclasses import dataclass, field
from typing import Literal

from app.schemas.directory import LicenseReport, SecureScoreReport

Confidence = Literal["high", "reduced"]

NEUTRAL_SCORE = 50

# (utilization strictly above, score); evaluated top to bottom, first match wins
LICENSE_SCORE_RULES: list[tuple[int, int]] = [
    (80, 85),
    (60, 75),
    (40, 65),
]

SCORE_CATEGORIES = (
    "license",
    "secureScore",
    "identity",
    "dataProtection",
    "cloudApps",
    "endpoint",
)


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def license_step_score(utilization_rate: float) -> int:
    """Map license utilization onto the stepped license score."""
    for threshold, score in LICENSE_SCORE_RULES:
        if utilization_rate > threshold:
            return score
    return NEUTRAL_SCORE


@dataclass(frozen=True)
class ScoreCard:
    overall: float
    per_category: dict[str, float] = field(default_factory=dict)
    confidence: Confidence = "high"

    def to_dict(self) -> dict[str, float]:
        return {"overall": self.overall, **self.per_category}


def compute_scores(
    license: LicenseReport | None = None,
    secure_score: SecureScoreReport | None = None,
) -> ScoreCard:
    """Compute the overall score and every per-category score.

    Secure score, when present, drives ``overall`` directly; otherwise the
    license utilization step function does; with neither, ``overall`` is
    the neutral 50 and confidence is reduced.
    """
    ss = secure_score.percentage if secure_score is not None else None
    license_score = license_step_score(license.utilization_rate) if license is not None else None

    if ss is not None:
        overall = ss
    elif license_score is not None:
        overall = license_score
    else:
        overall = NEUTRAL_SCORE
    overall = clamp(overall)

    if ss is not None:
        identity = min(ss + 5, 100)
        data_protection = max(ss - 10, 0)
        endpoint = ss
    else:
        identity = min(overall + 5, 90)
        data_protection = max(overall - 5, 50)
        endpoint = overall

    per_category = {
        "license": license_score if license_score is not None else overall,
        "secureScore": ss if ss is not None else overall,
        "identity": identity,
        "dataProtection": data_protection,
        "cloudApps": min(overall + 3, 95),
        "endpoint": endpoint,
    }

    return ScoreCard(
        overall=overall,
        per_category={k: clamp(v) for k, v in per_category.items()},
        confidence="high" if (license is not None or secure_score is not None) else "reduced",
    )
