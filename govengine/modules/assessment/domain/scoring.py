"""
Category scoring.

Every category computes a base score from its own counts, then the shared
severity penalty is applied:

    score = clamp(base - 15 * critical - 8 * high, 0, 100), rounded to 2 dp
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from govengine.modules.assessment.domain.models import Finding, Severity

CRITICAL_PENALTY = 15
HIGH_PENALTY = 8

IDENTITY_WEIGHTS = {
    "enterprise_applications": 0.25,
    "stale_users_devices": 0.25,
    "resource_iam_rbac": 0.30,
    "conditional_access": 0.20,
}
CONDITIONAL_ACCESS_NEUTRAL = 50.0


@dataclass(frozen=True)
class SeverityCounts:
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    @classmethod
    def of(cls, findings: Iterable[Finding]) -> SeverityCounts:
        counts: dict[Severity, int] = {"critical": 0, "high": 0, "medium": 0, "low": 0}
        for finding in findings:
            counts[finding.severity] += 1
        return cls(**counts)

    @property
    def penalty(self) -> int:
        return CRITICAL_PENALTY * self.critical + HIGH_PENALTY * self.high


def clamp_score(value: float) -> float:
    return round(min(100.0, max(0.0, value)), 2)


def finalize_score(base: float, findings: Iterable[Finding]) -> float:
    """Apply the severity penalty to a base score and clamp to [0, 100]."""
    return clamp_score(base - SeverityCounts.of(findings).penalty)


def application_risk_base(total_applications: int, risky_applications: int) -> float:
    if total_applications <= 0:
        return 100.0
    risky_percentage = risky_applications / total_applications * 100
    return max(0.0, 100 - 2 * risky_percentage)


def user_device_base(issue_count: int) -> float:
    return float(max(0, 100 - 5 * issue_count))


def rbac_base(overprivileged: int) -> float:
    return float(max(0, 100 - 10 * overprivileged))


def conditional_access_base(policy_count: int, coverage: float) -> float:
    # Nothing configured and nothing observed: neutral rather than failing.
    if policy_count == 0 and coverage == 0:
        return CONDITIONAL_ACCESS_NEUTRAL
    return min(100.0, max(0.0, coverage))


def identity_composite_base(component_bases: dict[str, float]) -> float:
    """
    Weighted identity base. Categories absent from the mapping (failed
    analyzers) contribute zero.
    """
    return sum(
        weight * component_bases.get(category, 0.0)
        for category, weight in IDENTITY_WEIGHTS.items()
    )


def naming_standard_base(total: int, compliant: int) -> float:
    if total <= 0:
        return 100.0
    return compliant / total * 100


def naming_scheme_base(
    scheme_compliance: float, environment_compliance: float, violation_percentage: float
) -> float:
    return (
        0.5 * scheme_compliance
        + 0.25 * environment_compliance
        + 0.25 * (100 - violation_percentage)
    )


def _tag_violation_penalty(counts: SeverityCounts) -> float:
    return min(100.0, 10 * counts.high + 5 * counts.medium + 2 * counts.low)


def tagging_standard_base(
    coverage: float, required_coverage: float, counts: SeverityCounts
) -> float:
    return (
        0.4 * coverage
        + 0.3 * required_coverage
        + 0.3 * (100 - _tag_violation_penalty(counts))
    )


def tagging_preference_base(
    coverage: float,
    required_coverage: float,
    counts: SeverityCounts,
    enforce: bool,
) -> float:
    penalty = _tag_violation_penalty(counts)
    if enforce:
        penalty = min(100.0, penalty * 1.5)
    return 0.3 * coverage + 0.4 * required_coverage + 0.3 * (100 - penalty)


def governance_composite_base(naming_compliance: float, tagging_compliance: float) -> float:
    return 0.5 * naming_compliance + 0.5 * tagging_compliance
