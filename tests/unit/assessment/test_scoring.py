from __future__ import annotations

import pytest

from govengine.modules.assessment.domain.models import Finding, Severity
from govengine.modules.assessment.domain.scoring import (
    SeverityCounts,
    application_risk_base,
    conditional_access_base,
    finalize_score,
    governance_composite_base,
    identity_composite_base,
    naming_scheme_base,
    naming_standard_base,
    rbac_base,
    tagging_preference_base,
    tagging_standard_base,
    user_device_base,
)


def _findings(**counts: int) -> list[Finding]:
    findings: list[Finding] = []
    for severity, count in counts.items():
        for index in range(count):
            findings.append(
                Finding(
                    category="test",
                    resource_id=f"{severity}-{index}",
                    resource_name=f"{severity}-{index}",
                    severity=severity,  # type: ignore[arg-type]
                    issue="issue",
                    recommendation="fix",
                )
            )
    return findings


def test_severity_penalty_applies_to_critical_and_high_only() -> None:
    findings = _findings(critical=2, high=3, medium=4, low=5)

    assert SeverityCounts.of(findings).penalty == 54
    assert finalize_score(100, findings) == 46.0


def test_finalize_score_clamps_to_range() -> None:
    assert finalize_score(10, _findings(high=2)) == 0.0
    assert finalize_score(150, []) == 100.0
    assert finalize_score(33.33333, []) == 33.33


@pytest.mark.parametrize("severity", ["critical", "high", "medium", "low"])
def test_score_always_within_bounds(severity: Severity) -> None:
    for count in range(0, 20, 3):
        score = finalize_score(100, _findings(**{severity: count}))
        assert 0.0 <= score <= 100.0


def test_conditional_access_with_nothing_configured_is_neutral() -> None:
    assert conditional_access_base(0, 0) == 50.0
    assert conditional_access_base(2, 0) == 0.0
    assert conditional_access_base(0, 80.0) == 80.0


def test_category_bases() -> None:
    assert application_risk_base(0, 0) == 100.0
    assert application_risk_base(10, 3) == pytest.approx(40.0)
    assert application_risk_base(3, 3) == 0.0
    assert user_device_base(3) == 85.0
    assert user_device_base(50) == 0.0
    assert rbac_base(2) == 80.0
    assert naming_standard_base(0, 0) == 100.0
    assert naming_standard_base(4, 3) == 75.0
    assert naming_scheme_base(100, 100, 0) == 100.0
    assert governance_composite_base(80, 60) == 70.0


def test_identity_composite_weights_missing_categories_as_zero() -> None:
    bases = {
        "enterprise_applications": 100.0,
        "stale_users_devices": 100.0,
        "conditional_access": 50.0,
    }

    assert identity_composite_base(bases) == pytest.approx(60.0)


def test_tagging_bases() -> None:
    assert tagging_standard_base(100, 100, SeverityCounts()) == 100.0
    assert tagging_standard_base(50, 100, SeverityCounts(high=1)) == pytest.approx(77.0)
    assert tagging_preference_base(50, 100, SeverityCounts(high=1), enforce=True) == pytest.approx(
        80.5
    )
    assert tagging_preference_base(50, 100, SeverityCounts(high=1), enforce=False) == pytest.approx(
        82.0
    )
