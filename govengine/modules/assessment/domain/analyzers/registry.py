"""
Assessment type registry.

Each ``AssessmentType`` maps to the analyzers it runs, in declaration
order, and to the scorer that recomputes the composite score from the
merged headline metrics.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Sequence
from dataclasses import dataclass
from types import MappingProxyType

from govengine.core.exceptions import ConfigurationError
from govengine.modules.assessment.domain.analyzers.base import (
    AssessmentType,
    CategoryAnalyzer,
)
from govengine.modules.assessment.domain.analyzers.dependency import DependencyAnalyzer
from govengine.modules.assessment.domain.analyzers.identity.conditional_access import (
    ConditionalAccessAnalyzer,
)
from govengine.modules.assessment.domain.analyzers.identity.enterprise_apps import (
    EnterpriseApplicationsAnalyzer,
)
from govengine.modules.assessment.domain.analyzers.identity.rbac import (
    ResourceIamRbacAnalyzer,
)
from govengine.modules.assessment.domain.analyzers.identity.users_devices import (
    StaleUsersDevicesAnalyzer,
)
from govengine.modules.assessment.domain.analyzers.naming import NamingConventionAnalyzer
from govengine.modules.assessment.domain.analyzers.tagging import TaggingAnalyzer
from govengine.modules.assessment.domain.models import Finding, HeadlineMetrics
from govengine.modules.assessment.domain.scoring import (
    IDENTITY_WEIGHTS,
    application_risk_base,
    conditional_access_base,
    finalize_score,
    governance_composite_base,
    identity_composite_base,
    rbac_base,
    user_device_base,
)

AnalyzerFactory = Callable[[], CategoryAnalyzer]
CompositeScorer = Callable[[HeadlineMetrics, Sequence[Finding], Collection[str]], float]

_CATEGORY_BASES: MappingProxyType[str, Callable[[HeadlineMetrics], float]] = MappingProxyType(
    {
        "naming_convention": lambda headline: headline.naming_compliance,
        "tagging": lambda headline: headline.tagging_compliance,
        "enterprise_applications": lambda headline: application_risk_base(
            headline.total_applications, headline.risky_applications
        ),
        "stale_users_devices": lambda headline: user_device_base(
            headline.inactive_users + headline.unmanaged_devices
        ),
        "resource_iam_rbac": lambda headline: rbac_base(headline.overprivileged_assignments),
        "conditional_access": lambda headline: conditional_access_base(
            headline.conditional_access_policies, headline.conditional_access_coverage
        ),
    }
)


def category_base(category: str, headline: HeadlineMetrics, failed: Collection[str] = ()) -> float:
    """Base score of one category read back from merged headline metrics. Failed means 0."""
    if category in failed:
        return 0.0
    return _CATEGORY_BASES[category](headline)


def _single(category: str) -> CompositeScorer:
    def score(
        headline: HeadlineMetrics, findings: Sequence[Finding], failed: Collection[str]
    ) -> float:
        return finalize_score(category_base(category, headline, failed), findings)

    return score


def _governance_score(
    headline: HeadlineMetrics, findings: Sequence[Finding], failed: Collection[str]
) -> float:
    base = governance_composite_base(
        category_base("naming_convention", headline, failed),
        category_base("tagging", headline, failed),
    )
    return finalize_score(base, findings)


def _identity_score(
    headline: HeadlineMetrics, findings: Sequence[Finding], failed: Collection[str]
) -> float:
    bases = {
        category: category_base(category, headline)
        for category in IDENTITY_WEIGHTS
        if category not in failed
    }
    return finalize_score(identity_composite_base(bases), findings)


@dataclass(frozen=True)
class AssessmentPlan:
    assessment_type: AssessmentType
    analyzers: tuple[AnalyzerFactory, ...]
    scorer: CompositeScorer

    def build(self) -> tuple[CategoryAnalyzer, ...]:
        return tuple(factory() for factory in self.analyzers)


_IDENTITY_ANALYZERS: tuple[AnalyzerFactory, ...] = (
    EnterpriseApplicationsAnalyzer,
    StaleUsersDevicesAnalyzer,
    ResourceIamRbacAnalyzer,
    ConditionalAccessAnalyzer,
)

ASSESSMENT_PLANS: MappingProxyType[AssessmentType, AssessmentPlan] = MappingProxyType(
    {
        AssessmentType.NAMING_CONVENTION: AssessmentPlan(
            AssessmentType.NAMING_CONVENTION,
            (NamingConventionAnalyzer,),
            _single("naming_convention"),
        ),
        AssessmentType.TAGGING: AssessmentPlan(
            AssessmentType.TAGGING, (TaggingAnalyzer,), _single("tagging")
        ),
        AssessmentType.GOVERNANCE_FULL: AssessmentPlan(
            AssessmentType.GOVERNANCE_FULL,
            (NamingConventionAnalyzer, TaggingAnalyzer, DependencyAnalyzer),
            _governance_score,
        ),
        AssessmentType.ENTERPRISE_APPLICATIONS: AssessmentPlan(
            AssessmentType.ENTERPRISE_APPLICATIONS,
            (EnterpriseApplicationsAnalyzer,),
            _single("enterprise_applications"),
        ),
        AssessmentType.STALE_USERS_DEVICES: AssessmentPlan(
            AssessmentType.STALE_USERS_DEVICES,
            (StaleUsersDevicesAnalyzer,),
            _single("stale_users_devices"),
        ),
        AssessmentType.RESOURCE_IAM_RBAC: AssessmentPlan(
            AssessmentType.RESOURCE_IAM_RBAC,
            (ResourceIamRbacAnalyzer,),
            _single("resource_iam_rbac"),
        ),
        AssessmentType.CONDITIONAL_ACCESS: AssessmentPlan(
            AssessmentType.CONDITIONAL_ACCESS,
            (ConditionalAccessAnalyzer,),
            _single("conditional_access"),
        ),
        AssessmentType.IDENTITY_FULL: AssessmentPlan(
            AssessmentType.IDENTITY_FULL, _IDENTITY_ANALYZERS, _identity_score
        ),
    }
)


def get_plan(assessment_type: AssessmentType | str) -> AssessmentPlan:
    try:
        key = AssessmentType(assessment_type)
    except ValueError as exc:
        available = ", ".join(member.value for member in AssessmentType)
        raise ConfigurationError(
            f"Unknown assessment type '{assessment_type}'. Available: {available}",
            code="unknown_assessment_type",
        ) from exc
    return ASSESSMENT_PLANS[key]
