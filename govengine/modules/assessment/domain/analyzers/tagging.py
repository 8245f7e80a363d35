from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence

import structlog

from govengine.modules.assessment.domain.analyzers.base import AnalysisContext, Strategy
from govengine.modules.assessment.domain.models import (
    AnalysisResult,
    Finding,
    HeadlineMetrics,
    MetricValue,
    ResourceDescriptor,
    Severity,
)
from govengine.modules.assessment.domain.naming_scheme import NamingScheme
from govengine.modules.assessment.domain.scoring import (
    SeverityCounts,
    finalize_score,
    tagging_preference_base,
    tagging_standard_base,
)

logger = structlog.get_logger()

CATEGORY = "tagging"
DEFAULT_REQUIRED_TAGS = ("Environment", "Owner", "Project", "CostCenter", "Department")
TAG_REQUIRED_RESOURCE_TYPES = frozenset(
    {
        "microsoft.compute/virtualmachines",
        "microsoft.storage/storageaccounts",
        "microsoft.sql/servers",
        "microsoft.web/sites",
        "microsoft.keyvault/vaults",
        "microsoft.network/virtualnetworks",
    }
)
# A required tag present on fewer resources than this share counts as missing.
MISSING_TAG_SHARE = 0.3


def tag_usage_frequency(resources: Iterable[ResourceDescriptor]) -> dict[str, int]:
    counter: Counter[str] = Counter()
    for resource in resources:
        counter.update(resource.tags.keys())
    return dict(counter.most_common())


def _has_tag(resource: ResourceDescriptor, tag: str) -> bool:
    wanted = tag.lower()
    return any(key.lower() == wanted for key in resource.tags)


def missing_required_tags(
    resources: Sequence[ResourceDescriptor], required: Sequence[str]
) -> list[str]:
    return [
        tag
        for tag in required
        if sum(1 for resource in resources if _has_tag(resource, tag))
        < len(resources) * MISSING_TAG_SHARE
    ]


def inconsistent_tag_names(keys: Iterable[str]) -> list[str]:
    """Every case variant of a tag key after the first one seen."""
    seen: set[str] = set()
    duplicates: list[str] = []
    for key in keys:
        lowered = key.lower()
        if lowered in seen:
            duplicates.append(key)
        else:
            seen.add(lowered)
    return duplicates


class TaggingAnalyzer:
    category = CATEGORY
    display_name = "Tagging"

    async def probe(self, context: AnalysisContext) -> Strategy:
        return "enhanced"

    async def enhanced(self, context: AnalysisContext) -> AnalysisResult:
        scheme = context.naming_scheme
        preferences = scheme is not None and scheme.is_active and bool(scheme.required_tags)
        return self._analyze(context.resources, scheme if preferences else None)

    limited = enhanced

    def _violations(
        self,
        resource: ResourceDescriptor,
        required: Sequence[str],
        *,
        client_tags: bool,
        enforce: bool,
    ) -> list[Finding]:
        def finding(
            finding_type: str, severity: Severity, issue: str, tags: list[str], advice: str
        ) -> Finding:
            return Finding(
                category=CATEGORY,
                resource_id=resource.id,
                resource_name=resource.name,
                severity=severity,
                issue=issue,
                recommendation=advice,
                finding_type=finding_type,
                estimated_effort="low",
                metadata={"resource_type": resource.type, "tags": tags},
            )

        if resource.type_lower in TAG_REQUIRED_RESOURCE_TYPES and not resource.has_tags:
            return [
                finding(
                    "NoTags",
                    "high" if enforce or not client_tags else "medium",
                    "Critical resource type has no tags",
                    list(required),
                    f"Add the required tags: {', '.join(required)}",
                )
            ]

        findings: list[Finding] = []
        missing = [tag for tag in required if not _has_tag(resource, tag)]
        if missing:
            if client_tags:
                finding_type = "MissingClientRequiredTags"
                issue = f"Missing client-required tags: {', '.join(missing)}"
                severity: Severity = "high" if enforce or len(missing) > 2 else "medium"
            else:
                finding_type = "MissingRequiredTags"
                issue = f"Missing required tags: {', '.join(missing)}"
                severity = "high" if len(missing) > 2 else "medium"
            findings.append(
                finding(finding_type, severity, issue, missing, f"Add tags: {', '.join(missing)}")
            )

        empty = [key for key, value in resource.tags.items() if not (value or "").strip()]
        if empty:
            findings.append(
                finding(
                    "EmptyTagValues",
                    "high" if client_tags and enforce else "medium",
                    f"Tags with empty values: {', '.join(empty)}",
                    empty,
                    "Populate or remove tags that have no value",
                )
            )

        duplicates = inconsistent_tag_names(resource.tags.keys())
        if duplicates:
            findings.append(
                finding(
                    "InconsistentTagNaming",
                    "low",
                    f"Inconsistent tag naming: {', '.join(duplicates)}",
                    duplicates,
                    "Consolidate tag keys that differ only by case",
                )
            )
        return findings

    def _analyze(
        self, resources: Sequence[ResourceDescriptor], scheme: NamingScheme | None
    ) -> AnalysisResult:
        required = tuple(scheme.required_tags) if scheme is not None else DEFAULT_REQUIRED_TAGS
        enforce = scheme.enforce_tag_compliance if scheme is not None else False

        total = len(resources)
        tagged = sum(1 for resource in resources if resource.has_tags)
        coverage = round(tagged / total * 100, 2) if total else 100.0
        missing = missing_required_tags(resources, required)
        required_coverage = (
            (len(required) - len(missing)) / len(required) * 100 if required else 100.0
        )

        findings: list[Finding] = []
        for resource in resources:
            findings.extend(
                self._violations(
                    resource, required, client_tags=scheme is not None, enforce=enforce
                )
            )

        counts = SeverityCounts.of(findings)
        if scheme is not None:
            base = tagging_preference_base(coverage, required_coverage, counts, enforce)
        else:
            base = tagging_standard_base(coverage, required_coverage, counts)

        metrics: dict[str, MetricValue] = {
            "tagging.total_resources": total,
            "tagging.tagged_resources": tagged,
            "tagging.coverage": coverage,
            "tagging.required_tag_coverage": round(required_coverage, 2),
            "tagging.required_tags": ", ".join(required),
            "tagging.missing_required_tags": ", ".join(missing),
            "tagging.mode": "preference" if scheme is not None else "standard",
        }
        for tag, count in tag_usage_frequency(resources).items():
            metrics[f"tagging.usage.{tag}"] = count

        logger.info(
            "tagging_analysis_completed",
            resources=total,
            coverage=coverage,
            violations=len(findings),
            base_score=round(base, 2),
        )
        return AnalysisResult(
            category=CATEGORY,
            score=finalize_score(base, findings),
            mode="enhanced",
            findings=tuple(findings),
            headline=HeadlineMetrics(resources_analyzed=total, tagging_compliance=round(base, 2)),
            detailed_metrics=metrics,
        )
