"""
Naming convention analysis.

Without a naming scheme every resource is checked against the basic naming
rules and the recommended resource-type abbreviations, and naming styles are
compared per resource type. With a scheme, each name is additionally
validated component by component against the tenant template.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from typing import Any

import structlog

from govengine.modules.assessment.domain import taxonomy
from govengine.modules.assessment.domain.analyzers.base import AnalysisContext, Strategy
from govengine.modules.assessment.domain.models import (
    AnalysisResult,
    Finding,
    HeadlineMetrics,
    MetricValue,
    ResourceDescriptor,
    Severity,
)
from govengine.modules.assessment.domain.naming_classifier import (
    INVALID_NAME_CHARACTERS,
    MAX_NAME_LENGTH,
    MIN_NAME_LENGTH,
    classify_naming_pattern,
    convert_case,
    detect_environment,
    generate_example,
)
from govengine.modules.assessment.domain.naming_scheme import NamingScheme
from govengine.modules.assessment.domain.scheme_validation import validate_against_scheme
from govengine.modules.assessment.domain.scoring import (
    finalize_score,
    naming_scheme_base,
    naming_standard_base,
)
from govengine.shared.core.config import get_settings

logger = structlog.get_logger()

CATEGORY = "naming_convention"
ENVIRONMENT_INDICATOR_THRESHOLD = 90.0
MAX_PATTERN_EXAMPLES = 3



def _finding(
    resource: ResourceDescriptor,
    finding_type: str,
    severity: Severity,
    issue: str,
    recommendation: str,
    **metadata: Any,
) -> Finding:
    return Finding(
        category=CATEGORY,
        resource_id=resource.id,
        resource_name=resource.name,
        severity=severity,
        issue=issue,
        recommendation=recommendation,
        finding_type=finding_type,
        estimated_effort="low",
        metadata={"resource_type": resource.type, **metadata},
    )


def has_type_prefix(resource: ResourceDescriptor) -> bool:
    """True when some name token, or the name start, is a valid abbreviation for the type."""
    abbreviations = set(taxonomy.valid_abbreviations(resource.type))
    abbreviations.add(taxonomy.abbreviation_with_kind(resource.type, resource.kind))
    name = resource.name.lower()
    if any(token in abbreviations for token in taxonomy.split_name(name)):
        return True
    return any(name.startswith(abbreviation) for abbreviation in abbreviations)


def standard_findings(resource: ResourceDescriptor) -> list[Finding]:
    findings: list[Finding] = []
    name = resource.name

    if INVALID_NAME_CHARACTERS.search(name):
        findings.append(
            _finding(
                resource,
                "InvalidCharacters",
                "high",
                "Resource name contains invalid characters",
                f"Rename to '{INVALID_NAME_CHARACTERS.sub('', name)}'",
                suggested_name=INVALID_NAME_CHARACTERS.sub("", name),
            )
        )
    if len(name) > MAX_NAME_LENGTH:
        findings.append(
            _finding(
                resource,
                "NameTooLong",
                "medium",
                f"Resource name exceeds maximum length of {MAX_NAME_LENGTH} characters",
                "Shorten the name using standard abbreviations",
                suggested_name=name[: MAX_NAME_LENGTH - 3],
            )
        )
    elif len(name) < MIN_NAME_LENGTH:
        findings.append(
            _finding(
                resource,
                "NameTooShort",
                "medium",
                f"Resource name is shorter than {MIN_NAME_LENGTH} characters",
                "Use a descriptive name that identifies workload and environment",
            )
        )

    if resource.type_lower in taxonomy.RESOURCE_ABBREVIATIONS and not has_type_prefix(resource):
        prefix = taxonomy.abbreviation_with_kind(resource.type, resource.kind)
        recommended = ", ".join(taxonomy.valid_abbreviations(resource.type))
        findings.append(
            _finding(
                resource,
                "MissingResourceTypePrefix",
                "medium",
                f"Resource name doesn't include a recommended type abbreviation: {recommended}",
                f"Rename to '{prefix}-{name.lower()}'",
                suggested_name=f"{prefix}-{name.lower()}",
            )
        )
    return findings


def pattern_distribution(
    resources: Sequence[ResourceDescriptor],
) -> dict[str, tuple[int, float, tuple[str, ...]]]:
    """pattern -> (count, percentage to 1 dp, first three example names)"""
    names: dict[str, list[str]] = {}
    for resource in resources:
        names.setdefault(classify_naming_pattern(resource.name), []).append(resource.name)

    total = len(resources)
    return {
        pattern: (
            len(members),
            round(len(members) / total * 100, 1) if total else 0.0,
            tuple(members[:MAX_PATTERN_EXAMPLES]),
        )
        for pattern, members in sorted(names.items(), key=lambda item: -len(item[1]))
    }


def type_consistency(resources: Sequence[ResourceDescriptor]) -> dict[str, tuple[str, float]]:
    """resource type -> (most common pattern, share of resources using it)"""
    by_type: dict[str, Counter[str]] = {}
    for resource in resources:
        by_type.setdefault(resource.type_lower, Counter())[
            classify_naming_pattern(resource.name)
        ] += 1

    consistency: dict[str, tuple[str, float]] = {}
    for resource_type, patterns in by_type.items():
        pattern, count = patterns.most_common(1)[0]
        consistency[resource_type] = (pattern, round(count / sum(patterns.values()) * 100, 2))
    return consistency


def environment_indicator_percentage(resources: Sequence[ResourceDescriptor]) -> float:
    if not resources:
        return 0.0
    tagged = sum(1 for resource in resources if detect_environment(resource.name))
    return round(tagged / len(resources) * 100, 2)


class NamingConventionAnalyzer:
    category = CATEGORY
    display_name = "Naming Convention"

    def __init__(self, consistency_threshold: float | None = None) -> None:
        self._consistency_threshold = (
            consistency_threshold
            if consistency_threshold is not None
            else get_settings().NAMING_CONSISTENCY_THRESHOLD
        )

    async def probe(self, context: AnalysisContext) -> Strategy:
        return "enhanced"

    async def enhanced(self, context: AnalysisContext) -> AnalysisResult:
        scheme = context.naming_scheme
        if scheme is not None and scheme.is_active and scheme.has_components:
            return self._analyze_with_scheme(context.resources, scheme)
        return self._analyze_standard(context.resources)

    # Inventory-only analysis: both strategies are the same.
    limited = enhanced

    def _consistency_findings(
        self,
        resources: Sequence[ResourceDescriptor],
        consistency: dict[str, tuple[str, float]],
    ) -> list[Finding]:
        findings: list[Finding] = []
        for resource in resources:
            dominant, score = consistency[resource.type_lower]
            if score >= self._consistency_threshold:
                continue
            pattern = classify_naming_pattern(resource.name)
            if pattern == dominant:
                continue
            findings.append(
                _finding(
                    resource,
                    "InconsistentPattern",
                    "low",
                    f"Resource naming pattern '{pattern}' doesn't match the most common "
                    f"pattern '{dominant}' for this resource type",
                    f"Rename to '{convert_case(resource.name, dominant)}'",
                    suggested_name=convert_case(resource.name, dominant),
                    consistency_score=score,
                )
            )
        return findings

    def _common_metrics(
        self,
        resources: Sequence[ResourceDescriptor],
        consistency: dict[str, tuple[str, float]],
    ) -> dict[str, MetricValue]:
        metrics: dict[str, MetricValue] = {"naming.total_resources": len(resources)}
        distribution = pattern_distribution(resources)
        if distribution:
            metrics["naming.dominant_pattern"] = next(iter(distribution))
        for pattern, (count, percentage, examples) in distribution.items():
            metrics[f"naming.pattern.{pattern}.count"] = count
            metrics[f"naming.pattern.{pattern}.percentage"] = percentage
            metrics[f"naming.pattern.{pattern}.examples"] = ", ".join(examples)
        for resource_type, (dominant, score) in consistency.items():
            metrics[f"naming.type.{resource_type}.pattern"] = dominant
            metrics[f"naming.type.{resource_type}.consistency"] = score
        metrics["naming.environment_indicator_percentage"] = environment_indicator_percentage(
            resources
        )
        prefixed = sum(
            1
            for resource in resources
            if resource.type_lower in taxonomy.RESOURCE_ABBREVIATIONS and has_type_prefix(resource)
        )
        metrics["naming.resource_type_prefix_percentage"] = (
            round(prefixed / len(resources) * 100, 2) if resources else 0.0
        )
        return metrics

    def _analyze_standard(self, resources: Sequence[ResourceDescriptor]) -> AnalysisResult:
        consistency = type_consistency(resources)
        findings: list[Finding] = []
        for resource in resources:
            findings.extend(standard_findings(resource))
        findings.extend(self._consistency_findings(resources, consistency))

        violating = {finding.resource_id for finding in findings}
        compliant = len(resources) - len(violating)
        base = naming_standard_base(len(resources), compliant)

        metrics = self._common_metrics(resources, consistency)
        metrics["naming.compliant_resources"] = compliant
        metrics["naming.mode"] = "standard"

        logger.info(
            "naming_analysis_completed",
            mode="standard",
            resources=len(resources),
            violations=len(findings),
            base_score=round(base, 2),
        )
        return AnalysisResult(
            category=CATEGORY,
            score=finalize_score(base, findings),
            mode="enhanced",
            findings=tuple(findings),
            headline=HeadlineMetrics(
                resources_analyzed=len(resources), naming_compliance=round(base, 2)
            ),
            detailed_metrics=metrics,
        )

    def _analyze_with_scheme(
        self, resources: Sequence[ResourceDescriptor], scheme: NamingScheme
    ) -> AnalysisResult:
        findings: list[Finding] = []
        standard_violators: set[str] = set()
        scheme_compliant = 0

        for resource in resources:
            validation = validate_against_scheme(resource, scheme)
            if validation.is_compliant:
                scheme_compliant += 1
            else:
                recommendation = (
                    f"Rename to '{validation.suggested_name}'"
                    if validation.suggested_name
                    else "Align the name with the configured naming scheme"
                )
                findings.append(
                    _finding(
                        resource,
                        "NamingSchemeViolation",
                        "medium",
                        validation.message,
                        recommendation,
                        detected_components=dict(validation.detected_components),
                        missing_components=list(validation.missing_components),
                        invalid_components=list(validation.invalid_components),
                        suggested_name=validation.suggested_name,
                    )
                )
            basic = standard_findings(resource)
            if basic:
                standard_violators.add(resource.id)
                findings.extend(basic)

        total = len(resources)
        scheme_compliance = scheme_compliant / total * 100 if total else 100.0
        environment_percentage = environment_indicator_percentage(resources)
        environment_component = scheme.component("environment")
        if environment_component is not None and environment_component.required:
            environment_compliance = (
                100.0
                if environment_percentage >= ENVIRONMENT_INDICATOR_THRESHOLD
                else environment_percentage
            )
        else:
            environment_compliance = 100.0
        violation_percentage = len(standard_violators) / total * 100 if total else 0.0
        base = naming_scheme_base(scheme_compliance, environment_compliance, violation_percentage)

        metrics = self._common_metrics(resources, type_consistency(resources))
        metrics["naming.mode"] = "scheme"
        metrics["naming.scheme_compliant_resources"] = scheme_compliant
        metrics["naming.scheme_compliance"] = round(scheme_compliance, 2)
        metrics["naming.environment_compliance"] = round(environment_compliance, 2)
        metrics["naming.standard_violation_percentage"] = round(violation_percentage, 2)
        metrics["naming.scheme_example"] = generate_example(scheme).name

        logger.info(
            "naming_analysis_completed",
            mode="scheme",
            resources=total,
            scheme_compliant=scheme_compliant,
            base_score=round(base, 2),
        )
        return AnalysisResult(
            category=CATEGORY,
            score=finalize_score(base, findings),
            mode="enhanced",
            findings=tuple(findings),
            headline=HeadlineMetrics(resources_analyzed=total, naming_compliance=round(base, 2)),
            detailed_metrics=metrics,
        )
