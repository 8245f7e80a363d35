from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Union

Severity = Literal["critical", "high", "medium", "low"]
AnalysisMode = Literal["limited", "enhanced", "failed"]
MetricValue = Union[int, float, str]

_SEVERITY_RANK: dict[Severity, int] = {
    "critical": 4,
    "high": 3,
    "medium": 2,
    "low": 1,
}


def severity_rank(severity: Severity) -> int:
    return _SEVERITY_RANK[severity]


def _parse_blob(blob: Any) -> dict[str, Any] | None:
    if blob is None:
        return None
    if isinstance(blob, Mapping):
        return dict(blob)
    if isinstance(blob, (bytes, bytearray)):
        blob = blob.decode("utf-8", errors="replace")
    if not isinstance(blob, str) or not blob.strip():
        return None
    try:
        parsed = json.loads(blob)
    except (TypeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


@dataclass(frozen=True)
class ResourceDescriptor:
    """One flat inventory record. Immutable for the duration of a run."""

    id: str
    name: str
    type: str
    resource_group: str = ""
    location: str = ""
    subscription_id: str = ""
    kind: str | None = None
    tags: Mapping[str, str] = field(default_factory=dict)
    properties: Any = None
    sku: Any = None

    @property
    def type_lower(self) -> str:
        return self.type.lower()

    @property
    def has_tags(self) -> bool:
        return bool(self.tags)

    def parsed_properties(self) -> dict[str, Any] | None:
        """Return the properties blob as a dict, or None when absent or unparseable."""
        return _parse_blob(self.properties)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> ResourceDescriptor:
        """Build a descriptor from an inventory row (snake_case or camelCase keys)."""

        def pick(*keys: str) -> Any:
            for key in keys:
                value = payload.get(key)
                if value is not None:
                    return value
            return None

        raw_tags = pick("tags")
        tags = (
            {str(k): "" if v is None else str(v) for k, v in raw_tags.items()}
            if isinstance(raw_tags, Mapping)
            else {}
        )
        kind = pick("kind")
        return cls(
            id=str(pick("id", "resource_id", "resourceId") or ""),
            name=str(pick("name") or ""),
            type=str(pick("type", "resource_type", "resourceType") or ""),
            resource_group=str(pick("resource_group", "resourceGroup") or ""),
            location=str(pick("location") or ""),
            subscription_id=str(pick("subscription_id", "subscriptionId") or ""),
            kind=str(kind) if kind is not None else None,
            tags=tags,
            properties=pick("properties"),
            sku=pick("sku"),
        )


@dataclass(frozen=True)
class Finding:
    category: str
    resource_id: str
    resource_name: str
    severity: Severity
    issue: str
    recommendation: str
    finding_type: str = ""
    estimated_effort: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "finding_type": self.finding_type,
            "resource_id": self.resource_id,
            "resource_name": self.resource_name,
            "severity": self.severity,
            "issue": self.issue,
            "recommendation": self.recommendation,
            "estimated_effort": self.estimated_effort,
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class HeadlineMetrics:
    """Numeric headline counters that survive a merge of several analyzers."""

    resources_analyzed: int = 0
    total_applications: int = 0
    risky_applications: int = 0
    inactive_users: int = 0
    unmanaged_devices: int = 0
    overprivileged_assignments: int = 0
    conditional_access_policies: int = 0
    conditional_access_enabled_policies: int = 0
    conditional_access_coverage: float = 0.0
    naming_compliance: float = 0.0
    tagging_compliance: float = 0.0
    environment_mixing_vnets: int = 0
    failed_analyzers: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AnalysisResult:
    category: str
    score: float
    mode: AnalysisMode = "enhanced"
    findings: tuple[Finding, ...] = field(default_factory=tuple)
    headline: HeadlineMetrics = field(default_factory=HeadlineMetrics)
    detailed_metrics: dict[str, MetricValue] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "score": self.score,
            "mode": self.mode,
            "findings": [finding.to_dict() for finding in self.findings],
            "headline": self.headline.to_dict(),
            "detailed_metrics": dict(self.detailed_metrics),
        }


@dataclass(frozen=True)
class AssessmentResult:
    """Composite output of one orchestrated run."""

    assessment_type: str
    score: float
    findings: tuple[Finding, ...] = field(default_factory=tuple)
    headline: HeadlineMetrics = field(default_factory=HeadlineMetrics)
    detailed_metrics: dict[str, MetricValue] = field(default_factory=dict)
    components: tuple[AnalysisResult, ...] = field(default_factory=tuple)
    failed_categories: tuple[str, ...] = field(default_factory=tuple)

    @property
    def degraded(self) -> bool:
        return bool(self.failed_categories) or any(
            component.mode == "limited" for component in self.components
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "assessment_type": self.assessment_type,
            "score": self.score,
            "degraded": self.degraded,
            "failed_categories": list(self.failed_categories),
            "findings": [finding.to_dict() for finding in self.findings],
            "headline": self.headline.to_dict(),
            "detailed_metrics": dict(self.detailed_metrics),
            "components": [component.to_dict() for component in self.components],
        }


@dataclass(frozen=True)
class FilterExample:
    name: str
    type: str
    reason: str


@dataclass(frozen=True)
class FilteringStats:
    total: int
    analyzable: int
    filtered_out: int
    percentage: float
    reasons: dict[str, int] = field(default_factory=dict)
    examples: tuple[FilterExample, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "analyzable": self.analyzable,
            "filtered_out": self.filtered_out,
            "percentage": self.percentage,
            "reasons": dict(self.reasons),
            "examples": [asdict(example) for example in self.examples],
        }


@dataclass(frozen=True)
class DependencyEdge:
    source_id: str
    target_id: str
    relation_type: str
