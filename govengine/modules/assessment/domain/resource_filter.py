"""
System resource filter.

Drops records whose names are generated by the platform and cannot be renamed,
so naming and tagging rules are only applied to resources a tenant controls.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from govengine.modules.assessment.domain.models import (
    FilterExample,
    FilteringStats,
    ResourceDescriptor,
)
from govengine.shared.core.config import get_settings

logger = structlog.get_logger()

REASON_SYSTEM_TYPE = "System-generated resource type"
REASON_SYSTEM_NAME = "System-generated name pattern"
REASON_SYSTEM_DATABASE = "System database"
REASON_NAME_TOO_SHORT = "Name too short"
REASON_NUMERIC_NAME = "Numeric-only name"

SYSTEM_RESOURCE_TYPES: frozenset[str] = frozenset(
    {
        "microsoft.managedidentity/userassignedidentities",
        "microsoft.storage/storageaccounts/blobservices",
        "microsoft.storage/storageaccounts/fileservices",
        "microsoft.storage/storageaccounts/queueservices",
        "microsoft.storage/storageaccounts/tableservices",
        "microsoft.authorization/roleassignments",
        "microsoft.authorization/roledefinitions",
        "microsoft.authorization/policyassignments",
        "microsoft.authorization/policydefinitions",
        "microsoft.authorization/locks",
        "microsoft.resources/deployments",
        "microsoft.resources/providers",
        "microsoft.insights/diagnosticsettings",
        "microsoft.insights/alertrules",
        "microsoft.alertsmanagement/smartdetectoralertrules",
        "microsoft.advisor/recommendations",
        "microsoft.security/assessments",
        "microsoft.security/pricings",
        "microsoft.security/settings",
    }
)

_UUID = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"

SYSTEM_NAME_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        rf"^DefaultWorkspace-{_UUID}.*$",
        r"^Application Insights Smart Detection$",
        rf"^{_UUID}$",
        r"-id-[0-9a-f]{4,}$",
        r"^DefaultBackupVault-.*$",
        r"^NetworkWatcher_.*$",
        r"^microsoft\.insights-.*$",
        rf"^{_UUID}.*Assessment$",
        r"^Microsoft\.Classic.*$",
    )
)

SYSTEM_DATABASE_NAMES: frozenset[str] = frozenset(
    {"master", "tempdb", "model", "msdb", "azure_maintenance", "azure_sys"}
)


@dataclass(frozen=True)
class FilterOutcome:
    resources: tuple[ResourceDescriptor, ...]
    stats: FilteringStats


def exclusion_reason(resource: ResourceDescriptor) -> str | None:
    """Return why a resource is excluded, or None when it is analyzable."""
    name = resource.name or ""
    resource_type = resource.type_lower

    if resource_type in SYSTEM_RESOURCE_TYPES:
        return REASON_SYSTEM_TYPE
    if any(pattern.search(name) for pattern in SYSTEM_NAME_PATTERNS):
        return REASON_SYSTEM_NAME
    if "databases" in resource_type and name.lower() in SYSTEM_DATABASE_NAMES:
        return REASON_SYSTEM_DATABASE
    if len(name) < 2:
        return REASON_NAME_TOO_SHORT
    if name.isdigit():
        return REASON_NUMERIC_NAME
    return None


def filter_resources(resources: Iterable[ResourceDescriptor]) -> FilterOutcome:
    """
    Split an inventory snapshot into analyzable resources and filtering stats.

    Pure and idempotent. A record that cannot be inspected is kept.
    """
    settings = get_settings()
    snapshot = tuple(resources)
    kept: list[ResourceDescriptor] = []
    reasons: Counter[str] = Counter()
    examples: list[FilterExample] = []

    for resource in snapshot:
        try:
            reason = exclusion_reason(resource)
        except Exception as exc:
            logger.warning(
                "resource_filter_inspection_failed",
                resource_id=getattr(resource, "id", None),
                error=str(exc),
            )
            reason = None

        if reason is None:
            kept.append(resource)
            continue

        reasons[reason] += 1
        if len(examples) < settings.MAX_FILTER_EXAMPLES:
            examples.append(
                FilterExample(name=resource.name, type=resource.type, reason=reason)
            )

    total = len(snapshot)
    filtered_out = total - len(kept)
    stats = FilteringStats(
        total=total,
        analyzable=len(kept),
        filtered_out=filtered_out,
        percentage=round(filtered_out / total * 100, 2) if total else 0.0,
        reasons=dict(reasons),
        examples=tuple(examples),
    )

    logger.info(
        "resource_filter_completed",
        total=total,
        analyzable=stats.analyzable,
        filtered_out=filtered_out,
    )
    return FilterOutcome(resources=tuple(kept), stats=stats)
