from __future__ import annotations

from datetime import datetime
from typing import Any

from govengine.modules.assessment.domain.models import Finding, Severity

NO_SIGN_IN_DAYS = 999


def identity_finding(
    category: str,
    finding_type: str,
    resource_id: str,
    resource_name: str,
    severity: Severity,
    issue: str,
    recommendation: str,
    **metadata: Any,
) -> Finding:
    return Finding(
        category=category,
        resource_id=resource_id,
        resource_name=resource_name,
        severity=severity,
        issue=issue,
        recommendation=recommendation,
        finding_type=finding_type,
        metadata=metadata,
    )


def capability_finding(
    category: str,
    finding_type: str,
    resource_id: str,
    resource_name: str,
    issue: str,
    recommendation: str,
    required_permissions: str,
) -> Finding:
    """Medium finding naming the missing data source and the permissions that unlock it."""
    return identity_finding(
        category,
        finding_type,
        resource_id,
        resource_name,
        "medium",
        issue,
        recommendation,
        RequiredPermissions=required_permissions,
    )


def days_since(moment: datetime | None, now: datetime) -> int:
    if moment is None:
        return NO_SIGN_IN_DAYS
    return (now - moment).days
