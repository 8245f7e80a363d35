from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from govengine.modules.assessment.domain.analyzers.base import (
    AnalysisContext,
    Strategy,
    probe_directory,
)
from govengine.modules.assessment.domain.analyzers.identity.common import (
    capability_finding,
    identity_finding,
)
from govengine.modules.assessment.domain.models import (
    AnalysisResult,
    Finding,
    HeadlineMetrics,
    ResourceDescriptor,
)
from govengine.modules.assessment.domain.ports import DirectoryRoleRecord
from govengine.modules.assessment.domain.scoring import finalize_score, rbac_base
from govengine.shared.core.config import get_settings

logger = structlog.get_logger()

CATEGORY = "resource_iam_rbac"
REQUIRED_PERMISSIONS = (
    "Microsoft.Authorization/roleAssignments/read, Microsoft.Authorization/roleDefinitions/read"
)
MAX_PRIVILEGED_USER_FINDINGS = 5

GLOBAL_ADMINISTRATOR = "62e90394-69f5-4237-9190-012177145e10"
SECURITY_ADMINISTRATOR = "194ae4cb-b126-40b2-bd5b-6091b380977d"
SHAREPOINT_ADMINISTRATOR = "f28a1f50-f6e7-4571-818b-6a12f2af6b6c"
HELPDESK_ADMINISTRATOR = "729827e3-9c14-49f7-bb1b-9608f156bbb8"
PASSWORD_ADMINISTRATOR = "966707d0-3269-4727-9be2-8c3a10f19b9d"
PRIVILEGED_AUTHENTICATION_ADMINISTRATOR = "7be44c8a-adaf-4e2a-84d6-ab2649e08a13"

PRIVILEGED_ROLE_TEMPLATES = frozenset(
    {
        GLOBAL_ADMINISTRATOR,
        SECURITY_ADMINISTRATOR,
        SHAREPOINT_ADMINISTRATOR,
        HELPDESK_ADMINISTRATOR,
        PASSWORD_ADMINISTRATOR,
        PRIVILEGED_AUTHENTICATION_ADMINISTRATOR,
    }
)
# Holding more than one of these makes a user overprivileged.
HIGH_PRIVILEGE_ROLE_TEMPLATES = frozenset(
    {
        GLOBAL_ADMINISTRATOR,
        SECURITY_ADMINISTRATOR,
        SHAREPOINT_ADMINISTRATOR,
        PRIVILEGED_AUTHENTICATION_ADMINISTRATOR,
    }
)


@dataclass(frozen=True)
class RoleAssignmentReport:
    total_assignments: int = 0
    privileged_assignments: int = 0
    overprivileged_users: tuple[str, ...] = ()
    unused_roles: tuple[str, ...] = ()
    privileged_users: tuple[tuple[str, str], ...] = field(default_factory=tuple)


def analyze_role_assignments(roles: Sequence[DirectoryRoleRecord]) -> RoleAssignmentReport:
    """Count assignments and find users holding several high-privilege directory roles."""
    high_privilege_roles_by_user: dict[str, int] = defaultdict(int)
    names: dict[str, str] = {}
    privileged_users: dict[str, str] = {}
    total = 0
    privileged = 0
    unused: list[str] = []

    for role in roles:
        members = role.member_ids
        total += len(members)
        if not members:
            unused.append(role.display_name or "Unknown Role")
        for index, member_id in enumerate(members):
            label = role.member_names[index] if index < len(role.member_names) else member_id
            names.setdefault(member_id, label or "Unknown")
            if role.role_template_id in PRIVILEGED_ROLE_TEMPLATES:
                privileged_users.setdefault(member_id, names[member_id])
            if role.role_template_id in HIGH_PRIVILEGE_ROLE_TEMPLATES:
                high_privilege_roles_by_user[member_id] += 1
        if role.role_template_id in HIGH_PRIVILEGE_ROLE_TEMPLATES:
            privileged += len(members)

    overprivileged = tuple(
        names[member_id]
        for member_id, count in high_privilege_roles_by_user.items()
        if count > 1
    )
    return RoleAssignmentReport(
        total_assignments=total,
        privileged_assignments=privileged,
        overprivileged_users=overprivileged,
        unused_roles=tuple(unused),
        privileged_users=tuple(privileged_users.items()),
    )


def resource_group_complexity(
    resources: Sequence[ResourceDescriptor], threshold: int
) -> list[Finding]:
    types_by_group: dict[str, set[str]] = defaultdict(set)
    for resource in resources:
        types_by_group[resource.resource_group or "Unknown"].add(resource.type_lower)

    findings: list[Finding] = []
    for group, types in types_by_group.items():
        if len(types) <= threshold:
            continue
        findings.append(
            identity_finding(
                CATEGORY,
                "ResourceGroupComplexity",
                group,
                group,
                "medium",
                f"Resource group '{group}' contains {len(types)} different resource types, "
                "which may indicate broad permissions",
                "Review resource group organization and consider separating resources by "
                "access requirements",
                resource_types=len(types),
            )
        )
    return findings


class ResourceIamRbacAnalyzer:
    category = CATEGORY
    display_name = "RBAC"

    def __init__(self, complexity_threshold: int | None = None) -> None:
        self._complexity_threshold = (
            complexity_threshold or get_settings().RESOURCE_GROUP_COMPLEXITY_THRESHOLD
        )

    async def probe(self, context: AnalysisContext) -> Strategy:
        return await probe_directory(context, lambda capabilities: capabilities.roles, CATEGORY)

    async def limited(self, context: AnalysisContext) -> AnalysisResult:
        findings = resource_group_complexity(context.resources, self._complexity_threshold)
        overprivileged = sum(
            1
            for finding in findings
            if "Overprivileged" in finding.finding_type or "Complexity" in finding.finding_type
        )
        findings.append(
            capability_finding(
                CATEGORY,
                "RbacAnalysisLimited",
                "azure.rbac",
                "RBAC Analysis",
                "Comprehensive RBAC analysis requires Azure Resource Manager permissions for "
                "authorization data",
                "Grant authorization read permissions to analyze role assignments and access "
                "patterns",
                REQUIRED_PERMISSIONS,
            )
        )
        return AnalysisResult(
            category=CATEGORY,
            score=finalize_score(rbac_base(overprivileged), findings),
            mode="limited",
            findings=tuple(findings),
            headline=HeadlineMetrics(
                resources_analyzed=len(context.resources),
                overprivileged_assignments=overprivileged,
            ),
            detailed_metrics={"resource_iam_rbac.complex_resource_groups": overprivileged},
        )

    async def enhanced(self, context: AnalysisContext) -> AnalysisResult:
        directory = context.directory
        if directory is None:
            return await self.limited(context)

        context.cancellation.raise_if_cancelled()
        roles = await directory.list_directory_roles(context.cancellation)
        report = analyze_role_assignments(roles)

        findings = resource_group_complexity(context.resources, self._complexity_threshold)
        overprivileged = 0
        if report.privileged_users:
            overprivileged = len(report.overprivileged_users)
            for user_id, user_name in report.privileged_users[:MAX_PRIVILEGED_USER_FINDINGS]:
                findings.append(
                    identity_finding(
                        CATEGORY,
                        "PrivilegedUserReview",
                        user_id,
                        user_name or "Unknown User",
                        "medium",
                        "User has privileged directory roles that require regular review",
                        "Implement regular access reviews for privileged users and consider "
                        "using PIM",
                    )
                )
            if report.total_assignments > 0:
                findings.append(
                    identity_finding(
                        CATEGORY,
                        "RoleAssignmentSummary",
                        "roles.summary",
                        "Role Assignment Summary",
                        "low",
                        f"Found {report.total_assignments} role assignments with "
                        f"{report.privileged_assignments} privileged assignments",
                        "Regularly review role assignments and implement principle of least "
                        "privilege",
                        overprivileged_users=list(report.overprivileged_users),
                    )
                )
        else:
            findings.append(
                capability_finding(
                    CATEGORY,
                    "RbacAnalysisLimited",
                    "azure.rbac",
                    "RBAC Analysis",
                    "Azure AD role analysis requires additional Microsoft Graph permissions",
                    "Grant Microsoft Graph permissions to analyze directory roles and "
                    "privileged access",
                    "RoleManagement.Read.Directory, Directory.Read.All",
                )
            )

        logger.info(
            "rbac_analyzed",
            roles=len(roles),
            total_assignments=report.total_assignments,
            privileged_users=len(report.privileged_users),
            overprivileged_users=overprivileged,
        )
        return AnalysisResult(
            category=CATEGORY,
            score=finalize_score(rbac_base(overprivileged), findings),
            mode="enhanced",
            findings=tuple(findings),
            headline=HeadlineMetrics(
                resources_analyzed=len(context.resources),
                overprivileged_assignments=overprivileged,
            ),
            detailed_metrics={
                "resource_iam_rbac.directory_roles": len(roles),
                "resource_iam_rbac.total_assignments": report.total_assignments,
                "resource_iam_rbac.privileged_assignments": report.privileged_assignments,
                "resource_iam_rbac.privileged_users": len(report.privileged_users),
                "resource_iam_rbac.unused_roles": ", ".join(report.unused_roles),
            },
        )
