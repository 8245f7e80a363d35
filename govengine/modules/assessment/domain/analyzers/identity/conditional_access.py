"""
Conditional Access review.

Policy coverage is approximated from the enabled users: when an enabled
MFA policy targets "All" users everyone is covered, otherwise a sample of
enabled users is reported as uncovered. Report-only policies never count
as enforcement but are called out in the gap messages.
"""

from __future__ import annotations

from collections.abc import Sequence

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
    AnalysisMode,
    AnalysisResult,
    Finding,
    HeadlineMetrics,
)
from govengine.modules.assessment.domain.ports import (
    ConditionalAccessPolicyRecord,
    UserRecord,
)
from govengine.modules.assessment.domain.scoring import (
    conditional_access_base,
    finalize_score,
)

logger = structlog.get_logger()

CATEGORY = "conditional_access"
REPORT_ONLY = "enabledForReportingButNotEnforced"
REQUIRED_PERMISSIONS = "Policy.Read.All, Application.Read.All, Directory.Read.All"
UNCOVERED_USER_SAMPLE = 10


def users_without_mfa(
    policies: Sequence[ConditionalAccessPolicyRecord], users: Sequence[UserRecord]
) -> list[UserRecord]:
    enabled_users = [user for user in users if user.account_enabled]
    mfa_policies = [
        policy for policy in policies if policy.state == "enabled" and policy.requires_mfa
    ]
    if any(policy.covers_all_users for policy in mfa_policies):
        return []
    if mfa_policies:
        return enabled_users[:UNCOVERED_USER_SAMPLE]
    return enabled_users


def policy_gaps(policies: Sequence[ConditionalAccessPolicyRecord]) -> list[str]:
    enabled = [policy for policy in policies if policy.state == "enabled"]
    report_only = [policy for policy in policies if policy.state == REPORT_ONLY]

    if not enabled:
        if report_only:
            return [
                f"Found {len(report_only)} policies in Report-only mode but no actively "
                "enforced policies"
            ]
        return ["No enabled Conditional Access policies found"]

    gaps: list[str] = []
    if not any(policy.requires_mfa for policy in enabled):
        staged = [policy for policy in report_only if policy.requires_mfa]
        gaps.append(
            f"MFA policies exist but are in Report-only mode ({len(staged)} policies)"
            if staged
            else "No policies requiring MFA found"
        )
    if not any(policy.requires_compliant_device for policy in enabled):
        staged = [policy for policy in report_only if policy.requires_compliant_device]
        gaps.append(
            f"Device compliance policies exist but are in Report-only mode ({len(staged)} policies)"
            if staged
            else "No policies requiring compliant devices found"
        )
    if not any(policy.has_locations for policy in enabled):
        staged = [policy for policy in report_only if policy.has_locations]
        gaps.append(
            "Location-based policies exist but are in Report-only mode: "
            + ", ".join(policy.display_name for policy in staged)
            if staged
            else "No location-based policies found"
        )
    return gaps


def _limited_finding() -> Finding:
    return capability_finding(
        CATEGORY,
        "ConditionalAccessAnalysisLimited",
        "conditional.access",
        "Conditional Access Analysis",
        "Conditional Access analysis requires Microsoft Graph API permissions for "
        "comprehensive review",
        "Grant Microsoft Graph permissions to analyze Conditional Access policies, "
        "compliance, and coverage",
        REQUIRED_PERMISSIONS,
    )


class ConditionalAccessAnalyzer:
    category = CATEGORY
    display_name = "Conditional Access"

    async def probe(self, context: AnalysisContext) -> Strategy:
        return await probe_directory(
            context,
            lambda capabilities: capabilities.conditional_access and capabilities.users,
            CATEGORY,
        )

    async def limited(self, context: AnalysisContext) -> AnalysisResult:
        findings = [
            _limited_finding(),
            identity_finding(
                CATEGORY,
                "ConditionalAccessBestPractices",
                "ca.bestpractices",
                "Conditional Access Best Practices",
                "medium",
                "Ensure Conditional Access policies are configured for all critical "
                "applications and privileged users",
                "Implement MFA requirements, device compliance checks, location-based "
                "controls, and risk-based policies",
            ),
        ]
        return self._result(findings, [], 0, 0.0, "limited", len(context.resources))

    async def enhanced(self, context: AnalysisContext) -> AnalysisResult:
        directory = context.directory
        if directory is None:
            return await self.limited(context)

        context.cancellation.raise_if_cancelled()
        policies = await directory.list_conditional_access_policies(context.cancellation)
        context.cancellation.raise_if_cancelled()
        users = await directory.list_users(context.cancellation)

        if not policies and not users:
            return self._result(
                [_limited_finding()], policies, 0, 0.0, "enhanced", len(context.resources)
            )

        uncovered = users_without_mfa(policies, users)
        coverage = (len(users) - len(uncovered)) / len(users) * 100 if users else 0.0

        findings: list[Finding] = [
            identity_finding(
                CATEGORY,
                "DisabledConditionalAccessPolicy",
                policy.id,
                policy.display_name or "Unknown Policy",
                "medium",
                "Conditional Access policy is disabled and not providing protection",
                "Review and enable policy or remove if no longer needed",
            )
            for policy in policies
            if policy.state == "disabled"
        ]
        if uncovered:
            findings.append(
                identity_finding(
                    CATEGORY,
                    "UsersWithoutMfaCoverage",
                    "ca.mfa.coverage",
                    "MFA Coverage Gap",
                    "high",
                    f"{len(uncovered)} users are not covered by MFA requirements",
                    "Implement Conditional Access policies to require MFA for all users",
                    sample_users=[user.label for user in uncovered],
                )
            )
        gaps = policy_gaps(policies)
        for gap in gaps:
            findings.append(
                identity_finding(
                    CATEGORY,
                    "ConditionalAccessGap",
                    "ca.gap",
                    "Conditional Access Gap",
                    "medium",
                    gap,
                    "Review and address Conditional Access policy gaps",
                )
            )

        logger.info(
            "conditional_access_analyzed",
            policies=len(policies),
            users=len(users),
            uncovered_users=len(uncovered),
            gaps=len(gaps),
        )
        return self._result(
            findings,
            policies,
            len(users),
            coverage,
            "enhanced",
            len(context.resources),
        )

    def _result(
        self,
        findings: Sequence[Finding],
        policies: Sequence[ConditionalAccessPolicyRecord],
        users: int,
        coverage: float,
        mode: AnalysisMode,
        resources: int,
    ) -> AnalysisResult:
        enabled = sum(1 for policy in policies if policy.state == "enabled")
        report_only = sum(1 for policy in policies if policy.state == REPORT_ONLY)
        return AnalysisResult(
            category=CATEGORY,
            score=finalize_score(conditional_access_base(len(policies), coverage), findings),
            mode=mode,
            findings=tuple(findings),
            headline=HeadlineMetrics(
                resources_analyzed=resources,
                conditional_access_policies=len(policies),
                conditional_access_enabled_policies=enabled,
                conditional_access_coverage=round(coverage, 2),
            ),
            detailed_metrics={
                "conditional_access.total_policies": len(policies),
                "conditional_access.enabled_policies": enabled,
                "conditional_access.report_only_policies": report_only,
                "conditional_access.users_analyzed": users,
                "conditional_access.coverage": round(coverage, 2),
            },
        )
