"""
Enterprise application posture.

Limited mode only sees App Service resources in the inventory and checks
them for a managed identity. Enhanced mode reads app registrations and
service principals from the directory and flags expired credentials,
credential-less registrations and third-party principals holding
tenant-wide write permissions.
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
    MetricValue,
    ResourceDescriptor,
)
from govengine.modules.assessment.domain.ports import ServicePrincipalRecord
from govengine.modules.assessment.domain.scoring import (
    application_risk_base,
    finalize_score,
)

logger = structlog.get_logger()

CATEGORY = "enterprise_applications"
WEB_SITES_TYPE = "microsoft.web/sites"
REQUIRED_PERMISSIONS = "Application.Read.All, Directory.Read.All, Policy.Read.All"

HIGH_RISK_PERMISSIONS = (
    "Directory.ReadWrite.All",
    "Application.ReadWrite.All",
    "User.ReadWrite.All",
    "Group.ReadWrite.All",
    "RoleManagement.ReadWrite.Directory",
    "Mail.ReadWrite",
    "Files.ReadWrite.All",
    "Sites.FullControl.All",
)

MICROSOFT_FIRST_PARTY_NAMES = frozenset(
    name.lower()
    for name in (
        "Microsoft Graph",
        "Office 365 Exchange Online",
        "Office 365 SharePoint Online",
        "Windows Azure Active Directory",
        "Microsoft Teams Services",
        "Teams CMD Services and Data",
        "Microsoft Office",
        "Office 365 Management APIs",
        "Microsoft Azure CLI",
        "Azure PowerShell",
        "Microsoft Intune",
        "Microsoft Stream Portal",
        "Microsoft Forms",
        "Power BI Service",
        "Microsoft To-Do",
        "Yammer",
        "Microsoft Planner",
        "OneDrive",
        "Skype for Business Online",
        "Microsoft Azure Management",
        "Azure Storage",
        "Azure Key Vault",
        "Microsoft Azure Backup",
        "Azure DevOps",
        "Microsoft Defender for Cloud Apps",
        "Microsoft Security Graph",
        "Microsoft Authentication Broker",
        "Microsoft Azure Active Directory Connect",
        "Azure AD Identity Protection",
        "Microsoft Cloud App Security",
        "Microsoft Authenticator",
        "Visual Studio",
        "Azure Portal",
        "Microsoft Azure PowerShell",
        "Azure Resource Manager",
    )
)

MICROSOFT_FIRST_PARTY_APP_IDS = frozenset(
    {
        "00000003-0000-0000-c000-000000000000",  # Microsoft Graph
        "00000002-0000-0000-c000-000000000000",  # Azure AD Graph (legacy)
        "797f4846-ba00-4fd7-ba43-dac1f8f63013",  # Azure Service Management API
        "1950a258-227b-4e31-a9cf-717495945fc2",  # Azure PowerShell
        "04b07795-8ddb-461a-bbee-02f9e1bf7b46",  # Azure CLI
        "cf36b471-5b44-428c-9ce7-313bf84528de",
        "1fec8e78-bce4-4aaf-ab1b-5451cc387264",
        "cc15fd57-2c6c-4117-a88c-83b1d56b4bbe",
        "5e3ce6c0-2b1f-4285-8d4b-75ee78787346",
        "a3475900-ccec-4a69-98f5-a65cd5dc5306",
        "d3590ed6-52b3-4102-aeff-aad2292ab01c",
        "57fb890c-0dab-4253-a5e0-7188c88b2bb4",
        "89bee1f7-5e6e-4d8a-9f3d-ecd601259da7",
    }
)

MICROSOFT_OWNER_TENANTS = frozenset(
    {
        "f8cdef31-a31e-4b4a-93e4-5f571e91255a",  # Microsoft Services
        "72f988bf-86f1-41af-91ab-2d7cd011db47",  # Microsoft
    }
)


def is_microsoft_first_party(principal: ServicePrincipalRecord) -> bool:
    return (
        (principal.display_name or "").lower() in MICROSOFT_FIRST_PARTY_NAMES
        or principal.app_id in MICROSOFT_FIRST_PARTY_APP_IDS
        or (principal.app_owner_organization_id or "").lower() in MICROSOFT_OWNER_TENANTS
    )


def is_overprivileged(principal: ServicePrincipalRecord) -> bool:
    if is_microsoft_first_party(principal):
        return False
    risky = [permission.lower() for permission in HIGH_RISK_PERMISSIONS]
    return any(
        marker in (value or "").lower()
        for value in principal.permission_values
        for marker in risky
    )


def has_managed_identity(resource: ResourceDescriptor) -> bool:
    properties = resource.parsed_properties()
    return bool(properties) and properties.get("identity") is not None


class EnterpriseApplicationsAnalyzer:
    category = CATEGORY
    display_name = "Enterprise Application"

    async def probe(self, context: AnalysisContext) -> Strategy:
        return await probe_directory(
            context, lambda capabilities: capabilities.applications, CATEGORY
        )

    async def limited(self, context: AnalysisContext) -> AnalysisResult:
        app_services = [r for r in context.resources if WEB_SITES_TYPE in r.type_lower]
        function_apps = [r for r in app_services if "functionapp" in (r.kind or "").lower()]

        findings: list[Finding] = [
            identity_finding(
                CATEGORY,
                "AppServiceMissingManagedIdentity",
                resource.id,
                resource.name,
                "medium",
                "App Service does not appear to use managed identity for authentication",
                "Enable system-assigned or user-assigned managed identity to improve security",
            )
            for resource in app_services
            if not has_managed_identity(resource)
        ]
        # Only application-level findings count as risky; none are visible here.
        risky = sum(1 for finding in findings if "Application" in finding.finding_type)
        # Function apps are web sites too, so they are counted in both groups.
        total = len(app_services) + len(function_apps)

        findings.append(
            capability_finding(
                CATEGORY,
                "EnterpriseApplicationAnalysisLimited",
                "microsoft.graph.applications",
                "Enterprise Applications",
                "Complete enterprise application analysis requires Microsoft Graph API permissions",
                "Configure Microsoft Graph permissions to analyze app registrations, "
                "service principals, and OAuth consent grants",
                REQUIRED_PERMISSIONS,
            )
        )
        return self._result(findings, total, risky, "limited", len(context.resources))

    async def enhanced(self, context: AnalysisContext) -> AnalysisResult:
        directory = context.directory
        if directory is None:
            return await self.limited(context)

        context.cancellation.raise_if_cancelled()
        applications = await directory.list_applications(context.cancellation)
        context.cancellation.raise_if_cancelled()
        principals = await directory.list_service_principals(context.cancellation)

        expired = [app for app in applications if app.has_expired_credentials(context.now)]
        overprivileged = [principal for principal in principals if is_overprivileged(principal)]
        without_credentials = [app for app in applications if not app.credentials]

        findings: list[Finding] = []
        for app in expired:
            findings.append(
                identity_finding(
                    CATEGORY,
                    "ApplicationExpiredCredentials",
                    app.id,
                    app.display_name or "Unknown Application",
                    "high",
                    "Application has expired credentials which may cause service outages",
                    "Renew expired credentials and implement automated credential rotation",
                    app_id=app.app_id,
                )
            )
        for principal in overprivileged:
            findings.append(
                identity_finding(
                    CATEGORY,
                    "OverprivilegedServicePrincipal",
                    principal.id,
                    principal.display_name or "Unknown Service Principal",
                    "high",
                    "Service principal has excessive permissions that exceed its "
                    "operational requirements",
                    "Review and reduce permissions to follow principle of least privilege",
                    app_id=principal.app_id,
                )
            )
        for app in without_credentials:
            findings.append(
                identity_finding(
                    CATEGORY,
                    "ApplicationWithoutCredentials",
                    app.id,
                    app.display_name or "Unknown Application",
                    "medium",
                    "Application registration exists without any configured credentials",
                    "Review if application is still needed or configure appropriate credentials",
                    app_id=app.app_id,
                )
            )

        logger.info(
            "enterprise_applications_analyzed",
            applications=len(applications),
            service_principals=len(principals),
            expired=len(expired),
            overprivileged=len(overprivileged),
        )
        return self._result(
            findings,
            len(applications),
            len(expired) + len(overprivileged),
            "enhanced",
            len(context.resources),
            service_principals=len(principals),
            applications_without_credentials=len(without_credentials),
        )

    def _result(
        self,
        findings: Sequence[Finding],
        total: int,
        risky: int,
        mode: AnalysisMode,
        resources: int,
        **extra: int,
    ) -> AnalysisResult:
        metrics: dict[str, MetricValue] = {
            "enterprise_applications.total": total,
            "enterprise_applications.risky": risky,
        }
        for key, value in extra.items():
            metrics[f"enterprise_applications.{key}"] = value
        return AnalysisResult(
            category=CATEGORY,
            score=finalize_score(application_risk_base(total, risky), findings),
            mode=mode,
            findings=tuple(findings),
            headline=HeadlineMetrics(
                resources_analyzed=resources,
                total_applications=total,
                risky_applications=risky,
            ),
            detailed_metrics=metrics,
        )
