from __future__ import annotations

from datetime import datetime, timedelta

import structlog

from govengine.modules.assessment.domain.analyzers.base import (
    AnalysisContext,
    Strategy,
    probe_directory,
)
from govengine.modules.assessment.domain.analyzers.identity.common import (
    capability_finding,
    days_since,
    identity_finding,
)
from govengine.modules.assessment.domain.models import (
    AnalysisResult,
    Finding,
    HeadlineMetrics,
)
from govengine.modules.assessment.domain.ports import UserRecord
from govengine.modules.assessment.domain.scoring import finalize_score, user_device_base
from govengine.shared.core.config import get_settings

logger = structlog.get_logger()

CATEGORY = "stale_users_devices"
VM_TYPE = "microsoft.compute/virtualmachines"
REQUIRED_PERMISSIONS = "User.Read.All, Device.Read.All, DeviceManagementManagedDevices.Read.All"


def is_inactive(user: UserRecord, now: datetime, inactive_days: int) -> bool:
    if not user.account_enabled:
        return False
    return user.last_sign_in is None or user.last_sign_in < now - timedelta(days=inactive_days)


class StaleUsersDevicesAnalyzer:
    """Inactive accounts and non-compliant devices, or VM identity hygiene when limited."""

    category = CATEGORY
    display_name = "User and Device"

    def __init__(
        self,
        inactive_days: int | None = None,
        high_severity_days: int | None = None,
        max_entity_findings: int | None = None,
    ) -> None:
        settings = get_settings()
        self._inactive_days = inactive_days or settings.INACTIVE_USER_DAYS
        self._high_severity_days = high_severity_days or settings.STALE_USER_HIGH_SEVERITY_DAYS
        self._max_findings = max_entity_findings or settings.MAX_ENTITY_FINDINGS

    async def probe(self, context: AnalysisContext) -> Strategy:
        return await probe_directory(
            context, lambda capabilities: capabilities.users and capabilities.devices, CATEGORY
        )

    async def limited(self, context: AnalysisContext) -> AnalysisResult:
        findings: list[Finding] = []
        for resource in context.resources:
            if VM_TYPE not in resource.type_lower:
                continue
            properties = resource.parsed_properties() or {}
            if properties.get("identity") is None:
                findings.append(
                    identity_finding(
                        CATEGORY,
                        "VirtualMachineMissingManagedIdentity",
                        resource.id,
                        resource.name,
                        "medium",
                        "Virtual machine does not appear to use managed identity",
                        "Enable system-assigned managed identity to eliminate credential management",
                    )
                )
        vm_issues = len(findings)

        findings.append(
            capability_finding(
                CATEGORY,
                "UserDeviceAnalysisLimited",
                "microsoft.graph.users",
                "User and Device Analysis",
                "Comprehensive user and device analysis requires Microsoft Graph and Intune "
                "permissions",
                "Configure Microsoft Graph permissions to analyze user accounts, device "
                "compliance, and lifecycle management",
                REQUIRED_PERMISSIONS,
            )
        )
        return AnalysisResult(
            category=CATEGORY,
            score=finalize_score(user_device_base(vm_issues), findings),
            mode="limited",
            findings=tuple(findings),
            headline=HeadlineMetrics(
                resources_analyzed=len(context.resources), inactive_users=vm_issues
            ),
            detailed_metrics={"stale_users_devices.vms_without_identity": vm_issues},
        )

    async def enhanced(self, context: AnalysisContext) -> AnalysisResult:
        directory = context.directory
        if directory is None:
            return await self.limited(context)

        context.cancellation.raise_if_cancelled()
        users = await directory.list_users(context.cancellation)
        context.cancellation.raise_if_cancelled()
        devices = await directory.list_devices(context.cancellation)

        inactive = [
            user for user in users if is_inactive(user, context.now, self._inactive_days)
        ]
        non_compliant = [device for device in devices if device.is_non_compliant]

        findings: list[Finding] = []
        for user in inactive[: self._max_findings]:
            days = days_since(user.last_sign_in, context.now)
            findings.append(
                identity_finding(
                    CATEGORY,
                    "InactiveUser",
                    user.id,
                    user.label,
                    "high" if days > self._high_severity_days else "medium",
                    f"User has not signed in for {days} days",
                    "Review if user account is still needed or disable/remove inactive accounts",
                    days_since_sign_in=days,
                )
            )
        for device in non_compliant[: self._max_findings]:
            findings.append(
                identity_finding(
                    CATEGORY,
                    "NonCompliantDevice",
                    device.id,
                    device.display_name or "Unknown Device",
                    "medium",
                    "Device does not meet compliance policies",
                    "Update device to meet compliance requirements or restrict access",
                    operating_system=device.operating_system,
                )
            )
        if len(inactive) > self._max_findings:
            findings.append(
                identity_finding(
                    CATEGORY,
                    "HighInactiveUserCount",
                    "users.inactive.summary",
                    "Inactive User Summary",
                    "medium",
                    f"Found {len(inactive)} inactive users "
                    f"({self._inactive_days}+ days without sign-in)",
                    "Implement regular user lifecycle review process and automated cleanup "
                    "policies",
                )
            )

        logger.info(
            "stale_users_devices_analyzed",
            users=len(users),
            devices=len(devices),
            inactive_users=len(inactive),
            non_compliant_devices=len(non_compliant),
        )
        return AnalysisResult(
            category=CATEGORY,
            score=finalize_score(user_device_base(len(inactive) + len(non_compliant)), findings),
            mode="enhanced",
            findings=tuple(findings),
            headline=HeadlineMetrics(
                resources_analyzed=len(context.resources),
                inactive_users=len(inactive),
                unmanaged_devices=len(non_compliant),
            ),
            detailed_metrics={
                "stale_users_devices.total_users": len(users),
                "stale_users_devices.total_devices": len(devices),
                "stale_users_devices.inactive_users": len(inactive),
                "stale_users_devices.non_compliant_devices": len(non_compliant),
            },
        )
