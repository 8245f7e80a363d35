"""
Analyzer contract and the isolation boundary the orchestrator runs it through.

Every analyzer exposes two separately callable strategies. ``probe`` decides
which one applies for this invocation; ``run_isolated`` performs
probe -> select -> run under a timeout and turns any failure into a
zero-score ``failed`` result so one analyzer can never sink the run.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Protocol

import structlog

from govengine.core.exceptions import (
    AdapterError,
    AssessmentCancelledError,
    CapabilityUnavailableError,
)
from govengine.modules.assessment.domain.cancellation import CancellationToken
from govengine.modules.assessment.domain.models import (
    AnalysisResult,
    Finding,
    HeadlineMetrics,
    ResourceDescriptor,
    Severity,
)
from govengine.modules.assessment.domain.naming_scheme import NamingScheme
from govengine.modules.assessment.domain.ports import (
    DirectoryCapabilities,
    DirectoryDataProvider,
)

logger = structlog.get_logger()

Strategy = Literal["limited", "enhanced"]


class AssessmentType(str, Enum):
    NAMING_CONVENTION = "naming_convention"
    TAGGING = "tagging"
    GOVERNANCE_FULL = "governance_full"
    ENTERPRISE_APPLICATIONS = "enterprise_applications"
    STALE_USERS_DEVICES = "stale_users_devices"
    RESOURCE_IAM_RBAC = "resource_iam_rbac"
    CONDITIONAL_ACCESS = "conditional_access"
    IDENTITY_FULL = "identity_full"


@dataclass(frozen=True)
class AnalysisContext:
    """Read-only inputs shared by every analyzer of one run."""

    assessment_id: str
    resources: tuple[ResourceDescriptor, ...]
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    naming_scheme: NamingScheme | None = None
    directory: DirectoryDataProvider | None = None
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class CategoryAnalyzer(Protocol):
    category: str
    display_name: str

    async def probe(self, context: AnalysisContext) -> Strategy:
        """Check data-source capability once and pick a strategy."""

    async def limited(self, context: AnalysisContext) -> AnalysisResult:
        """Best-effort analysis from the resource inventory only."""

    async def enhanced(self, context: AnalysisContext) -> AnalysisResult:
        """Full analysis using every data source the probe reported."""


def select_strategy(
    analyzer: CategoryAnalyzer, strategy: Strategy
) -> Callable[[AnalysisContext], Awaitable[AnalysisResult]]:
    return analyzer.enhanced if strategy == "enhanced" else analyzer.limited


async def probe_directory(
    context: AnalysisContext,
    requirement: Callable[[DirectoryCapabilities], bool],
    category: str,
) -> Strategy:
    """Shared probe for directory-backed analyzers. A failing probe means limited."""
    if context.directory is None:
        return "limited"
    context.cancellation.raise_if_cancelled()
    try:
        capabilities = await context.directory.probe()
    except (AdapterError, CapabilityUnavailableError) as exc:
        logger.warning("directory_probe_failed", category=category, error=str(exc))
        return "limited"
    if capabilities.available and requirement(capabilities):
        return "enhanced"
    logger.info(
        "directory_capability_unavailable",
        category=category,
        reason=capabilities.reason,
    )
    return "limited"


def _is_data_source_error(exc: BaseException) -> bool:
    return isinstance(
        exc,
        (AdapterError, CapabilityUnavailableError, AssessmentCancelledError, asyncio.TimeoutError),
    )


def error_finding(analyzer: CategoryAnalyzer, exc: BaseException) -> Finding:
    severity: Severity = "medium" if _is_data_source_error(exc) else "high"
    prefix = "".join(part.title() for part in analyzer.category.split("_"))
    if isinstance(exc, asyncio.TimeoutError):
        detail = "analysis timed out"
    else:
        detail = str(exc) or type(exc).__name__
    return Finding(
        category=analyzer.category,
        resource_id=f"{analyzer.category}.error",
        resource_name=f"{analyzer.display_name} Analysis",
        severity=severity,
        issue=f"Failed to analyze {analyzer.display_name.lower()}: {detail}",
        recommendation="Review data source permissions and retry the analysis",
        finding_type=f"{prefix}AnalysisError",
        metadata={"error_type": type(exc).__name__},
    )


def failed_result(analyzer: CategoryAnalyzer, exc: BaseException) -> AnalysisResult:
    return AnalysisResult(
        category=analyzer.category,
        score=0.0,
        mode="failed",
        findings=(error_finding(analyzer, exc),),
        headline=HeadlineMetrics(failed_analyzers=1),
        detailed_metrics={},
    )


async def run_isolated(
    analyzer: CategoryAnalyzer,
    context: AnalysisContext,
    timeout_seconds: float,
) -> AnalysisResult:
    """Probe, select and run one analyzer. Never raises."""

    async def _run() -> AnalysisResult:
        strategy = await analyzer.probe(context)
        context.cancellation.raise_if_cancelled()
        return await select_strategy(analyzer, strategy)(context)

    try:
        result = await asyncio.wait_for(_run(), timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:
        logger.error(
            "assessment_analyzer_timeout",
            category=analyzer.category,
            timeout_seconds=timeout_seconds,
        )
        return failed_result(analyzer, exc)
    except Exception as exc:
        logger.error(
            "assessment_analyzer_failed",
            category=analyzer.category,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return failed_result(analyzer, exc)

    logger.info(
        "assessment_analyzer_completed",
        category=analyzer.category,
        mode=result.mode,
        score=result.score,
        findings=len(result.findings),
    )
    return result
