"""
Assessment Service

Entry point for one assessment run:
- validates the tenant naming scheme before anything else happens
- fetches the resource inventory
- filters system resources out of the snapshot
- runs the analyzers registered for the assessment type
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from govengine.modules.assessment.domain.analyzers.base import (
    AnalysisContext,
    AssessmentType,
)
from govengine.modules.assessment.domain.analyzers.registry import get_plan
from govengine.modules.assessment.domain.cancellation import CancellationToken
from govengine.modules.assessment.domain.models import AssessmentResult, FilteringStats
from govengine.modules.assessment.domain.naming_scheme import load_naming_scheme
from govengine.modules.assessment.domain.orchestrator import AssessmentOrchestrator
from govengine.modules.assessment.domain.ports import (
    DirectoryDataProvider,
    ResourceInventoryProvider,
)
from govengine.modules.assessment.domain.resource_filter import filter_resources

logger = structlog.get_logger()


@dataclass(frozen=True)
class AssessmentRequest:
    assessment_type: AssessmentType | str
    subscription_ids: tuple[str, ...] = ()
    naming_scheme: Mapping[str, Any] | str | None = None
    assessment_id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(frozen=True)
class AssessmentRun:
    assessment_id: str
    assessment_type: str
    result: AssessmentResult
    filtering: FilteringStats

    def to_dict(self) -> dict[str, Any]:
        return {
            "assessment_id": self.assessment_id,
            "assessment_type": self.assessment_type,
            "result": self.result.to_dict(),
            "filtering": self.filtering.to_dict(),
        }


class AssessmentService:
    def __init__(
        self,
        inventory: ResourceInventoryProvider,
        directory: DirectoryDataProvider | None = None,
        orchestrator: AssessmentOrchestrator | None = None,
    ) -> None:
        self._inventory = inventory
        self._directory = directory
        self._orchestrator = orchestrator or AssessmentOrchestrator()

    async def run(
        self,
        request: AssessmentRequest,
        cancellation: CancellationToken | None = None,
        now: datetime | None = None,
    ) -> AssessmentRun:
        """
        Run one assessment.

        Raises ConfigurationError for an unknown type or an invalid naming
        scheme, and AdapterError when the inventory cannot be read. Analyzer
        failures never raise; they show up as failed components.
        """
        plan = get_plan(request.assessment_type)
        assessment_type = plan.assessment_type.value
        token = cancellation or CancellationToken()

        with structlog.contextvars.bound_contextvars(
            assessment_id=request.assessment_id,
            assessment_type=assessment_type,
        ):
            started = time.perf_counter()
            scheme = load_naming_scheme(request.naming_scheme)

            token.raise_if_cancelled()
            inventory = await self._inventory.list_resources(request.subscription_ids, token)
            outcome = filter_resources(inventory)
            logger.info(
                "assessment_inventory_ready",
                subscriptions=len(request.subscription_ids),
                total=outcome.stats.total,
                analyzable=outcome.stats.analyzable,
                filtered_out=outcome.stats.filtered_out,
                naming_scheme=scheme is not None,
            )

            context = AnalysisContext(
                assessment_id=request.assessment_id,
                resources=outcome.resources,
                cancellation=token,
                naming_scheme=scheme,
                directory=self._directory,
                now=now or datetime.now(timezone.utc),
            )
            result = await self._orchestrator.run(plan.assessment_type, context)

            logger.info(
                "assessment_run_completed",
                score=result.score,
                duration_seconds=round(time.perf_counter() - started, 3),
            )
            return AssessmentRun(
                assessment_id=request.assessment_id,
                assessment_type=assessment_type,
                result=result,
                filtering=outcome.stats,
            )


async def run_assessment(
    inventory: ResourceInventoryProvider,
    assessment_type: AssessmentType | str,
    subscription_ids: Sequence[str] = (),
    *,
    directory: DirectoryDataProvider | None = None,
    naming_scheme: Mapping[str, Any] | str | None = None,
) -> AssessmentRun:
    """Convenience wrapper for one-off runs."""
    service = AssessmentService(inventory, directory)
    return await service.run(
        AssessmentRequest(
            assessment_type=assessment_type,
            subscription_ids=tuple(subscription_ids),
            naming_scheme=naming_scheme,
        )
    )
