"""
Sub-analyzer orchestration.

Analyzers run concurrently over one immutable context. Each runs behind
``run_isolated`` so a failure becomes a zero-score component instead of an
exception. Results are merged in declaration order and the composite
score is recomputed from the merged headline metrics.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import fields

import structlog

from govengine.modules.assessment.domain.analyzers.base import (
    AnalysisContext,
    AssessmentType,
    CategoryAnalyzer,
    run_isolated,
)
from govengine.modules.assessment.domain.analyzers.registry import (
    CompositeScorer,
    get_plan,
)
from govengine.modules.assessment.domain.models import (
    AnalysisResult,
    AssessmentResult,
    Finding,
    HeadlineMetrics,
    MetricValue,
)
from govengine.shared.core.config import get_settings

logger = structlog.get_logger()

_SUMMED_HEADLINE_FIELDS = frozenset({"failed_analyzers"})


def merge_headline(headlines: Iterable[HeadlineMetrics]) -> HeadlineMetrics:
    """Per-field max, except failure counts which are summed."""
    merged: dict[str, float | int] = {}
    for headline in headlines:
        for item in fields(HeadlineMetrics):
            value = getattr(headline, item.name)
            if item.name not in merged:
                merged[item.name] = value
            elif item.name in _SUMMED_HEADLINE_FIELDS:
                merged[item.name] += value
            else:
                merged[item.name] = max(merged[item.name], value)
    return HeadlineMetrics(**merged)  # type: ignore[arg-type]


def _is_int(value: MetricValue) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def merge_detailed_metrics(
    metrics: Iterable[Mapping[str, MetricValue]],
) -> dict[str, MetricValue]:
    """
    Key-by-key merge in declaration order: integers sum, floats average
    pairwise, and any other collision keeps the first value seen.
    """
    merged: dict[str, MetricValue] = {}
    for component in metrics:
        for key, value in component.items():
            if key not in merged:
                merged[key] = value
                continue
            current = merged[key]
            if _is_int(current) and _is_int(value):
                merged[key] = current + value  # type: ignore[operator]
            elif isinstance(current, float) and isinstance(value, float):
                merged[key] = (current + value) / 2
    return merged


def merge_results(
    assessment_type: str,
    components: Sequence[AnalysisResult],
    scorer: CompositeScorer,
) -> AssessmentResult:
    failed = tuple(component.category for component in components if component.mode == "failed")
    findings: tuple[Finding, ...] = tuple(
        finding for component in components for finding in component.findings
    )
    headline = merge_headline(component.headline for component in components)
    return AssessmentResult(
        assessment_type=assessment_type,
        score=scorer(headline, findings, failed),
        findings=findings,
        headline=headline,
        detailed_metrics=merge_detailed_metrics(
            component.detailed_metrics for component in components
        ),
        components=tuple(components),
        failed_categories=failed,
    )


class AssessmentOrchestrator:
    def __init__(self, timeout_seconds: float | None = None) -> None:
        self._timeout = timeout_seconds or get_settings().ANALYZER_TIMEOUT_SECONDS

    async def run_analyzers(
        self,
        analyzers: Sequence[CategoryAnalyzer],
        context: AnalysisContext,
    ) -> list[AnalysisResult]:
        # gather preserves argument order regardless of completion order
        return list(
            await asyncio.gather(
                *(run_isolated(analyzer, context, self._timeout) for analyzer in analyzers)
            )
        )

    async def run(
        self,
        assessment_type: AssessmentType | str,
        context: AnalysisContext,
        analyzers: Sequence[CategoryAnalyzer] | None = None,
    ) -> AssessmentResult:
        plan = get_plan(assessment_type)
        selected = tuple(analyzers) if analyzers is not None else plan.build()

        logger.info(
            "assessment_orchestration_started",
            assessment_type=plan.assessment_type.value,
            analyzers=[analyzer.category for analyzer in selected],
            resources=len(context.resources),
        )
        components = await self.run_analyzers(selected, context)
        result = merge_results(plan.assessment_type.value, components, plan.scorer)

        log = logger.warning if result.failed_categories else logger.info
        log(
            "assessment_orchestration_completed",
            assessment_type=plan.assessment_type.value,
            score=result.score,
            findings=len(result.findings),
            failed_categories=list(result.failed_categories),
            degraded=result.degraded,
        )
        return result
