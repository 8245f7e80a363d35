from __future__ import annotations

import structlog

from govengine.modules.assessment.domain.analyzers.base import AnalysisContext, Strategy
from govengine.modules.assessment.domain.dependency_graph import (
    EnvironmentMixing,
    build_dependency_graph,
)
from govengine.modules.assessment.domain.models import (
    AnalysisResult,
    Finding,
    HeadlineMetrics,
    MetricValue,
)
from govengine.modules.assessment.domain.scoring import finalize_score

logger = structlog.get_logger()

CATEGORY = "dependency"
MAX_CHAIN_METRICS = 20


def environment_mixing_finding(mixing: EnvironmentMixing) -> Finding:
    environments = ", ".join(mixing.environments)
    return Finding(
        category=CATEGORY,
        resource_id=mixing.vnet_id,
        resource_name=mixing.vnet_name,
        severity=mixing.severity,
        issue=(
            f"Virtual network hosts resources from multiple environments ({environments}); "
            f"{len(mixing.affected_resources)} resources affected"
        ),
        recommendation="Move each environment into its own virtual network or subnet boundary",
        finding_type="EnvironmentMixing",
        estimated_effort="high",
        metadata={
            "environments": list(mixing.environments),
            "affected_resources": list(mixing.affected_resources),
        },
    )


class DependencyAnalyzer:
    """Builds the dependency graph and reports topology and environment mixing."""

    category = CATEGORY
    display_name = "Dependency"

    async def probe(self, context: AnalysisContext) -> Strategy:
        return "enhanced"

    async def enhanced(self, context: AnalysisContext) -> AnalysisResult:
        graph = build_dependency_graph(context.resources)
        findings = [environment_mixing_finding(mixing) for mixing in graph.environment_mixing]

        metrics: dict[str, MetricValue] = graph.to_metrics()
        for chain in graph.vm_chains[:MAX_CHAIN_METRICS]:
            metrics[f"vm_chain.{chain.vm_name}"] = chain.render()

        return AnalysisResult(
            category=CATEGORY,
            score=finalize_score(100.0, findings),
            mode="enhanced",
            findings=tuple(findings),
            headline=HeadlineMetrics(
                resources_analyzed=len(context.resources),
                environment_mixing_vnets=len(graph.environment_mixing),
            ),
            detailed_metrics=metrics,
        )

    limited = enhanced
