from __future__ import annotations

from collections.abc import Callable

import pytest

from govengine.modules.assessment.domain.analyzers.base import AnalysisContext
from govengine.modules.assessment.domain.analyzers.tagging import (
    DEFAULT_REQUIRED_TAGS,
    TaggingAnalyzer,
    inconsistent_tag_names,
    missing_required_tags,
)
from govengine.modules.assessment.domain.models import ResourceDescriptor
from govengine.modules.assessment.domain.naming_scheme import NamingScheme

MakeResource = Callable[..., ResourceDescriptor]
MakeContext = Callable[..., AnalysisContext]

FULL_TAGS = {
    "Environment": "prod",
    "Owner": "platform",
    "Project": "atlas",
    "CostCenter": "cc-100",
    "Department": "it",
}


def test_inconsistent_tag_names_returns_later_case_variants() -> None:
    assert inconsistent_tag_names(["env", "Owner", "Env", "ENV"]) == ["Env", "ENV"]


def test_missing_required_tags_uses_share_threshold(make_resource: MakeResource) -> None:
    resources = [
        make_resource("vm-a-01", tags={"owner": "x"}),
        make_resource("vm-b-01", tags={"Project": "p"}),
        make_resource("vm-c-01", tags={"Project": "p"}),
        make_resource("vm-d-01", tags={"Project": "p"}),
    ]

    assert missing_required_tags(resources, ["Owner", "Project", "CostCenter"]) == [
        "Owner",
        "CostCenter",
    ]


@pytest.mark.asyncio
async def test_standard_mode_scores_coverage_and_violations(
    make_resource: MakeResource, make_context: MakeContext
) -> None:
    context = make_context(
        [
            make_resource("vm-prod-web-01"),
            make_resource("stproddata01", "Microsoft.Storage/storageAccounts", tags=FULL_TAGS),
        ]
    )

    result = await TaggingAnalyzer().enhanced(context)

    assert [f.finding_type for f in result.findings] == ["NoTags"]
    assert result.findings[0].severity == "high"
    assert result.headline.tagging_compliance == 77.0
    assert result.score == 69.0
    assert result.detailed_metrics["tagging.coverage"] == 50.0
    assert result.detailed_metrics["tagging.mode"] == "standard"
    assert result.detailed_metrics["tagging.required_tags"] == ", ".join(DEFAULT_REQUIRED_TAGS)
    assert result.detailed_metrics["tagging.usage.Owner"] == 1


@pytest.mark.asyncio
async def test_empty_values_and_case_variants_are_flagged(
    make_resource: MakeResource, make_context: MakeContext
) -> None:
    tags = {**FULL_TAGS, "Owner": " ", "environment": "prod"}
    context = make_context([make_resource("kv-prod-01", "Microsoft.KeyVault/vaults", tags=tags)])

    result = await TaggingAnalyzer().enhanced(context)

    by_type = {f.finding_type: f for f in result.findings}
    assert set(by_type) == {"EmptyTagValues", "InconsistentTagNaming"}
    assert by_type["EmptyTagValues"].severity == "medium"
    assert by_type["EmptyTagValues"].metadata["tags"] == ["Owner"]
    assert by_type["InconsistentTagNaming"].metadata["tags"] == ["environment"]


@pytest.mark.asyncio
async def test_preference_mode_uses_client_tags_and_enforcement(
    make_resource: MakeResource, make_context: MakeContext
) -> None:
    scheme = NamingScheme(required_tags=("Owner",), enforce_tag_compliance=True)
    context = make_context(
        [
            make_resource("app-prod-web-01", "Microsoft.Web/sites"),
            make_resource("vm-prod-web-01", tags={"owner": "team"}),
        ],
        naming_scheme=scheme,
    )

    result = await TaggingAnalyzer().limited(context)

    assert [f.finding_type for f in result.findings] == ["NoTags"]
    assert result.findings[0].severity == "high"
    assert result.detailed_metrics["tagging.mode"] == "preference"
    assert result.detailed_metrics["tagging.required_tags"] == "Owner"
    assert result.headline.tagging_compliance == 80.5
    assert result.score == 72.5


@pytest.mark.asyncio
async def test_unenforced_preferences_soften_missing_client_tags(
    make_resource: MakeResource, make_context: MakeContext
) -> None:
    scheme = NamingScheme(required_tags=("Owner", "Team"), enforce_tag_compliance=False)
    context = make_context(
        [make_resource("vm-prod-web-01", tags={"Owner": "x"})], naming_scheme=scheme
    )

    result = await TaggingAnalyzer().enhanced(context)

    (finding,) = result.findings
    assert finding.finding_type == "MissingClientRequiredTags"
    assert finding.severity == "medium"
    assert finding.issue == "Missing client-required tags: Team"
