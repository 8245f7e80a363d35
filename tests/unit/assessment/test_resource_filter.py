from __future__ import annotations

from collections.abc import Callable

import pytest

from govengine.modules.assessment.domain.models import ResourceDescriptor
from govengine.modules.assessment.domain.resource_filter import (
    REASON_NAME_TOO_SHORT,
    REASON_NUMERIC_NAME,
    REASON_SYSTEM_DATABASE,
    REASON_SYSTEM_NAME,
    REASON_SYSTEM_TYPE,
    exclusion_reason,
    filter_resources,
)

MakeResource = Callable[..., ResourceDescriptor]


@pytest.mark.parametrize(
    ("name", "resource_type", "reason"),
    [
        (
            "DefaultWorkspace-0f8fad5b-d9cb-469f-a165-70867728950e-EUS",
            "Microsoft.OperationalInsights/workspaces",
            REASON_SYSTEM_NAME,
        ),
        ("NetworkWatcher_eastus", "Microsoft.Network/networkWatchers", REASON_SYSTEM_NAME),
        ("master", "Microsoft.Sql/servers/databases", REASON_SYSTEM_DATABASE),
        ("owner-assignment", "Microsoft.Authorization/roleAssignments", REASON_SYSTEM_TYPE),
        ("a", "Microsoft.Compute/virtualMachines", REASON_NAME_TOO_SHORT),
        ("12345", "Microsoft.Compute/virtualMachines", REASON_NUMERIC_NAME),
    ],
)
def test_exclusion_reasons(
    make_resource: MakeResource, name: str, resource_type: str, reason: str
) -> None:
    assert exclusion_reason(make_resource(name, resource_type)) == reason


def test_tenant_resources_are_kept(make_resource: MakeResource) -> None:
    assert exclusion_reason(make_resource("vm-prod-web-01")) is None
    assert exclusion_reason(make_resource("master", "Microsoft.Compute/virtualMachines")) is None


def test_filter_resources_reports_stats(make_resource: MakeResource) -> None:
    resources = [
        make_resource("vm-prod-web-01"),
        make_resource("st-prod-data-01", "Microsoft.Storage/storageAccounts"),
        make_resource(
            "DefaultWorkspace-0f8fad5b-d9cb-469f-a165-70867728950e",
            "Microsoft.OperationalInsights/workspaces",
        ),
        make_resource("tempdb", "Microsoft.Sql/servers/databases"),
    ]

    outcome = filter_resources(resources)

    assert [r.name for r in outcome.resources] == ["vm-prod-web-01", "st-prod-data-01"]
    assert outcome.stats.total == 4
    assert outcome.stats.analyzable == 2
    assert outcome.stats.filtered_out == 2
    assert outcome.stats.percentage == 50.0
    assert outcome.stats.reasons == {REASON_SYSTEM_NAME: 1, REASON_SYSTEM_DATABASE: 1}
    assert [example.name for example in outcome.stats.examples] == [
        "DefaultWorkspace-0f8fad5b-d9cb-469f-a165-70867728950e",
        "tempdb",
    ]


def test_filter_resources_is_idempotent(make_resource: MakeResource) -> None:
    resources = [
        make_resource("vm-prod-web-01"),
        make_resource("NetworkWatcher_westeurope", "Microsoft.Network/networkWatchers"),
    ]

    first = filter_resources(resources)
    second = filter_resources(first.resources)

    assert second.resources == first.resources
    assert second.stats.filtered_out == 0


def test_examples_are_capped_by_settings(
    make_resource: MakeResource, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("MAX_FILTER_EXAMPLES", "2")
    resources = [make_resource(str(1000 + index)) for index in range(5)]

    outcome = filter_resources(resources)

    assert outcome.stats.filtered_out == 5
    assert len(outcome.stats.examples) == 2


def test_empty_inventory() -> None:
    outcome = filter_resources([])

    assert outcome.resources == ()
    assert outcome.stats.percentage == 0.0
