from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest

from govengine.core.exceptions import (
    AdapterError,
    AssessmentCancelledError,
    ConfigurationError,
)
from govengine.modules.assessment.domain.cancellation import CancellationToken
from govengine.modules.assessment.domain.models import ResourceDescriptor
from govengine.modules.assessment.domain.service import (
    AssessmentRequest,
    AssessmentService,
    run_assessment,
)
from govengine.shared.adapters.static_inventory import StaticResourceInventory

WORKSPACE = "DefaultWorkspace-11111111-2222-3333-4444-555555555555-EUS"


@pytest.fixture
def inventory(make_resource: Callable[..., ResourceDescriptor]) -> StaticResourceInventory:
    return StaticResourceInventory(
        [
            make_resource("abc-prod-web-vm-01", tags={"Environment": "prod"}),
            make_resource("abc-dev-api-st-01", "Microsoft.Storage/storageAccounts"),
            make_resource(WORKSPACE, "Microsoft.OperationalInsights/workspaces"),
        ]
    )


@pytest.mark.asyncio
async def test_run_filters_system_resources_before_analysis(
    inventory: StaticResourceInventory, now: datetime
) -> None:
    run = await AssessmentService(inventory).run(
        AssessmentRequest("naming_convention", assessment_id="run-1"), now=now
    )

    assert run.assessment_id == "run-1"
    assert run.assessment_type == "naming_convention"
    assert run.filtering.total == 3
    assert run.filtering.filtered_out == 1
    assert run.result.detailed_metrics["naming.total_resources"] == 2
    payload = run.to_dict()
    assert list(payload) == ["assessment_id", "assessment_type", "result", "filtering"]
    assert payload["filtering"]["examples"][0]["name"] == WORKSPACE


@pytest.mark.asyncio
async def test_run_applies_the_tenant_naming_scheme(
    inventory: StaticResourceInventory, standard_scheme: Any
) -> None:
    request = AssessmentRequest(
        "naming_convention",
        naming_scheme=standard_scheme.model_dump(mode="json", by_alias=True, exclude_none=True),
    )

    run = await AssessmentService(inventory).run(request)

    assert run.result.detailed_metrics["naming.mode"] == "scheme"
    assert run.result.failed_categories == ()


@pytest.mark.asyncio
async def test_invalid_scheme_is_rejected_before_inventory_is_read() -> None:
    inventory = AsyncMock()
    scheme = {
        "components": [
            {"componentType": "company", "position": 1},
            {"componentType": "environment", "position": 1},
        ],
        "separator": "-",
    }

    with pytest.raises(ConfigurationError) as exc_info:
        await AssessmentService(inventory).run(
            AssessmentRequest("naming_convention", naming_scheme=scheme)
        )

    assert exc_info.value.code == "invalid_naming_scheme"
    inventory.list_resources.assert_not_awaited()


@pytest.mark.asyncio
async def test_unknown_type_is_rejected() -> None:
    inventory = AsyncMock()

    with pytest.raises(ConfigurationError):
        await AssessmentService(inventory).run(AssessmentRequest("everything"))

    inventory.list_resources.assert_not_awaited()


@pytest.mark.asyncio
async def test_pre_cancelled_run_raises(inventory: StaticResourceInventory) -> None:
    token = CancellationToken()
    token.cancel("user aborted")

    with pytest.raises(AssessmentCancelledError):
        await AssessmentService(inventory).run(AssessmentRequest("tagging"), cancellation=token)


@pytest.mark.asyncio
async def test_inventory_failure_propagates() -> None:
    inventory = AsyncMock()
    inventory.list_resources.side_effect = AdapterError("subscription not found")

    with pytest.raises(AdapterError):
        await AssessmentService(inventory).run(AssessmentRequest("tagging", ("sub-1",)))

    inventory.list_resources.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_assessment_passes_directory_through(
    inventory: StaticResourceInventory, fake_directory: Any
) -> None:
    directory = fake_directory()

    run = await run_assessment(inventory, "conditional_access", directory=directory)

    assert run.result.score == 50.0
    assert "list_conditional_access_policies" in directory.calls
