from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import pytest

from govengine.modules.assessment.domain.analyzers.identity.rbac import GLOBAL_ADMINISTRATOR
from govengine.modules.assessment.domain.models import ResourceDescriptor
from govengine.modules.assessment.domain.ports import (
    ConditionalAccessPolicyRecord,
    DirectoryRoleRecord,
    UserRecord,
)
from govengine.modules.assessment.domain.service import AssessmentRequest, AssessmentService
from govengine.shared.adapters.static_inventory import StaticResourceInventory

SUB = "00000000-0000-0000-0000-000000000001"


@pytest.fixture
def estate(make_resource: Callable[..., ResourceDescriptor]) -> list[ResourceDescriptor]:
    vnet_id = (
        f"/subscriptions/{SUB}/resourceGroups/rg-net/providers/"
        "Microsoft.Network/virtualNetworks/abc-prod-net-vnet-01"
    )
    return [
        make_resource(
            "abc-prod-net-vnet-01",
            "Microsoft.Network/virtualNetworks",
            resource_group="rg-net",
            tags={"Environment": "prod", "Owner": "network"},
        ),
        make_resource(
            "abc-prod-web-vm-01",
            tags={"Environment": "prod"},
            properties={"networkProfile": {"subnet": {"id": f"{vnet_id}/subnets/default"}}},
        ),
        make_resource("MyTestServer", tags={}),
        make_resource(
            "Application Insights Smart Detection",
            "microsoft.insights/actiongroups",
        ),
    ]


@pytest.mark.asyncio
async def test_governance_full_over_a_small_estate(
    estate: list[ResourceDescriptor], standard_scheme: Any, now: datetime
) -> None:
    service = AssessmentService(StaticResourceInventory(estate))
    request = AssessmentRequest(
        "governance_full",
        subscription_ids=(SUB,),
        naming_scheme=standard_scheme.model_dump(mode="json", by_alias=True, exclude_none=True),
    )

    run = await service.run(request, now=now)

    result = run.result
    assert run.filtering.filtered_out == 1
    assert [c.category for c in result.components] == ["naming_convention", "tagging", "dependency"]
    assert result.failed_categories == ()
    assert result.headline.resources_analyzed == 3
    assert 0.0 <= result.score <= 100.0
    flagged = {f.resource_name for f in result.findings if f.category == "naming_convention"}
    assert "MyTestServer" in flagged
    payload = run.to_dict()
    assert payload["result"]["degraded"] is False
    assert len(payload["result"]["findings"]) == len(result.findings)


@pytest.mark.asyncio
async def test_identity_full_with_a_directory(
    estate: list[ResourceDescriptor], fake_directory: Any, now: datetime
) -> None:
    directory = fake_directory(
        users=[
            UserRecord("u1", "Alice", last_sign_in=now - timedelta(days=3)),
            UserRecord("u2", "Bob", last_sign_in=now - timedelta(days=400)),
        ],
        roles=[
            DirectoryRoleRecord(
                "r1", "Global Administrator", GLOBAL_ADMINISTRATOR, ("u1",), ("Alice",)
            )
        ],
        policies=[
            ConditionalAccessPolicyRecord(
                "p1", "Require MFA", "enabled", include_users=("All",), built_in_controls=("mfa",)
            )
        ],
    )
    service = AssessmentService(StaticResourceInventory(estate), directory)

    run = await service.run(AssessmentRequest("identity_full"), now=now)

    result = run.result
    assert [c.mode for c in result.components] == ["enhanced"] * 4
    assert result.headline.inactive_users == 1
    assert result.headline.conditional_access_coverage == 100.0
    assert result.degraded is False
    assert directory.calls.count("probe") == 4
