from __future__ import annotations

from collections.abc import AsyncIterator
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import tenacity
from azure.core.exceptions import HttpResponseError, ServiceRequestError

from govengine.core.exceptions import AdapterError, AssessmentCancelledError
from govengine.modules.assessment.domain.cancellation import CancellationToken
from govengine.shared.adapters.azure_inventory import (
    AzureResourceInventory,
    normalize_resource,
    resource_group_from_id,
)

SUB = "00000000-0000-0000-0000-000000000001"


def _sdk_resource(name: str, **extra: Any) -> SimpleNamespace:
    values: dict[str, Any] = {
        "id": f"/subscriptions/{SUB}/resourceGroups/rg-core/providers/Microsoft.Compute/virtualMachines/{name}",
        "name": name,
        "type": "Microsoft.Compute/virtualMachines",
        "location": "eastus",
        "kind": None,
        "tags": None,
        "properties": None,
        "identity": None,
        "sku": None,
    }
    values.update(extra)
    return SimpleNamespace(**values)


class _FakeClient:
    def __init__(self, items: list[Any] | None = None, error: Exception | None = None) -> None:
        self.items = items or []
        self.error = error
        self.expand: str | None = None
        self.closed = False
        self.resources = MagicMock()
        self.resources.list.side_effect = self._list

    async def _list(self, expand: str | None = None) -> AsyncIterator[Any]:
        self.expand = expand
        if self.error is not None:
            raise self.error
        for item in self.items:
            yield item

    async def __aenter__(self) -> _FakeClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.closed = True


@pytest.fixture
def no_retry_wait(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        AzureResourceInventory._list_subscription.retry, "wait", tenacity.wait_none()
    )


def test_resource_group_from_id() -> None:
    resource_id = f"/subscriptions/{SUB}/resourceGroups/rg-app/providers/Microsoft.Web/sites/app"

    assert resource_group_from_id(resource_id) == "rg-app"
    assert resource_group_from_id(f"/subscriptions/{SUB}") == ""


def test_normalize_resource_merges_identity_into_properties() -> None:
    identity = MagicMock()
    identity.as_dict.return_value = {"type": "SystemAssigned"}

    descriptor = normalize_resource(
        _sdk_resource("vm-01", tags={"Owner": "ops"}, properties={"vmId": "1"}, identity=identity),
        SUB,
    )

    assert descriptor.resource_group == "rg-core"
    assert descriptor.subscription_id == SUB
    assert descriptor.tags == {"Owner": "ops"}
    assert descriptor.properties == {"vmId": "1", "identity": {"type": "SystemAssigned"}}


def test_requires_a_credential() -> None:
    with pytest.raises(AdapterError):
        AzureResourceInventory()


@pytest.mark.asyncio
async def test_closed_inventory_without_credentials_refuses_to_list() -> None:
    credential = AsyncMock()
    inventory = AzureResourceInventory(
        credential=credential, client_factory=lambda *_: _FakeClient([])
    )
    await inventory.close()

    with pytest.raises(AdapterError) as exc_info:
        await inventory.list_resources([SUB], CancellationToken())

    credential.close.assert_awaited_once()
    assert exc_info.value.code == "credential_unavailable"


@pytest.mark.asyncio
async def test_list_resources_reads_every_subscription() -> None:
    clients = {
        "sub-a": _FakeClient([_sdk_resource("vm-a-01"), _sdk_resource("vm-a-02")]),
        "sub-b": _FakeClient([_sdk_resource("vm-b-01")]),
    }
    inventory = AzureResourceInventory(
        credential=AsyncMock(), client_factory=lambda credential, sub: clients[sub]
    )

    resources = await inventory.list_resources(["sub-a", "sub-b"], CancellationToken())

    assert [r.name for r in resources] == ["vm-a-01", "vm-a-02", "vm-b-01"]
    assert resources[2].subscription_id == "sub-b"
    assert all(client.closed for client in clients.values())
    assert clients["sub-a"].expand == "createdTime,changedTime,provisioningState"


@pytest.mark.asyncio
async def test_list_resources_stops_at_page_limit(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INVENTORY_PAGE_LIMIT", "2")
    client = _FakeClient([_sdk_resource(f"vm-{i}") for i in range(5)])
    inventory = AzureResourceInventory(credential=AsyncMock(), client_factory=lambda *_: client)

    resources = await inventory.list_resources([SUB], CancellationToken())

    assert len(resources) == 2


@pytest.mark.asyncio
async def test_azure_errors_become_adapter_errors(no_retry_wait: None) -> None:
    client = _FakeClient(error=HttpResponseError(message="SubscriptionNotFound"))
    inventory = AzureResourceInventory(credential=AsyncMock(), client_factory=lambda *_: client)

    with pytest.raises(AdapterError) as exc_info:
        await inventory.list_resources([SUB], CancellationToken())

    assert exc_info.value.details == {"subscription_id": SUB}


@pytest.mark.asyncio
async def test_transient_errors_are_retried(no_retry_wait: None) -> None:
    calls = {"count": 0}
    healthy = _FakeClient([_sdk_resource("vm-01")])

    def factory(credential: Any, subscription_id: str) -> _FakeClient:
        calls["count"] += 1
        if calls["count"] == 1:
            return _FakeClient(error=ServiceRequestError("connection reset"))
        return healthy

    inventory = AzureResourceInventory(credential=AsyncMock(), client_factory=factory)

    resources = await inventory.list_resources([SUB], CancellationToken())

    assert calls["count"] == 2
    assert [r.name for r in resources] == ["vm-01"]


@pytest.mark.asyncio
async def test_cancelled_token_stops_before_fetching() -> None:
    factory = MagicMock()
    token = CancellationToken()
    token.cancel()
    inventory = AzureResourceInventory(credential=AsyncMock(), client_factory=factory)

    with pytest.raises(AssessmentCancelledError):
        await inventory.list_resources([SUB], token)

    factory.assert_not_called()


@pytest.mark.asyncio
async def test_close_closes_the_credential() -> None:
    credential = AsyncMock()
    inventory = AzureResourceInventory(credential=credential)

    await inventory.close()

    credential.close.assert_awaited_once()
