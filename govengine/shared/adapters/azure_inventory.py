"""
Azure resource inventory.

Reads every resource of the requested subscriptions through the Resource
Manager SDK and normalizes them into ResourceDescriptor records.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

import structlog
import tenacity
from azure.core.credentials_async import AsyncTokenCredential
from azure.core.exceptions import (
    AzureError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.mgmt.resource.resources.aio import ResourceManagementClient

from govengine.core.exceptions import AdapterError
from govengine.modules.assessment.domain.cancellation import CancellationToken
from govengine.modules.assessment.domain.models import ResourceDescriptor
from govengine.shared.core.config import get_settings
from govengine.shared.core.credentials import AzureCredentials

logger = structlog.get_logger()

# Retry decorator for Azure transient failures
azure_retry = tenacity.retry(
    retry=tenacity.retry_if_exception_type((ServiceRequestError, ServiceResponseError)),
    wait=tenacity.wait_exponential(multiplier=1, min=2, max=10),
    stop=tenacity.stop_after_attempt(3),
    before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
    reraise=True,
)

ClientFactory = Callable[[AsyncTokenCredential, str], ResourceManagementClient]


def resource_group_from_id(resource_id: str) -> str:
    parts = resource_id.split("/")
    for index, part in enumerate(parts[:-1]):
        if part.lower() == "resourcegroups":
            return parts[index + 1]
    return ""


def _as_dict(value: Any) -> Any:
    if value is None:
        return None
    as_dict = getattr(value, "as_dict", None)
    if callable(as_dict):
        return as_dict()
    return value


def normalize_resource(resource: Any, subscription_id: str) -> ResourceDescriptor:
    """Convert an SDK GenericResourceExpanded into a descriptor."""
    resource_id = str(getattr(resource, "id", "") or "")
    properties = _as_dict(getattr(resource, "properties", None))
    identity = _as_dict(getattr(resource, "identity", None))
    if identity is not None:
        properties = dict(properties) if isinstance(properties, dict) else {}
        properties.setdefault("identity", identity)

    return ResourceDescriptor.from_mapping(
        {
            "id": resource_id,
            "name": getattr(resource, "name", None),
            "type": getattr(resource, "type", None),
            "resource_group": resource_group_from_id(resource_id),
            "location": getattr(resource, "location", None),
            "subscription_id": subscription_id,
            "kind": getattr(resource, "kind", None),
            "tags": getattr(resource, "tags", None) or {},
            "properties": properties,
            "sku": _as_dict(getattr(resource, "sku", None)),
        }
    )


def _default_client(credential: AsyncTokenCredential, subscription_id: str) -> ResourceManagementClient:
    return ResourceManagementClient(credential=credential, subscription_id=subscription_id)


class AzureResourceInventory:
    def __init__(
        self,
        credentials: AzureCredentials | None = None,
        *,
        credential: AsyncTokenCredential | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        if credential is None and credentials is None:
            raise AdapterError("AzureResourceInventory requires credentials or a credential")
        self._credentials = credentials
        self._credential = credential
        self._client_factory = client_factory or _default_client

    def _get_credential(self) -> AsyncTokenCredential:
        if self._credential is None:
            if self._credentials is None:
                raise AdapterError(
                    "AzureResourceInventory has no credential; it was closed without "
                    "credentials to rebuild one",
                    code="credential_unavailable",
                )
            self._credential = self._credentials.build_credential()
        return self._credential

    async def list_resources(
        self,
        subscription_ids: Sequence[str],
        cancellation: CancellationToken,
    ) -> list[ResourceDescriptor]:
        resources: list[ResourceDescriptor] = []
        for subscription_id in subscription_ids:
            cancellation.raise_if_cancelled()
            try:
                batch = await self._list_subscription(subscription_id)
            except AzureError as exc:
                logger.error(
                    "azure_inventory_fetch_failed",
                    subscription_id=subscription_id,
                    error=str(exc),
                )
                raise AdapterError(
                    f"Azure resource inventory failed for subscription {subscription_id}: {exc}",
                    details={"subscription_id": subscription_id},
                ) from exc
            resources.extend(batch)

        logger.info(
            "azure_inventory_fetched",
            subscriptions=len(subscription_ids),
            resources=len(resources),
        )
        return resources

    @azure_retry
    async def _list_subscription(self, subscription_id: str) -> list[ResourceDescriptor]:
        settings = get_settings()
        client = self._client_factory(self._get_credential(), subscription_id)
        resources: list[ResourceDescriptor] = []
        async with client:
            async for resource in client.resources.list(expand=settings.INVENTORY_EXPAND):
                resources.append(normalize_resource(resource, subscription_id))
                if len(resources) >= settings.INVENTORY_PAGE_LIMIT:
                    logger.warning(
                        "azure_inventory_truncated",
                        subscription_id=subscription_id,
                        limit=settings.INVENTORY_PAGE_LIMIT,
                    )
                    break
        return resources

    async def close(self) -> None:
        if self._credential is not None:
            await self._credential.close()
            self._credential = None
