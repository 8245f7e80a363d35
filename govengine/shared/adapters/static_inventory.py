from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

import structlog

from govengine.core.exceptions import AdapterError
from govengine.modules.assessment.domain.cancellation import CancellationToken
from govengine.modules.assessment.domain.models import ResourceDescriptor

logger = structlog.get_logger()


class StaticResourceInventory:
    """Inventory provider over an already collected snapshot (exports, fixtures)."""

    def __init__(self, resources: Iterable[ResourceDescriptor | Mapping[str, Any]]) -> None:
        self._resources = tuple(
            item if isinstance(item, ResourceDescriptor) else ResourceDescriptor.from_mapping(item)
            for item in resources
        )

    @classmethod
    def from_json_file(cls, path: str | Path) -> StaticResourceInventory:
        """Load a JSON array of inventory rows, or an object with a ``value`` array."""
        try:
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise AdapterError(
                f"Cannot read inventory snapshot {path}: {exc}", details={"path": str(path)}
            ) from exc
        if isinstance(payload, dict):
            payload = payload.get("value", [])
        if not isinstance(payload, list):
            raise AdapterError("Inventory snapshot must be a JSON array", details={"path": str(path)})
        return cls(item for item in payload if isinstance(item, dict))

    async def list_resources(
        self,
        subscription_ids: Sequence[str],
        cancellation: CancellationToken,
    ) -> list[ResourceDescriptor]:
        cancellation.raise_if_cancelled()
        if not subscription_ids:
            return list(self._resources)
        wanted = {subscription.lower() for subscription in subscription_ids}
        selected = [
            resource
            for resource in self._resources
            if not resource.subscription_id or resource.subscription_id.lower() in wanted
        ]
        logger.debug("static_inventory_selected", total=len(self._resources), selected=len(selected))
        return selected
