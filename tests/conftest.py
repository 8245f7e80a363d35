"""
Global pytest fixtures for the govengine test suite.

Provides:
- Settings cache isolation
- Resource and context factories
- An in-memory directory provider
"""
import os

# Set test environment BEFORE any engine imports
os.environ["TESTING"] = "true"

from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, Generator

import pytest

from govengine.modules.assessment.domain.analyzers.base import AnalysisContext
from govengine.modules.assessment.domain.cancellation import CancellationToken
from govengine.modules.assessment.domain.models import ResourceDescriptor
from govengine.modules.assessment.domain.naming_scheme import NamingScheme
from govengine.modules.assessment.domain.ports import (
    ApplicationRecord,
    ConditionalAccessPolicyRecord,
    DeviceRecord,
    DirectoryCapabilities,
    DirectoryRoleRecord,
    ServicePrincipalRecord,
    UserRecord,
)
from govengine.shared.core.config import get_settings

FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000001"


@pytest.fixture(autouse=True)
def _fresh_settings() -> Generator[None, None, None]:
    """Every test reads settings from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def build_resource(
    name: str,
    resource_type: str = "Microsoft.Compute/virtualMachines",
    *,
    resource_group: str = "rg-core",
    tags: Mapping[str, str] | None = None,
    properties: Any = None,
    kind: str | None = None,
    location: str = "eastus",
    resource_id: str | None = None,
) -> ResourceDescriptor:
    return ResourceDescriptor(
        id=resource_id
        or f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{resource_group}"
        f"/providers/{resource_type}/{name}",
        name=name,
        type=resource_type,
        resource_group=resource_group,
        location=location,
        subscription_id=SUBSCRIPTION_ID,
        kind=kind,
        tags=dict(tags or {}),
        properties=properties,
    )


class FakeDirectory:
    """In-memory DirectoryDataProvider that records which queries were made."""

    def __init__(
        self,
        capabilities: DirectoryCapabilities | None = None,
        *,
        applications: Sequence[ApplicationRecord] = (),
        service_principals: Sequence[ServicePrincipalRecord] = (),
        users: Sequence[UserRecord] = (),
        devices: Sequence[DeviceRecord] = (),
        roles: Sequence[DirectoryRoleRecord] = (),
        policies: Sequence[ConditionalAccessPolicyRecord] = (),
        failures: Mapping[str, Exception] | None = None,
    ) -> None:
        self.capabilities = capabilities or DirectoryCapabilities.full()
        self.applications = list(applications)
        self.service_principals = list(service_principals)
        self.users = list(users)
        self.devices = list(devices)
        self.roles = list(roles)
        self.policies = list(policies)
        self.failures = dict(failures or {})
        self.calls: list[str] = []

    async def _answer(
        self, name: str, value: Any, cancellation: CancellationToken | None = None
    ) -> Any:
        if cancellation is not None:
            cancellation.raise_if_cancelled()
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]
        return value

    async def probe(self) -> DirectoryCapabilities:
        return await self._answer("probe", self.capabilities)

    async def list_applications(self, cancellation: CancellationToken) -> list[ApplicationRecord]:
        return await self._answer("list_applications", self.applications, cancellation)

    async def list_service_principals(
        self, cancellation: CancellationToken
    ) -> list[ServicePrincipalRecord]:
        return await self._answer(
            "list_service_principals", self.service_principals, cancellation
        )

    async def list_users(self, cancellation: CancellationToken) -> list[UserRecord]:
        return await self._answer("list_users", self.users, cancellation)

    async def list_devices(self, cancellation: CancellationToken) -> list[DeviceRecord]:
        return await self._answer("list_devices", self.devices, cancellation)

    async def list_directory_roles(
        self, cancellation: CancellationToken
    ) -> list[DirectoryRoleRecord]:
        return await self._answer("list_directory_roles", self.roles, cancellation)

    async def list_conditional_access_policies(
        self, cancellation: CancellationToken
    ) -> list[ConditionalAccessPolicyRecord]:
        return await self._answer(
            "list_conditional_access_policies", self.policies, cancellation
        )


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_resource() -> Callable[..., ResourceDescriptor]:
    return build_resource


@pytest.fixture
def fake_directory() -> type[FakeDirectory]:
    return FakeDirectory


@pytest.fixture
def make_context() -> Callable[..., AnalysisContext]:
    def _make(
        resources: Iterable[ResourceDescriptor] = (),
        *,
        directory: Any = None,
        naming_scheme: NamingScheme | None = None,
        cancellation: CancellationToken | None = None,
        now: datetime = FIXED_NOW,
    ) -> AnalysisContext:
        return AnalysisContext(
            assessment_id="test-assessment",
            resources=tuple(resources),
            cancellation=cancellation or CancellationToken(),
            naming_scheme=naming_scheme,
            directory=directory,
            now=now,
        )

    return _make


@pytest.fixture
def standard_scheme() -> NamingScheme:
    """company-environment-service-resource-type-instance, lowercase, '-' separated."""
    return NamingScheme.model_validate(
        {
            "components": [
                {"componentType": "company", "position": 1},
                {"componentType": "environment", "position": 2},
                {"componentType": "service", "position": 3},
                {"componentType": "resource-type", "position": 4},
                {"componentType": "instance", "position": 5},
            ],
            "separator": "-",
            "caseFormat": "lowercase",
            "acceptedCompanyNames": ["abc"],
        }
    )
