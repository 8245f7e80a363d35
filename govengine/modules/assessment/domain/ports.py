"""Boundary contracts for the inventory and directory data sources."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Protocol

from govengine.modules.assessment.domain.cancellation import CancellationToken
from govengine.modules.assessment.domain.models import ResourceDescriptor

PolicyState = Literal["enabled", "disabled", "enabledForReportingButNotEnforced"]


@dataclass(frozen=True)
class DirectoryCapabilities:
    """Result of a directory probe: which query families the caller may use."""

    available: bool
    applications: bool = False
    users: bool = False
    devices: bool = False
    roles: bool = False
    conditional_access: bool = False
    reason: str | None = None

    @classmethod
    def unavailable(cls, reason: str | None = None) -> DirectoryCapabilities:
        return cls(available=False, reason=reason)

    @classmethod
    def full(cls) -> DirectoryCapabilities:
        return cls(
            available=True,
            applications=True,
            users=True,
            devices=True,
            roles=True,
            conditional_access=True,
        )


@dataclass(frozen=True)
class CredentialRecord:
    key_id: str
    kind: Literal["password", "certificate"]
    end_date_time: datetime | None = None


@dataclass(frozen=True)
class ApplicationRecord:
    id: str
    app_id: str
    display_name: str
    credentials: tuple[CredentialRecord, ...] = ()

    def has_expired_credentials(self, now: datetime) -> bool:
        return any(
            credential.end_date_time is not None and credential.end_date_time < now
            for credential in self.credentials
        )


@dataclass(frozen=True)
class ServicePrincipalRecord:
    id: str
    app_id: str
    display_name: str
    app_owner_organization_id: str | None = None
    permission_values: tuple[str, ...] = ()


@dataclass(frozen=True)
class UserRecord:
    id: str
    display_name: str
    user_principal_name: str = ""
    account_enabled: bool = True
    user_type: str = "Member"
    last_sign_in: datetime | None = None

    @property
    def label(self) -> str:
        return self.display_name or self.user_principal_name or "Unknown User"


@dataclass(frozen=True)
class DeviceRecord:
    id: str
    display_name: str
    operating_system: str | None = None
    is_compliant: bool | None = None
    is_managed: bool | None = None

    @property
    def is_non_compliant(self) -> bool:
        return self.is_compliant is not True or self.is_managed is not True


@dataclass(frozen=True)
class DirectoryRoleRecord:
    id: str
    display_name: str
    role_template_id: str
    member_ids: tuple[str, ...] = ()
    member_names: tuple[str, ...] = ()


@dataclass(frozen=True)
class ConditionalAccessPolicyRecord:
    id: str
    display_name: str
    state: PolicyState
    include_users: tuple[str, ...] = ()
    exclude_users: tuple[str, ...] = ()
    built_in_controls: tuple[str, ...] = ()
    include_locations: tuple[str, ...] = ()
    exclude_locations: tuple[str, ...] = ()

    @property
    def requires_mfa(self) -> bool:
        return "mfa" in {control.lower() for control in self.built_in_controls}

    @property
    def requires_compliant_device(self) -> bool:
        return "compliantdevice" in {control.lower() for control in self.built_in_controls}

    @property
    def has_locations(self) -> bool:
        return bool(self.include_locations or self.exclude_locations)

    @property
    def covers_all_users(self) -> bool:
        return any(user.lower() == "all" for user in self.include_users)


class ResourceInventoryProvider(Protocol):
    async def list_resources(
        self,
        subscription_ids: Sequence[str],
        cancellation: CancellationToken,
    ) -> Sequence[ResourceDescriptor]:
        """Return the flat resource inventory for the given subscriptions."""


class DirectoryDataProvider(Protocol):
    """
    Directory queries. Every list call takes the run's cancellation token and
    checks it before each request it sends, paging included.
    """

    async def probe(self) -> DirectoryCapabilities:
        """Report which directory queries are currently permitted."""

    async def list_applications(
        self, cancellation: CancellationToken
    ) -> Sequence[ApplicationRecord]: ...

    async def list_service_principals(
        self, cancellation: CancellationToken
    ) -> Sequence[ServicePrincipalRecord]: ...

    async def list_users(self, cancellation: CancellationToken) -> Sequence[UserRecord]: ...

    async def list_devices(self, cancellation: CancellationToken) -> Sequence[DeviceRecord]: ...

    async def list_directory_roles(
        self, cancellation: CancellationToken
    ) -> Sequence[DirectoryRoleRecord]: ...

    async def list_conditional_access_policies(
        self, cancellation: CancellationToken
    ) -> Sequence[ConditionalAccessPolicyRecord]: ...
