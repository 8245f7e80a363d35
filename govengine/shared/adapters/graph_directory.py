"""
Microsoft Graph directory provider.

Implements the directory data contract over the Graph REST API with httpx.
Tokens come from an azure-identity credential; every collection is paged
through ``@odata.nextLink`` and each request retries on throttling and
server errors.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime
from typing import Any

import httpx
import structlog
from azure.core.credentials_async import AsyncTokenCredential
from azure.core.exceptions import ClientAuthenticationError

from govengine.core.exceptions import AdapterError, ExternalAPIError
from govengine.modules.assessment.domain.cancellation import CancellationToken
from govengine.modules.assessment.domain.ports import (
    ApplicationRecord,
    ConditionalAccessPolicyRecord,
    CredentialRecord,
    DeviceRecord,
    DirectoryCapabilities,
    DirectoryRoleRecord,
    ServicePrincipalRecord,
    UserRecord,
)
from govengine.shared.adapters.http_retry import execute_with_http_retry
from govengine.shared.core.config import get_settings

logger = structlog.get_logger()

PERMISSION_DENIED_STATUS = frozenset({401, 403})
TOKEN_REFRESH_MARGIN_SECONDS = 60

USER_FIELDS = "id,displayName,userPrincipalName,accountEnabled,userType"
CAPABILITY_PATHS = {
    "applications": "/applications",
    "users": "/users",
    "devices": "/devices",
    "roles": "/directoryRoles",
    "conditional_access": "/identity/conditionalAccess/policies",
}


def parse_graph_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def _entries(payload: dict[str, Any]) -> list[dict[str, Any]]:
    entries = payload.get("value", [])
    if not isinstance(entries, list):
        return []
    return [item for item in entries if isinstance(item, dict)]


def _strings(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item) for item in value if item is not None)


def _status_code(exc: ExternalAPIError) -> int | None:
    return exc.details.get("status_code")


def application_from_graph(item: dict[str, Any]) -> ApplicationRecord:
    credentials: list[CredentialRecord] = []
    for kind, key in (("password", "passwordCredentials"), ("certificate", "keyCredentials")):
        for credential in item.get(key) or []:
            if not isinstance(credential, dict):
                continue
            credentials.append(
                CredentialRecord(
                    key_id=str(credential.get("keyId") or ""),
                    kind=kind,  # type: ignore[arg-type]
                    end_date_time=parse_graph_datetime(credential.get("endDateTime")),
                )
            )
    return ApplicationRecord(
        id=str(item.get("id") or ""),
        app_id=str(item.get("appId") or ""),
        display_name=str(item.get("displayName") or ""),
        credentials=tuple(credentials),
    )


def service_principal_from_graph(item: dict[str, Any]) -> ServicePrincipalRecord:
    values: list[str] = []
    for key in ("oauth2PermissionScopes", "appRoles"):
        for entry in item.get(key) or []:
            if isinstance(entry, dict) and entry.get("value"):
                values.append(str(entry["value"]))
    owner = item.get("appOwnerOrganizationId")
    return ServicePrincipalRecord(
        id=str(item.get("id") or ""),
        app_id=str(item.get("appId") or ""),
        display_name=str(item.get("displayName") or ""),
        app_owner_organization_id=str(owner) if owner else None,
        permission_values=tuple(values),
    )


def user_from_graph(item: dict[str, Any]) -> UserRecord:
    activity = item.get("signInActivity") or {}
    return UserRecord(
        id=str(item.get("id") or ""),
        display_name=str(item.get("displayName") or ""),
        user_principal_name=str(item.get("userPrincipalName") or ""),
        account_enabled=item.get("accountEnabled") is not False,
        user_type=str(item.get("userType") or "Member"),
        last_sign_in=parse_graph_datetime(activity.get("lastSignInDateTime"))
        if isinstance(activity, dict)
        else None,
    )


def device_from_graph(item: dict[str, Any]) -> DeviceRecord:
    compliant = item.get("isCompliant")
    managed = item.get("isManaged")
    return DeviceRecord(
        id=str(item.get("id") or ""),
        display_name=str(item.get("displayName") or ""),
        operating_system=item.get("operatingSystem"),
        is_compliant=compliant if isinstance(compliant, bool) else None,
        is_managed=managed if isinstance(managed, bool) else None,
    )


def policy_from_graph(item: dict[str, Any]) -> ConditionalAccessPolicyRecord:
    conditions = item.get("conditions") or {}
    users = conditions.get("users") or {}
    locations = conditions.get("locations") or {}
    grant = item.get("grantControls") or {}
    return ConditionalAccessPolicyRecord(
        id=str(item.get("id") or ""),
        display_name=str(item.get("displayName") or ""),
        state=item.get("state") or "disabled",
        include_users=_strings(users.get("includeUsers")),
        exclude_users=_strings(users.get("excludeUsers")),
        built_in_controls=_strings(grant.get("builtInControls")),
        include_locations=_strings(locations.get("includeLocations")),
        exclude_locations=_strings(locations.get("excludeLocations")),
    )


class GraphDirectoryProvider:
    """DirectoryDataProvider backed by Microsoft Graph v1.0."""

    def __init__(
        self,
        credential: AsyncTokenCredential,
        *,
        client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
        max_retries: int | None = None,
        retry_sleep_base_seconds: float = 0.5,
    ) -> None:
        settings = get_settings()
        self._credential = credential
        self._base_url = (base_url or settings.GRAPH_API_BASE_URL).rstrip("/")
        self._scope = settings.GRAPH_SCOPE
        self._max_retries = max_retries or settings.GRAPH_MAX_RETRIES
        self._retry_sleep = retry_sleep_base_seconds
        self._client = client or httpx.AsyncClient(timeout=settings.GRAPH_TIMEOUT_SECONDS)
        self._owns_client = client is None
        self._token: str | None = None
        self._token_expires_on = 0.0
        self._capabilities: DirectoryCapabilities | None = None
        self._probe_lock = asyncio.Lock()

    async def __aenter__(self) -> GraphDirectoryProvider:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _bearer_token(self) -> str:
        if self._token and time.time() < self._token_expires_on - TOKEN_REFRESH_MARGIN_SECONDS:
            return self._token
        try:
            access_token = await self._credential.get_token(self._scope)
        except ClientAuthenticationError as exc:
            logger.error("graph_token_acquisition_failed", error=str(exc))
            raise AdapterError(f"Microsoft Graph authentication failed: {exc}") from exc
        self._token = access_token.token
        self._token_expires_on = float(access_token.expires_on)
        return self._token

    def _url(self, path_or_url: str) -> str:
        if path_or_url.startswith("http"):
            return path_or_url
        return f"{self._base_url}{path_or_url}"

    async def _get_json(self, path_or_url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        url = self._url(path_or_url)
        headers = {"Authorization": f"Bearer {await self._bearer_token()}"}
        response = await execute_with_http_retry(
            request=lambda: self._client.get(url, headers=headers, params=params),
            url=url,
            max_retries=self._max_retries,
            error_prefix="Microsoft Graph request failed",
            retry_sleep_base_seconds=self._retry_sleep,
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ExternalAPIError("Microsoft Graph returned invalid JSON payload") from exc
        if not isinstance(payload, dict):
            raise ExternalAPIError("Microsoft Graph returned invalid payload shape")
        return payload

    async def _get_all(
        self,
        path: str,
        cancellation: CancellationToken,
        params: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Collect every page of a Graph collection, checking cancellation before each page."""
        items: list[dict[str, Any]] = []
        cancellation.raise_if_cancelled()
        payload = await self._get_json(path, params)
        items.extend(_entries(payload))
        next_link = payload.get("@odata.nextLink")
        while isinstance(next_link, str) and next_link:
            cancellation.raise_if_cancelled()
            # nextLink already carries the original query
            payload = await self._get_json(next_link)
            items.extend(_entries(payload))
            next_link = payload.get("@odata.nextLink")
        logger.debug("graph_collection_fetched", path=path, count=len(items))
        return items

    async def _family_allowed(self, name: str, path: str) -> bool:
        try:
            await self._get_json(path, {"$select": "id"})
        except ExternalAPIError as exc:
            logger.info(
                "graph_capability_denied",
                capability=name,
                status_code=_status_code(exc),
                error=str(exc),
            )
            return False
        return True

    async def probe(self) -> DirectoryCapabilities:
        async with self._probe_lock:
            if self._capabilities is None:
                self._capabilities = await self._probe()
            return self._capabilities

    async def _probe(self) -> DirectoryCapabilities:
        try:
            await self._get_json("/organization", {"$select": "id"})
        except ExternalAPIError as exc:
            if _status_code(exc) in PERMISSION_DENIED_STATUS:
                logger.warning("graph_probe_denied", error=str(exc))
                return DirectoryCapabilities.unavailable(
                    reason=f"Microsoft Graph access denied ({_status_code(exc)})"
                )
            raise

        allowed = {
            name: await self._family_allowed(name, path)
            for name, path in CAPABILITY_PATHS.items()
        }
        capabilities = DirectoryCapabilities(available=True, **allowed)
        logger.info("graph_probe_completed", **allowed)
        return capabilities

    async def list_applications(self, cancellation: CancellationToken) -> list[ApplicationRecord]:
        items = await self._get_all(
            "/applications",
            cancellation,
            {"$select": "id,appId,displayName,passwordCredentials,keyCredentials"},
        )
        return [application_from_graph(item) for item in items]

    async def list_service_principals(
        self, cancellation: CancellationToken
    ) -> list[ServicePrincipalRecord]:
        items = await self._get_all(
            "/servicePrincipals",
            cancellation,
            {
                "$select": "id,appId,displayName,appOwnerOrganizationId,"
                "appRoles,oauth2PermissionScopes"
            },
        )
        return [service_principal_from_graph(item) for item in items]

    async def list_users(self, cancellation: CancellationToken) -> list[UserRecord]:
        try:
            items = await self._get_all(
                "/users", cancellation, {"$select": f"{USER_FIELDS},signInActivity"}
            )
        except ExternalAPIError as exc:
            # signInActivity needs AuditLog.Read.All; fall back to the plain profile
            if _status_code(exc) not in PERMISSION_DENIED_STATUS:
                raise
            logger.warning("graph_sign_in_activity_unavailable", error=str(exc))
            items = await self._get_all("/users", cancellation, {"$select": USER_FIELDS})
        return [user_from_graph(item) for item in items]

    async def list_devices(self, cancellation: CancellationToken) -> list[DeviceRecord]:
        items = await self._get_all(
            "/devices",
            cancellation,
            {"$select": "id,displayName,operatingSystem,isCompliant,isManaged"},
        )
        return [device_from_graph(item) for item in items]

    async def list_directory_roles(self, cancellation: CancellationToken) -> list[DirectoryRoleRecord]:
        roles: list[DirectoryRoleRecord] = []
        for item in await self._get_all(
            "/directoryRoles", cancellation, {"$select": "id,displayName,roleTemplateId"}
        ):
            role_id = str(item.get("id") or "")
            members = await self._get_all(
                f"/directoryRoles/{role_id}/members",
                cancellation,
                {"$select": "id,displayName,userPrincipalName"},
            )
            roles.append(
                DirectoryRoleRecord(
                    id=role_id,
                    display_name=str(item.get("displayName") or ""),
                    role_template_id=str(item.get("roleTemplateId") or ""),
                    member_ids=tuple(str(member.get("id") or "") for member in members),
                    member_names=tuple(
                        str(member.get("displayName") or member.get("userPrincipalName") or "")
                        for member in members
                    ),
                )
            )
        return roles

    async def list_conditional_access_policies(
        self, cancellation: CancellationToken
    ) -> list[ConditionalAccessPolicyRecord]:
        items = await self._get_all("/identity/conditionalAccess/policies", cancellation)
        return [policy_from_graph(item) for item in items]
