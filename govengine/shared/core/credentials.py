"""
Typed Azure credentials.

Adapters take these instead of raw dicts so secrets stay wrapped in
SecretStr until the SDK credential is built.
"""

from typing import Optional

from azure.identity.aio import ClientSecretCredential
from pydantic import BaseModel, SecretStr

from govengine.core.exceptions import ConfigurationError


class AzureCredentials(BaseModel):
    """Azure Service Principal Credentials."""

    tenant_id: str
    client_id: str
    client_secret: Optional[SecretStr] = None

    def build_credential(self) -> ClientSecretCredential:
        if not self.client_secret:
            raise ConfigurationError("Azure client_secret is required for client secret auth")
        return ClientSecretCredential(
            tenant_id=self.tenant_id,
            client_id=self.client_id,
            client_secret=self.client_secret.get_secret_value(),
        )
