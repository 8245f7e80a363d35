from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PRODUCTION = "production"
ENV_STAGING = "staging"
ENV_DEVELOPMENT = "development"
ENV_LOCAL = "local"


@lru_cache
def get_settings() -> "Settings":
    """Returns a singleton instance of the engine settings."""
    return Settings()


class Settings(BaseSettings):
    """
    Runtime configuration for the governance assessment engine.
    Values are read from the environment (and .env when present).
    """

    APP_NAME: str = "govengine"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = ENV_DEVELOPMENT
    TESTING: bool = False

    # Orchestration
    ANALYZER_TIMEOUT_SECONDS: float = 120.0

    # Inventory
    INVENTORY_PAGE_LIMIT: int = Field(default=5000, ge=1)
    INVENTORY_EXPAND: str = "createdTime,changedTime,provisioningState"

    # Analysis thresholds
    INACTIVE_USER_DAYS: int = 90
    STALE_USER_HIGH_SEVERITY_DAYS: int = 180
    RESOURCE_GROUP_COMPLEXITY_THRESHOLD: int = 10
    NAMING_CONSISTENCY_THRESHOLD: float = 70.0
    MAX_FILTER_EXAMPLES: int = 10
    MAX_ENTITY_FINDINGS: int = 10

    # Directory (Microsoft Graph)
    GRAPH_API_BASE_URL: str = "https://graph.microsoft.com/v1.0"
    GRAPH_SCOPE: str = "https://graph.microsoft.com/.default"
    GRAPH_TIMEOUT_SECONDS: float = 20.0
    GRAPH_MAX_RETRIES: int = 3
    GRAPH_TENANT_ID: Optional[str] = None

    # Service principal used by the command line runner
    AZURE_TENANT_ID: Optional[str] = None
    AZURE_CLIENT_ID: Optional[str] = None
    AZURE_CLIENT_SECRET: Optional[SecretStr] = None

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @model_validator(mode="after")
    def validate_all_config(self) -> "Settings":
        positive_fields = {
            "ANALYZER_TIMEOUT_SECONDS": self.ANALYZER_TIMEOUT_SECONDS,
            "GRAPH_TIMEOUT_SECONDS": self.GRAPH_TIMEOUT_SECONDS,
            "INACTIVE_USER_DAYS": self.INACTIVE_USER_DAYS,
            "STALE_USER_HIGH_SEVERITY_DAYS": self.STALE_USER_HIGH_SEVERITY_DAYS,
            "RESOURCE_GROUP_COMPLEXITY_THRESHOLD": self.RESOURCE_GROUP_COMPLEXITY_THRESHOLD,
            "MAX_FILTER_EXAMPLES": self.MAX_FILTER_EXAMPLES,
            "MAX_ENTITY_FINDINGS": self.MAX_ENTITY_FINDINGS,
        }
        for name, value in positive_fields.items():
            if value <= 0:
                raise ValueError(f"{name} must be greater than zero")

        if not 0 <= self.NAMING_CONSISTENCY_THRESHOLD <= 100:
            raise ValueError("NAMING_CONSISTENCY_THRESHOLD must be between 0 and 100")
        if self.GRAPH_MAX_RETRIES < 1:
            raise ValueError("GRAPH_MAX_RETRIES must be at least 1")
        if self.STALE_USER_HIGH_SEVERITY_DAYS < self.INACTIVE_USER_DAYS:
            raise ValueError(
                "STALE_USER_HIGH_SEVERITY_DAYS must not be lower than INACTIVE_USER_DAYS"
            )
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == ENV_PRODUCTION
