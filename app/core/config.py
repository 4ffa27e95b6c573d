"""Core configuration settings.

Centralized configuration using Pydantic Settings for environment
variable management with sensible defaults.
"""

import logging
import os
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Security features:
    - Debug mode validation (cannot be True in production)
    - CORS origin validation (no wildcards in production)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        alias="ENVIRONMENT",
    )

    # Application
    app_name: str = "M365 Assessment Platform"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Backing store (any SQLAlchemy URL)
    database_url: str = "sqlite:///./data/assessments.db"
    slow_query_threshold_ms: float = Field(default=500.0, alias="SLOW_QUERY_THRESHOLD_MS")
    enable_query_logging: bool = Field(default=False, alias="ENABLE_QUERY_LOGGING")

    # Platform's own app registration (distinct from per-customer credentials)
    azure_tenant_id: str | None = None
    azure_client_id: str | None = None
    azure_client_secret: str | None = None

    # Customer client secrets are stored in Key Vault and referenced by name
    key_vault_url: str | None = None
    key_vault_secret_ttl_seconds: int = 300
    # Development only: secret reference -> secret value
    local_customer_secrets: dict[str, str] = Field(
        default_factory=dict, alias="LOCAL_CUSTOMER_SECRETS"
    )

    # Microsoft Graph
    graph_api_base: str = Field(
        default="https://graph.microsoft.com/v1.0", alias="GRAPH_API_BASE"
    )
    graph_scope: str = Field(
        default="https://graph.microsoft.com/.default", alias="GRAPH_SCOPE"
    )
    directory_api_timeout_seconds: float = Field(
        default=30.0, alias="DIRECTORY_API_TIMEOUT_SECONDS"
    )

    # CORS (RESTRICTED in production - no wildcards allowed)
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Caching (CACHE_ENABLED=false bypasses the response cache)
    cache_enabled: bool = Field(default=True, alias="CACHE_ENABLED")
    cache_ttl_customer_list: int = Field(default=60, alias="CACHE_TTL_CUSTOMER_LIST")
    cache_ttl_assessment_list: int = Field(default=30, alias="CACHE_TTL_ASSESSMENT_LIST")

    @field_validator("environment", mode="before")
    @classmethod
    def detect_environment(cls, v: str | None) -> str:
        """Auto-detect environment from common environment variables."""
        if v:
            return v.lower()

        if os.getenv("PRODUCTION") or os.getenv("PROD"):
            return "production"
        if os.getenv("STAGING"):
            return "staging"

        return "development"

    @model_validator(mode="after")
    def validate_debug_mode(self):
        """CRITICAL: Prevent debug mode in production."""
        if self.environment == "production" and self.debug:
            logger.error(
                "CRITICAL SECURITY ERROR: DEBUG mode cannot be enabled in production! "
                "Set DEBUG=false or ENVIRONMENT=development"
            )
            raise ValueError("DEBUG cannot be True in production environment")
        return self

    @model_validator(mode="after")
    def validate_cors_origins(self):
        """CRITICAL: Prevent wildcard CORS in production."""
        if self.environment == "production":
            for origin in self.cors_origins:
                if origin.strip() == "*":
                    logger.error(
                        "CRITICAL SECURITY ERROR: Wildcard (*) CORS origin not allowed in production! "
                        "Set explicit origins in CORS_ORIGINS"
                    )
                    raise ValueError("Wildcard CORS origin (*) not allowed in production")
        return self

    @model_validator(mode="after")
    def warn_local_secrets(self):
        """Local secrets are a development convenience only."""
        if self.local_customer_secrets and self.environment != "development":
            logger.warning(
                f"LOCAL_CUSTOMER_SECRETS is set in {self.environment}; "
                "customer secrets should come from Key Vault"
            )
        return self

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_configured(self) -> bool:
        """Check if the platform's own app registration is configured."""
        return all([
            self.azure_tenant_id,
            self.azure_client_id,
            self.azure_client_secret,
        ])

    def get_cache_ttl(self, data_type: str) -> int:
        """Get TTL for a specific data type."""
        ttl_map = {
            "customer_list": self.cache_ttl_customer_list,
            "assessment_list": self.cache_ttl_assessment_list,
        }
        return ttl_map.get(data_type, 30)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
