"""Configuration management with Pydantic Settings.

Environment variables are loaded from:
1. Environment variables (highest priority)
2. .env file (development)
3. Defaults (lowest priority)
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Logging format."""

    JSON = "json"
    TEXT = "text"


class StoreSettings(BaseSettings):
    """Document store backed by Kubernetes Secrets."""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    namespace: str = Field(default="kubefirst", description="Namespace holding collection secrets")
    max_conflict_retries: int = Field(
        default=5,
        description="Re-read attempts after a resourceVersion conflict",
    )


class LivenessSettings(BaseSettings):
    """Domain liveness check parameters."""

    model_config = SettingsConfigDict(env_prefix="LIVENESS_")

    record_label: str = Field(default="kubefirst-liveness", description="Check record label")
    record_value: str = Field(
        default="domain record propagated",
        description="Expected TXT value",
    )
    ttl: int = Field(default=600, description="TTL of the check record")
    retries: int = Field(default=100, description="Lookup attempts before timing out")
    interval_seconds: float = Field(default=10.0, description="Pause between lookups")
    fallback_resolver: str = Field(default="8.8.8.8", description="Public resolver used on lookup failure")


class ToolSettings(BaseSettings):
    """CLI tooling downloaded for each run."""

    model_config = SettingsConfigDict(env_prefix="TOOLS_")

    kubectl_version: str = Field(default="v1.25.1", description="kubectl release")
    terraform_version: str = Field(default="1.4.6", description="terraform release")
    kubectl_base_url: str = Field(default="https://dl.k8s.io/release")
    terraform_base_url: str = Field(default="https://releases.hashicorp.com/terraform")
    download_timeout_seconds: float = Field(default=300.0)
    download_retries: int = Field(default=3, ge=1, description="Attempts per download")
    download_retry_delay_seconds: float = Field(default=2.0, ge=0)


class PipelineSettings(BaseSettings):
    """Provisioning pipeline behaviour."""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_")

    k1_dir: Path = Field(
        default_factory=lambda: Path.home() / ".k1",
        description="Root of per-cluster working directories",
    )
    gitops_template_url: str = Field(default="https://github.com/kubefirst/gitops-template.git")
    gitops_template_branch: str = Field(default="v2.3.5")
    argocd_manifest_url: str = Field(
        default="https://github.com/kubefirst/manifests/argocd/cloud?ref=v1.1.0",
        description="Kustomize target used to install Argo CD",
    )
    vault_handler_manifest_url: str = Field(
        default="https://github.com/kubefirst/manifests/vault-handler/replicas-3?ref=v1.1.0",
        description="Kustomize target of the job that initializes and unseals Vault",
    )
    cluster_api_timeout_seconds: int = Field(default=600)
    argocd_ready_timeout_seconds: int = Field(default=300)
    vault_ready_timeout_seconds: int = Field(default=600)
    final_wave_timeout_seconds: int = Field(default=3600)
    poll_interval_seconds: float = Field(default=5.0)
    registry_delete_pause_seconds: float = Field(default=10.0)
    vault_terraform_retry_pause_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Pause before the single retry of a failed Vault terraform apply",
    )
    argocd_port: int = Field(default=8080)
    vault_port: int = Field(default=8200)


class Settings(BaseSettings):
    """Main application settings.

    All settings can be overridden via environment variables.
    For nested settings, use the appropriate prefix (e.g., STORE_NAMESPACE).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="kubefirst-provisioner", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        alias="ENV",
        description="Deployment environment",
    )

    # Logging configuration
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: LogFormat = Field(default=LogFormat.JSON, description="Logging format")

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server bind host")
    port: int = Field(default=8081, description="Server bind port")
    workers: int = Field(default=1, description="Number of worker processes")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Nested settings
    store: StoreSettings = Field(default_factory=StoreSettings)
    liveness: LivenessSettings = Field(default_factory=LivenessSettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)

    @field_validator("workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensure workers is at least 1."""
        return max(1, v)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEVELOPMENT


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses LRU cache to avoid re-parsing environment variables.
    """
    return Settings()


class ProvisionerSettings(Settings):
    """Settings specific to the Cluster Provisioner service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    create_default_environments: bool = Field(
        default=True,
        description="Seed development/staging/production environments on startup",
    )
    gitops_catalog_path: Path | None = Field(
        default=None,
        description="YAML file used to seed the gitops catalog",
    )
