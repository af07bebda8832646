"""Provider capability contracts.

The pipeline only talks to clouds through these interfaces. A concrete
adapter bundles DNS, state store and infrastructure operations for one cloud
plus optional hooks for provider-specific ordering quirks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from shared.models import Checkpoint, Cluster, StateStoreCredentials, StateStoreDetails
from shared.observability import get_logger

if TYPE_CHECKING:
    from ..pipeline.config import ProviderConfig
    from ..services.terraform import TerraformRunner

logger = get_logger(__name__)


class ProviderError(Exception):
    """Raised when a cloud provider API call fails."""

    pass


@dataclass
class TXTRecord:
    """A TXT record; ``name`` is fully qualified without a trailing dot."""

    name: str
    value: str


@dataclass
class DanglingResource:
    """Infrastructure left behind outside terraform's view."""

    kind: str
    id: str
    name: str = ""
    region: str = ""


@dataclass
class InfrastructureHandle:
    """Result of creating the cluster infrastructure."""

    kubeconfig_path: Path
    outputs: dict[str, str] = field(default_factory=dict)


class DNSRecordProvider(Protocol):
    async def list_txt_records(self, zone: str) -> list[TXTRecord]: ...

    async def upsert_txt_record(self, zone: str, name: str, value: str, ttl: int) -> None: ...


class ProviderAdapter(ABC):
    """Capabilities of one cloud provider for one cluster record.

    Adapters are built per pipeline run from the cluster's own credentials;
    none of them hold process-wide clients.
    """

    name: str = ""
    # TTL override for the liveness record; None uses the configured default
    liveness_ttl: int | None = None
    # Extra checkpoint owned by the post-create hook, if any
    post_create_checkpoint: Checkpoint | None = None
    # Vault unseals through the cloud KMS and is initialized over its API
    auto_unseal: bool = False

    def __init__(self, cluster: Cluster):
        self.cluster = cluster
        self._dns_override: DNSRecordProvider | None = None

    # DNS

    def dns(self) -> DNSRecordProvider:
        """DNS capability for the cluster's configured DNS provider."""
        if self._dns_override is None and self.cluster.dns_provider == "cloudflare":
            from .cloudflare import CloudflareDNS

            self._dns_override = CloudflareDNS(self.cluster.cloudflare_auth.api_token)
        return self._dns_override or self.native_dns()

    @abstractmethod
    def native_dns(self) -> DNSRecordProvider:
        """The cloud's own DNS service."""

    # State store

    @abstractmethod
    async def create_state_store_credentials(self) -> StateStoreCredentials:
        """Obtain credentials able to read and write the terraform state bucket."""

    @abstractmethod
    async def create_state_store(self, credentials: StateStoreCredentials) -> StateStoreDetails:
        """Create the terraform state bucket (and artifacts bucket where used)."""

    # Infrastructure

    def terraform_env(self) -> dict[str, str]:
        """Provider credentials exported to every terraform stage."""
        return {}

    def external_dns_credentials(self) -> dict[str, str]:
        """Data of the external-dns credentials secret in the new cluster."""
        if self.cluster.dns_provider == "cloudflare":
            token = self.cluster.cloudflare_auth.api_token
            return {"cf-api-token": token, "cloudflare-token": token}
        return {}

    def destroy_extra_env(self) -> dict[str, str]:
        """Additional variables needed only when destroying cloud resources."""
        return {}

    async def prepare(self, config: ProviderConfig) -> None:
        """Resolve provider-derived identifiers before any phase runs."""

    async def create_infrastructure(self, config: ProviderConfig, terraform: TerraformRunner) -> InfrastructureHandle:
        """Apply the cloud terraform stage that creates the Kubernetes cluster."""
        await terraform.apply(config.cloud_terraform_dir, config.cloud_env(self))
        if not config.kubeconfig_path.exists():
            raise ProviderError(f"terraform did not produce a kubeconfig at {config.kubeconfig_path}")
        return InfrastructureHandle(kubeconfig_path=config.kubeconfig_path)

    async def destroy_infrastructure(self, config: ProviderConfig, terraform: TerraformRunner) -> None:
        env = {**config.cloud_env(self), **self.destroy_extra_env()}
        await terraform.destroy(config.cloud_terraform_dir, env)

    async def post_create(self, config: ProviderConfig) -> bool:
        """Hook run right after the cloud terraform apply succeeds.

        Returns:
            True when it changed gitops content that must be pushed
        """
        return False

    async def before_cloud_destroy(self, config: ProviderConfig) -> None:
        """Hook run after the registry application is removed on delete."""

    async def list_dangling_resources(self, cluster_id: str) -> list[DanglingResource]:
        """Resources that outlive the cloud destroy.

        Listed before the destroy runs, while the cluster still exists, and
        deleted once it has finished.
        """
        return []

    async def delete_dangling_resource(self, resource: DanglingResource) -> None:
        raise ProviderError(f"{self.name} cannot delete {resource.kind} {resource.id}")
