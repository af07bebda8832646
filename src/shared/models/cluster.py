"""Cluster domain models."""

from datetime import datetime
from enum import Enum

from pydantic import Field

from .auth import (
    AkamaiAuth,
    AWSAuth,
    AzureAuth,
    CivoAuth,
    CloudflareAuth,
    DigitaloceanAuth,
    GitAuth,
    GoogleAuth,
    K3sAuth,
    StateStoreCredentials,
    StateStoreDetails,
    VaultAuth,
)
from .base import KubefirstBaseModel
from .common import utc_now


class CloudProvider(str, Enum):
    AKAMAI = "akamai"
    AWS = "aws"
    AZURE = "azure"
    CIVO = "civo"
    DIGITALOCEAN = "digitalocean"
    GOOGLE = "google"
    K3S = "k3s"


class ClusterType(str, Enum):
    MGMT = "mgmt"
    WORKLOAD = "workload"


class GitProvider(str, Enum):
    GITHUB = "github"
    GITLAB = "gitlab"


class GitProtocol(str, Enum):
    SSH = "ssh"
    HTTPS = "https"


class ClusterStatus(str, Enum):
    """Lifecycle status of a cluster record."""

    PROVISIONING = "provisioning"
    PROVISIONED = "provisioned"
    DELETING = "deleting"
    DELETED = "deleted"
    ERROR = "error"


class Checkpoint(str, Enum):
    """Durable progress flags, in create order.

    Each value is the name of the boolean field on Cluster that records the
    phase as completed.
    """

    INSTALL_TOOLS = "install_tools_check"
    DOMAIN_LIVENESS = "domain_liveness_check"
    STATE_STORE_CREDS = "state_store_creds_check"
    STATE_STORE_CREATE = "state_store_create_check"
    GIT_INIT = "git_init_check"
    KBOT_SETUP = "kbot_setup_check"
    GITOPS_READY = "gitops_ready_check"
    GIT_TERRAFORM_APPLY = "git_terraform_apply_check"
    GITOPS_PUSHED = "gitops_pushed_check"
    CLOUD_TERRAFORM_APPLY = "cloud_terraform_apply_check"
    CLOUD_TERRAFORM_APPLY_FAILED = "cloud_terraform_apply_failed_check"
    AWS_KMS_KEY_DETOKENIZED = "aws_kms_key_detokenized_check"
    CLUSTER_SECRETS_CREATED = "cluster_secrets_created_check"
    ARGOCD_INSTALL = "argocd_install_check"
    ARGOCD_INITIALIZE = "argocd_initialize_check"
    ARGOCD_CREATE_REGISTRY = "argocd_create_registry_check"
    ARGOCD_DELETE_REGISTRY = "argocd_delete_registry_check"
    VAULT_INITIALIZED = "vault_initialized_check"
    VAULT_TERRAFORM_APPLY = "vault_terraform_apply_check"
    USERS_TERRAFORM_APPLY = "users_terraform_apply_check"


# Flags whose truth gates a destroy step on delete.
DESTROY_GATING_CHECKPOINTS = (
    Checkpoint.GIT_TERRAFORM_APPLY,
    Checkpoint.CLOUD_TERRAFORM_APPLY,
    Checkpoint.CLOUD_TERRAFORM_APPLY_FAILED,
)


class WorkloadCluster(KubefirstBaseModel):
    """Environment-scoped child cluster owned by a management cluster."""

    admin_email: str = ""
    cloud_provider: str = ""
    cluster_id: str = ""
    cluster_name: str = ""
    cluster_type: str = ClusterType.WORKLOAD.value
    cloud_region: str = ""
    creation_timestamp: str = ""
    domain_name: str = ""
    dns_provider: str = ""
    environment: dict | None = None
    git_auth: GitAuth = Field(default_factory=GitAuth)
    instance_size: str = ""
    node_type: str = ""
    node_count: int = 0
    status: str = ""


class Cluster(KubefirstBaseModel):
    """Persisted aggregate describing one managed cluster."""

    creation_timestamp: datetime = Field(default_factory=utc_now)

    # Identity
    cluster_name: str
    cluster_id: str = ""
    cluster_type: ClusterType = ClusterType.MGMT
    alerts_email: str = ""
    cloud_provider: CloudProvider
    cloud_region: str = ""
    domain_name: str = ""
    subdomain_name: str = ""
    dns_provider: str = ""
    git_provider: GitProvider = GitProvider.GITHUB
    git_protocol: GitProtocol = GitProtocol.SSH
    git_host: str = ""
    gitlab_owner_group_id: int = 0
    gitops_template_url: str = ""
    gitops_template_branch: str = ""
    node_type: str = ""
    node_count: int = 0
    log_file: str = ""

    # Lifecycle
    status: ClusterStatus = ClusterStatus.PROVISIONING
    in_progress: bool = False
    last_condition: str = ""

    # Auth
    akamai_auth: AkamaiAuth = Field(default_factory=AkamaiAuth)
    aws_auth: AWSAuth = Field(default_factory=AWSAuth)
    azure_auth: AzureAuth = Field(default_factory=AzureAuth)
    civo_auth: CivoAuth = Field(default_factory=CivoAuth)
    do_auth: DigitaloceanAuth = Field(default_factory=DigitaloceanAuth)
    google_auth: GoogleAuth = Field(default_factory=GoogleAuth)
    k3s_auth: K3sAuth = Field(default_factory=K3sAuth)
    cloudflare_auth: CloudflareAuth = Field(default_factory=CloudflareAuth)
    git_auth: GitAuth = Field(default_factory=GitAuth)
    vault_auth: VaultAuth = Field(default_factory=VaultAuth)

    # Derived outputs
    atlantis_webhook_secret: str = ""
    atlantis_webhook_url: str = ""
    kubefirst_team: str = ""
    state_store_credentials: StateStoreCredentials = Field(default_factory=StateStoreCredentials)
    state_store_details: StateStoreDetails = Field(default_factory=StateStoreDetails)
    argocd_username: str = ""
    argocd_password: str = ""
    argocd_auth_token: str = ""
    ecr: bool = False
    aws_account_id: str = ""
    aws_kms_key_id: str = ""
    container_registry_host: str = ""

    # Checkpoints
    install_tools_check: bool = False
    domain_liveness_check: bool = False
    state_store_creds_check: bool = False
    state_store_create_check: bool = False
    git_init_check: bool = False
    kbot_setup_check: bool = False
    gitops_ready_check: bool = False
    git_terraform_apply_check: bool = False
    gitops_pushed_check: bool = False
    cloud_terraform_apply_check: bool = False
    cloud_terraform_apply_failed_check: bool = False
    aws_kms_key_detokenized_check: bool = False
    cluster_secrets_created_check: bool = False
    argocd_install_check: bool = False
    argocd_initialize_check: bool = False
    argocd_create_registry_check: bool = False
    argocd_delete_registry_check: bool = False
    vault_initialized_check: bool = False
    vault_terraform_apply_check: bool = False
    users_terraform_apply_check: bool = False

    workload_clusters: list[WorkloadCluster] = Field(default_factory=list)

    @property
    def full_domain(self) -> str:
        if self.subdomain_name:
            return f"{self.subdomain_name}.{self.domain_name}"
        return self.domain_name

    def is_checked(self, checkpoint: Checkpoint) -> bool:
        return bool(getattr(self, Checkpoint(checkpoint).value))

    def set_checkpoint(self, checkpoint: Checkpoint, value: bool = True) -> None:
        setattr(self, Checkpoint(checkpoint).value, value)

    def checkpoints(self) -> dict[str, bool]:
        """Checkpoint flags in create order."""
        return {cp.value: getattr(self, cp.value) for cp in Checkpoint}
