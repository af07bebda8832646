"""Cluster definition submitted by callers to start a create run."""

import re

from pydantic import Field, field_validator, model_validator

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
)
from .base import KubefirstBaseModel
from .cluster import CloudProvider, ClusterType, GitProtocol, GitProvider

CLUSTER_NAME_PATTERN = r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$"

# Which auth payload must be populated for each cloud, and the field that
# proves it is populated.
REQUIRED_CLOUD_AUTH: dict[str, tuple[str, str]] = {
    CloudProvider.AKAMAI.value: ("akamai_auth", "token"),
    CloudProvider.AWS.value: ("aws_auth", "access_key_id"),
    CloudProvider.AZURE.value: ("azure_auth", "client_id"),
    CloudProvider.CIVO.value: ("civo_auth", "token"),
    CloudProvider.DIGITALOCEAN.value: ("do_auth", "token"),
    CloudProvider.GOOGLE.value: ("google_auth", "key_file"),
    CloudProvider.K3S.value: ("k3s_auth", "ssh_privatekey"),
}


class ClusterDefinition(KubefirstBaseModel):
    """Request model for creating a cluster."""

    cluster_name: str = Field(min_length=1, max_length=63)
    admin_email: str = Field(min_length=1)
    cloud_provider: CloudProvider
    cloud_region: str = Field(min_length=1)
    domain_name: str = Field(min_length=1)
    subdomain_name: str = ""
    dns_provider: str = Field(min_length=1)
    git_provider: GitProvider
    git_protocol: GitProtocol = GitProtocol.SSH
    type: ClusterType = ClusterType.MGMT
    node_type: str = Field(min_length=1)
    node_count: int = Field(ge=1)
    gitops_template_url: str = ""
    gitops_template_branch: str = ""
    ecr: bool = False
    log_file: str = ""

    akamai_auth: AkamaiAuth = Field(default_factory=AkamaiAuth)
    aws_auth: AWSAuth = Field(default_factory=AWSAuth)
    azure_auth: AzureAuth = Field(default_factory=AzureAuth)
    civo_auth: CivoAuth = Field(default_factory=CivoAuth)
    do_auth: DigitaloceanAuth = Field(default_factory=DigitaloceanAuth)
    google_auth: GoogleAuth = Field(default_factory=GoogleAuth)
    k3s_auth: K3sAuth = Field(default_factory=K3sAuth)
    cloudflare_auth: CloudflareAuth = Field(default_factory=CloudflareAuth)
    git_auth: GitAuth = Field(default_factory=GitAuth)

    @field_validator("cluster_name")
    @classmethod
    def validate_cluster_name(cls, v: str) -> str:
        if not re.match(CLUSTER_NAME_PATTERN, v):
            raise ValueError("Name must be DNS-compatible (lowercase alphanumeric with hyphens)")
        return v

    @field_validator("domain_name")
    @classmethod
    def strip_domain(cls, v: str) -> str:
        return v.strip().rstrip(".").lower()

    @model_validator(mode="after")
    def validate_credentials(self) -> "ClusterDefinition":
        auth_field, required_key = REQUIRED_CLOUD_AUTH[str(self.cloud_provider)]
        if not getattr(getattr(self, auth_field), required_key):
            raise ValueError(
                f"missing {auth_field}.{required_key} for cloud provider {self.cloud_provider}"
            )
        if self.dns_provider == "cloudflare" and not self.cloudflare_auth.api_token:
            raise ValueError("missing cloudflare_auth.api_token for dns provider cloudflare")
        if self.gitops_template_url and not self.gitops_template_branch:
            raise ValueError("a gitops_template_branch is required with a custom gitops_template_url")
        return self
