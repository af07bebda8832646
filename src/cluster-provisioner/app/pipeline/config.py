"""Per-run provider configuration.

Built once per pipeline run from the cluster record and settings, and passed
down to every phase. Nothing here is cached at module level.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from shared.config import PipelineSettings
from shared.models import Cluster, GitProtocol, GitProvider

from ..services.terraform import (
    cloud_terraform_env,
    git_terraform_env,
    users_terraform_env,
    vault_terraform_env,
)

if TYPE_CHECKING:
    from ..providers.base import ProviderAdapter


@dataclass
class ProviderConfig:
    cluster_name: str
    cluster_dir: Path
    cloud_provider: str
    git_provider: str
    git_host: str
    git_owner: str
    git_protocol: str

    @classmethod
    def from_cluster(cls, cluster: Cluster, settings: PipelineSettings) -> ProviderConfig:
        return cls(
            cluster_name=cluster.cluster_name,
            cluster_dir=Path(settings.k1_dir).expanduser() / cluster.cluster_name,
            cloud_provider=str(cluster.cloud_provider),
            git_provider=str(cluster.git_provider),
            git_host=cluster.git_host,
            git_owner=cluster.git_auth.git_owner,
            git_protocol=str(cluster.git_protocol),
        )

    # Local layout

    @property
    def gitops_dir(self) -> Path:
        return self.cluster_dir / "gitops"

    @property
    def metaphor_dir(self) -> Path:
        return self.cluster_dir / "metaphor"

    @property
    def tools_dir(self) -> Path:
        return self.cluster_dir / "tools"

    @property
    def kubectl_path(self) -> Path:
        return self.tools_dir / "kubectl"

    @property
    def terraform_path(self) -> Path:
        return self.tools_dir / "terraform"

    @property
    def kubeconfig_path(self) -> Path:
        return self.cluster_dir / "kubeconfig"

    @property
    def ssl_backup_dir(self) -> Path:
        return self.cluster_dir / "ssl"

    @property
    def cloud_terraform_dir(self) -> Path:
        return self.gitops_dir / "terraform" / self.cloud_provider

    @property
    def git_terraform_dir(self) -> Path:
        return self.gitops_dir / "terraform" / self.git_provider

    @property
    def vault_terraform_dir(self) -> Path:
        return self.gitops_dir / "terraform" / "vault"

    @property
    def users_terraform_dir(self) -> Path:
        return self.gitops_dir / "terraform" / "users"

    @property
    def registry_path(self) -> str:
        return f"registry/clusters/{self.cluster_name}"

    # Remotes

    def repo_url(self, repo: str, protocol: str | None = None) -> str:
        if (protocol or self.git_protocol) == GitProtocol.HTTPS:
            return f"https://{self.git_host}/{self.git_owner}/{repo}.git"
        return f"git@{self.git_host}:{self.git_owner}/{repo}.git"

    # Terraform environments

    def cloud_env(self, adapter: ProviderAdapter) -> dict[str, str]:
        env = cloud_terraform_env(adapter.cluster, adapter.terraform_env())
        return {**env, **dns_terraform_env(adapter.cluster)}

    def git_env(self, adapter: ProviderAdapter) -> dict[str, str]:
        return git_terraform_env(adapter.cluster, adapter.terraform_env())

    def vault_env(self, adapter: ProviderAdapter, vault_addr: str) -> dict[str, str]:
        env = vault_terraform_env(adapter.cluster, adapter.terraform_env(), vault_addr)
        return {**env, **dns_terraform_env(adapter.cluster)}

    def users_env(self, adapter: ProviderAdapter, vault_addr: str) -> dict[str, str]:
        return users_terraform_env(adapter.cluster, adapter.terraform_env(), vault_addr)


def dns_terraform_env(cluster: Cluster) -> dict[str, str]:
    if cluster.dns_provider != "cloudflare":
        return {}
    return {
        "CF_API_TOKEN": cluster.cloudflare_auth.api_token,
        "TF_VAR_cloudflare_api_key": cluster.cloudflare_auth.api_token,
        "TF_VAR_cloudflare_origin_ca_api_key": cluster.cloudflare_auth.origin_ca_issuer_key,
    }


def template_tokens(cluster: Cluster, config: ProviderConfig) -> dict[str, str]:
    """Placeholder values substituted into the gitops and metaphor templates."""
    domain = cluster.full_domain
    git = str(cluster.git_provider).upper()
    tokens = {
        "<ALERTS_EMAIL>": cluster.alerts_email,
        "<CLOUD_PROVIDER>": str(cluster.cloud_provider),
        "<CLOUD_REGION>": cluster.cloud_region,
        "<CLUSTER_ID>": cluster.cluster_id,
        "<CLUSTER_NAME>": cluster.cluster_name,
        "<CLUSTER_TYPE>": str(cluster.cluster_type),
        "<DOMAIN_NAME>": domain,
        "<KUBEFIRST_TEAM>": cluster.kubefirst_team or "false",
        "<KUBE_CONFIG_PATH>": str(config.kubeconfig_path),
        "<GIT_PROVIDER>": str(cluster.git_provider),
        "<GIT_FQDN>": cluster.git_host,
        "<GITOPS_REPO_URL>": config.repo_url("gitops"),
        "<GIT_REPO_NAME>": "gitops",
        "<METAPHOR_REPO_NAME>": "metaphor",
        "<ADMIN_TEAM>": "admins",
        "<DEVELOPER_TEAM>": "developers",
        "<CONTAINER_REGISTRY_URL>": f"{cluster.container_registry_host}/{cluster.git_auth.git_owner}",
        "<ARGOCD_INGRESS_URL>": f"https://argocd.{domain}",
        "<ARGO_WORKFLOWS_INGRESS_URL>": f"https://argo.{domain}",
        "<ATLANTIS_INGRESS_URL>": f"https://atlantis.{domain}",
        "<VAULT_INGRESS_URL>": f"https://vault.{domain}",
        "<METAPHOR_DEVELOPMENT_INGRESS_URL>": f"https://metaphor-development.{domain}",
        "<METAPHOR_STAGING_INGRESS_URL>": f"https://metaphor-staging.{domain}",
        "<METAPHOR_PRODUCTION_INGRESS_URL>": f"https://metaphor-production.{domain}",
        f"<{git}_HOST>": cluster.git_host,
        f"<{git}_OWNER>": cluster.git_auth.git_owner,
        f"<{git}_USER>": cluster.git_auth.git_username,
    }
    if cluster.git_provider == GitProvider.GITLAB:
        tokens["<GITLAB_OWNER_GROUP_ID>"] = str(cluster.gitlab_owner_group_id)
    return tokens
