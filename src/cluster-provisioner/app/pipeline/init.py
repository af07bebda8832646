"""Build the initial cluster record from a definition."""

from __future__ import annotations

import secrets
import string

from shared.config import PipelineSettings
from shared.models import Cluster, ClusterDefinition, ClusterStatus, GitProvider, StateStoreDetails

GIT_HOSTS = {
    GitProvider.GITHUB.value: ("github.com", "ghcr.io"),
    GitProvider.GITLAB.value: ("gitlab.com", "registry.gitlab.com"),
}

CLUSTER_ID_ALPHABET = string.ascii_lowercase + string.digits

AUTH_FIELDS = (
    "akamai_auth",
    "aws_auth",
    "azure_auth",
    "civo_auth",
    "do_auth",
    "google_auth",
    "k3s_auth",
    "cloudflare_auth",
)


def generate_cluster_id(length: int = 6) -> str:
    return "".join(secrets.choice(CLUSTER_ID_ALPHABET) for _ in range(length))


def initialize_cluster(
    definition: ClusterDefinition,
    existing: Cluster | None,
    settings: PipelineSettings,
) -> Cluster:
    """Build the record a create run will drive.

    A live record (any status but ``deleted``) is resumed: its checkpoints and
    derived identifiers are kept so bucket names stay stable across retries,
    and only the credential payloads are refreshed from the definition. A
    record left in ``deleted`` status is treated as absent.
    """
    if existing is not None and existing.status != ClusterStatus.DELETED:
        for field in AUTH_FIELDS:
            setattr(existing, field, getattr(definition, field))
        # Keep the generated kbot keys; only the caller's token may rotate
        if definition.git_auth.git_token:
            existing.git_auth.git_token = definition.git_auth.git_token
        return existing

    cluster_id = generate_cluster_id()

    git_host, registry_host = GIT_HOSTS[str(definition.git_provider)]
    name = definition.cluster_name

    cluster = Cluster(
        cluster_name=name,
        cluster_id=cluster_id,
        cluster_type=definition.type,
        alerts_email=definition.admin_email,
        cloud_provider=definition.cloud_provider,
        cloud_region=definition.cloud_region,
        domain_name=definition.domain_name,
        subdomain_name=definition.subdomain_name,
        dns_provider=definition.dns_provider,
        git_provider=definition.git_provider,
        git_protocol=definition.git_protocol,
        git_host=git_host,
        container_registry_host=registry_host,
        gitops_template_url=definition.gitops_template_url or settings.gitops_template_url,
        gitops_template_branch=definition.gitops_template_branch or settings.gitops_template_branch,
        node_type=definition.node_type,
        node_count=definition.node_count,
        ecr=definition.ecr,
        log_file=definition.log_file,
        status=ClusterStatus.PROVISIONING,
        akamai_auth=definition.akamai_auth,
        aws_auth=definition.aws_auth,
        azure_auth=definition.azure_auth,
        civo_auth=definition.civo_auth,
        do_auth=definition.do_auth,
        google_auth=definition.google_auth,
        k3s_auth=definition.k3s_auth,
        cloudflare_auth=definition.cloudflare_auth,
        git_auth=definition.git_auth,
        atlantis_webhook_secret=secrets.token_hex(10),
        state_store_details=StateStoreDetails(
            name=f"k1-state-store-{name}-{cluster_id}",
            aws_state_store_bucket=f"k1-state-store-{name}-{cluster_id}",
            aws_artifacts_bucket=f"k1-artifacts-{name}-{cluster_id}",
        ),
    )
    cluster.atlantis_webhook_url = f"https://atlantis.{cluster.full_domain}/events"
    return cluster
