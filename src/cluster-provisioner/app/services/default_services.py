"""Services registered for every newly provisioned cluster."""

from __future__ import annotations

from shared.models import CloudProvider, Cluster, Service
from shared.observability import get_logger

from ..repositories import ServiceAlreadyExistsError, ServiceRepository
from .kbot import KBOT_USER

logger = get_logger(__name__)

ASSETS_URL = "https://assets.kubefirst.com/console"

# Clusters running on local hosts also get the metaphor demo app listed
METAPHOR_CLOUDS = {CloudProvider.K3S.value}


def default_services(cluster: Cluster) -> list[Service]:
    domain = cluster.full_domain
    owner = cluster.git_auth.git_owner
    git_provider = str(cluster.git_provider)

    services = [
        Service(
            name=git_provider,
            description="The git repositories contain all the Infrastructure as Code and Gitops configurations.",
            image=f"{ASSETS_URL}/{git_provider}.svg",
            links=[
                f"https://{cluster.git_host}/{owner}/gitops",
                f"https://{cluster.git_host}/{owner}/metaphor",
            ],
        ),
        Service(
            name="Vault",
            description="Kubefirst's secrets manager and identity provider.",
            image=f"{ASSETS_URL}/vault.svg",
            links=[f"https://vault.{domain}"],
        ),
        Service(
            name="Argo CD",
            description=(
                "A Gitops oriented continuous delivery tool for managing all of our "
                "applications across our Kubernetes clusters."
            ),
            image=f"{ASSETS_URL}/argocd.svg",
            links=[f"https://argocd.{domain}"],
        ),
        Service(
            name="Argo Workflows",
            description="The workflow engine for orchestrating parallel jobs on Kubernetes.",
            image=f"{ASSETS_URL}/argocd.svg",
            links=[f"https://argo.{domain}/workflows"],
        ),
        Service(
            name="Atlantis",
            description="Kubefirst manages Terraform workflows with Atlantis automation.",
            image=f"{ASSETS_URL}/atlantis.svg",
            links=[f"https://atlantis.{domain}"],
        ),
    ]

    if cluster.cloud_provider in METAPHOR_CLOUDS:
        services.append(
            Service(
                name="Metaphor",
                description=(
                    "A multi-environment demonstration space for frontend application "
                    "best practices that's easy to apply to other projects."
                ),
                image=f"{ASSETS_URL}/metaphor.svg",
                links=[
                    f"https://metaphor-development.{domain}",
                    f"https://metaphor-staging.{domain}",
                    f"https://metaphor-production.{domain}",
                ],
            )
        )

    for service in services:
        service.default = True
        service.created_by = KBOT_USER
    return services


async def add_default_services(repository: ServiceRepository, cluster: Cluster) -> int:
    """Create the cluster's service list and register the defaults.

    Services already present are left untouched, so this can run again on a
    resumed create.

    Returns:
        Number of services added
    """
    await repository.create_list(cluster.cluster_name)
    added = 0
    for service in default_services(cluster):
        try:
            await repository.add(cluster.cluster_name, service)
            added += 1
        except ServiceAlreadyExistsError:
            logger.debug("Default service already registered", service=service.name)
    logger.info("Registered default services", added=added)
    return added
