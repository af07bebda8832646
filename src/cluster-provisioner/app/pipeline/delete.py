"""Delete pipeline phases.

Delete phases carry no checkpoint of their own. Each one consults the create
flags that gate it and clears them as the matching resources are destroyed,
so a retried delete resumes after the last destroy that succeeded.
"""

from __future__ import annotations

import asyncio
import shutil

from shared.models import Checkpoint, ClusterStatus, GitProvider
from shared.observability import get_logger

from ..providers.base import ProviderAdapter
from ..services.argocd import (
    ARGOCD_ADMIN_SECRET,
    ARGOCD_NAMESPACE,
    ARGOCD_SERVER_SERVICE,
    REGISTRY_APPLICATION,
)
from ..services.git_provider import DEFAULT_REPOSITORIES, GitOperationError
from ..services.kbot import KBOT_SSH_KEY_TITLE
from .phases import Phase, RunContext

logger = get_logger(__name__)


async def mark_deleting(ctx: RunContext) -> None:
    ctx.cluster.status = ClusterStatus.DELETING
    await ctx.save()


async def git_terraform_destroy(ctx: RunContext) -> None:
    if not ctx.cluster.git_terraform_apply_check:
        logger.info("Git terraform was never applied, nothing to destroy")
        return

    if ctx.cluster.git_provider == GitProvider.GITLAB:
        # Registry repositories block deletion of the projects that own them
        client = ctx.collaborators.git_provider(ctx.cluster)
        try:
            await client.delete_container_registry_repositories(DEFAULT_REPOSITORIES)
        except GitOperationError as e:
            logger.warning("Could not clean gitlab container registries", error=str(e))

    await ctx.terraform.destroy(ctx.config.git_terraform_dir, ctx.config.git_env(ctx.adapter))
    await ctx.checkpoint(Checkpoint.GIT_TERRAFORM_APPLY, False)


async def delete_registry_application(ctx: RunContext) -> None:
    """Remove the root application so Argo CD tears down what it deployed.

    Cloud load balancers and volumes created by synced workloads would
    otherwise outlive the terraform destroy.
    """
    cluster = ctx.cluster
    if not (cluster.cloud_terraform_apply_check or cluster.cloud_terraform_apply_failed_check):
        return
    if cluster.cloud_terraform_apply_failed_check or cluster.argocd_delete_registry_check:
        return

    if cluster.argocd_install_check:
        secret = await ctx.target.read_secret(ARGOCD_NAMESPACE, ARGOCD_ADMIN_SECRET)
        port = ctx.settings.pipeline.argocd_port
        async with ctx.target.port_forward(ARGOCD_NAMESPACE, ARGOCD_SERVER_SERVICE, port, port) as url:
            argocd = ctx.collaborators.argocd(url)
            token = await argocd.get_token("admin", secret.get("password", cluster.argocd_password))
            await argocd.delete_application(token, REGISTRY_APPLICATION, cascade=True)

    await ctx.adapter.before_cloud_destroy(ctx.config)
    await asyncio.sleep(ctx.settings.pipeline.registry_delete_pause_seconds)
    await ctx.checkpoint(Checkpoint.ARGOCD_DELETE_REGISTRY)


async def cloud_terraform_destroy(ctx: RunContext) -> None:
    cluster = ctx.cluster
    if not (cluster.cloud_terraform_apply_check or cluster.cloud_terraform_apply_failed_check):
        logger.info("Cloud terraform was never applied, nothing to destroy")
        return

    # Collected while the cluster still exists; removed once it is gone
    dangling = await ctx.adapter.list_dangling_resources(cluster.cluster_id)

    await ctx.adapter.destroy_infrastructure(ctx.config, ctx.terraform)
    cluster.set_checkpoint(Checkpoint.CLOUD_TERRAFORM_APPLY, False)
    cluster.set_checkpoint(Checkpoint.CLOUD_TERRAFORM_APPLY_FAILED, False)
    await ctx.save()

    for resource in dangling:
        logger.info("Removing dangling resource", kind=resource.kind, resource=resource.name or resource.id)
        await ctx.adapter.delete_dangling_resource(resource)


async def remove_bot_key(ctx: RunContext) -> None:
    client = ctx.collaborators.git_provider(ctx.cluster)
    try:
        removed = await client.delete_ssh_key(KBOT_SSH_KEY_TITLE)
        logger.info("Removed kbot ssh keys", count=removed)
    except GitOperationError as e:
        logger.warning("Could not remove kbot ssh key", error=str(e))


async def mark_deleted(ctx: RunContext) -> None:
    ctx.cluster.status = ClusterStatus.DELETED
    ctx.cluster.in_progress = False
    await ctx.save()


async def reset_local_state(ctx: RunContext) -> None:
    shutil.rmtree(ctx.config.cluster_dir, ignore_errors=True)


def delete_phases(adapter: ProviderAdapter) -> list[Phase]:
    return [
        Phase("mark_deleting", mark_deleting),
        Phase("git_terraform_destroy", git_terraform_destroy),
        Phase("delete_registry_application", delete_registry_application),
        Phase("cloud_terraform_destroy", cloud_terraform_destroy),
        Phase("remove_bot_key", remove_bot_key),
        Phase("mark_deleted", mark_deleted),
        Phase("reset_local_state", reset_local_state),
    ]
