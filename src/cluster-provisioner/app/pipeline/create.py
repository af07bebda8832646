"""Create pipeline phases, in execution order."""

from __future__ import annotations

import asyncio

from shared.models import Checkpoint, ClusterStatus, GitProtocol, GitProvider
from shared.observability import get_logger

from ..providers.base import ProviderAdapter
from ..services.argocd import (
    ARGOCD_ADMIN_SECRET,
    ARGOCD_NAMESPACE,
    ARGOCD_SERVER_SERVICE,
    registry_application,
)
from ..services.default_services import add_default_services
from ..services.exporter import export_cluster
from ..services.kbot import initialize_bot
from ..services.liveness import DomainLivenessError, LivenessTimeoutError
from ..services.terraform import TerraformError
from ..services.vault import VAULT_NAMESPACE, VAULT_POD, VAULT_UNSEAL_SECRET, unseal_secret_data
from .config import template_tokens
from .phases import Phase, RunContext

logger = get_logger(__name__)

ARGOCD_SERVER_SELECTOR = "app.kubernetes.io/name=argocd-server"
VAULT_SELECTOR = "app.kubernetes.io/instance=vault"
CROSSPLANE_NAMESPACE = "crossplane-system"
CROSSPLANE_SELECTOR = "app.kubernetes.io/instance=crossplane"
KUBEFIRST_API_SELECTOR = "app.kubernetes.io/name=kubefirst-api"
VAULT_HANDLER_JOB = "vault-handler"

CLOUDFLARE_SECRET_NAMESPACES = ("argo", "atlantis", "chartmuseum", "kubefirst", "vault")


async def install_tools(ctx: RunContext) -> None:
    await ctx.collaborators.tools.install(ctx.config.tools_dir)


async def domain_liveness(ctx: RunContext) -> None:
    validator = ctx.collaborators.liveness
    domain = ctx.cluster.domain_name
    try:
        await validator.validate(domain, ctx.adapter.dns(), ttl=ctx.adapter.liveness_ttl)
    except LivenessTimeoutError as e:
        raise DomainLivenessError(await validator.failure_message(domain)) from e


async def state_store_credentials(ctx: RunContext) -> None:
    ctx.cluster.state_store_credentials = await ctx.adapter.create_state_store_credentials()


async def state_store_create(ctx: RunContext) -> None:
    details = await ctx.adapter.create_state_store(ctx.cluster.state_store_credentials)
    previous = ctx.cluster.state_store_details
    # Keep bucket names derived at init when the provider does not report them
    details.aws_state_store_bucket = details.aws_state_store_bucket or previous.aws_state_store_bucket
    details.aws_artifacts_bucket = details.aws_artifacts_bucket or previous.aws_artifacts_bucket
    ctx.cluster.state_store_details = details


async def git_init(ctx: RunContext) -> None:
    client = ctx.collaborators.git_provider(ctx.cluster)
    group_id = await client.initialize()
    if ctx.cluster.git_provider == GitProvider.GITLAB:
        ctx.cluster.gitlab_owner_group_id = group_id


async def kbot_setup(ctx: RunContext) -> None:
    initialize_bot(ctx.cluster)


async def repository_prep(ctx: RunContext) -> None:
    config = ctx.config
    await ctx.collaborators.gitops.prepare(
        ctx.cluster,
        config.gitops_dir,
        config.metaphor_dir,
        template_tokens(ctx.cluster, config),
        {
            "gitops": config.repo_url("gitops", GitProtocol.SSH),
            "metaphor": config.repo_url("metaphor", GitProtocol.SSH),
        },
    )


async def git_terraform_apply(ctx: RunContext) -> None:
    await ctx.terraform.apply(ctx.config.git_terraform_dir, ctx.config.git_env(ctx.adapter))


async def repository_push(ctx: RunContext) -> None:
    key = ctx.cluster.git_auth.private_key
    await ctx.collaborators.gitops.push(ctx.config.gitops_dir, key)
    await ctx.collaborators.gitops.push(ctx.config.metaphor_dir, key)


async def cloud_terraform_apply(ctx: RunContext) -> None:
    """Create the Kubernetes cluster.

    A failed apply is recorded separately so a later delete knows cloud
    resources may exist even though the apply never completed.
    """
    try:
        await ctx.adapter.create_infrastructure(ctx.config, ctx.terraform)
    except Exception:
        ctx.cluster.set_checkpoint(Checkpoint.CLOUD_TERRAFORM_APPLY_FAILED)
        await ctx.save()
        raise
    ctx.cluster.set_checkpoint(Checkpoint.CLOUD_TERRAFORM_APPLY_FAILED, False)


async def provider_post_create(ctx: RunContext) -> None:
    if await ctx.adapter.post_create(ctx.config):
        await ctx.collaborators.gitops.commit_and_push(
            ctx.config.gitops_dir,
            f"update {ctx.adapter.name} provider values",
            ctx.cluster.git_auth.private_key,
        )


async def wait_for_cluster_api(ctx: RunContext) -> None:
    await ctx.target.wait_for_api(ctx.settings.pipeline.cluster_api_timeout_seconds)


async def cluster_secrets(ctx: RunContext) -> None:
    """Bootstrap the secrets Argo CD and external-dns need before any sync."""
    cluster = ctx.cluster
    target = ctx.target

    if cluster.git_protocol == GitProtocol.HTTPS:
        repo_data = {
            "type": "git",
            "name": f"{cluster.git_auth.git_owner}-gitops",
            "url": ctx.config.repo_url("gitops", GitProtocol.HTTPS),
            "username": cluster.git_auth.git_username or cluster.git_auth.git_owner,
            "password": cluster.git_auth.git_token,
        }
    else:
        repo_data = {
            "type": "git",
            "name": f"{cluster.git_auth.git_owner}-gitops",
            "url": ctx.config.repo_url("gitops", GitProtocol.SSH),
            "sshPrivateKey": cluster.git_auth.private_key,
        }
    await target.write_secret(
        ARGOCD_NAMESPACE,
        "repo-credentials-template",
        repo_data,
        labels={"argocd.argoproj.io/secret-type": "repository"},
    )

    dns_credentials = ctx.adapter.external_dns_credentials()
    if dns_credentials:
        await target.write_secret("external-dns", f"{ctx.adapter.name}-creds", dns_credentials)

    if cluster.cloudflare_auth.origin_ca_issuer_key:
        for namespace in CLOUDFLARE_SECRET_NAMESPACES:
            await target.write_secret(
                namespace,
                "cloudflare-creds",
                {"origin-ca-api-key": cluster.cloudflare_auth.origin_ca_issuer_key},
            )

    await target.restore_tls_secrets(ctx.config.ssl_backup_dir)


async def argocd_install(ctx: RunContext) -> None:
    await ctx.target.apply_kustomize(ctx.settings.pipeline.argocd_manifest_url)
    await ctx.target.wait_for_deployment(
        ARGOCD_NAMESPACE,
        ARGOCD_SERVER_SELECTOR,
        ctx.settings.pipeline.argocd_ready_timeout_seconds,
    )


async def argocd_initialize(ctx: RunContext) -> None:
    secret = await ctx.target.read_secret(ARGOCD_NAMESPACE, ARGOCD_ADMIN_SECRET)
    password = secret.get("password", "")
    port = ctx.settings.pipeline.argocd_port
    async with ctx.target.port_forward(ARGOCD_NAMESPACE, ARGOCD_SERVER_SERVICE, port, port) as url:
        token = await ctx.collaborators.argocd(url).get_token("admin", password)
    ctx.cluster.argocd_username = "admin"
    ctx.cluster.argocd_password = password
    ctx.cluster.argocd_auth_token = token


async def argocd_create_registry(ctx: RunContext) -> None:
    manifest = registry_application(ctx.config.repo_url("gitops"), ctx.config.registry_path)
    await ctx.target.create_custom_object("argoproj.io", "v1alpha1", ARGOCD_NAMESPACE, "applications", manifest)


async def wait_for_vault(ctx: RunContext) -> None:
    await ctx.target.wait_for_statefulset(
        VAULT_NAMESPACE,
        VAULT_SELECTOR,
        ctx.settings.pipeline.vault_ready_timeout_seconds,
    )


async def configure_vault(ctx: RunContext) -> None:
    """Initialize Vault and apply its terraform through one tunnel.

    Each step owns its own checkpoint, so a resumed run continues after the
    last completed step. The tunnel is closed on every exit path.
    """
    cluster = ctx.cluster
    port = ctx.settings.pipeline.vault_port
    async with ctx.target.port_forward(VAULT_NAMESPACE, VAULT_POD, port, port) as vault_url:
        if not cluster.vault_initialized_check:
            await _initialize_vault(ctx, vault_url)
            await ctx.checkpoint(Checkpoint.VAULT_INITIALIZED)
        elif not cluster.vault_auth.root_token:
            unseal = await ctx.target.read_secret(VAULT_NAMESPACE, VAULT_UNSEAL_SECRET)
            cluster.vault_auth.root_token = unseal.get("root-token", "")

        if not cluster.vault_terraform_apply_check:
            await _apply_vault_terraform(ctx, vault_url)
            await ctx.checkpoint(Checkpoint.VAULT_TERRAFORM_APPLY)

        await _write_vault_secrets(ctx, vault_url)

        await ctx.terraform.apply(ctx.config.users_terraform_dir, ctx.config.users_env(ctx.adapter, vault_url))


async def _initialize_vault(ctx: RunContext, vault_url: str) -> None:
    target = ctx.target
    if ctx.adapter.auto_unseal:
        client = ctx.collaborators.vault(vault_url, "")
        if not await client.is_initialized():
            init = await client.initialize()
            await target.write_secret(VAULT_NAMESPACE, VAULT_UNSEAL_SECRET, unseal_secret_data(init))
    else:
        await target.apply_kustomize(ctx.settings.pipeline.vault_handler_manifest_url)
        await target.wait_for_job(
            VAULT_NAMESPACE,
            VAULT_HANDLER_JOB,
            ctx.settings.pipeline.vault_ready_timeout_seconds,
        )
    unseal = await target.read_secret(VAULT_NAMESPACE, VAULT_UNSEAL_SECRET)
    ctx.cluster.vault_auth.root_token = unseal.get("root-token", "")


async def _apply_vault_terraform(ctx: RunContext, vault_url: str) -> None:
    # Vault answers before its auth backends settle; one retry covers the race
    entrypoint = ctx.config.vault_terraform_dir
    env = ctx.config.vault_env(ctx.adapter, vault_url)
    try:
        await ctx.terraform.apply(entrypoint, env)
    except TerraformError as e:
        pause = ctx.settings.pipeline.vault_terraform_retry_pause_seconds
        logger.warning("Vault terraform apply failed, retrying once", pause_seconds=pause, error=str(e))
        await asyncio.sleep(pause)
        await ctx.terraform.apply(entrypoint, env)


async def _write_vault_secrets(ctx: RunContext, vault_url: str) -> None:
    client = ctx.collaborators.vault(vault_url, ctx.cluster.vault_auth.root_token)
    dns_credentials = ctx.adapter.external_dns_credentials()
    if dns_credentials:
        await client.kv_put("external-dns", dns_credentials)
    if ctx.cluster.cloudflare_auth.origin_ca_issuer_key:
        await client.kv_put(
            "cloudflare",
            {"origin-ca-api-key": ctx.cluster.cloudflare_auth.origin_ca_issuer_key},
        )


async def wait_for_crossplane(ctx: RunContext) -> None:
    await ctx.target.wait_for_deployment(
        CROSSPLANE_NAMESPACE,
        CROSSPLANE_SELECTOR,
        ctx.settings.pipeline.final_wave_timeout_seconds,
    )


async def export_record(ctx: RunContext) -> None:
    exported = ctx.cluster.model_copy(deep=True)
    exported.status = ClusterStatus.PROVISIONED
    exported.in_progress = False
    await export_cluster(ctx.target, exported)


async def register_default_services(ctx: RunContext) -> None:
    await add_default_services(ctx.services, ctx.cluster)


async def final_check(ctx: RunContext) -> None:
    timeout = ctx.settings.pipeline.final_wave_timeout_seconds
    await ctx.target.wait_for_deployment("kubefirst", KUBEFIRST_API_SELECTOR, timeout)
    await ctx.target.wait_for_deployment(ARGOCD_NAMESPACE, ARGOCD_SERVER_SELECTOR, timeout)


def create_phases(adapter: ProviderAdapter) -> list[Phase]:
    phases = [
        Phase("install_tools", install_tools, Checkpoint.INSTALL_TOOLS, repeatable=True),
        Phase("domain_liveness", domain_liveness, Checkpoint.DOMAIN_LIVENESS),
        Phase("state_store_credentials", state_store_credentials, Checkpoint.STATE_STORE_CREDS),
        Phase("state_store_create", state_store_create, Checkpoint.STATE_STORE_CREATE),
        Phase("git_init", git_init, Checkpoint.GIT_INIT),
        Phase("kbot_setup", kbot_setup, Checkpoint.KBOT_SETUP),
        Phase("repository_prep", repository_prep, Checkpoint.GITOPS_READY),
        Phase("git_terraform_apply", git_terraform_apply, Checkpoint.GIT_TERRAFORM_APPLY),
        Phase("repository_push", repository_push, Checkpoint.GITOPS_PUSHED),
        Phase("cloud_terraform_apply", cloud_terraform_apply, Checkpoint.CLOUD_TERRAFORM_APPLY),
    ]
    if adapter.post_create_checkpoint is not None:
        phases.append(Phase(f"{adapter.name}_post_create", provider_post_create, adapter.post_create_checkpoint))
    phases += [
        Phase("wait_for_cluster_api", wait_for_cluster_api),
        Phase("cluster_secrets", cluster_secrets, Checkpoint.CLUSTER_SECRETS_CREATED),
        Phase("argocd_install", argocd_install, Checkpoint.ARGOCD_INSTALL),
        Phase("argocd_initialize", argocd_initialize, Checkpoint.ARGOCD_INITIALIZE),
        Phase("argocd_create_registry", argocd_create_registry, Checkpoint.ARGOCD_CREATE_REGISTRY),
        Phase("wait_for_vault", wait_for_vault),
        Phase("configure_vault", configure_vault, Checkpoint.USERS_TERRAFORM_APPLY),
        Phase("wait_for_crossplane", wait_for_crossplane),
        Phase("export_record", export_record),
        Phase("default_services", register_default_services),
        Phase("final_check", final_check),
    ]
    return phases
