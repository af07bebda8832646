"""Terraform invocation and per-stage environment construction."""

from __future__ import annotations

import shutil
from pathlib import Path

from shared.models import Cluster
from shared.observability import get_logger

from .commands import CommandError, run_command

logger = get_logger(__name__)


class TerraformError(Exception):
    """Raised when terraform init/apply/destroy fails."""

    pass


class TerraformRunner:
    """Runs ``init`` then an auto-approved action in an entrypoint directory."""

    def __init__(self, terraform_path: Path):
        self.terraform_path = terraform_path

    async def apply(self, entrypoint: Path, env: dict[str, str]) -> None:
        await self._init_action("apply", entrypoint, env)

    async def destroy(self, entrypoint: Path, env: dict[str, str]) -> None:
        await self._init_action("destroy", entrypoint, env)

    async def _init_action(self, action: str, entrypoint: Path, env: dict[str, str]) -> None:
        if not entrypoint.is_dir():
            raise TerraformError(f"terraform entrypoint {entrypoint} does not exist")

        logger.info("Running terraform", action=action, entrypoint=str(entrypoint))
        try:
            await run_command([self.terraform_path, "init", "-force-copy"], cwd=entrypoint, env=env)
        except CommandError as e:
            raise TerraformError(f"terraform init for {entrypoint} failed: {e}") from e

        try:
            await run_command([self.terraform_path, action, "-auto-approve"], cwd=entrypoint, env=env)
        except CommandError as e:
            raise TerraformError(f"terraform {action} -auto-approve for {entrypoint} failed: {e}") from e

        shutil.rmtree(entrypoint / ".terraform", ignore_errors=True)
        (entrypoint / ".terraform.lock.hcl").unlink(missing_ok=True)
        logger.info("Terraform completed", action=action, entrypoint=str(entrypoint))


def state_store_env(cluster: Cluster) -> dict[str, str]:
    """S3-compatible backend credentials shared by every stage."""
    creds = cluster.state_store_credentials
    return {
        "AWS_ACCESS_KEY_ID": creds.access_key_id,
        "AWS_SECRET_ACCESS_KEY": creds.secret_access_key,
        "TF_VAR_aws_access_key_id": creds.access_key_id,
        "TF_VAR_aws_secret_access_key": creds.secret_access_key,
    }


def git_provider_env(cluster: Cluster) -> dict[str, str]:
    prefix = str(cluster.git_provider).upper()
    return {
        f"{prefix}_TOKEN": cluster.git_auth.git_token,
        f"{prefix}_OWNER": cluster.git_auth.git_owner,
    }


def git_terraform_env(cluster: Cluster, provider_env: dict[str, str]) -> dict[str, str]:
    env = {
        **git_provider_env(cluster),
        "TF_VAR_atlantis_repo_webhook_secret": cluster.atlantis_webhook_secret,
        "TF_VAR_atlantis_repo_webhook_url": cluster.atlantis_webhook_url,
        "TF_VAR_kbot_ssh_public_key": cluster.git_auth.public_key,
        **provider_env,
        **state_store_env(cluster),
    }
    if cluster.git_provider == "gitlab":
        env["TF_VAR_owner_group_id"] = str(cluster.gitlab_owner_group_id)
        env["TF_VAR_gitlab_owner"] = cluster.git_auth.git_owner
    return env


def cloud_terraform_env(cluster: Cluster, provider_env: dict[str, str]) -> dict[str, str]:
    return {
        "TF_VAR_kbot_ssh_public_key": cluster.git_auth.public_key,
        **provider_env,
        **state_store_env(cluster),
    }


def vault_terraform_env(cluster: Cluster, provider_env: dict[str, str], vault_addr: str) -> dict[str, str]:
    env = {
        **git_provider_env(cluster),
        f"TF_VAR_{cluster.git_provider}_token": cluster.git_auth.git_token,
        "TF_VAR_email_address": cluster.alerts_email,
        "TF_VAR_vault_addr": vault_addr,
        "TF_VAR_vault_token": cluster.vault_auth.root_token,
        "VAULT_ADDR": vault_addr,
        "VAULT_TOKEN": cluster.vault_auth.root_token,
        "TF_VAR_atlantis_repo_webhook_secret": cluster.atlantis_webhook_secret,
        "TF_VAR_atlantis_repo_webhook_url": cluster.atlantis_webhook_url,
        "TF_VAR_kbot_ssh_private_key": cluster.git_auth.private_key,
        "TF_VAR_kbot_ssh_public_key": cluster.git_auth.public_key,
        **provider_env,
        **state_store_env(cluster),
    }
    if cluster.git_provider == "gitlab":
        env["TF_VAR_owner_group_id"] = str(cluster.gitlab_owner_group_id)
    return env


def users_terraform_env(cluster: Cluster, provider_env: dict[str, str], vault_addr: str) -> dict[str, str]:
    return {
        **git_provider_env(cluster),
        "VAULT_ADDR": vault_addr,
        "VAULT_TOKEN": cluster.vault_auth.root_token,
        **provider_env,
        **state_store_env(cluster),
    }
