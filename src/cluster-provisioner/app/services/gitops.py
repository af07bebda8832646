"""Local gitops / metaphor repository preparation and push."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from shared.models import Cluster
from shared.observability import get_logger

from .commands import CommandError, run_command
from .git_provider import GitOperationError

logger = get_logger(__name__)

TEXT_SUFFIXES = {".yaml", ".yml", ".tf", ".tfvars", ".json", ".md", ".hcl", ".sh", ".txt", ""}


def detokenize(directory: Path, tokens: dict[str, str]) -> int:
    """Replace ``<TOKEN>`` placeholders in every text file below ``directory``.

    Returns:
        Number of files changed
    """
    changed = 0
    for path in directory.rglob("*"):
        if not path.is_file() or ".git" in path.parts or path.suffix not in TEXT_SUFFIXES:
            continue
        try:
            content = path.read_text()
        except UnicodeDecodeError:
            continue
        updated = content
        for token, value in tokens.items():
            updated = updated.replace(token, value)
        if updated != content:
            path.write_text(updated)
            changed += 1
    return changed


class GitopsRepositories:
    """Clones the gitops template and publishes gitops and metaphor repos."""

    def __init__(self, git_binary: str = "git"):
        self.git = git_binary

    async def _git(self, *args: str | Path, cwd: Path | None = None, env: dict[str, str] | None = None) -> str:
        try:
            return await run_command([self.git, *args], cwd=cwd, env=env, timeout=600)
        except CommandError as e:
            raise GitOperationError(str(e)) from e

    async def prepare(
        self,
        cluster: Cluster,
        gitops_dir: Path,
        metaphor_dir: Path,
        tokens: dict[str, str],
        remotes: dict[str, str],
    ) -> None:
        """Build both working repositories from the template.

        The template holds one directory per ``<cloud>-<git>`` pair plus a
        shared ``metaphor`` directory.
        """
        template_dir = f"{cluster.cloud_provider}-{cluster.git_provider}"
        with tempfile.TemporaryDirectory(prefix="gitops-template-") as tmp:
            clone_dir = Path(tmp) / "template"
            await self._git(
                "clone",
                "--depth",
                "1",
                "--branch",
                cluster.gitops_template_branch,
                cluster.gitops_template_url,
                clone_dir,
            )
            source = clone_dir / template_dir
            if not source.is_dir():
                raise GitOperationError(
                    f"gitops template {cluster.gitops_template_url}@{cluster.gitops_template_branch} has no {template_dir} directory"
                )

            for target in (gitops_dir, metaphor_dir):
                if target.exists():
                    shutil.rmtree(target)
            shutil.copytree(source, gitops_dir)
            if (clone_dir / "metaphor").is_dir():
                shutil.copytree(clone_dir / "metaphor", metaphor_dir)
            else:
                metaphor_dir.mkdir(parents=True)

        for name, directory in (("gitops", gitops_dir), ("metaphor", metaphor_dir)):
            changed = detokenize(directory, tokens)
            await self._git("init", "--initial-branch", "main", cwd=directory)
            await self._git("remote", "add", "origin", remotes[name], cwd=directory)
            await self._commit(directory, "initial kubefirst commit")
            logger.info("Prepared repository", repository=name, detokenized_files=changed)

    async def _commit(self, directory: Path, message: str) -> None:
        await self._git("add", "--all", cwd=directory)
        await self._git(
            "-c",
            "user.name=kbot",
            "-c",
            "user.email=kbot@kubefirst.io",
            "commit",
            "--allow-empty",
            "-m",
            message,
            cwd=directory,
        )

    async def push(self, directory: Path, private_key: str, branch: str = "main") -> None:
        """Push ``branch`` to origin using the bot's SSH key."""
        with tempfile.NamedTemporaryFile("w", prefix="kbot-", delete=False) as key_file:
            key_file.write(private_key if private_key.endswith("\n") else private_key + "\n")
        os.chmod(key_file.name, 0o600)
        env = {"GIT_SSH_COMMAND": f"ssh -i {key_file.name} -o StrictHostKeyChecking=no -o IdentitiesOnly=yes"}
        try:
            await self._git("push", "--force", "origin", branch, cwd=directory, env=env)
        finally:
            os.unlink(key_file.name)
        logger.info("Pushed repository", directory=str(directory), branch=branch)

    async def commit_and_push(self, directory: Path, message: str, private_key: str) -> None:
        await self._commit(directory, message)
        await self.push(directory, private_key)
