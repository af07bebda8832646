"""Phase and run-context types shared by the create and delete pipelines."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from shared.config import ProvisionerSettings
from shared.models import Checkpoint, Cluster
from shared.observability import get_logger

from ..repositories import ClusterRepository, ServiceRepository
from ..services.argocd import ArgoCDClient
from ..services.git_provider import GitProviderClient
from ..services.gitops import GitopsRepositories
from ..services.kube import TargetCluster
from ..services.liveness import DomainLivenessValidator
from ..services.terraform import TerraformRunner
from ..services.tools import ToolInstaller
from ..services.vault import VaultClient
from .config import ProviderConfig

if TYPE_CHECKING:
    from ..providers.base import ProviderAdapter

logger = get_logger(__name__)


class PhaseError(Exception):
    """A phase failure, carrying the phase name and the underlying error."""

    def __init__(self, phase: str, cause: BaseException | str):
        self.phase = phase
        self.cause = cause
        super().__init__(f"{phase}: {cause}")


@dataclass
class Collaborators:
    """External tooling used by phases.

    Every field is replaceable so runs can be driven against doubles.
    """

    tools: ToolInstaller
    liveness: DomainLivenessValidator
    gitops: GitopsRepositories
    git_provider: Callable[[Cluster], GitProviderClient]
    terraform: Callable[[Path], TerraformRunner]
    target_cluster: Callable[[ProviderConfig], TargetCluster]
    argocd: Callable[[str], ArgoCDClient]
    vault: Callable[[str, str], VaultClient]

    @classmethod
    def default(cls, settings: ProvisionerSettings) -> Collaborators:
        return cls(
            tools=ToolInstaller(settings.tools),
            liveness=DomainLivenessValidator(settings.liveness),
            gitops=GitopsRepositories(),
            git_provider=lambda cluster: GitProviderClient(
                str(cluster.git_provider), cluster.git_auth.git_token, cluster.git_auth.git_owner
            ),
            terraform=TerraformRunner,
            target_cluster=lambda config: TargetCluster(
                config.kubeconfig_path,
                config.kubectl_path,
                poll_interval=settings.pipeline.poll_interval_seconds,
            ),
            argocd=lambda url: ArgoCDClient(url),
            vault=lambda url, token: VaultClient(url, token),
        )


@dataclass
class RunContext:
    """State of one pipeline run.

    ``cluster`` is the in-memory copy of the record owned by this run; every
    persisted change goes through :meth:`save` or :meth:`checkpoint`.
    """

    cluster: Cluster
    config: ProviderConfig
    adapter: ProviderAdapter
    repository: ClusterRepository
    services: ServiceRepository
    settings: ProvisionerSettings
    collaborators: Collaborators
    _target: TargetCluster | None = field(default=None, repr=False)

    @property
    def terraform(self) -> TerraformRunner:
        return self.collaborators.terraform(self.config.terraform_path)

    @property
    def target(self) -> TargetCluster:
        if self._target is None:
            self._target = self.collaborators.target_cluster(self.config)
        return self._target

    async def save(self) -> None:
        self.cluster = await self.repository.save(self.cluster)

    async def checkpoint(self, checkpoint: Checkpoint, value: bool = True) -> None:
        self.cluster.set_checkpoint(checkpoint, value)
        await self.save()
        logger.debug("Checkpoint persisted", checkpoint=Checkpoint(checkpoint).value, value=value)


PhaseFn = Callable[[RunContext], Awaitable[None]]


@dataclass(frozen=True)
class Phase:
    """One named step of a pipeline.

    A phase with a checkpoint persists it on success. On a resumed run a
    phase whose checkpoint is already set is skipped unless ``repeatable``.
    Phases without a checkpoint always run.
    """

    name: str
    run: PhaseFn
    checkpoint: Checkpoint | None = None
    repeatable: bool = False

    def should_skip(self, cluster: Cluster) -> bool:
        return self.checkpoint is not None and not self.repeatable and cluster.is_checked(self.checkpoint)
