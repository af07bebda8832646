"""Cluster lifecycle invocation.

Validates requests, claims the record for a single pipeline run and launches
the run as a detached task. Callers only see the acknowledgement; the outcome
is read back from the record's status and last condition.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from shared.config import ProvisionerSettings
from shared.document_store import DocumentConflictError
from shared.models import Cluster, ClusterDefinition, ClusterStatus
from shared.observability import get_logger

from ..pipeline import PipelineExecutor, initialize_cluster
from ..repositories import ClusterRepository, ServiceRepository
from .exporter import import_cluster
from .kube import TargetCluster

logger = get_logger(__name__)

ENQUEUED = "enqueued"


class ClusterInProgressError(Exception):
    """Raised when a pipeline run already owns the cluster."""

    pass


class ClusterAlreadyExistsError(Exception):
    """Raised when creating a cluster that is already provisioned."""

    pass


class ClusterStateError(Exception):
    """Raised when the requested operation does not fit the cluster's status."""

    pass


class DefinitionValidationError(Exception):
    """Raised when a cluster definition is malformed or missing credentials."""

    pass


def parse_definition(payload: Any) -> ClusterDefinition:
    """Validate a request body into a cluster definition.

    Raises:
        DefinitionValidationError: With every field error joined into one message
    """
    try:
        return ClusterDefinition.model_validate(payload)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            problems.append(f"{location}: {error['msg']}" if location else error["msg"])
        raise DefinitionValidationError("; ".join(problems)) from e


class ClusterService:
    """Entry point for create, delete and record management."""

    def __init__(
        self,
        repository: ClusterRepository,
        services: ServiceRepository,
        executor: PipelineExecutor,
        settings: ProvisionerSettings,
        target_factory: Callable[[Path], TargetCluster] | None = None,
    ):
        self.repository = repository
        self.services = services
        self.executor = executor
        self.settings = settings
        self.target_factory = target_factory or (
            lambda kubeconfig: TargetCluster(kubeconfig, Path("kubectl"))
        )
        self._tasks: set[asyncio.Task] = set()

    # Pipelines

    async def create_cluster(self, definition: ClusterDefinition) -> str:
        """Claim the record and enqueue a create run.

        Raises:
            ClusterInProgressError: If a run already owns the cluster
            ClusterAlreadyExistsError: If the cluster is already provisioned
        """
        name = definition.cluster_name
        existing = await self.repository.find(name)

        if existing is not None:
            if existing.in_progress:
                raise ClusterInProgressError(f"cluster {name} has a pipeline run in progress")
            if existing.status == ClusterStatus.PROVISIONED:
                raise ClusterAlreadyExistsError(f"cluster {name} is already provisioned")
            if existing.status == ClusterStatus.DELETED:
                # A deleted record is replaced by a fresh one with a new id
                await self.repository.delete(name)
                existing = None

        cluster = initialize_cluster(definition, existing, self.settings.pipeline)
        cluster.status = ClusterStatus.PROVISIONING
        cluster.last_condition = ""

        if existing is None:
            cluster.in_progress = True
            try:
                cluster = await self.repository.insert(cluster)
            except DocumentConflictError as e:
                raise ClusterInProgressError(f"cluster {name} is being created by another request") from e
        else:
            cluster = await self._claim(name, lambda current: cluster)

        logger.info("Cluster create enqueued", cluster_name=name, cluster_id=cluster.cluster_id)
        self._launch(name, self.executor.run_create(cluster))
        return ENQUEUED

    async def delete_cluster(self, cluster_name: str) -> str:
        """Claim the record and enqueue a delete run."""
        cluster = await self.repository.get(cluster_name)
        if cluster.status == ClusterStatus.DELETED:
            raise ClusterStateError(f"cluster {cluster_name} is already deleted")

        cluster = await self._claim(cluster_name, lambda current: current)

        logger.info("Cluster delete enqueued", cluster_name=cluster_name)
        self._launch(cluster_name, self.executor.run_delete(cluster))
        return ENQUEUED

    async def _claim(self, cluster_name: str, build: Callable[[Cluster], Cluster]) -> Cluster:
        """Set the in-progress flag unless another run already holds it.

        The check happens inside the versioned read-modify-write, so two
        concurrent claims cannot both succeed.
        """

        def claim(current: Cluster) -> Cluster:
            if current.in_progress:
                raise ClusterInProgressError(f"cluster {cluster_name} has a pipeline run in progress")
            claimed = build(current)
            claimed.in_progress = True
            return claimed

        return await self.repository.update(cluster_name, claim)

    def _launch(self, cluster_name: str, run: Coroutine[Any, Any, Cluster]) -> None:
        task = asyncio.create_task(run, name=f"pipeline-{cluster_name}")
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Pipeline task cancelled", task=task.get_name())
            return
        error = task.exception()
        if error is not None:
            # Already recorded on the cluster by the executor
            logger.error("Pipeline task failed", task=task.get_name(), error=str(error))
        else:
            logger.info("Pipeline task finished", task=task.get_name())

    async def wait_idle(self) -> None:
        """Wait for every launched run to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # Records

    async def get_cluster(self, cluster_name: str) -> Cluster:
        return await self.repository.get(cluster_name)

    async def list_clusters(self) -> list[Cluster]:
        return await self.repository.list()

    async def reset_in_progress(self, cluster_name: str) -> Cluster:
        """Release a record left claimed by a run whose process died."""

        def release(cluster: Cluster) -> None:
            cluster.in_progress = False

        cluster = await self.repository.update(cluster_name, release)
        logger.warning("Cluster in-progress flag reset", cluster_name=cluster_name)
        return cluster

    async def remove_cluster(self, cluster_name: str) -> None:
        """Drop a deleted cluster's record and service list from the store."""
        cluster = await self.repository.get(cluster_name)
        if cluster.status != ClusterStatus.DELETED:
            raise ClusterStateError(f"cluster {cluster_name} must be deleted before its record is removed")
        await self.repository.delete(cluster_name)
        await self.services.delete_list(cluster_name)
        logger.info("Cluster record removed", cluster_name=cluster_name)

    async def import_cluster(self, kubeconfig_path: Path) -> Cluster:
        """Load the record a cluster exported into itself."""
        cluster = await import_cluster(self.target_factory(kubeconfig_path))
        cluster.in_progress = False

        existing = await self.repository.find(cluster.cluster_name)
        if existing is None:
            return await self.repository.insert(cluster)
        if existing.in_progress:
            raise ClusterInProgressError(f"cluster {cluster.cluster_name} has a pipeline run in progress")
        return await self.repository.save(cluster)
