"""Pipeline executor.

One generic executor drives every cloud. The adapter supplies the
provider-specific operations and hook points; the phase lists decide order.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from shared.config import ProvisionerSettings
from shared.models import Cluster, ClusterStatus
from shared.observability import PipelineContext, get_logger

from ..providers import get_adapter
from ..providers.base import ProviderAdapter
from ..repositories import ClusterRepository, ServiceRepository
from .config import ProviderConfig
from .create import create_phases
from .delete import delete_phases
from .phases import Collaborators, Phase, PhaseError, RunContext

logger = get_logger(__name__)


class PipelineExecutor:
    """Runs create and delete pipelines against the cluster store."""

    def __init__(
        self,
        repository: ClusterRepository,
        services: ServiceRepository,
        settings: ProvisionerSettings,
        collaborators: Collaborators | None = None,
        adapter_factory: Callable[[Cluster], ProviderAdapter] = get_adapter,
    ):
        self.repository = repository
        self.services = services
        self.settings = settings
        self.collaborators = collaborators or Collaborators.default(settings)
        self.adapter_factory = adapter_factory

    def _context(self, cluster: Cluster) -> RunContext:
        return RunContext(
            cluster=cluster,
            config=ProviderConfig.from_cluster(cluster, self.settings.pipeline),
            adapter=self.adapter_factory(cluster),
            repository=self.repository,
            services=self.services,
            settings=self.settings,
            collaborators=self.collaborators,
        )

    async def run_create(self, cluster: Cluster) -> Cluster:
        """Drive a persisted, in-progress record through the create phases."""
        return await self._run(cluster, "create", create_phases, ClusterStatus.PROVISIONED)

    async def run_delete(self, cluster: Cluster) -> Cluster:
        return await self._run(cluster, "delete", delete_phases, ClusterStatus.DELETED)

    async def _run(
        self,
        cluster: Cluster,
        direction: str,
        phase_factory: Callable[[ProviderAdapter], list[Phase]],
        final_status: ClusterStatus,
    ) -> Cluster:
        name = cluster.cluster_name
        async with PipelineContext(cluster_name=name, direction=direction):
            try:
                ctx = self._context(cluster)
                phases = phase_factory(ctx.adapter)
                await ctx.adapter.prepare(ctx.config)
            except Exception as e:
                error = PhaseError("prepare", e)
                await self.handle_error(name, error)
                raise error from e

            start = time.perf_counter()
            logger.info("Pipeline started", phases=len(phases))

            for phase in phases:
                await self._run_phase(ctx, phase)

            ctx.cluster.status = final_status
            ctx.cluster.in_progress = False
            ctx.cluster.last_condition = ""
            await ctx.save()

            logger.info(
                "Pipeline completed",
                status=final_status.value,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            return ctx.cluster

    async def _run_phase(self, ctx: RunContext, phase: Phase) -> None:
        async with PipelineContext(cluster_name=ctx.cluster.cluster_name, phase=phase.name):
            if phase.should_skip(ctx.cluster):
                logger.info("Phase already completed, skipping")
                return

            logger.info("Phase started")
            start = time.perf_counter()
            try:
                await phase.run(ctx)
                if phase.checkpoint is not None:
                    await ctx.checkpoint(phase.checkpoint)
            except Exception as e:
                error = PhaseError(phase.name, e)
                await self.handle_error(ctx.cluster.cluster_name, error)
                raise error from e

            logger.info(
                "Phase completed",
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )

    async def handle_error(self, cluster_name: str, error: PhaseError) -> None:
        """Record a failed run on the stored cluster record.

        Re-reads the record so flags persisted by the phase before it failed
        are kept.
        """
        logger.error("Phase failed", failed_phase=error.phase, error=str(error.cause))

        def mark_failed(cluster: Cluster) -> None:
            cluster.status = ClusterStatus.ERROR
            cluster.in_progress = False
            cluster.last_condition = str(error)

        await self.repository.update(cluster_name, mark_failed)
