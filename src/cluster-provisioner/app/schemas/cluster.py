"""Cluster request/response schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from shared.models import Cluster


class ClusterImportRequest(BaseModel):
    """Import the record a cluster exported into itself."""

    kubeconfig_path: str = Field(min_length=1, description="Kubeconfig of the cluster to read from")


class ClusterListResponse(BaseModel):
    clusters: list[Cluster]
    total: int


class ClusterProgress(BaseModel):
    """Lifecycle and checkpoint view of one cluster."""

    cluster_name: str
    status: str
    in_progress: bool
    last_condition: str
    checkpoints: dict[str, bool]

    @classmethod
    def from_cluster(cls, cluster: Cluster) -> ClusterProgress:
        return cls(
            cluster_name=cluster.cluster_name,
            status=str(cluster.status),
            in_progress=cluster.in_progress,
            last_condition=cluster.last_condition,
            checkpoints=cluster.checkpoints(),
        )
