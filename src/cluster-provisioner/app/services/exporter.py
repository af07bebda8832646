"""Export a cluster record into its own cluster and import it back."""

from __future__ import annotations

import json

from shared.models import Cluster
from shared.observability import get_logger

from .kube import TargetCluster

logger = get_logger(__name__)

EXPORT_NAMESPACE = "kubefirst"
EXPORT_SECRET = "kubefirst-initial-state"
EXPORT_KEY = "cluster"


async def export_cluster(target: TargetCluster, cluster: Cluster) -> None:
    """Write the record into the target cluster so it can describe itself."""
    await target.write_secret(
        EXPORT_NAMESPACE,
        EXPORT_SECRET,
        {EXPORT_KEY: cluster.model_dump_json()},
        labels={"app": "kubefirst"},
    )
    logger.info("Exported cluster record", namespace=EXPORT_NAMESPACE, secret=EXPORT_SECRET)


class ClusterExportNotFoundError(Exception):
    """Raised when the target cluster holds no exported record."""

    pass


async def import_cluster(target: TargetCluster) -> Cluster:
    """Read a record previously exported into ``target``."""
    data = await target.read_secret(EXPORT_NAMESPACE, EXPORT_SECRET)
    if EXPORT_KEY not in data:
        raise ClusterExportNotFoundError(f"secret {EXPORT_NAMESPACE}/{EXPORT_SECRET} holds no cluster record")
    cluster = Cluster.model_validate(json.loads(data[EXPORT_KEY]))
    logger.info("Imported cluster record", cluster_name=cluster.cluster_name)
    return cluster
