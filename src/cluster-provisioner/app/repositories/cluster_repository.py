"""Cluster record repository."""

from __future__ import annotations

from collections.abc import Callable

from shared.document_store import (
    DocumentCollection,
    DocumentNotFoundError,
    SecretDocumentStore,
)
from shared.models import Cluster

CLUSTERS_SECRET = "kubefirst-clusters"


class ClusterNotFoundError(Exception):
    """Raised when a cluster is not found."""

    pass


class ClusterRepository:
    """Repository for cluster records.

    All clusters share one Secret; every write is a read-modify-write of the
    whole collection.
    """

    def __init__(self, store: SecretDocumentStore):
        self.collection: DocumentCollection[Cluster] = DocumentCollection(
            store,
            CLUSTERS_SECRET,
            Cluster,
            items_field="clusters",
            key_attr="cluster_name",
        )

    async def list(self) -> list[Cluster]:
        return await self.collection.list()

    async def get(self, cluster_name: str) -> Cluster:
        try:
            return await self.collection.get(cluster_name)
        except DocumentNotFoundError as e:
            raise ClusterNotFoundError(f"cluster {cluster_name} not found") from e

    async def find(self, cluster_name: str) -> Cluster | None:
        try:
            return await self.collection.get(cluster_name)
        except DocumentNotFoundError:
            return None

    async def insert(self, cluster: Cluster) -> Cluster:
        return await self.collection.insert(cluster)

    async def save(self, cluster: Cluster) -> Cluster:
        """Persist the full record, which must already exist."""
        try:
            return await self.collection.replace(cluster)
        except DocumentNotFoundError as e:
            raise ClusterNotFoundError(f"cluster {cluster.cluster_name} not found") from e

    async def update(self, cluster_name: str, mutation: Callable[[Cluster], Cluster | None]) -> Cluster:
        try:
            return await self.collection.update(cluster_name, mutation)
        except DocumentNotFoundError as e:
            raise ClusterNotFoundError(f"cluster {cluster_name} not found") from e

    async def delete(self, cluster_name: str) -> None:
        try:
            await self.collection.delete(cluster_name)
        except DocumentNotFoundError as e:
            raise ClusterNotFoundError(f"cluster {cluster_name} not found") from e
