"""Per-cluster service list repository."""

from __future__ import annotations

from collections.abc import Callable

from shared.document_store import (
    DocumentCollection,
    DocumentConflictError,
    DocumentNotFoundError,
    SecretDocumentStore,
)
from shared.models import ClusterServiceList, Service

SERVICE_SECRET_PREFIX = "kubefirst-service-"


class ServiceNotFoundError(Exception):
    """Raised when a service is not found in a cluster's list."""

    pass


class ServiceAlreadyExistsError(Exception):
    """Raised when a service with the same name is already registered."""

    pass


class ServiceRepository:
    """Service lists, one Secret per cluster."""

    def __init__(self, store: SecretDocumentStore):
        self.store = store

    def _collection(self, cluster_name: str) -> DocumentCollection[Service]:
        return DocumentCollection(
            self.store,
            f"{SERVICE_SECRET_PREFIX}{cluster_name}",
            Service,
            items_field="services",
            key_attr="name",
            header={"cluster_name": cluster_name},
        )

    async def create_list(self, cluster_name: str) -> ClusterServiceList:
        """Create an empty service list for a cluster if none exists."""
        collection = self._collection(cluster_name)
        if not await collection.exists():
            await self.store.write(
                collection.secret_name,
                ClusterServiceList(cluster_name=cluster_name).model_dump(mode="json"),
            )
        return await self.get_list(cluster_name)

    async def get_list(self, cluster_name: str) -> ClusterServiceList:
        services = await self._collection(cluster_name).list()
        return ClusterServiceList(cluster_name=cluster_name, services=services)

    async def get(self, cluster_name: str, service_name: str) -> Service:
        try:
            return await self._collection(cluster_name).get(service_name)
        except DocumentNotFoundError as e:
            raise ServiceNotFoundError(f"service {service_name} not found for cluster {cluster_name}") from e

    async def add(self, cluster_name: str, service: Service) -> Service:
        try:
            return await self._collection(cluster_name).insert(service)
        except DocumentConflictError as e:
            raise ServiceAlreadyExistsError(
                f"service {service.name} already exists for cluster {cluster_name}"
            ) from e

    async def update(
        self,
        cluster_name: str,
        service_name: str,
        mutation: Callable[[Service], Service | None],
    ) -> Service:
        try:
            return await self._collection(cluster_name).update(service_name, mutation)
        except DocumentNotFoundError as e:
            raise ServiceNotFoundError(f"service {service_name} not found for cluster {cluster_name}") from e

    async def remove(self, cluster_name: str, service_name: str) -> None:
        try:
            await self._collection(cluster_name).delete(service_name)
        except DocumentNotFoundError as e:
            raise ServiceNotFoundError(f"service {service_name} not found for cluster {cluster_name}") from e

    async def delete_list(self, cluster_name: str) -> bool:
        return await self._collection(cluster_name).drop()
