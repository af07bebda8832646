"""Data access repositories over the Secret document store."""

from .catalog_repository import CATALOG_SECRET, CatalogAppNotFoundError, CatalogRepository
from .cluster_repository import CLUSTERS_SECRET, ClusterNotFoundError, ClusterRepository
from .environment_repository import (
    ENVIRONMENTS_SECRET,
    EnvironmentAlreadyExistsError,
    EnvironmentNotFoundError,
    EnvironmentRepository,
)
from .service_repository import (
    SERVICE_SECRET_PREFIX,
    ServiceAlreadyExistsError,
    ServiceNotFoundError,
    ServiceRepository,
)

__all__ = [
    "CATALOG_SECRET",
    "CLUSTERS_SECRET",
    "ENVIRONMENTS_SECRET",
    "SERVICE_SECRET_PREFIX",
    "CatalogAppNotFoundError",
    "CatalogRepository",
    "ClusterNotFoundError",
    "ClusterRepository",
    "EnvironmentAlreadyExistsError",
    "EnvironmentNotFoundError",
    "EnvironmentRepository",
    "ServiceAlreadyExistsError",
    "ServiceNotFoundError",
    "ServiceRepository",
]
