"""Request/Response schemas for the Cluster Provisioner API."""

from .cluster import ClusterImportRequest, ClusterListResponse, ClusterProgress
from .environment import EnvironmentCreateRequest, EnvironmentListResponse

__all__ = [
    "ClusterImportRequest",
    "ClusterListResponse",
    "ClusterProgress",
    "EnvironmentCreateRequest",
    "EnvironmentListResponse",
]
