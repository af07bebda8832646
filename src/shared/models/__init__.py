"""Shared data models for the Kubefirst provisioner.

All models follow these conventions:
- Timestamps: ISO 8601 format with timezone (UTC preferred)
- Field names: lowercase snake_case, identical to the persisted JSON keys
- Enums: lowercase string values
"""

# Base
from .base import KubefirstBaseModel

# Credential payloads
from .auth import (
    AkamaiAuth,
    AWSAuth,
    AzureAuth,
    CivoAuth,
    CloudflareAuth,
    DigitaloceanAuth,
    GitAuth,
    GoogleAuth,
    K3sAuth,
    StateStoreCredentials,
    StateStoreDetails,
    VaultAuth,
)

# Gitops catalog
from .catalog import GitopsCatalogApp, GitopsCatalogAppKeys, GitopsCatalogApps

# Cluster domain
from .cluster import (
    DESTROY_GATING_CHECKPOINTS,
    Checkpoint,
    CloudProvider,
    Cluster,
    ClusterStatus,
    ClusterType,
    GitProtocol,
    GitProvider,
    WorkloadCluster,
)

# Common types
from .common import ErrorResponse, MessageResponse, utc_now
from .definition import ClusterDefinition

# Environments
from .environment import DEFAULT_ENVIRONMENTS, Environment, EnvironmentUpdate

# Services
from .service import ClusterServiceList, Service

__all__ = [
    # Base
    "KubefirstBaseModel",
    # Common
    "ErrorResponse",
    "MessageResponse",
    "utc_now",
    # Auth
    "AkamaiAuth",
    "AWSAuth",
    "AzureAuth",
    "CivoAuth",
    "CloudflareAuth",
    "DigitaloceanAuth",
    "GitAuth",
    "GoogleAuth",
    "K3sAuth",
    "StateStoreCredentials",
    "StateStoreDetails",
    "VaultAuth",
    # Cluster
    "Checkpoint",
    "CloudProvider",
    "Cluster",
    "ClusterDefinition",
    "ClusterStatus",
    "ClusterType",
    "DESTROY_GATING_CHECKPOINTS",
    "GitProtocol",
    "GitProvider",
    "WorkloadCluster",
    # Environments
    "DEFAULT_ENVIRONMENTS",
    "Environment",
    "EnvironmentUpdate",
    # Services
    "ClusterServiceList",
    "Service",
    # Catalog
    "GitopsCatalogApp",
    "GitopsCatalogAppKeys",
    "GitopsCatalogApps",
]
