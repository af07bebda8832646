"""API routers for the Cluster Provisioner."""

from . import catalog, clusters, environments, health, services

__all__ = ["catalog", "clusters", "environments", "health", "services"]
