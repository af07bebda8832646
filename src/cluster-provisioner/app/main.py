"""Cluster Provisioner FastAPI Application.

The Cluster Provisioner service provides:
- Create and delete pipelines for management clusters on seven clouds
- Resumable progress through checkpoint flags on the cluster record
- Environment, service list and gitops catalog records
- Storage of every collection in Kubernetes Secrets
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.config import ProvisionerSettings
from shared.document_store import SecretDocumentStore
from shared.observability import get_logger, setup_logging

from .api import catalog, clusters, environments, health, services
from .pipeline import PipelineExecutor
from .repositories import (
    CatalogRepository,
    ClusterRepository,
    EnvironmentRepository,
    ServiceRepository,
)
from .services.cluster_service import ClusterService

settings = ProvisionerSettings()
setup_logging(
    log_level=settings.log_level,
    log_format=settings.log_format,
    service_name="cluster-provisioner",
)
logger = get_logger(__name__)


def init_state(app: FastAPI, store: SecretDocumentStore, executor: PipelineExecutor | None = None) -> None:
    """Attach repositories and the cluster service to the application."""
    cluster_repository = ClusterRepository(store)
    service_repository = ServiceRepository(store)
    executor = executor or PipelineExecutor(cluster_repository, service_repository, settings)

    app.state.store = store
    app.state.clusters = cluster_repository
    app.state.services = service_repository
    app.state.environments = EnvironmentRepository(store)
    app.state.catalog = CatalogRepository(store)
    app.state.cluster_service = ClusterService(cluster_repository, service_repository, executor, settings)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the document store and repositories, then seeds default
    environments and the gitops catalog.
    """
    logger.info("Starting Cluster Provisioner service", version=settings.app_version)

    init_state(app, SecretDocumentStore(settings.store))

    if settings.create_default_environments:
        seeded = await app.state.environments.seed_defaults()
        logger.info("Environments ready", count=len(seeded))

    if settings.gitops_catalog_path is not None:
        await app.state.catalog.load_file(settings.gitops_catalog_path)

    logger.info("Cluster Provisioner service started successfully")

    yield

    # Runs in flight keep their records claimed; reset_progress releases them
    logger.info("Shutting down Cluster Provisioner service")


app = FastAPI(
    title="Cluster Provisioner Service",
    description="Provisions and decommissions Kubernetes management clusters",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(clusters.router, prefix="/api/v1", tags=["Clusters"])
app.include_router(environments.router, prefix="/api/v1", tags=["Environments"])
app.include_router(services.router, prefix="/api/v1", tags=["Services"])
app.include_router(catalog.router, prefix="/api/v1", tags=["Gitops Catalog"])
app.include_router(health.router, tags=["Health"])


@app.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": "cluster-provisioner",
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
        reload=settings.debug,
    )
