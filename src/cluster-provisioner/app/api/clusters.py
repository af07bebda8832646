"""Cluster lifecycle API endpoints."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import APIRouter, Body, HTTPException, Request, status

from shared.document_store import DocumentStoreError
from shared.models import Cluster, MessageResponse
from shared.observability import get_logger

from ..repositories import ClusterNotFoundError
from ..schemas.cluster import ClusterImportRequest, ClusterListResponse, ClusterProgress
from ..services.cluster_service import (
    ClusterAlreadyExistsError,
    ClusterInProgressError,
    ClusterService,
    ClusterStateError,
    DefinitionValidationError,
    parse_definition,
)
from ..services.exporter import ClusterExportNotFoundError

logger = get_logger(__name__)

router = APIRouter()


def get_cluster_service(request: Request) -> ClusterService:
    return request.app.state.cluster_service


def _not_found(e: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "CLUSTER_NOT_FOUND", "message": str(e)},
    )


def _conflict(e: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"error": "CLUSTER_IN_PROGRESS", "message": str(e)},
    )


def _bad_request(e: Exception, code: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": code, "message": str(e)},
    )


@router.post(
    "/cluster",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Create a cluster",
    description="Validate the definition and enqueue a create pipeline run.",
)
async def create_cluster(request: Request, payload: dict[str, Any] = Body(...)):
    service = get_cluster_service(request)
    try:
        definition = parse_definition(payload)
    except DefinitionValidationError as e:
        raise _bad_request(e, "INVALID_DEFINITION")
    try:
        message = await service.create_cluster(definition)
    except ClusterInProgressError as e:
        raise _conflict(e)
    except ClusterAlreadyExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "CLUSTER_ALREADY_EXISTS", "message": str(e)},
        )
    return MessageResponse(message=message)


@router.get(
    "/cluster",
    response_model=ClusterListResponse,
    summary="List clusters",
)
async def list_clusters(request: Request):
    clusters = await get_cluster_service(request).list_clusters()
    return ClusterListResponse(clusters=clusters, total=len(clusters))


@router.get(
    "/cluster/{cluster_name}",
    response_model=Cluster,
    summary="Get a cluster record",
)
async def get_cluster(request: Request, cluster_name: str):
    try:
        return await get_cluster_service(request).get_cluster(cluster_name)
    except ClusterNotFoundError as e:
        raise _not_found(e)


@router.get(
    "/cluster/{cluster_name}/progress",
    response_model=ClusterProgress,
    summary="Get status and checkpoints of a cluster",
)
async def get_cluster_progress(request: Request, cluster_name: str):
    try:
        cluster = await get_cluster_service(request).get_cluster(cluster_name)
    except ClusterNotFoundError as e:
        raise _not_found(e)
    return ClusterProgress.from_cluster(cluster)


@router.delete(
    "/cluster/{cluster_name}",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Delete a cluster",
    description="Enqueue a delete pipeline run for the cluster.",
)
async def delete_cluster(request: Request, cluster_name: str):
    try:
        message = await get_cluster_service(request).delete_cluster(cluster_name)
    except ClusterNotFoundError as e:
        raise _not_found(e)
    except ClusterInProgressError as e:
        raise _conflict(e)
    except ClusterStateError as e:
        raise _bad_request(e, "INVALID_CLUSTER_STATE")
    return MessageResponse(message=message)


@router.post(
    "/cluster/{cluster_name}/reset_progress",
    response_model=ClusterProgress,
    summary="Clear a stuck in-progress flag",
)
async def reset_cluster_progress(request: Request, cluster_name: str):
    try:
        cluster = await get_cluster_service(request).reset_in_progress(cluster_name)
    except ClusterNotFoundError as e:
        raise _not_found(e)
    return ClusterProgress.from_cluster(cluster)


@router.delete(
    "/cluster/{cluster_name}/record",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a deleted cluster's record",
)
async def remove_cluster_record(request: Request, cluster_name: str):
    try:
        await get_cluster_service(request).remove_cluster(cluster_name)
    except ClusterNotFoundError as e:
        raise _not_found(e)
    except ClusterStateError as e:
        raise _bad_request(e, "INVALID_CLUSTER_STATE")


@router.post(
    "/cluster/import",
    response_model=Cluster,
    summary="Import a cluster record",
    description="Read the record a provisioned cluster exported into itself and store it.",
)
async def import_cluster(request: Request, body: ClusterImportRequest):
    try:
        return await get_cluster_service(request).import_cluster(Path(body.kubeconfig_path))
    except ClusterExportNotFoundError as e:
        raise _bad_request(e, "CLUSTER_EXPORT_NOT_FOUND")
    except ClusterInProgressError as e:
        raise _conflict(e)
    except DocumentStoreError as e:
        logger.error("Cluster import failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "STORE_ERROR", "message": str(e)},
        )
