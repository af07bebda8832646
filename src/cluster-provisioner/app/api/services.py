"""Per-cluster service list endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, status

from shared.models import ClusterServiceList, Service

from ..repositories import ServiceAlreadyExistsError, ServiceNotFoundError, ServiceRepository

router = APIRouter()


def get_services(request: Request) -> ServiceRepository:
    return request.app.state.services


@router.get(
    "/services/{cluster_name}",
    response_model=ClusterServiceList,
    summary="List services installed on a cluster",
)
async def list_services(request: Request, cluster_name: str):
    return await get_services(request).get_list(cluster_name)


@router.post(
    "/services/{cluster_name}",
    response_model=Service,
    status_code=status.HTTP_201_CREATED,
    summary="Register a service on a cluster",
)
async def add_service(request: Request, cluster_name: str, service: Service):
    repository = get_services(request)
    await repository.create_list(cluster_name)
    try:
        return await repository.add(cluster_name, service)
    except ServiceAlreadyExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "SERVICE_ALREADY_EXISTS", "message": str(e)},
        )


@router.delete(
    "/services/{cluster_name}/{service_name}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a service from a cluster",
)
async def remove_service(request: Request, cluster_name: str, service_name: str):
    try:
        await get_services(request).remove(cluster_name, service_name)
    except ServiceNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "SERVICE_NOT_FOUND", "message": str(e)},
        )
