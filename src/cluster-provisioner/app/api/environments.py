"""Environment API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, status

from shared.models import Environment, EnvironmentUpdate

from ..repositories import (
    EnvironmentAlreadyExistsError,
    EnvironmentNotFoundError,
    EnvironmentRepository,
)
from ..schemas.environment import EnvironmentCreateRequest, EnvironmentListResponse

router = APIRouter()


def get_environments(request: Request) -> EnvironmentRepository:
    return request.app.state.environments


def _not_found(e: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "ENVIRONMENT_NOT_FOUND", "message": str(e)},
    )


@router.get("/environment", response_model=EnvironmentListResponse, summary="List environments")
async def list_environments(request: Request):
    environments = await get_environments(request).list()
    return EnvironmentListResponse(environments=environments, total=len(environments))


@router.post(
    "/environment",
    response_model=Environment,
    status_code=status.HTTP_201_CREATED,
    summary="Create an environment",
)
async def create_environment(request: Request, body: EnvironmentCreateRequest):
    try:
        return await get_environments(request).insert(body.to_environment())
    except EnvironmentAlreadyExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "ENVIRONMENT_ALREADY_EXISTS", "message": str(e)},
        )


@router.get("/environment/{name}", response_model=Environment, summary="Get an environment")
async def get_environment(request: Request, name: str):
    try:
        return await get_environments(request).get(name)
    except EnvironmentNotFoundError as e:
        raise _not_found(e)


@router.put("/environment/{name}", response_model=Environment, summary="Update an environment")
async def update_environment(request: Request, name: str, body: EnvironmentUpdate):
    try:
        return await get_environments(request).update(name, body)
    except EnvironmentNotFoundError as e:
        raise _not_found(e)


@router.delete(
    "/environment/{name}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an environment",
)
async def delete_environment(request: Request, name: str):
    try:
        await get_environments(request).delete(name)
    except EnvironmentNotFoundError as e:
        raise _not_found(e)
