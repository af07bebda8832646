"""Gitops catalog endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request, status

from shared.models import GitopsCatalogApp, GitopsCatalogApps

from ..repositories import CatalogAppNotFoundError, CatalogRepository

router = APIRouter()


def get_catalog(request: Request) -> CatalogRepository:
    return request.app.state.catalog


@router.get(
    "/gitops-catalog",
    response_model=GitopsCatalogApps,
    summary="List catalog applications",
    description="Apps denylisted for the given cloud or git provider are left out.",
)
async def list_catalog(
    request: Request,
    cloud_provider: str | None = Query(None, description="Cloud provider to filter for"),
    git_provider: str | None = Query(None, description="Git provider to filter for"),
):
    catalog = get_catalog(request)
    if cloud_provider or git_provider:
        return await catalog.available_for(cloud_provider or "", git_provider or "")
    return GitopsCatalogApps(apps=await catalog.list())


@router.get(
    "/gitops-catalog/{name}",
    response_model=GitopsCatalogApp,
    summary="Get a catalog application",
)
async def get_catalog_app(request: Request, name: str):
    try:
        return await get_catalog(request).get(name)
    except CatalogAppNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "CATALOG_APP_NOT_FOUND", "message": str(e)},
        )
