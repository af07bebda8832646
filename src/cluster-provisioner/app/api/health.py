"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from kubernetes.client.rest import ApiException

from shared.document_store import DocumentStoreError
from shared.observability import get_logger

router = APIRouter()

logger = get_logger(__name__)


@router.get(
    "/health",
    summary="Health check",
    description="Basic health check endpoint.",
)
async def health():
    return {"status": "healthy", "service": "cluster-provisioner"}


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check the document store is reachable.",
)
async def ready(request: Request):
    checks = {"store": False}

    try:
        await request.app.state.clusters.list()
        checks["store"] = True
    except (ApiException, DocumentStoreError) as e:
        logger.warning("Store readiness check failed", error=str(e))

    all_ready = all(checks.values())
    return JSONResponse(
        status_code=200 if all_ready else 503,
        content={"status": "ready" if all_ready else "not_ready", "checks": checks},
    )
