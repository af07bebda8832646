"""Argo CD API client and registry application manifest."""

from __future__ import annotations

from typing import Any

import httpx

from shared.observability import get_logger

logger = get_logger(__name__)

ARGOCD_NAMESPACE = "argocd"
ARGOCD_ADMIN_SECRET = "argocd-initial-admin-secret"
ARGOCD_SERVER_SERVICE = "svc/argocd-server"
REGISTRY_APPLICATION = "registry"


class ArgoCDError(Exception):
    """Raised when the Argo CD API rejects a request."""

    pass


class ArgoCDClient:
    """Minimal Argo CD REST client used through a local port-forward."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self, token: str | None = None) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            verify=False,
            transport=self._transport,
        )

    async def get_token(self, username: str, password: str) -> str:
        async with self._client() as http:
            try:
                response = await http.post("/api/v1/session", json={"username": username, "password": password})
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise ArgoCDError(f"argocd session request failed: {e}") from e
        token = response.json().get("token")
        if not token:
            raise ArgoCDError("argocd session response did not include a token")
        return token

    async def delete_application(self, token: str, name: str, cascade: bool = True) -> None:
        async with self._client(token) as http:
            try:
                response = await http.delete(
                    f"/api/v1/applications/{name}",
                    params={"cascade": str(cascade).lower()},
                )
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise ArgoCDError(f"deleting argocd application {name} failed: {e}") from e
        logger.info("Deleted argocd application", application=name, cascade=cascade)


def registry_application(repo_url: str, registry_path: str, revision: str = "HEAD") -> dict[str, Any]:
    """The root application that fans out every other install."""
    return {
        "apiVersion": "argoproj.io/v1alpha1",
        "kind": "Application",
        "metadata": {
            "name": REGISTRY_APPLICATION,
            "namespace": ARGOCD_NAMESPACE,
            "annotations": {"argocd.argoproj.io/sync-wave": "1"},
            "finalizers": ["resources-finalizer.argocd.argoproj.io"],
        },
        "spec": {
            "project": "default",
            "source": {
                "repoURL": repo_url,
                "path": registry_path,
                "targetRevision": revision,
            },
            "destination": {
                "name": "in-cluster",
                "namespace": ARGOCD_NAMESPACE,
            },
            "syncPolicy": {
                "automated": {"prune": True, "selfHeal": True},
                "syncOptions": ["CreateNamespace=true"],
                "retry": {
                    "limit": 5,
                    "backoff": {"duration": "5s", "maxDuration": "5m0s", "factor": 2},
                },
            },
        },
    }
