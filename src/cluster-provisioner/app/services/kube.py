"""Kubernetes API access for a newly provisioned target cluster."""

from __future__ import annotations

import asyncio
import base64
import time
from pathlib import Path
from typing import Any

import yaml
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError as TransportError

from shared.observability import get_logger

from .commands import CommandError, run_command
from .port_forward import PortForwardTunnel

logger = get_logger(__name__)

TRANSIENT_STATUSES = (404, 429, 500, 502, 503, 504)


class DeploymentTimeoutError(Exception):
    """Raised when a workload was not ready within its deadline."""

    pass


class KubernetesOperationError(Exception):
    """Raised when a non-retryable Kubernetes API call fails."""

    pass


class TargetCluster:
    """Typed helpers over the target cluster's API, built from its kubeconfig."""

    def __init__(
        self,
        kubeconfig_path: Path,
        kubectl_path: Path,
        poll_interval: float = 5.0,
    ):
        self.kubeconfig_path = kubeconfig_path
        self.kubectl_path = kubectl_path
        self.poll_interval = poll_interval
        self._api_client: client.ApiClient | None = None

    def _get_api_client(self) -> client.ApiClient:
        if self._api_client is None:
            self._api_client = config.new_client_from_config(config_file=str(self.kubeconfig_path))
        return self._api_client

    @property
    def core(self) -> client.CoreV1Api:
        return client.CoreV1Api(self._get_api_client())

    @property
    def apps(self) -> client.AppsV1Api:
        return client.AppsV1Api(self._get_api_client())

    @property
    def batch(self) -> client.BatchV1Api:
        return client.BatchV1Api(self._get_api_client())

    @property
    def custom(self) -> client.CustomObjectsApi:
        return client.CustomObjectsApi(self._get_api_client())

    # Readiness

    async def wait_for_api(self, timeout: int) -> None:
        """Poll until the API server answers a namespace list.

        Any API error counts as not ready; a starting control plane answers
        401/403 until its auth is up.
        """

        def probe() -> bool:
            try:
                self.core.list_namespace(limit=1)
                return True
            except ApiException as e:
                logger.debug("Cluster API not ready yet", status=e.status)
                return False

        await self._poll(probe, timeout, "cluster API")

    async def wait_for_deployment(self, namespace: str, label_selector: str, timeout: int) -> None:
        """Wait until a deployment matching the selector has all replicas ready."""

        def ready() -> bool:
            deployments = self.apps.list_namespaced_deployment(namespace, label_selector=label_selector).items
            if not deployments:
                return False
            deployment = deployments[0]
            desired = deployment.spec.replicas or 0
            return (deployment.status.ready_replicas or 0) >= desired > 0

        await self._poll(ready, timeout, f"deployment {namespace}/{label_selector}")

    async def wait_for_statefulset(self, namespace: str, label_selector: str, timeout: int) -> None:
        def ready() -> bool:
            sets = self.apps.list_namespaced_stateful_set(namespace, label_selector=label_selector).items
            if not sets:
                return False
            statefulset = sets[0]
            desired = statefulset.spec.replicas or 0
            # Vault pods run but stay unready until unsealed
            return (statefulset.status.current_replicas or 0) >= desired > 0

        await self._poll(ready, timeout, f"statefulset {namespace}/{label_selector}")

    async def wait_for_job(self, namespace: str, name: str, timeout: int) -> None:
        def complete() -> bool:
            try:
                job = self.batch.read_namespaced_job(name, namespace)
            except ApiException as e:
                if e.status == 404:
                    return False
                raise
            if (job.status.failed or 0) > 0:
                raise KubernetesOperationError(f"job {namespace}/{name} failed")
            return (job.status.succeeded or 0) > 0

        await self._poll(complete, timeout, f"job {namespace}/{name}")

    async def _poll(self, predicate: Any, timeout: int, what: str) -> None:
        logger.info("Waiting for readiness", target=what, timeout_seconds=timeout)
        deadline = time.monotonic() + timeout
        while True:
            try:
                if predicate():
                    logger.info("Ready", target=what)
                    return
            except ApiException as e:
                if e.status not in TRANSIENT_STATUSES:
                    raise
                logger.debug("Transient API error while waiting", target=what, status=e.status)
            except TransportError as e:
                # Endpoint not listening yet, or the connection dropped mid-wait
                logger.debug("API server unreachable while waiting", target=what, error=str(e))
            if time.monotonic() >= deadline:
                raise DeploymentTimeoutError(f"{what} was not ready within {timeout} seconds")
            await asyncio.sleep(self.poll_interval)

    # Secrets

    async def read_secret(self, namespace: str, name: str) -> dict[str, str]:
        """Read a secret and decode its values.

        Returns:
            Decoded data, or an empty dict if the secret does not exist
        """
        try:
            secret = self.core.read_namespaced_secret(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return {}
            raise
        return {key: base64.b64decode(value).decode() for key, value in (secret.data or {}).items()}

    async def write_secret(
        self,
        namespace: str,
        name: str,
        data: dict[str, str],
        labels: dict[str, str] | None = None,
    ) -> None:
        """Create or replace an Opaque secret."""
        await self.ensure_namespace(namespace)
        body = client.V1Secret(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace, labels=labels),
            type="Opaque",
            data={key: base64.b64encode(value.encode()).decode() for key, value in data.items()},
        )
        try:
            self.core.create_namespaced_secret(namespace=namespace, body=body)
            logger.info("Created secret", namespace=namespace, secret=name)
        except ApiException as e:
            if e.status != 409:
                raise
            self.core.replace_namespaced_secret(name=name, namespace=namespace, body=body)
            logger.info("Replaced secret", namespace=namespace, secret=name)

    async def ensure_namespace(self, namespace: str) -> None:
        try:
            self.core.create_namespace(client.V1Namespace(metadata=client.V1ObjectMeta(name=namespace)))
            logger.debug("Created namespace", namespace=namespace)
        except ApiException as e:
            if e.status != 409:
                raise

    async def restore_tls_secrets(self, backup_dir: Path) -> int:
        """Re-create TLS secrets saved from a previous cluster of the same name.

        Files are laid out as ``<backup_dir>/secrets/<namespace>/<name>.yaml``
        containing a serialized Secret.
        """
        secrets_dir = backup_dir / "secrets"
        if not secrets_dir.is_dir():
            return 0
        restored = 0
        for path in sorted(secrets_dir.glob("*/*.yaml")):
            manifest = yaml.safe_load(path.read_text()) or {}
            metadata = manifest.get("metadata", {})
            namespace = metadata.get("namespace") or path.parent.name
            name = metadata.get("name") or path.stem
            data = {key: base64.b64decode(value).decode() for key, value in (manifest.get("data") or {}).items()}
            await self.write_secret(namespace, name, data, labels=metadata.get("labels"))
            restored += 1
        logger.info("Restored TLS secrets", count=restored, backup_dir=str(backup_dir))
        return restored

    # Manifests

    async def apply_kustomize(self, target: str) -> None:
        try:
            await run_command(
                [self.kubectl_path, "--kubeconfig", self.kubeconfig_path, "apply", "-k", target],
                timeout=600,
            )
        except CommandError as e:
            raise KubernetesOperationError(f"kubectl apply -k {target} failed: {e}") from e

    async def create_custom_object(
        self,
        group: str,
        version: str,
        namespace: str,
        plural: str,
        body: dict[str, Any],
    ) -> None:
        try:
            self.custom.create_namespaced_custom_object(group, version, namespace, plural, body)
            logger.info("Created custom object", kind=body.get("kind"), name=body["metadata"]["name"])
        except ApiException as e:
            if e.status != 409:
                raise
            logger.info("Custom object already exists", kind=body.get("kind"), name=body["metadata"]["name"])

    # Tunnels

    def port_forward(self, namespace: str, target: str, local_port: int, remote_port: int) -> PortForwardTunnel:
        return PortForwardTunnel(
            self.kubectl_path,
            self.kubeconfig_path,
            namespace,
            target,
            local_port,
            remote_port,
        )
