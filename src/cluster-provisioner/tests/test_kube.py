"""Tests for target cluster readiness waits and secret handling."""

import base64
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import yaml
from kubernetes.client.rest import ApiException
from urllib3.exceptions import MaxRetryError, ProtocolError

from app.services.kube import DeploymentTimeoutError, KubernetesOperationError, TargetCluster


def deployment(ready: int | None, replicas: int = 1):
    return SimpleNamespace(spec=SimpleNamespace(replicas=replicas), status=SimpleNamespace(ready_replicas=ready))


def listing(*items):
    return SimpleNamespace(items=list(items))


def job(succeeded: int | None = None, failed: int | None = None):
    return SimpleNamespace(status=SimpleNamespace(succeeded=succeeded, failed=failed))


@pytest.fixture
def target(tmp_path):
    cluster = TargetCluster(tmp_path / "kubeconfig", tmp_path / "kubectl", poll_interval=0)
    cluster._api_client = MagicMock()
    return cluster


@pytest.fixture
def apps():
    with patch("app.services.kube.client.AppsV1Api") as mock:
        yield mock.return_value


@pytest.fixture
def core():
    with patch("app.services.kube.client.CoreV1Api") as mock:
        yield mock.return_value


@pytest.fixture
def batch():
    with patch("app.services.kube.client.BatchV1Api") as mock:
        yield mock.return_value


class TestReadinessWaits:
    async def test_deployment_ready(self, target, apps):
        apps.list_namespaced_deployment.return_value = listing(deployment(ready=1))

        await target.wait_for_deployment("argocd", "app.kubernetes.io/name=argocd-server", timeout=5)

        assert apps.list_namespaced_deployment.call_args.kwargs["label_selector"] == (
            "app.kubernetes.io/name=argocd-server"
        )

    async def test_deadline_expiry(self, target, apps):
        apps.list_namespaced_deployment.return_value = listing(deployment(ready=0))

        with pytest.raises(DeploymentTimeoutError, match="argocd/app=argocd-server"):
            await target.wait_for_deployment("argocd", "app=argocd-server", timeout=0)

    async def test_missing_deployment_keeps_waiting(self, target, apps):
        apps.list_namespaced_deployment.side_effect = [
            listing(),
            listing(deployment(ready=None)),
            listing(deployment(ready=2, replicas=2)),
        ]

        await target.wait_for_deployment("argocd", "app=argocd-server", timeout=5)

        assert apps.list_namespaced_deployment.call_count == 3

    async def test_transient_errors_then_ready(self, target, apps):
        apps.list_namespaced_deployment.side_effect = [
            ApiException(status=503),
            MaxRetryError(None, "/apis/apps/v1/namespaces/argocd/deployments"),
            ProtocolError("Connection aborted."),
            listing(deployment(ready=1)),
        ]

        await target.wait_for_deployment("argocd", "app=argocd-server", timeout=5)

        assert apps.list_namespaced_deployment.call_count == 4

    async def test_non_transient_api_error_raises(self, target, apps):
        apps.list_namespaced_deployment.side_effect = ApiException(status=403)

        with pytest.raises(ApiException):
            await target.wait_for_deployment("argocd", "app=argocd-server", timeout=5)

        assert apps.list_namespaced_deployment.call_count == 1

    async def test_api_unreachable_then_ready(self, target, core):
        core.list_namespace.side_effect = [
            MaxRetryError(None, "/api/v1/namespaces"),
            ApiException(status=401),
            SimpleNamespace(items=[]),
        ]

        await target.wait_for_api(timeout=5)

        assert core.list_namespace.call_count == 3

    async def test_api_deadline_expiry(self, target, core):
        core.list_namespace.side_effect = MaxRetryError(None, "/api/v1/namespaces")

        with pytest.raises(DeploymentTimeoutError, match="cluster API"):
            await target.wait_for_api(timeout=0)

    async def test_job_completes_after_creation(self, target, batch):
        batch.read_namespaced_job.side_effect = [ApiException(status=404), job(), job(succeeded=1)]

        await target.wait_for_job("vault", "vault-handler", timeout=5)

        assert batch.read_namespaced_job.call_count == 3

    async def test_failed_job_raises(self, target, batch):
        batch.read_namespaced_job.return_value = job(failed=1)

        with pytest.raises(KubernetesOperationError, match="vault/vault-handler failed"):
            await target.wait_for_job("vault", "vault-handler", timeout=5)


class TestSecrets:
    async def test_write_creates_secret(self, target, core):
        await target.write_secret("vault", "vault-unseal-secret", {"root-token": "hvs.root"})

        core.create_namespaced_secret.assert_called_once()
        body = core.create_namespaced_secret.call_args.kwargs["body"]
        assert body.data == {"root-token": base64.b64encode(b"hvs.root").decode()}
        core.replace_namespaced_secret.assert_not_called()

    async def test_existing_secret_is_replaced(self, target, core):
        core.create_namespace.side_effect = ApiException(status=409)
        core.create_namespaced_secret.side_effect = ApiException(status=409)

        await target.write_secret("vault", "vault-unseal-secret", {"root-token": "hvs.new"})

        core.replace_namespaced_secret.assert_called_once()
        kwargs = core.replace_namespaced_secret.call_args.kwargs
        assert kwargs["name"] == "vault-unseal-secret"
        assert kwargs["namespace"] == "vault"
        assert kwargs["body"].data == {"root-token": base64.b64encode(b"hvs.new").decode()}

    async def test_write_failure_propagates(self, target, core):
        core.create_namespaced_secret.side_effect = ApiException(status=500)

        with pytest.raises(ApiException):
            await target.write_secret("vault", "vault-unseal-secret", {"root-token": "hvs.root"})

        core.replace_namespaced_secret.assert_not_called()

    async def test_read_missing_secret(self, target, core):
        core.read_namespaced_secret.side_effect = ApiException(status=404)

        assert await target.read_secret("argocd", "argocd-initial-admin-secret") == {}

    async def test_restore_tls_secrets(self, target, core, tmp_path):
        backup = tmp_path / "backup"
        (backup / "secrets" / "argo").mkdir(parents=True)
        (backup / "secrets" / "vault").mkdir(parents=True)
        (backup / "secrets" / "argo" / "argo-tls.yaml").write_text(
            yaml.safe_dump(
                {
                    "metadata": {"name": "argo-tls", "namespace": "argo", "labels": {"kubefirst": "true"}},
                    "data": {"tls.crt": base64.b64encode(b"CERT").decode()},
                }
            )
        )
        # Name and namespace fall back to the file layout
        (backup / "secrets" / "vault" / "vault-tls.yaml").write_text(
            yaml.safe_dump({"data": {"tls.key": base64.b64encode(b"KEY").decode()}})
        )

        restored = await target.restore_tls_secrets(backup)

        assert restored == 2
        bodies = [c.kwargs["body"] for c in core.create_namespaced_secret.call_args_list]
        assert [(b.metadata.namespace, b.metadata.name) for b in bodies] == [
            ("argo", "argo-tls"),
            ("vault", "vault-tls"),
        ]
        assert bodies[0].metadata.labels == {"kubefirst": "true"}
        assert bodies[1].data == {"tls.key": base64.b64encode(b"KEY").decode()}

    async def test_restore_without_backup(self, target, core, tmp_path):
        assert await target.restore_tls_secrets(tmp_path / "missing") == 0
        core.create_namespaced_secret.assert_not_called()
