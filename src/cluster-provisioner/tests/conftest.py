"""Test fixtures for Cluster Provisioner."""

from __future__ import annotations

import copy
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from kubernetes import client
from kubernetes.client.rest import ApiException

from shared.config import LivenessSettings, PipelineSettings, ProvisionerSettings, StoreSettings
from shared.document_store import SecretDocumentStore
from shared.models import (
    CivoAuth,
    CloudflareAuth,
    ClusterDefinition,
    GitAuth,
    StateStoreCredentials,
    StateStoreDetails,
)

from app.pipeline import Collaborators, PipelineExecutor
from app.providers.base import ProviderAdapter, ProviderError, TXTRecord
from app.repositories import ClusterRepository, ServiceRepository
from app.services.argocd import ARGOCD_ADMIN_SECRET, ARGOCD_NAMESPACE
from app.services.vault import VAULT_NAMESPACE, VAULT_UNSEAL_SECRET


class FakeCoreV1Api:
    """In-memory stand-in for the Secret calls of ``CoreV1Api``.

    Replacements must carry the current resourceVersion, as on a real API
    server.
    """

    def __init__(self):
        self.secrets: dict[tuple[str, str], client.V1Secret] = {}
        self._version = 0
        self.replace_calls = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def read_namespaced_secret(self, name: str, namespace: str) -> client.V1Secret:
        try:
            return copy.deepcopy(self.secrets[(namespace, name)])
        except KeyError:
            raise ApiException(status=404, reason="Not Found")

    def create_namespaced_secret(self, namespace: str, body: client.V1Secret) -> client.V1Secret:
        key = (namespace, body.metadata.name)
        if key in self.secrets:
            raise ApiException(status=409, reason="AlreadyExists")
        stored = copy.deepcopy(body)
        stored.metadata.resource_version = self._next_version()
        self.secrets[key] = stored
        return copy.deepcopy(stored)

    def replace_namespaced_secret(self, name: str, namespace: str, body: client.V1Secret) -> client.V1Secret:
        self.replace_calls += 1
        key = (namespace, name)
        if key not in self.secrets:
            raise ApiException(status=404, reason="Not Found")
        if body.metadata.resource_version != self.secrets[key].metadata.resource_version:
            raise ApiException(status=409, reason="Conflict")
        stored = copy.deepcopy(body)
        stored.metadata.resource_version = self._next_version()
        self.secrets[key] = stored
        return copy.deepcopy(stored)

    def delete_namespaced_secret(self, name: str, namespace: str) -> None:
        if self.secrets.pop((namespace, name), None) is None:
            raise ApiException(status=404, reason="Not Found")


@pytest.fixture
def fake_core() -> FakeCoreV1Api:
    return FakeCoreV1Api()


@pytest.fixture
def store(fake_core) -> SecretDocumentStore:
    return SecretDocumentStore(StoreSettings(namespace="kubefirst", max_conflict_retries=3), k8s_client=fake_core)


@pytest.fixture
def cluster_repository(store) -> ClusterRepository:
    return ClusterRepository(store)


@pytest.fixture
def service_repository(store) -> ServiceRepository:
    return ServiceRepository(store)


@pytest.fixture
def settings(tmp_path) -> ProvisionerSettings:
    return ProvisionerSettings(
        pipeline=PipelineSettings(
            k1_dir=tmp_path / "k1",
            registry_delete_pause_seconds=0,
            vault_terraform_retry_pause_seconds=0,
            poll_interval_seconds=0.01,
        ),
        liveness=LivenessSettings(retries=3, interval_seconds=0.01),
        create_default_environments=False,
    )


@pytest.fixture
def civo_definition() -> ClusterDefinition:
    return ClusterDefinition(
        cluster_name="kf-civo",
        admin_email="admin@example.com",
        cloud_provider="civo",
        cloud_region="NYC1",
        domain_name="example.com",
        dns_provider="civo",
        git_provider="github",
        node_type="g4s.kube.large",
        node_count=3,
        civo_auth=CivoAuth(token="civo-token"),
        cloudflare_auth=CloudflareAuth(),
        git_auth=GitAuth(git_token="ghp_token", git_owner="kubefirst-org"),
    )


# =============================================================================
# Pipeline doubles
# =============================================================================


class FakeDNS:
    def __init__(self, records: list[TXTRecord] | None = None):
        self.records = list(records or [])
        self.upserts: list[tuple[str, str, str, int]] = []

    async def list_txt_records(self, zone: str) -> list[TXTRecord]:
        return list(self.records)

    async def upsert_txt_record(self, zone: str, name: str, value: str, ttl: int) -> None:
        self.upserts.append((zone, name, value, ttl))
        self.records = [r for r in self.records if r.name != name]
        self.records.append(TXTRecord(name=name, value=value))


class FakeAdapter(ProviderAdapter):
    """Provider double; cloud terraform is simulated in-process."""

    name = "civo"

    def __init__(self, cluster, fail_create: bool = False):
        super().__init__(cluster)
        self.fail_create = fail_create
        self.calls: list[str] = []

    def native_dns(self):
        return FakeDNS()

    async def create_state_store_credentials(self) -> StateStoreCredentials:
        self.calls.append("state_store_credentials")
        return StateStoreCredentials(access_key_id="AK", secret_access_key="SK", name="creds")

    async def create_state_store(self, credentials) -> StateStoreDetails:
        self.calls.append("state_store_create")
        return StateStoreDetails(name=self.cluster.state_store_details.name, id="bucket-1", hostname="objects.test")

    def terraform_env(self) -> dict[str, str]:
        return {"FAKE_TOKEN": "token"}

    async def create_infrastructure(self, config, terraform):
        self.calls.append("create_infrastructure")
        if self.fail_create:
            raise ProviderError("cloud terraform apply failed: quota exceeded")
        return await super().create_infrastructure(config, terraform)

    async def destroy_infrastructure(self, config, terraform) -> None:
        self.calls.append("destroy_infrastructure")
        await super().destroy_infrastructure(config, terraform)

    async def before_cloud_destroy(self, config) -> None:
        self.calls.append("before_cloud_destroy")


class FakeTools:
    def __init__(self):
        self.installed: list[Path] = []

    async def install(self, tools_dir: Path) -> None:
        self.installed.append(tools_dir)


class FakeLiveness:
    def __init__(self):
        self.validated: list[str] = []

    async def validate(self, domain, dns_provider, ttl=None) -> bool:
        self.validated.append(domain)
        return True

    async def failure_message(self, domain: str) -> str:
        return f"failed to verify domain liveness for domain {domain}"


class FakeGitops:
    def __init__(self):
        self.prepared: list[Path] = []
        self.pushed: list[Path] = []
        self.commits: list[str] = []

    async def prepare(self, cluster, gitops_dir, metaphor_dir, tokens, remotes) -> None:
        gitops_dir.mkdir(parents=True, exist_ok=True)
        metaphor_dir.mkdir(parents=True, exist_ok=True)
        self.prepared.append(gitops_dir)

    async def push(self, directory: Path, private_key: str, branch: str = "main") -> None:
        self.pushed.append(directory)

    async def commit_and_push(self, directory: Path, message: str, private_key: str) -> None:
        self.commits.append(message)


class FakeGitProvider:
    def __init__(self):
        self.initialized = 0
        self.deleted_keys: list[str] = []
        self.cleaned_registries: list[str] = []

    async def initialize(self, repositories=None, teams=None) -> int:
        self.initialized += 1
        return 0

    async def delete_ssh_key(self, title: str) -> int:
        self.deleted_keys.append(title)
        return 1

    async def delete_container_registry_repositories(self, projects) -> int:
        self.cleaned_registries.extend(projects)
        return len(projects)


class FakeTerraform:
    """Records terraform runs; an apply writes the kubeconfig like the cloud stage."""

    def __init__(self):
        self.applied: list[str] = []
        self.destroyed: list[str] = []

    async def apply(self, entrypoint: Path, env: dict[str, str]) -> None:
        self.applied.append(entrypoint.name)
        cluster_dir = entrypoint.parents[2]
        cluster_dir.mkdir(parents=True, exist_ok=True)
        (cluster_dir / "kubeconfig").write_text("apiVersion: v1\nkind: Config\n")

    async def destroy(self, entrypoint: Path, env: dict[str, str]) -> None:
        self.destroyed.append(entrypoint.name)


class FakeTarget:
    """Target cluster double holding secrets in memory."""

    def __init__(self):
        self.secrets: dict[tuple[str, str], dict[str, str]] = {
            (ARGOCD_NAMESPACE, ARGOCD_ADMIN_SECRET): {"password": "argocd-password"},
            (VAULT_NAMESPACE, VAULT_UNSEAL_SECRET): {"root-token": "vault-root-token"},
        }
        self.labels: dict[tuple[str, str], dict[str, str] | None] = {}
        self.kustomizations: list[str] = []
        self.waits: list[tuple[str, str]] = []
        self.custom_objects: list[dict[str, Any]] = []
        self.tunnels_opened = 0
        self.tunnels_closed = 0

    async def wait_for_api(self, timeout: int) -> None:
        self.waits.append(("api", ""))

    async def wait_for_deployment(self, namespace: str, label_selector: str, timeout: int) -> None:
        self.waits.append((namespace, label_selector))

    async def wait_for_statefulset(self, namespace: str, label_selector: str, timeout: int) -> None:
        self.waits.append((namespace, label_selector))

    async def wait_for_job(self, namespace: str, name: str, timeout: int) -> None:
        self.waits.append((namespace, name))

    async def read_secret(self, namespace: str, name: str) -> dict[str, str]:
        return dict(self.secrets.get((namespace, name), {}))

    async def write_secret(self, namespace, name, data, labels=None) -> None:
        self.secrets[(namespace, name)] = dict(data)
        self.labels[(namespace, name)] = labels

    async def restore_tls_secrets(self, backup_dir: Path) -> int:
        return 0

    async def apply_kustomize(self, target: str) -> None:
        self.kustomizations.append(target)

    async def create_custom_object(self, group, version, namespace, plural, body) -> None:
        self.custom_objects.append(body)

    @asynccontextmanager
    async def port_forward(self, namespace, target, local_port, remote_port):
        self.tunnels_opened += 1
        try:
            yield f"http://localhost:{local_port}"
        finally:
            self.tunnels_closed += 1


class FakeArgoCD:
    def __init__(self, fail_delete: bool = False):
        self.fail_delete = fail_delete
        self.deleted: list[str] = []

    async def get_token(self, username: str, password: str) -> str:
        return "argocd-token"

    async def delete_application(self, token: str, name: str, cascade: bool = True) -> None:
        if self.fail_delete:
            raise RuntimeError("argocd application delete failed: 503 Service Unavailable")
        self.deleted.append(name)


class FakeVault:
    def __init__(self):
        self.written: dict[str, dict[str, str]] = {}

    async def is_initialized(self) -> bool:
        return False

    async def initialize(self) -> dict[str, Any]:
        return {"root_token": "vault-root-token", "recovery_keys": ["k1", "k2"]}

    async def kv_put(self, path: str, data: dict[str, str], mount: str = "secret") -> None:
        self.written[path] = data


class PipelineDoubles:
    """Every collaborator double for one test, reachable by name."""

    def __init__(self):
        self.tools = FakeTools()
        self.liveness = FakeLiveness()
        self.gitops = FakeGitops()
        self.git_provider = FakeGitProvider()
        self.terraform = FakeTerraform()
        self.target = FakeTarget()
        self.argocd = FakeArgoCD()
        self.vault = FakeVault()

    def collaborators(self) -> Collaborators:
        return Collaborators(
            tools=self.tools,
            liveness=self.liveness,
            gitops=self.gitops,
            git_provider=lambda cluster: self.git_provider,
            terraform=lambda path: self.terraform,
            target_cluster=lambda config: self.target,
            argocd=lambda url: self.argocd,
            vault=lambda url, token: self.vault,
        )


@pytest.fixture
def fake_adapter() -> type[FakeAdapter]:
    return FakeAdapter


@pytest.fixture
def doubles() -> PipelineDoubles:
    return PipelineDoubles()


@pytest.fixture
def make_executor(cluster_repository, service_repository, settings, doubles):
    """Build an executor whose adapter factory is chosen per test."""

    def factory(adapter_factory=None) -> PipelineExecutor:
        return PipelineExecutor(
            cluster_repository,
            service_repository,
            settings,
            collaborators=doubles.collaborators(),
            adapter_factory=adapter_factory or (lambda cluster: FakeAdapter(cluster)),
        )

    return factory


# =============================================================================
# API client
# =============================================================================


class RecordingExecutor:
    """Executor double that records runs and leaves the record claimed."""

    def __init__(self):
        self.created: list[str] = []
        self.deleted: list[str] = []

    async def run_create(self, cluster):
        self.created.append(cluster.cluster_name)
        return cluster

    async def run_delete(self, cluster):
        self.deleted.append(cluster.cluster_name)
        return cluster


@pytest.fixture
def recording_executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest_asyncio.fixture
async def test_client(store, recording_executor) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    from app.main import app, init_state

    # Override app state
    init_state(app, store, executor=recording_executor)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    await app.state.cluster_service.wait_idle()


@pytest.fixture
def sample_cluster_data() -> dict[str, Any]:
    """Sample cluster definition for testing."""
    return {
        "cluster_name": "kf-civo",
        "admin_email": "admin@example.com",
        "cloud_provider": "civo",
        "cloud_region": "NYC1",
        "domain_name": "example.com",
        "dns_provider": "civo",
        "git_provider": "github",
        "node_type": "g4s.kube.large",
        "node_count": 3,
        "civo_auth": {"token": "civo-token"},
        "git_auth": {"git_token": "ghp_token", "git_owner": "kubefirst-org"},
    }
