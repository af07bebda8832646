"""Tests for cluster lifecycle invocation."""

import asyncio

import pytest

from shared.models import ClusterStatus

from app.pipeline import initialize_cluster
from app.repositories import ClusterNotFoundError
from app.services.cluster_service import (
    ENQUEUED,
    ClusterAlreadyExistsError,
    ClusterInProgressError,
    ClusterService,
    ClusterStateError,
    DefinitionValidationError,
    parse_definition,
)
from app.services.exporter import EXPORT_KEY, EXPORT_NAMESPACE, EXPORT_SECRET


class BlockingExecutor:
    """Executor double whose runs finish only when released."""

    def __init__(self, repository):
        self.repository = repository
        self.release = asyncio.Event()
        self.created: list[str] = []
        self.deleted: list[str] = []

    async def _finish(self, cluster, status):
        await self.release.wait()

        def done(current):
            current.status = status
            current.in_progress = False

        return await self.repository.update(cluster.cluster_name, done)

    async def run_create(self, cluster):
        self.created.append(cluster.cluster_id)
        return await self._finish(cluster, ClusterStatus.PROVISIONED)

    async def run_delete(self, cluster):
        self.deleted.append(cluster.cluster_name)
        return await self._finish(cluster, ClusterStatus.DELETED)


class FakeExportTarget:
    def __init__(self, data):
        self.data = data

    async def read_secret(self, namespace, name):
        return dict(self.data.get((namespace, name), {}))


@pytest.fixture
def executor(cluster_repository):
    return BlockingExecutor(cluster_repository)


@pytest.fixture
def cluster_service(cluster_repository, service_repository, executor, settings):
    return ClusterService(cluster_repository, service_repository, executor, settings)


class TestParseDefinition:
    def test_valid_definition(self, sample_cluster_data):
        definition = parse_definition(sample_cluster_data)

        assert definition.cluster_name == "kf-civo"
        assert definition.civo_auth.token == "civo-token"

    def test_missing_cloud_credentials(self, sample_cluster_data):
        sample_cluster_data["civo_auth"] = {}

        with pytest.raises(DefinitionValidationError, match="missing civo_auth.token for cloud provider civo"):
            parse_definition(sample_cluster_data)

    def test_missing_cloudflare_token(self, sample_cluster_data):
        sample_cluster_data["dns_provider"] = "cloudflare"

        with pytest.raises(DefinitionValidationError, match="cloudflare_auth.api_token"):
            parse_definition(sample_cluster_data)

    def test_invalid_cluster_name(self, sample_cluster_data):
        sample_cluster_data["cluster_name"] = "KF_Civo"

        with pytest.raises(DefinitionValidationError, match="^cluster_name: .*DNS-compatible"):
            parse_definition(sample_cluster_data)


class TestCreateCluster:
    async def test_create_enqueues_and_claims(self, cluster_service, cluster_repository, civo_definition, executor):
        assert await cluster_service.create_cluster(civo_definition) == ENQUEUED

        stored = await cluster_repository.get("kf-civo")
        assert stored.in_progress is True
        assert stored.status == "provisioning"

        executor.release.set()
        await cluster_service.wait_idle()

        stored = await cluster_repository.get("kf-civo")
        assert stored.status == "provisioned"
        assert stored.in_progress is False

    async def test_second_create_while_running_is_rejected(self, cluster_service, civo_definition, executor):
        await cluster_service.create_cluster(civo_definition)

        with pytest.raises(ClusterInProgressError):
            await cluster_service.create_cluster(civo_definition)

        executor.release.set()
        await cluster_service.wait_idle()
        assert len(executor.created) == 1

    async def test_concurrent_creates_launch_one_run(self, cluster_service, civo_definition, executor):
        results = await asyncio.gather(
            cluster_service.create_cluster(civo_definition),
            cluster_service.create_cluster(civo_definition),
            return_exceptions=True,
        )

        assert results.count(ENQUEUED) == 1
        assert sum(isinstance(r, ClusterInProgressError) for r in results) == 1

        executor.release.set()
        await cluster_service.wait_idle()
        assert len(executor.created) == 1

    async def test_provisioned_cluster_already_exists(self, cluster_service, cluster_repository, civo_definition, settings):
        cluster = initialize_cluster(civo_definition, None, settings.pipeline)
        cluster.status = ClusterStatus.PROVISIONED
        await cluster_repository.insert(cluster)

        with pytest.raises(ClusterAlreadyExistsError):
            await cluster_service.create_cluster(civo_definition)

    async def test_failed_cluster_is_resumed_with_same_id(
        self, cluster_service, cluster_repository, civo_definition, settings, executor
    ):
        cluster = initialize_cluster(civo_definition, None, settings.pipeline)
        cluster.status = ClusterStatus.ERROR
        cluster.last_condition = "cloud_terraform_apply: boom"
        cluster.domain_liveness_check = True
        await cluster_repository.insert(cluster)

        await cluster_service.create_cluster(civo_definition)

        stored = await cluster_repository.get("kf-civo")
        assert stored.cluster_id == cluster.cluster_id
        assert stored.domain_liveness_check is True
        assert stored.last_condition == ""
        assert stored.in_progress is True

        executor.release.set()
        await cluster_service.wait_idle()

    async def test_deleted_cluster_is_recreated(
        self, cluster_service, cluster_repository, civo_definition, settings, executor
    ):
        cluster = initialize_cluster(civo_definition, None, settings.pipeline)
        cluster.status = ClusterStatus.DELETED
        cluster.domain_liveness_check = True
        await cluster_repository.insert(cluster)

        await cluster_service.create_cluster(civo_definition)

        stored = await cluster_repository.get("kf-civo")
        assert stored.domain_liveness_check is False
        assert stored.status == "provisioning"

        executor.release.set()
        await cluster_service.wait_idle()


class TestDeleteCluster:
    async def test_delete_claims_record(self, cluster_service, cluster_repository, civo_definition, settings, executor):
        cluster = initialize_cluster(civo_definition, None, settings.pipeline)
        cluster.status = ClusterStatus.PROVISIONED
        await cluster_repository.insert(cluster)

        assert await cluster_service.delete_cluster("kf-civo") == ENQUEUED
        assert (await cluster_repository.get("kf-civo")).in_progress is True
        with pytest.raises(ClusterInProgressError):
            await cluster_service.delete_cluster("kf-civo")

        executor.release.set()
        await cluster_service.wait_idle()
        assert executor.deleted == ["kf-civo"]
        assert (await cluster_repository.get("kf-civo")).status == "deleted"

    async def test_delete_missing_cluster(self, cluster_service):
        with pytest.raises(ClusterNotFoundError):
            await cluster_service.delete_cluster("ghost")

    async def test_delete_deleted_cluster(self, cluster_service, cluster_repository, civo_definition, settings):
        cluster = initialize_cluster(civo_definition, None, settings.pipeline)
        cluster.status = ClusterStatus.DELETED
        await cluster_repository.insert(cluster)

        with pytest.raises(ClusterStateError):
            await cluster_service.delete_cluster("kf-civo")


class TestRecords:
    async def test_reset_in_progress(self, cluster_service, cluster_repository, civo_definition, settings):
        cluster = initialize_cluster(civo_definition, None, settings.pipeline)
        cluster.in_progress = True
        await cluster_repository.insert(cluster)

        released = await cluster_service.reset_in_progress("kf-civo")

        assert released.in_progress is False
        assert (await cluster_repository.get("kf-civo")).in_progress is False

    async def test_remove_requires_deleted_status(
        self, cluster_service, cluster_repository, service_repository, civo_definition, settings
    ):
        cluster = initialize_cluster(civo_definition, None, settings.pipeline)
        cluster.status = ClusterStatus.PROVISIONED
        await cluster_repository.insert(cluster)
        await service_repository.create_list("kf-civo")

        with pytest.raises(ClusterStateError):
            await cluster_service.remove_cluster("kf-civo")

        def mark_deleted(current):
            current.status = ClusterStatus.DELETED

        await cluster_repository.update("kf-civo", mark_deleted)
        await cluster_service.remove_cluster("kf-civo")

        assert await cluster_repository.find("kf-civo") is None
        assert await service_repository.delete_list("kf-civo") is False

    async def test_import_exported_record(self, cluster_repository, service_repository, civo_definition, settings):
        exported = initialize_cluster(civo_definition, None, settings.pipeline)
        exported.status = ClusterStatus.PROVISIONED
        target = FakeExportTarget({(EXPORT_NAMESPACE, EXPORT_SECRET): {EXPORT_KEY: exported.model_dump_json()}})
        service = ClusterService(
            cluster_repository,
            service_repository,
            BlockingExecutor(cluster_repository),
            settings,
            target_factory=lambda kubeconfig: target,
        )

        imported = await service.import_cluster(settings.pipeline.k1_dir / "kubeconfig")

        assert imported.cluster_id == exported.cluster_id
        assert (await cluster_repository.get("kf-civo")).status == "provisioned"
