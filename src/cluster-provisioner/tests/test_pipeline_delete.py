"""Tests for the delete pipeline."""

import pytest

from shared.models import DESTROY_GATING_CHECKPOINTS, Checkpoint, ClusterStatus

from app.pipeline import PhaseError, ProviderConfig, initialize_cluster
from app.services.argocd import REGISTRY_APPLICATION
from app.services.kbot import KBOT_SSH_KEY_TITLE


@pytest.fixture
def adapters(fake_adapter):
    """Adapter factory that keeps every adapter it builds."""
    built = []

    def factory(cluster):
        built.append(fake_adapter(cluster))
        return built[-1]

    factory.built = built
    return factory


async def provisioned_cluster(cluster_repository, definition, settings, **checks):
    cluster = initialize_cluster(definition, None, settings.pipeline)
    cluster.status = ClusterStatus.PROVISIONED
    cluster.in_progress = True
    for checkpoint, value in checks.items():
        setattr(cluster, checkpoint, value)
    await cluster_repository.insert(cluster)

    cluster_dir = ProviderConfig.from_cluster(cluster, settings.pipeline).cluster_dir
    cluster_dir.mkdir(parents=True)
    (cluster_dir / "kubeconfig").write_text("apiVersion: v1\n")
    return cluster, cluster_dir


class TestDeletePipeline:
    async def test_delete_destroys_and_clears_flags(
        self, civo_definition, cluster_repository, settings, make_executor, doubles, adapters
    ):
        cluster, cluster_dir = await provisioned_cluster(
            cluster_repository,
            civo_definition,
            settings,
            git_terraform_apply_check=True,
            cloud_terraform_apply_check=True,
            argocd_install_check=True,
        )
        executor = make_executor(adapters)

        await executor.run_delete(cluster)

        stored = await cluster_repository.get("kf-civo")
        assert stored.status == "deleted"
        assert stored.in_progress is False
        for checkpoint in DESTROY_GATING_CHECKPOINTS:
            assert stored.is_checked(checkpoint) is False
        assert stored.argocd_delete_registry_check is True

        assert doubles.argocd.deleted == [REGISTRY_APPLICATION]
        assert doubles.terraform.destroyed == ["github", "civo"]
        assert doubles.git_provider.deleted_keys == [KBOT_SSH_KEY_TITLE]
        assert doubles.target.tunnels_closed == doubles.target.tunnels_opened == 1
        assert adapters.built[0].calls == ["before_cloud_destroy", "destroy_infrastructure"]
        assert not cluster_dir.exists()

    async def test_registry_delete_failure_keeps_cloud_flag(
        self, civo_definition, cluster_repository, settings, make_executor, doubles, adapters
    ):
        cluster, _ = await provisioned_cluster(
            cluster_repository,
            civo_definition,
            settings,
            git_terraform_apply_check=True,
            cloud_terraform_apply_check=True,
            argocd_install_check=True,
        )
        doubles.argocd.fail_delete = True
        executor = make_executor(adapters)

        with pytest.raises(PhaseError) as exc_info:
            await executor.run_delete(cluster)

        assert exc_info.value.phase == "delete_registry_application"
        stored = await cluster_repository.get("kf-civo")
        assert stored.status == "error"
        assert stored.in_progress is False
        assert "503" in stored.last_condition
        assert stored.cloud_terraform_apply_check is True
        assert stored.git_terraform_apply_check is False
        assert doubles.terraform.destroyed == ["github"]
        assert doubles.target.tunnels_closed == doubles.target.tunnels_opened

    async def test_retry_after_failure_resumes_at_registry(
        self, civo_definition, cluster_repository, settings, make_executor, doubles, adapters
    ):
        cluster, _ = await provisioned_cluster(
            cluster_repository,
            civo_definition,
            settings,
            git_terraform_apply_check=True,
            cloud_terraform_apply_check=True,
            argocd_install_check=True,
        )
        doubles.argocd.fail_delete = True
        executor = make_executor(adapters)
        with pytest.raises(PhaseError):
            await executor.run_delete(cluster)

        doubles.argocd.fail_delete = False
        failed = await cluster_repository.get("kf-civo")
        failed.in_progress = True
        await cluster_repository.save(failed)
        await executor.run_delete(failed)

        stored = await cluster_repository.get("kf-civo")
        assert stored.status == "deleted"
        # Git terraform is not destroyed a second time
        assert doubles.terraform.destroyed == ["github", "civo"]

    async def test_failed_apply_still_destroys_cloud(
        self, civo_definition, cluster_repository, settings, make_executor, doubles, adapters
    ):
        cluster, _ = await provisioned_cluster(
            cluster_repository,
            civo_definition,
            settings,
            cloud_terraform_apply_failed_check=True,
        )
        executor = make_executor(adapters)

        await executor.run_delete(cluster)

        stored = await cluster_repository.get("kf-civo")
        assert stored.status == "deleted"
        assert stored.cloud_terraform_apply_failed_check is False
        assert stored.argocd_delete_registry_check is False
        # No registry application to remove when the cluster never came up
        assert doubles.target.tunnels_opened == 0
        assert doubles.terraform.destroyed == ["civo"]
        assert adapters.built[0].calls == ["destroy_infrastructure"]

    async def test_nothing_applied_only_marks_deleted(
        self, civo_definition, cluster_repository, settings, make_executor, doubles, adapters
    ):
        cluster, _ = await provisioned_cluster(cluster_repository, civo_definition, settings)
        executor = make_executor(adapters)

        await executor.run_delete(cluster)

        stored = await cluster_repository.get("kf-civo")
        assert stored.status == "deleted"
        assert doubles.terraform.destroyed == []
        assert stored.is_checked(Checkpoint.CLOUD_TERRAFORM_APPLY) is False
