#tests\test_applier.py

"""Test single-stage application."""

import pytest

from deployment_engine.core.control_plane import ExecResult
from deployment_engine.core.errors import (
    ControlPlaneError,
    ImageBuildError,
    StageDefinitionError,
)
from deployment_engine.core.models import StageDefinition, StageType
from deployment_engine.domain.applier import StageApplier
from deployment_engine.domain.models import (
    ConfigSet,
    CredentialSet,
    ImageBuild,
    ImageReference,
    Workload,
)
from deployment_engine.infrastructure.memory.image_builder import InMemoryImageBuilder


@pytest.fixture
def secret_stage():
    return StageDefinition(
        stage_id="secret",
        stage_name="Secret",
        stage_type=StageType.SECRET,
        entities=[
            CredentialSet(name="creds", data={"password": "changeme"}),
            ConfigSet(name="cfg", data={"A": "1"}),
        ],
    )


@pytest.fixture
def image_stage():
    return StageDefinition(
        stage_id="image",
        stage_name="Image",
        stage_type=StageType.IMAGE,
        image_build=ImageBuild(image=ImageReference(repository="mydjangoapp", tag="v1")),
    )


def migration_stage(command=("python", "manage.py", "migrate")):
    return StageDefinition(
        stage_id="migrate",
        stage_name="Migrate",
        stage_type=StageType.MIGRATION,
        target_workload="web",
        command=list(command),
    )


class TestApplyEntities:
    """Test entity stages."""

    def test_apply_reports_actions(self, applier, secret_stage):
        result = applier.apply(secret_stage)

        assert result == {"applied": [
            {"kind": "Secret", "name": "creds", "action": "created"},
            {"kind": "ConfigMap", "name": "cfg", "action": "created"},
        ]}

    def test_reapply_is_unchanged(self, applier, secret_stage):
        applier.apply(secret_stage)

        result = applier.apply(secret_stage)

        assert [a["action"] for a in result["applied"]] == ["unchanged", "unchanged"]

    def test_changed_entity_is_configured(self, applier, secret_stage):
        applier.apply(secret_stage)
        secret_stage.entities[1].data["A"] = "2"

        result = applier.apply(secret_stage)

        assert [a["action"] for a in result["applied"]] == ["unchanged", "configured"]

    def test_control_plane_error_propagates(self, applier, control_plane, secret_stage):
        control_plane.fail_on("ConfigMap", "cfg", "forbidden")

        with pytest.raises(ControlPlaneError):
            applier.apply(secret_stage)

        # Entities before the failing one stay applied
        assert control_plane.get("Secret", "creds") is not None

    def test_stage_without_entities(self, applier):
        stage = StageDefinition(stage_id="empty", stage_name="Empty", stage_type=StageType.CONFIG)

        with pytest.raises(StageDefinitionError):
            applier.apply(stage)

    def test_namespace_is_set_on_manifests(self, control_plane, image_builder, secret_stage):
        applier = StageApplier(control_plane, image_builder, namespace="prod")

        applier.apply(secret_stage)

        assert control_plane.get("Secret", "creds")["metadata"]["namespace"] == "prod"

    def test_waits_for_workload_rollout(self, applier, control_plane):
        stage = StageDefinition(
            stage_id="application",
            stage_name="Application",
            stage_type=StageType.APPLICATION,
            entities=[Workload(name="web", image="web:1"), ConfigSet(name="cfg")],
        )

        applier.apply(stage)

        assert control_plane.wait_log == [("Deployment", "web")]

    def test_stuck_rollout_fails_stage(self, applier, control_plane):
        control_plane.fail_rollout("web", 'deployment "web" exceeded its progress deadline')
        stage = StageDefinition(
            stage_id="application",
            stage_name="Application",
            stage_type=StageType.APPLICATION,
            entities=[Workload(name="web", image="web:1")],
        )

        with pytest.raises(ControlPlaneError) as exc:
            applier.apply(stage)

        assert "progress deadline" in str(exc.value)


class TestApplyImage:
    """Test image stages."""

    def test_build_and_publish(self, applier, image_builder, image_stage):
        result = applier.apply(image_stage)

        assert result["image"] == "mydjangoapp:v1"
        assert result["digest"].startswith("sha256:")
        assert image_builder.builds == ["mydjangoapp:v1"]

    def test_build_failure_propagates(self, control_plane, image_stage):
        applier = StageApplier(control_plane, InMemoryImageBuilder(fail_with="daemon unavailable"))

        with pytest.raises(ImageBuildError):
            applier.apply(image_stage)

    def test_no_image_builder(self, control_plane, image_stage):
        with pytest.raises(StageDefinitionError):
            StageApplier(control_plane).apply(image_stage)

    def test_no_image_build(self, applier):
        stage = StageDefinition(stage_id="image", stage_name="Image", stage_type=StageType.IMAGE)

        with pytest.raises(StageDefinitionError):
            applier.apply(stage)


class TestApplyMigration:
    """Test command stages."""

    @pytest.fixture(autouse=True)
    def web(self, control_plane):
        from deployment_engine.domain.manifests import to_manifest

        control_plane.apply(to_manifest(Workload(name="web", image="web:1")))

    def test_runs_in_workload(self, applier, control_plane):
        control_plane.on_exec("web", lambda command: ExecResult(exit_code=0, stdout="No migrations to apply."))

        result = applier.apply(migration_stage())

        assert result == {"exit_code": 0, "stdout": "No migrations to apply."}
        assert control_plane.exec_log == [("web", ["python", "manage.py", "migrate"])]

    def test_non_zero_exit(self, applier, control_plane):
        control_plane.on_exec("web", lambda command: ExecResult(exit_code=2, stderr="bad\n"))

        with pytest.raises(ControlPlaneError) as exc:
            applier.apply(migration_stage())

        assert str(exc.value) == "Command exited with 2: bad"

    def test_missing_workload(self, applier, control_plane):
        control_plane.delete("Deployment", "web")

        with pytest.raises(ControlPlaneError):
            applier.apply(migration_stage())

    def test_missing_command(self, applier):
        with pytest.raises(StageDefinitionError):
            applier.apply(migration_stage(command=()))


class TestDelete:

    def test_delete_in_reverse(self, applier, control_plane, secret_stage):
        applier.apply(secret_stage)

        deleted = applier.delete(secret_stage)

        assert deleted == [
            {"kind": "ConfigMap", "name": "cfg", "deleted": True},
            {"kind": "Secret", "name": "creds", "deleted": True},
        ]
        assert control_plane.snapshot() == {}
