#tests\test_domain_models.py

"""Test domain models and state transitions."""

import pytest
from uuid import uuid4

from deployment_engine.core.models import (
    RunStatus,
    SequenceRun,
    StageDefinition,
    StageRun,
    StageStatus,
    StageType,
)
from deployment_engine.domain.models import (
    AutoscalePolicy,
    ConfigSet,
    CredentialSet,
    EnvBinding,
    ExternalRoute,
    ImageReference,
    InternalAddress,
    StorageClaim,
    VolumeMount,
    Workload,
)


class TestStageRun:
    """Test stage run state transitions."""

    @pytest.fixture
    def stage_run(self):
        return StageRun(stage_id="secret", stage_name="Secret", stage_type=StageType.SECRET)

    def test_initial_state(self, stage_run):
        assert stage_run.status == StageStatus.PENDING
        assert stage_run.result == {}

    def test_complete_transition(self, stage_run):
        """Test PENDING -> RUNNING -> COMPLETED."""
        stage_run.start()
        stage_run.complete({"applied": []})

        assert stage_run.status == StageStatus.COMPLETED
        assert stage_run.result == {"applied": []}
        assert stage_run.completed_at >= stage_run.started_at
        assert stage_run.duration_seconds is not None

    def test_fail_transition(self, stage_run):
        """Test RUNNING -> FAILED."""
        stage_run.start()
        stage_run.fail("forbidden")

        assert stage_run.status == StageStatus.FAILED
        assert stage_run.error_message == "forbidden"

    def test_complete_from_pending_fails(self, stage_run):
        with pytest.raises(ValueError):
            stage_run.complete()

    def test_start_twice_fails(self, stage_run):
        stage_run.start()

        with pytest.raises(ValueError):
            stage_run.start()

    def test_skip(self, stage_run):
        stage_run.skip("not attempted")

        assert stage_run.status == StageStatus.SKIPPED
        assert stage_run.error_message == "not attempted"

    def test_carry_over(self, stage_run):
        """Test PENDING -> COMPLETED reusing an earlier result."""
        previous = StageRun(stage_id="secret", stage_name="Secret", stage_type=StageType.SECRET)
        previous.start()
        previous.complete({"applied": [{"kind": "Secret", "name": "s", "action": "created"}]})
        earlier_run = uuid4()

        stage_run.carry_over(previous, earlier_run)

        assert stage_run.status == StageStatus.COMPLETED
        assert stage_run.result["reused_from_run"] == str(earlier_run)
        assert stage_run.result["applied"] == previous.result["applied"]

    def test_carry_over_of_failed_stage_fails(self, stage_run):
        previous = StageRun(stage_id="secret", stage_name="Secret", stage_type=StageType.SECRET)
        previous.start()
        previous.fail("boom")

        with pytest.raises(ValueError):
            stage_run.carry_over(previous, uuid4())


class TestSequenceRun:
    """Test sequence run transitions."""

    @pytest.fixture
    def run(self):
        stages = [
            StageDefinition(stage_id=s, stage_name=s, stage_type=StageType.CONFIG)
            for s in ("a", "b", "c")
        ]
        return SequenceRun.for_stages(stages)

    def test_for_stages(self, run):
        assert [sr.stage_id for sr in run.stage_runs] == ["a", "b", "c"]
        assert all(sr.status == StageStatus.PENDING for sr in run.stage_runs)
        assert run.status == RunStatus.PENDING

    def test_complete(self, run):
        run.start()
        run.complete()

        assert run.status == RunStatus.COMPLETED
        assert run.completed_at is not None

    def test_fail_skips_pending(self, run):
        """Failing marks the failed stage and skips the rest."""
        run.start()
        run.stage_run("a").start()
        run.stage_run("a").complete()
        run.stage_run("b").start()
        run.stage_run("b").fail("boom")

        run.fail("b", "boom")

        assert run.status == RunStatus.FAILED
        assert run.failed_stage_id == "b"
        assert run.stage_run("a").status == StageStatus.COMPLETED
        assert run.stage_run("c").status == StageStatus.SKIPPED
        assert run.stage_run("c").error_message == "not attempted: stage 'b' failed"
        assert run.completed_stage_ids() == ["a"]

    def test_interrupt(self, run):
        run.start()
        run.interrupt()

        assert run.status == RunStatus.INTERRUPTED
        assert all(sr.status == StageStatus.SKIPPED for sr in run.stage_runs)

    def test_interrupt_after_completion_fails(self, run):
        run.start()
        run.complete()

        with pytest.raises(ValueError):
            run.interrupt()

    def test_complete_from_pending_fails(self, run):
        with pytest.raises(ValueError):
            run.complete()

    def test_unknown_stage_run(self, run):
        assert run.stage_run("missing") is None


class TestEntities:
    """Test entity validation and references."""

    def test_image_reference(self):
        image = ImageReference(repository="mydjangoapp", tag="v1", registry="registry.local:5000")

        assert image.ref == "registry.local:5000/mydjangoapp:v1"
        assert image.name == "registry.local:5000/mydjangoapp"
        assert ImageReference(repository="app").ref == "app:latest"

    def test_env_binding_needs_one_source(self):
        with pytest.raises(ValueError):
            EnvBinding(name="X")

        with pytest.raises(ValueError):
            EnvBinding(name="X", value="1", address="db")

    def test_env_binding_references(self):
        assert EnvBinding.literal("X", "1").references() == []
        assert EnvBinding.from_secret("X", "creds", "k").references() == [("Secret", "creds")]
        assert EnvBinding.from_config("X", "cfg", "k").references() == [("ConfigMap", "cfg")]
        assert EnvBinding.from_address("X", "db").references() == [("Service", "db")]

    def test_workload_references(self):
        workload = Workload(
            name="db",
            image="mysql:8.0",
            env=[EnvBinding.from_secret("MYSQL_PASSWORD", "creds", "password")],
            volume_mounts=[VolumeMount(claim_name="data", mount_path="/var/lib/mysql")],
        )

        assert workload.references() == [
            ("Secret", "creds"),
            ("PersistentVolumeClaim", "data"),
        ]
        assert workload.env_binding("MYSQL_PASSWORD").secret == ("creds", "password")
        assert workload.env_binding("MISSING") is None

    def test_negative_replicas_rejected(self):
        with pytest.raises(ValueError):
            Workload(name="web", image="web", replicas=-1)

    def test_route_path_must_be_absolute(self):
        with pytest.raises(ValueError):
            ExternalRoute(name="r", host="h", address="web", port=80, path_prefix="api")

    def test_route_references_one_address(self):
        route = ExternalRoute(name="r", host="h", address="web", port=80)

        assert route.references() == [("Service", "web")]

    def test_autoscale_bounds(self):
        with pytest.raises(ValueError):
            AutoscalePolicy(name="hpa", workload="web", min_replicas=3, max_replicas=2)

        with pytest.raises(ValueError):
            AutoscalePolicy(name="hpa", workload="web", min_replicas=0)

    def test_address_target_port_defaults_to_port(self):
        assert InternalAddress(name="web", workload="web", port=80).effective_target_port == 80
        assert InternalAddress(name="web", workload="web", port=80, target_port=8000).effective_target_port == 8000

    def test_kinds(self):
        assert CredentialSet.kind == "Secret"
        assert ConfigSet.kind == "ConfigMap"
        assert StorageClaim(name="c", capacity="1Gi", volume_name="pv").references() == [
            ("PersistentVolume", "pv"),
        ]

    def test_stage_produces(self):
        stage = StageDefinition(
            stage_id="secret",
            stage_name="Secret",
            stage_type=StageType.SECRET,
            entities=[CredentialSet(name="creds"), ConfigSet(name="cfg")],
        )

        assert stage.produces() == [("Secret", "creds"), ("ConfigMap", "cfg")]
