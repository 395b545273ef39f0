"""Core sequencing models (stages and run ledger)."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4


class StageType(Enum):
    """What a stage applies."""

    IMAGE = "IMAGE"
    STORAGE = "STORAGE"
    SECRET = "SECRET"
    CONFIG = "CONFIG"
    DATABASE = "DATABASE"
    APPLICATION = "APPLICATION"
    EXPOSURE = "EXPOSURE"
    AUTOSCALE = "AUTOSCALE"
    MIGRATION = "MIGRATION"


class StageStatus(Enum):
    """Stage run status."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class RunStatus(Enum):
    """Sequence run status."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    INTERRUPTED = "INTERRUPTED"


TERMINAL_RUN_STATUSES = {
    RunStatus.COMPLETED,
    RunStatus.FAILED,
    RunStatus.INTERRUPTED,
}


# ============================================
# STAGE DEFINITION
# ============================================

@dataclass
class StageDefinition:
    """
    One logical unit of the deployment workflow.

    ``entities`` are domain records applied to the control plane in
    declaration order. IMAGE stages carry ``image_build`` instead, and
    MIGRATION stages carry ``command`` run inside ``target_workload``.
    """

    stage_id: str
    stage_name: str
    stage_type: StageType
    order: int = 0
    depends_on: List[str] = field(default_factory=list)

    entities: List[Any] = field(default_factory=list)
    image_build: Optional[Any] = None

    target_workload: Optional[str] = None
    command: List[str] = field(default_factory=list)

    def produces(self) -> List[tuple]:
        """(kind, name) pairs this stage creates."""
        return [(entity.kind, entity.name) for entity in self.entities]


# ============================================
# RUN LEDGER
# ============================================

def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StageRun:
    """Execution tracking for one stage within a run."""

    stage_id: str
    stage_name: str
    stage_type: StageType

    status: StageStatus = StageStatus.PENDING

    result: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    # -------------------------
    # STATE TRANSITIONS
    # -------------------------

    def start(self) -> None:
        """PENDING -> RUNNING."""
        if self.status != StageStatus.PENDING:
            raise ValueError(f"Cannot start stage from {self.status.value} state")

        self.status = StageStatus.RUNNING
        self.started_at = _now()

    def complete(self, result: Optional[Dict[str, Any]] = None) -> None:
        """RUNNING -> COMPLETED."""
        if self.status != StageStatus.RUNNING:
            raise ValueError(f"Cannot complete stage from {self.status.value} state")

        self.status = StageStatus.COMPLETED
        self.result = result or {}
        self._finish()

    def fail(self, error_message: str) -> None:
        """RUNNING -> FAILED."""
        if self.status != StageStatus.RUNNING:
            raise ValueError(f"Cannot fail stage from {self.status.value} state")

        self.status = StageStatus.FAILED
        self.error_message = error_message
        self._finish()

    def carry_over(self, previous: "StageRun", run_id: UUID) -> None:
        """PENDING -> COMPLETED, reusing the result of a stage completed in an earlier run."""
        if self.status != StageStatus.PENDING:
            raise ValueError(f"Cannot carry over stage from {self.status.value} state")
        if previous.status != StageStatus.COMPLETED:
            raise ValueError(f"Stage {previous.stage_id} did not complete in run {run_id}")

        self.status = StageStatus.COMPLETED
        self.result = {**previous.result, "reused_from_run": str(run_id)}
        self.started_at = previous.started_at
        self.completed_at = previous.completed_at
        self.duration_seconds = previous.duration_seconds

    def skip(self, reason: str) -> None:
        """PENDING -> SKIPPED."""
        if self.status != StageStatus.PENDING:
            raise ValueError(f"Cannot skip stage from {self.status.value} state")

        self.status = StageStatus.SKIPPED
        self.error_message = reason

    def _finish(self) -> None:
        self.completed_at = _now()
        if self.started_at:
            self.duration_seconds = (self.completed_at - self.started_at).total_seconds()


@dataclass
class SequenceRun:
    """One invocation of the sequencer over a stage set."""

    run_id: UUID = field(default_factory=uuid4)
    status: RunStatus = RunStatus.PENDING

    stage_runs: List[StageRun] = field(default_factory=list)

    failed_stage_id: Optional[str] = None
    error_message: Optional[str] = None
    resumed_from: Optional[UUID] = None

    created_at: datetime = field(default_factory=_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def for_stages(cls, ordered_stages: List[StageDefinition], **kwargs) -> "SequenceRun":
        """Create a run with one PENDING stage run per stage, in plan order."""
        return cls(
            stage_runs=[
                StageRun(
                    stage_id=stage.stage_id,
                    stage_name=stage.stage_name,
                    stage_type=stage.stage_type,
                )
                for stage in ordered_stages
            ],
            **kwargs,
        )

    def stage_run(self, stage_id: str) -> Optional[StageRun]:
        for stage_run in self.stage_runs:
            if stage_run.stage_id == stage_id:
                return stage_run
        return None

    def completed_stage_ids(self) -> List[str]:
        return [
            sr.stage_id for sr in self.stage_runs
            if sr.status == StageStatus.COMPLETED
        ]

    # -------------------------
    # STATE TRANSITIONS
    # -------------------------

    def start(self) -> None:
        """PENDING -> RUNNING."""
        if self.status != RunStatus.PENDING:
            raise ValueError(f"Cannot start run from {self.status.value} state")

        self.status = RunStatus.RUNNING
        self.started_at = _now()

    def complete(self) -> None:
        """RUNNING -> COMPLETED."""
        if self.status != RunStatus.RUNNING:
            raise ValueError(f"Cannot complete run from {self.status.value} state")

        self.status = RunStatus.COMPLETED
        self.completed_at = _now()

    def fail(self, stage_id: str, error_message: str) -> None:
        """RUNNING -> FAILED. Remaining PENDING stages are marked SKIPPED."""
        if self.status != RunStatus.RUNNING:
            raise ValueError(f"Cannot fail run from {self.status.value} state")

        self.status = RunStatus.FAILED
        self.failed_stage_id = stage_id
        self.error_message = error_message
        self.completed_at = _now()
        self._skip_pending(f"not attempted: stage '{stage_id}' failed")

    def interrupt(self) -> None:
        """Mark as INTERRUPTED. Applied state is left as is."""
        if self.status in TERMINAL_RUN_STATUSES:
            raise ValueError(f"Cannot interrupt run from {self.status.value} state")

        self.status = RunStatus.INTERRUPTED
        self.completed_at = _now()
        self._skip_pending("not attempted: run interrupted")

    def _skip_pending(self, reason: str) -> None:
        for stage_run in self.stage_runs:
            if stage_run.status == StageStatus.PENDING:
                stage_run.skip(reason)
