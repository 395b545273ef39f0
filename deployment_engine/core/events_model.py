"""Event models for the deployment sequencer."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID


@dataclass
class DeploymentEvent:
    """Sequencer lifecycle event."""

    event_type: str
    run_id: UUID
    timestamp: datetime
    stage_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def run_started(run):
        return DeploymentEvent(
            event_type="run.started",
            run_id=run.run_id,
            timestamp=datetime.now(timezone.utc),
            metadata={
                "stages": [sr.stage_id for sr in run.stage_runs],
                "resumed_from": str(run.resumed_from) if run.resumed_from else None,
            },
        )

    @staticmethod
    def run_completed(run):
        return DeploymentEvent(
            event_type="run.completed",
            run_id=run.run_id,
            timestamp=datetime.now(timezone.utc),
            metadata={
                "completed_at": run.completed_at.isoformat() if run.completed_at else None,
            },
        )

    @staticmethod
    def run_failed(run):
        return DeploymentEvent(
            event_type="run.failed",
            run_id=run.run_id,
            timestamp=datetime.now(timezone.utc),
            stage_id=run.failed_stage_id,
            metadata={
                "error_message": run.error_message,
            },
        )

    @staticmethod
    def run_interrupted(run):
        return DeploymentEvent(
            event_type="run.interrupted",
            run_id=run.run_id,
            timestamp=datetime.now(timezone.utc),
        )

    @staticmethod
    def stage_started(run, stage_run):
        return DeploymentEvent(
            event_type="stage.started",
            run_id=run.run_id,
            timestamp=datetime.now(timezone.utc),
            stage_id=stage_run.stage_id,
            metadata={
                "stage_type": stage_run.stage_type.value,
            },
        )

    @staticmethod
    def stage_completed(run, stage_run):
        return DeploymentEvent(
            event_type="stage.completed",
            run_id=run.run_id,
            timestamp=datetime.now(timezone.utc),
            stage_id=stage_run.stage_id,
            metadata={
                "duration_seconds": stage_run.duration_seconds,
                "result": stage_run.result,
            },
        )

    @staticmethod
    def stage_failed(run, stage_run):
        return DeploymentEvent(
            event_type="stage.failed",
            run_id=run.run_id,
            timestamp=datetime.now(timezone.utc),
            stage_id=stage_run.stage_id,
            metadata={
                "error_message": stage_run.error_message,
            },
        )

    @staticmethod
    def stage_skipped(run, stage_run):
        return DeploymentEvent(
            event_type="stage.skipped",
            run_id=run.run_id,
            timestamp=datetime.now(timezone.utc),
            stage_id=stage_run.stage_id,
            metadata={
                "reason": stage_run.error_message,
            },
        )

    @staticmethod
    def stage_reused(run, stage_run):
        return DeploymentEvent(
            event_type="stage.reused",
            run_id=run.run_id,
            timestamp=datetime.now(timezone.utc),
            stage_id=stage_run.stage_id,
            metadata={
                "resumed_from": str(run.resumed_from) if run.resumed_from else None,
            },
        )
