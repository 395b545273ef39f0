# deployment_engine/orchestrator/deployment_sequencer.py
"""Deployment sequencer - applies stages in dependency order."""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from deployment_engine.core.errors import RunNotFound, StageApplyError
from deployment_engine.core.events import NullEventEmitter
from deployment_engine.core.events_model import DeploymentEvent
from deployment_engine.core.graph import check_references, topological_order
from deployment_engine.core.models import (
    SequenceRun,
    StageDefinition,
    StageStatus,
    StageType,
)
from deployment_engine.core.repository import RunRepository
from deployment_engine.domain.manifests import stage_fingerprint

logger = logging.getLogger(__name__)


class DeploymentSequencer:
    """
    Applies a stage set in an order that never violates a dependency.

    Flow:
    1. Order stages topologically and check every entity reference
       is produced by a stage the referrer depends on
    2. For each stage in order:
       a. Reuse it if it completed in the run being resumed and its
          definition (fingerprint) has not changed since
       b. Apply it (blocking, all-or-nothing from our point of view)
       c. On failure record it, skip the rest and raise StageApplyError
    3. Mark the run COMPLETED

    Nothing is rolled back. Re-running is safe because every apply is
    idempotent.
    """

    def __init__(
        self,
        applier,
        run_repository: RunRepository,
        event_emitters=None,
    ):
        self._applier = applier
        self._repo = run_repository
        self._emitters = event_emitters or NullEventEmitter()

    # -------------------------
    # PLAN
    # -------------------------

    def plan(self, stages: List[StageDefinition]) -> List[StageDefinition]:
        """
        Total order consistent with the dependency partial order.

        Raises:
            CyclicDependency, MissingDependencyError, StageDefinitionError
        """
        ordered = topological_order(stages)
        check_references(stages)
        return ordered

    # -------------------------
    # RUN
    # -------------------------

    def run(
        self,
        stages: List[StageDefinition],
        *,
        resume: Optional[SequenceRun] = None,
    ) -> SequenceRun:
        """
        Apply all stages.

        Args:
            stages: stage definitions with their dependency sets
            resume: earlier run whose COMPLETED stages are reused, not reapplied

        Returns:
            The COMPLETED run

        Raises:
            StageApplyError: a stage failed; the run is persisted as FAILED
        """
        ordered = self.plan(stages)

        run = SequenceRun.for_stages(
            ordered,
            resumed_from=resume.run_id if resume else None,
        )
        self._repo.create(run)

        run.start()
        self._repo.update(run)
        self._emit([DeploymentEvent.run_started(run)])

        logger.info(
            f"[sequencer] run {run.run_id}: {' -> '.join(s.stage_id for s in ordered)}"
        )

        current = None
        try:
            for stage in ordered:
                stage_run = run.stage_run(stage.stage_id)

                fingerprint = stage_fingerprint(stage)
                previous = resume.stage_run(stage.stage_id) if resume else None
                if self._reusable(previous, fingerprint):
                    stage_run.carry_over(previous, resume.run_id)
                    self._repo.update(run)
                    self._emit([DeploymentEvent.stage_reused(run, stage_run)])
                    logger.info(f"[sequencer] stage {stage.stage_id} reused from run {resume.run_id}")
                    continue

                if previous is not None and previous.status == StageStatus.COMPLETED:
                    logger.info(f"[sequencer] stage {stage.stage_id} changed since run {resume.run_id}, re-applying")

                current = stage_run
                self._apply_stage(run, stage_run, stage, fingerprint)
                current = None

        except KeyboardInterrupt:
            logger.warning(f"[sequencer] run {run.run_id} interrupted")
            if current is not None and current.status == StageStatus.RUNNING:
                current.fail("interrupted")
            run.interrupt()
            self._repo.update(run)
            self._emit([DeploymentEvent.run_interrupted(run)])
            raise

        run.complete()
        self._repo.update(run)
        self._emit([DeploymentEvent.run_completed(run)])

        logger.info(f"[sequencer] run {run.run_id} completed")
        return run

    def resume(self, run_id: UUID, stages: List[StageDefinition]) -> SequenceRun:
        """Re-run ``stages`` reusing whatever completed in run ``run_id``."""
        return self.run(stages, resume=self.get_run(run_id))

    def get_run(self, run_id: UUID) -> SequenceRun:
        run = self._repo.get(run_id)
        if run is None:
            raise RunNotFound(f"Run {run_id} not found")
        return run

    @staticmethod
    def _reusable(previous, fingerprint: str) -> bool:
        """Completed earlier with the same definition it has now."""
        return (
            previous is not None
            and previous.status == StageStatus.COMPLETED
            and previous.result.get("fingerprint") == fingerprint
        )

    def _apply_stage(self, run: SequenceRun, stage_run, stage: StageDefinition, fingerprint: str) -> None:
        logger.info(f"[sequencer] applying stage {stage.stage_id} ({stage.stage_type.value})")

        stage_run.start()
        self._repo.update(run)
        self._emit([DeploymentEvent.stage_started(run, stage_run)])

        try:
            result = self._applier.apply(stage)
        except Exception as e:
            logger.error(f"[sequencer] stage {stage.stage_id} failed: {e}")

            stage_run.fail(str(e))
            run.fail(stage.stage_id, str(e))
            self._repo.update(run)

            skipped = [sr for sr in run.stage_runs if sr.status == StageStatus.SKIPPED]
            self._emit(
                [DeploymentEvent.stage_failed(run, stage_run)]
                + [DeploymentEvent.stage_skipped(run, sr) for sr in skipped]
                + [DeploymentEvent.run_failed(run)]
            )

            raise StageApplyError(stage.stage_id, e, run_id=run.run_id) from e

        stage_run.complete({**result, "fingerprint": fingerprint})
        self._repo.update(run)
        self._emit([DeploymentEvent.stage_completed(run, stage_run)])

    # -------------------------
    # TEARDOWN
    # -------------------------

    def teardown(self, stages: List[StageDefinition]) -> List[Dict[str, Any]]:
        """
        Delete every entity in reverse plan order.

        Image and migration stages have nothing to delete.
        """
        deleted = []
        for stage in reversed(self.plan(stages)):
            if stage.stage_type in (StageType.IMAGE, StageType.MIGRATION):
                continue
            logger.info(f"[sequencer] tearing down stage {stage.stage_id}")
            deleted.extend(self._applier.delete(stage))
        return deleted

    def _emit(self, events) -> None:
        self._emitters.emit(events)
