#deployment_engine\domain\applier.py
"""Stage applier - turns one stage into control plane / image builder calls."""

import logging
from typing import Any, Dict, List, Optional

from deployment_engine.core.control_plane import ControlPlane
from deployment_engine.core.errors import (
    ControlPlaneError,
    StageDefinitionError,
)
from deployment_engine.core.image_builder import ImageBuilder
from deployment_engine.core.models import StageDefinition, StageType
from deployment_engine.domain.manifests import to_manifest

logger = logging.getLogger(__name__)


class StageApplier:
    """
    Applies a single stage.

    Every call is idempotent as long as the collaborators are:
    control plane applies are create-or-update, image builds re-push the
    same tag, and migrations are expected to be re-runnable.
    """

    def __init__(
        self,
        control_plane: ControlPlane,
        image_builder: Optional[ImageBuilder] = None,
        namespace: Optional[str] = None,
    ):
        self._control_plane = control_plane
        self._image_builder = image_builder
        self._namespace = namespace

    @property
    def control_plane(self) -> ControlPlane:
        return self._control_plane

    def apply(self, stage: StageDefinition) -> Dict[str, Any]:
        """Apply a stage and return its result data."""
        if stage.stage_type == StageType.IMAGE:
            return self._apply_image(stage)

        elif stage.stage_type == StageType.MIGRATION:
            return self._apply_migration(stage)

        else:
            return self._apply_entities(stage)

    def delete(self, stage: StageDefinition) -> List[Dict[str, Any]]:
        """Delete the stage's entities in reverse declaration order."""
        deleted = []
        for entity in reversed(stage.entities):
            existed = self._control_plane.delete(entity.kind, entity.name)
            deleted.append({"kind": entity.kind, "name": entity.name, "deleted": existed})
        return deleted

    def _apply_image(self, stage: StageDefinition) -> Dict[str, Any]:
        if stage.image_build is None:
            raise StageDefinitionError(f"Stage {stage.stage_id} has no image build")
        if self._image_builder is None:
            raise StageDefinitionError(
                f"Stage {stage.stage_id} needs an image builder but none is configured"
            )

        logger.info(f"[applier] building image {stage.image_build.image.ref}")
        published = self._image_builder.build_and_publish(stage.image_build)

        return {
            "image": published.ref,
            "image_id": published.image_id,
            "digest": published.digest,
        }

    def _apply_migration(self, stage: StageDefinition) -> Dict[str, Any]:
        if not stage.target_workload or not stage.command:
            raise StageDefinitionError(
                f"Stage {stage.stage_id} needs target_workload and command"
            )

        logger.info(f"[applier] exec in {stage.target_workload}: {' '.join(stage.command)}")
        result = self._control_plane.exec(stage.target_workload, stage.command)

        if not result.ok:
            raise ControlPlaneError(
                f"Command exited with {result.exit_code}: {result.stderr.strip() or result.stdout.strip()}"
            )

        return {"exit_code": result.exit_code, "stdout": result.stdout}

    def _apply_entities(self, stage: StageDefinition) -> Dict[str, Any]:
        if not stage.entities:
            raise StageDefinitionError(f"Stage {stage.stage_id} has no entities to apply")

        applied = []
        for entity in stage.entities:
            manifest = to_manifest(entity, self._namespace)
            outcome = self._control_plane.apply(manifest)
            logger.info(f"[applier] {outcome.kind}/{outcome.name} {outcome.action}")
            self._control_plane.wait_ready(outcome.kind, outcome.name)
            applied.append({
                "kind": outcome.kind,
                "name": outcome.name,
                "action": outcome.action,
            })

        return {"applied": applied}
