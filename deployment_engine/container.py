#deployment_engine\container.py

"""Dependency injection container - wires all services together."""

from dataclasses import dataclass
from typing import Optional

from deployment_engine.config import DeploySettings
from deployment_engine.core.control_plane import ControlPlane
from deployment_engine.core.events import LoggingEventEmitter, MultiEventEmitter
from deployment_engine.core.image_builder import ImageBuilder
from deployment_engine.core.repository import RunRepository
from deployment_engine.domain.applier import StageApplier
from deployment_engine.domain.verification import DeploymentVerifier
from deployment_engine.orchestrator.deployment_sequencer import DeploymentSequencer


@dataclass
class Container:
    settings: DeploySettings
    control_plane: ControlPlane
    image_builder: ImageBuilder
    run_repository: RunRepository
    events: LoggingEventEmitter
    applier: StageApplier
    sequencer: DeploymentSequencer
    verifier: DeploymentVerifier


def build_container(
    settings: Optional[DeploySettings] = None,
    *,
    dry_run: bool = False,
    persistent_ledger: bool = False,
    control_plane: Optional[ControlPlane] = None,
    image_builder: Optional[ImageBuilder] = None,
    run_repository: Optional[RunRepository] = None,
) -> Container:
    """
    Wire the sequencer.

    dry_run swaps kubectl and Docker for in-memory stand-ins.
    persistent_ledger stores runs in the SQL database instead of memory.
    Explicit collaborators win over both flags.
    """
    settings = settings or DeploySettings()

    # ============================================
    # EXTERNAL COLLABORATORS
    # ============================================

    if control_plane is None:
        if dry_run:
            from deployment_engine.infrastructure.memory.control_plane import InMemoryControlPlane
            control_plane = InMemoryControlPlane()
        else:
            from deployment_engine.infrastructure.kubectl.client import KubectlControlPlane
            control_plane = KubectlControlPlane(
                kubectl_path=settings.kubectl_path,
                namespace=settings.namespace,
                context=settings.kube_context,
                timeout_seconds=settings.kubectl_timeout_seconds,
                rollout_timeout_seconds=settings.rollout_timeout_seconds,
            )

    if image_builder is None:
        if dry_run:
            from deployment_engine.infrastructure.memory.image_builder import InMemoryImageBuilder
            image_builder = InMemoryImageBuilder()
        else:
            from deployment_engine.infrastructure.docker.image_builder import DockerImageBuilder
            image_builder = DockerImageBuilder()

    # ============================================
    # REPOSITORIES
    # ============================================

    if run_repository is None:
        if persistent_ledger:
            from deployment_engine.infrastructure.postgres.database import init_db
            from deployment_engine.infrastructure.postgres.repository import PostgresRunRepository
            init_db()
            run_repository = PostgresRunRepository()
        else:
            from deployment_engine.infrastructure.memory.repository import InMemoryRunRepository
            run_repository = InMemoryRunRepository()

    # ============================================
    # SERVICES
    # ============================================

    events = LoggingEventEmitter()

    # The manifests carry no namespace; kubectl --namespace decides
    applier = StageApplier(
        control_plane=control_plane,
        image_builder=image_builder,
    )

    sequencer = DeploymentSequencer(
        applier=applier,
        run_repository=run_repository,
        event_emitters=MultiEventEmitter([events]),
    )

    verifier = DeploymentVerifier(
        control_plane=control_plane,
        route_scheme=settings.verify_route_scheme,
        timeout_seconds=settings.verify_timeout_seconds,
    )

    return Container(
        settings=settings,
        control_plane=control_plane,
        image_builder=image_builder,
        run_repository=run_repository,
        events=events,
        applier=applier,
        sequencer=sequencer,
        verifier=verifier,
    )
