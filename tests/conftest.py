#tests\conftest.py

"""Pytest configuration and fixtures."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from deployment_engine.config import DeploySettings
from deployment_engine.core.events import LoggingEventEmitter, MultiEventEmitter
from deployment_engine.domain.applier import StageApplier
from deployment_engine.domain.templates import build_django_mysql_stages
from deployment_engine.domain.verification import DeploymentVerifier
from deployment_engine.infrastructure.memory.control_plane import InMemoryControlPlane
from deployment_engine.infrastructure.memory.image_builder import InMemoryImageBuilder
from deployment_engine.infrastructure.memory.repository import InMemoryRunRepository
from deployment_engine.infrastructure.postgres.database import drop_db, get_session_factory, init_db
from deployment_engine.orchestrator.deployment_sequencer import DeploymentSequencer


@pytest.fixture
def settings():
    """Default settings, ignoring any local .env / DEPLOY_* variables."""
    return DeploySettings(_env_file=None)


@pytest.fixture
def stages(settings):
    """The Django + MySQL stage set."""
    return build_django_mysql_stages(settings)


@pytest.fixture
def control_plane():
    return InMemoryControlPlane()


@pytest.fixture
def image_builder():
    return InMemoryImageBuilder()


@pytest.fixture
def run_repository():
    return InMemoryRunRepository()


@pytest.fixture
def events():
    return LoggingEventEmitter()


@pytest.fixture
def applier(control_plane, image_builder):
    return StageApplier(control_plane=control_plane, image_builder=image_builder)


@pytest.fixture
def sequencer(applier, run_repository, events):
    """Sequencer wired to in-memory collaborators."""
    return DeploymentSequencer(
        applier=applier,
        run_repository=run_repository,
        event_emitters=MultiEventEmitter([events]),
    )


@pytest.fixture
def verifier(control_plane):
    return DeploymentVerifier(control_plane=control_plane)


# -------------------------
# SQL RUN LEDGER
# -------------------------

@pytest.fixture
def test_engine():
    """In-memory SQLite engine shared across sessions."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)

    yield engine

    drop_db(engine)
    engine.dispose()


@pytest.fixture
def test_session_factory(test_engine):
    return get_session_factory(test_engine)
