#deployment_engine\infrastructure\postgres\repository.py
"""SQLAlchemy run repository."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload, sessionmaker

from deployment_engine.core.errors import RunAlreadyExists, RunNotFound
from deployment_engine.core.models import SequenceRun, StageRun
from deployment_engine.core.repository import RunRepository
from deployment_engine.infrastructure.postgres.database import get_session_factory
from deployment_engine.infrastructure.postgres.models import SequenceRunORM, StageRunORM

logger = logging.getLogger(__name__)


# ============================================
# MAPPING FUNCTIONS
# ============================================

def _stage_runs_to_orm(run: SequenceRun) -> List[StageRunORM]:
    return [
        StageRunORM(
            run_id=run.run_id,
            position=position,
            stage_id=sr.stage_id,
            stage_name=sr.stage_name,
            stage_type=sr.stage_type,
            status=sr.status,
            result=sr.result,
            error_message=sr.error_message,
            started_at=sr.started_at,
            completed_at=sr.completed_at,
            duration_seconds=sr.duration_seconds,
        )
        for position, sr in enumerate(run.stage_runs)
    ]


def _copy_run_fields(run: SequenceRun, orm: SequenceRunORM) -> None:
    orm.status = run.status
    orm.failed_stage_id = run.failed_stage_id
    orm.error_message = run.error_message
    orm.resumed_from = run.resumed_from
    orm.created_at = run.created_at
    orm.started_at = run.started_at
    orm.completed_at = run.completed_at


def run_to_orm(run: SequenceRun) -> SequenceRunORM:
    """Convert run domain model to ORM."""
    orm = SequenceRunORM(run_id=run.run_id)
    _copy_run_fields(run, orm)
    orm.stage_runs = _stage_runs_to_orm(run)
    return orm


def orm_to_run(orm: SequenceRunORM) -> SequenceRun:
    """Convert ORM to run domain model."""
    return SequenceRun(
        run_id=orm.run_id,
        status=orm.status,
        stage_runs=[
            StageRun(
                stage_id=row.stage_id,
                stage_name=row.stage_name,
                stage_type=row.stage_type,
                status=row.status,
                result=dict(row.result or {}),
                error_message=row.error_message,
                started_at=row.started_at,
                completed_at=row.completed_at,
                duration_seconds=row.duration_seconds,
            )
            for row in orm.stage_runs
        ],
        failed_stage_id=orm.failed_stage_id,
        error_message=orm.error_message,
        resumed_from=orm.resumed_from,
        created_at=orm.created_at,
        started_at=orm.started_at,
        completed_at=orm.completed_at,
    )


# ============================================
# RUN REPOSITORY
# ============================================

class PostgresRunRepository(RunRepository):
    """Run ledger in a SQL database (PostgreSQL in production, SQLite in tests)."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory or get_session_factory()

    def _get_session(self):
        return self._session_factory()

    def create(self, run: SequenceRun) -> None:
        session = self._get_session()
        try:
            session.add(run_to_orm(run))
            session.commit()
            logger.debug(f"[run_repo] created run {run.run_id}")
        except IntegrityError as e:
            session.rollback()
            raise RunAlreadyExists(f"Run {run.run_id} already exists") from e
        finally:
            session.close()

    def get(self, run_id: UUID) -> Optional[SequenceRun]:
        session = self._get_session()
        try:
            orm = session.get(
                SequenceRunORM,
                run_id,
                options=[selectinload(SequenceRunORM.stage_runs)],
            )
            if not orm:
                return None
            return orm_to_run(orm)
        finally:
            session.close()

    def update(self, run: SequenceRun) -> None:
        session = self._get_session()
        try:
            orm = session.get(SequenceRunORM, run.run_id)
            if not orm:
                raise RunNotFound(f"Run {run.run_id} not found")

            _copy_run_fields(run, orm)
            orm.stage_runs = _stage_runs_to_orm(run)
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def list_recent(self, limit: int = 20) -> List[SequenceRun]:
        session = self._get_session()
        try:
            rows = session.scalars(
                select(SequenceRunORM)
                .options(selectinload(SequenceRunORM.stage_runs))
                .order_by(SequenceRunORM.created_at.desc())
                .limit(limit)
            ).all()
            return [orm_to_run(row) for row in rows]
        finally:
            session.close()
