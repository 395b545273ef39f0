#deployment_engine\infrastructure\postgres\models.py
"""SQLAlchemy ORM models for the run ledger."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, DateTime, JSON, Enum as SQLEnum, Index, Text, Float, ForeignKey, Uuid
)
from sqlalchemy.orm import relationship

from deployment_engine.core.models import RunStatus, StageStatus, StageType
from deployment_engine.infrastructure.postgres.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class SequenceRunORM(Base):
    """
    One sequencer invocation.

    Indexes:
    - Primary key on run_id
    - Index on (status, created_at) for listing recent / failed runs
    """

    __tablename__ = "sequence_runs"

    run_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4, nullable=False)

    status = Column(
        SQLEnum(RunStatus, name="run_status"),
        nullable=False,
        default=RunStatus.PENDING,
    )

    failed_stage_id = Column(String(100), nullable=True)
    error_message = Column(Text, nullable=True)
    resumed_from = Column(Uuid(as_uuid=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    stage_runs = relationship(
        "StageRunORM",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="StageRunORM.position",
    )

    __table_args__ = (
        Index("ix_sequence_runs_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<SequenceRunORM(run_id={self.run_id}, "
            f"status={self.status.value if self.status else None})>"
        )


class StageRunORM(Base):
    """Stage run rows, one per stage in plan order."""

    __tablename__ = "stage_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("sequence_runs.run_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)

    stage_id = Column(String(100), nullable=False)
    stage_name = Column(String(255), nullable=False)
    stage_type = Column(SQLEnum(StageType, name="stage_type"), nullable=False)

    status = Column(
        SQLEnum(StageStatus, name="stage_status"),
        nullable=False,
        default=StageStatus.PENDING,
    )

    result = Column(JSON, nullable=False, default=dict)
    error_message = Column(Text, nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_seconds = Column(Float, nullable=True)

    run = relationship("SequenceRunORM", back_populates="stage_runs")

    def __repr__(self) -> str:
        return f"<StageRunORM(run_id={self.run_id}, stage_id={self.stage_id})>"
