from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel


class StagePlanResponse(BaseModel):
    position: int
    stage_id: str
    stage_name: str
    stage_type: str
    depends_on: List[str]


class StageRunResponse(BaseModel):
    stage_id: str
    stage_name: str
    stage_type: str
    status: str
    result: Dict[str, Any]
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None


class RunResponse(BaseModel):
    run_id: UUID
    status: str
    failed_stage_id: Optional[str] = None
    error_message: Optional[str] = None
    resumed_from: Optional[UUID] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    stage_runs: List[StageRunResponse]

    @classmethod
    def from_run(cls, run) -> "RunResponse":
        return cls(
            run_id=run.run_id,
            status=run.status.value,
            failed_stage_id=run.failed_stage_id,
            error_message=run.error_message,
            resumed_from=run.resumed_from,
            created_at=run.created_at,
            started_at=run.started_at,
            completed_at=run.completed_at,
            stage_runs=[
                StageRunResponse(
                    stage_id=sr.stage_id,
                    stage_name=sr.stage_name,
                    stage_type=sr.stage_type.value,
                    status=sr.status.value,
                    result=sr.result,
                    error_message=sr.error_message,
                    started_at=sr.started_at,
                    completed_at=sr.completed_at,
                    duration_seconds=sr.duration_seconds,
                )
                for sr in run.stage_runs
            ],
        )


class StageFailureResponse(BaseModel):
    run_id: Optional[UUID] = None
    stage_id: str
    cause: str
