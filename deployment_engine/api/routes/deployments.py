from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from deployment_engine.api.container import get_container, get_stages
from deployment_engine.api.schemas.deployment import (
    RunResponse,
    StageFailureResponse,
    StagePlanResponse,
)
from deployment_engine.core.errors import (
    CyclicDependency,
    MissingDependencyError,
    RunNotFound,
    StageApplyError,
    StageDefinitionError,
)

router = APIRouter(prefix="/deployments", tags=["deployments"])


def _failure(e: StageApplyError) -> JSONResponse:
    body = StageFailureResponse(run_id=e.run_id, stage_id=e.stage_id, cause=str(e.cause))
    return JSONResponse(status_code=502, content=body.model_dump(mode="json"))


@router.get("/plan", response_model=List[StagePlanResponse])
def get_plan(
    container=Depends(get_container),
    stages=Depends(get_stages),
):
    try:
        ordered = container.sequencer.plan(stages)
    except (CyclicDependency, MissingDependencyError, StageDefinitionError) as e:
        raise HTTPException(status_code=422, detail=str(e))

    return [
        StagePlanResponse(
            position=i,
            stage_id=stage.stage_id,
            stage_name=stage.stage_name,
            stage_type=stage.stage_type.value,
            depends_on=list(stage.depends_on),
        )
        for i, stage in enumerate(ordered, start=1)
    ]


@router.post("/", response_model=RunResponse, responses={502: {"model": StageFailureResponse}})
def create_deployment(
    container=Depends(get_container),
    stages=Depends(get_stages),
):
    try:
        run = container.sequencer.run(stages)
    except StageApplyError as e:
        return _failure(e)
    except (CyclicDependency, MissingDependencyError, StageDefinitionError) as e:
        raise HTTPException(status_code=422, detail=str(e))

    return RunResponse.from_run(run)


@router.get("/{run_id}", response_model=RunResponse)
def get_deployment(
    run_id: UUID,
    container=Depends(get_container),
):
    try:
        run = container.sequencer.get_run(run_id)
    except RunNotFound:
        raise HTTPException(status_code=404, detail="Run not found")

    return RunResponse.from_run(run)


@router.post("/{run_id}/resume", response_model=RunResponse, responses={502: {"model": StageFailureResponse}})
def resume_deployment(
    run_id: UUID,
    container=Depends(get_container),
    stages=Depends(get_stages),
):
    try:
        run = container.sequencer.resume(run_id, stages)
    except RunNotFound:
        raise HTTPException(status_code=404, detail="Run not found")
    except StageApplyError as e:
        return _failure(e)
    except (CyclicDependency, MissingDependencyError, StageDefinitionError) as e:
        raise HTTPException(status_code=422, detail=str(e))

    return RunResponse.from_run(run)
