"""Watch task endpoints."""

import logging

from fastapi import APIRouter, HTTPException, Response

from sitewatch.dependencies import SchedulerDep
from sitewatch.errors import (
    AnalysisError,
    CaptureError,
    ConfigurationError,
    TaskStoreError,
    TaskValidationError,
)
from sitewatch.models.api import (
    PreviewRequest,
    PreviewResponse,
    WatchTaskCreate,
    WatchTaskResponse,
    WatchTaskUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["tasks"])


def _not_found(task_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Task {task_id} not found")


@router.get("/tasks")
async def list_tasks(scheduler: SchedulerDep) -> list[WatchTaskResponse]:
    tasks = await scheduler.list_tasks()
    return [WatchTaskResponse.from_task(t) for t in tasks]


@router.post("/tasks", status_code=201)
async def create_task(body: WatchTaskCreate, scheduler: SchedulerDep) -> WatchTaskResponse:
    try:
        task = await scheduler.create_task(
            website_url=body.website_url,
            notification_criteria=body.notification_criteria,
            frequency=body.frequency,
            scheduled_time=body.scheduled_time,
            day_of_week=body.day_of_week,
        )
    except TaskValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return WatchTaskResponse.from_task(task)


@router.get("/tasks/{task_id}")
async def get_task(task_id: str, scheduler: SchedulerDep) -> WatchTaskResponse:
    task = await scheduler.get_task(task_id)
    if task is None:
        raise _not_found(task_id)
    return WatchTaskResponse.from_task(task)


@router.patch("/tasks/{task_id}")
async def update_task(
    task_id: str, body: WatchTaskUpdate, scheduler: SchedulerDep
) -> WatchTaskResponse:
    try:
        task = await scheduler.update_task(task_id, **body.model_dump(exclude_none=True))
    except TaskValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    if task is None:
        raise _not_found(task_id)
    return WatchTaskResponse.from_task(task)


@router.delete("/tasks/{task_id}", status_code=204)
async def delete_task(task_id: str, scheduler: SchedulerDep) -> Response:
    if not await scheduler.delete_task(task_id):
        raise _not_found(task_id)
    return Response(status_code=204)


@router.post("/tasks/{task_id}/start")
async def start_task(task_id: str, scheduler: SchedulerDep) -> WatchTaskResponse:
    task = await scheduler.start_task(task_id)
    if task is None:
        raise _not_found(task_id)
    return WatchTaskResponse.from_task(task)


@router.post("/tasks/{task_id}/stop")
async def stop_task(task_id: str, scheduler: SchedulerDep) -> WatchTaskResponse:
    task = await scheduler.stop_task(task_id)
    if task is None:
        raise _not_found(task_id)
    return WatchTaskResponse.from_task(task)


@router.post("/tasks/{task_id}/run")
async def run_task(task_id: str, scheduler: SchedulerDep) -> WatchTaskResponse:
    """Run a task now; the response carries the recorded outcome, including failures."""
    if await scheduler.get_task(task_id) is None:
        raise _not_found(task_id)
    try:
        outcome = await scheduler.run_task_now(task_id)
    except (ConfigurationError, CaptureError, AnalysisError) as e:
        logger.info(f"Manual run of task {task_id} failed: {e}")
    except TaskStoreError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    else:
        if outcome is None:
            raise HTTPException(status_code=409, detail=f"Task {task_id} is already running")

    task = await scheduler.get_task(task_id)
    if task is None:
        raise _not_found(task_id)
    return WatchTaskResponse.from_task(task)


@router.post("/preview")
async def preview(body: PreviewRequest, scheduler: SchedulerDep) -> PreviewResponse:
    """Check a page against criteria without saving a task."""
    try:
        result = await scheduler.preview(body.website_url, body.notification_criteria)
    except TaskValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except (CaptureError, AnalysisError) as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    return PreviewResponse(
        result=result.result,
        matched=result.matched,
        timestamp=result.timestamp.isoformat(),
        screenshot=result.screenshot,
    )
