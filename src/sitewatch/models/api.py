"""API request/response schemas for FastAPI endpoints."""

from typing import Any

from pydantic import BaseModel

from sitewatch.models.watch_task import DayOfWeek, Frequency, WatchTask


class WatchTaskCreate(BaseModel):
    website_url: str
    notification_criteria: str
    frequency: Frequency
    scheduled_time: str
    day_of_week: DayOfWeek | None = None


class WatchTaskUpdate(BaseModel):
    website_url: str | None = None
    notification_criteria: str | None = None
    frequency: Frequency | None = None
    scheduled_time: str | None = None
    day_of_week: DayOfWeek | None = None


class WatchTaskResponse(BaseModel):
    task_id: str
    website_url: str
    notification_criteria: str
    analysis_prompt: str
    frequency: str
    scheduled_time: str
    day_of_week: str | None
    is_running: bool
    created_at: str
    last_run: str | None
    next_scheduled_run: str | None
    last_result: str | None
    last_matched_criteria: bool | None
    last_test_result: dict[str, Any] | None

    @classmethod
    def from_task(cls, task: WatchTask) -> "WatchTaskResponse":
        return cls(
            task_id=task.task_id,
            website_url=task.website_url,
            notification_criteria=task.notification_criteria,
            analysis_prompt=task.analysis_prompt,
            frequency=task.frequency.value,
            scheduled_time=task.scheduled_time,
            day_of_week=task.day_of_week.value if task.day_of_week else None,
            is_running=task.is_running,
            created_at=task.created_at.isoformat(),
            last_run=task.last_run.isoformat() if task.last_run else None,
            next_scheduled_run=(
                task.next_scheduled_run.isoformat() if task.next_scheduled_run else None
            ),
            last_result=task.last_result,
            last_matched_criteria=task.last_matched_criteria,
            last_test_result=(
                task.last_test_result.to_dict() if task.last_test_result else None
            ),
        )


class PreviewRequest(BaseModel):
    website_url: str
    notification_criteria: str


class PreviewResponse(BaseModel):
    result: str
    matched: bool | None
    timestamp: str
    screenshot: str | None = None


class CredentialUpdate(BaseModel):
    api_key: str
