from .api import (
    CredentialUpdate,
    PreviewRequest,
    PreviewResponse,
    WatchTaskCreate,
    WatchTaskResponse,
    WatchTaskUpdate,
)
from .watch_task import DayOfWeek, Frequency, RunResult, WatchTask

__all__ = [
    # API schemas
    "CredentialUpdate",
    "PreviewRequest",
    "PreviewResponse",
    "WatchTaskCreate",
    "WatchTaskResponse",
    "WatchTaskUpdate",
    # Domain models
    "DayOfWeek",
    "Frequency",
    "RunResult",
    "WatchTask",
]
