from .credentials import CredentialStore
from .executor import AnalysisExecutor, RunOutcome
from .notifier import DesktopNotifier, LogNotifier, Notifier
from .scheduler import SchedulerService, TickReport
from .snapshot import BrowserSnapshotter, Snapshot, Snapshotter
from .task_store import TaskStore
from .vision import AnalysisResult, Analyzer, VisionAnalyzer

__all__ = [
    "AnalysisExecutor",
    "AnalysisResult",
    "Analyzer",
    "BrowserSnapshotter",
    "CredentialStore",
    "DesktopNotifier",
    "LogNotifier",
    "Notifier",
    "RunOutcome",
    "SchedulerService",
    "Snapshot",
    "Snapshotter",
    "TaskStore",
    "TickReport",
    "VisionAnalyzer",
]
