"""Exception types raised by the scheduling and execution engine."""


class SitewatchError(Exception):
    """Base class for all sitewatch errors."""


class ConfigurationError(SitewatchError):
    """Credentials for the configured vision provider are missing or malformed."""


class CaptureError(SitewatchError):
    """The page snapshot could not be taken."""


class AnalysisError(SitewatchError):
    """The vision provider call failed."""


class TaskStoreError(SitewatchError):
    """A read or write against the task store failed."""


class TaskValidationError(TaskStoreError):
    """A task record is missing required fields or holds invalid values."""
