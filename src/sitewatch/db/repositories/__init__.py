"""Repository classes for database operations."""

from sitewatch.db.repositories.tasks import WatchTaskRepository

__all__ = [
    "WatchTaskRepository",
]
