"""Database module for sitewatch."""

from sitewatch.db.engine import create_engine, create_session_factory, get_session
from sitewatch.db.models import Base, WatchTaskModel

__all__ = [
    "create_engine",
    "create_session_factory",
    "get_session",
    "Base",
    "WatchTaskModel",
]
