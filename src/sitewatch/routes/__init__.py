from .credentials import router as credentials_router
from .tasks import router as tasks_router

__all__ = [
    "credentials_router",
    "tasks_router",
]
