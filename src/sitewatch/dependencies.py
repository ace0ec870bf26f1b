"""FastAPI dependency injection providers for services."""

from typing import Annotated

from fastapi import Depends, Request

from sitewatch.services import CredentialStore, SchedulerService


def get_scheduler(request: Request) -> SchedulerService:
    """Get the scheduler service from app state."""
    return request.app.state.scheduler


def get_credentials(request: Request) -> CredentialStore:
    """Get the credential store from app state."""
    return request.app.state.credentials


SchedulerDep = Annotated[SchedulerService, Depends(get_scheduler)]
CredentialsDep = Annotated[CredentialStore, Depends(get_credentials)]
