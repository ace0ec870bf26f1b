"""Vision provider API key endpoints."""

from fastapi import APIRouter, HTTPException, Response

from sitewatch.dependencies import CredentialsDep
from sitewatch.errors import ConfigurationError
from sitewatch.models.api import CredentialUpdate

router = APIRouter(prefix="/api/credentials", tags=["credentials"])


@router.put("/{provider}", status_code=204)
async def set_credential(
    provider: str, body: CredentialUpdate, credentials: CredentialsDep
) -> Response:
    """Store (or with an empty key, remove) the API key for a provider."""
    try:
        credentials.set(provider, body.api_key)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return Response(status_code=204)


@router.delete("/{provider}", status_code=204)
async def clear_credential(provider: str, credentials: CredentialsDep) -> Response:
    """Remove the stored API key for a provider."""
    credentials.clear(provider)
    return Response(status_code=204)
