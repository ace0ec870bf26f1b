"""API key storage keyed by vision provider."""

import json
import logging
from pathlib import Path

from sitewatch.errors import ConfigurationError
from sitewatch.utils import validate_api_key

logger = logging.getLogger(__name__)

# Providers that need an API key before any call is made
PROVIDERS_REQUIRING_KEY = frozenset({"openai"})


class CredentialStore:
    """Stores one API key per provider in a JSON file."""

    def __init__(self, storage_path: Path, default_keys: dict[str, str] | None = None) -> None:
        self._storage_path = storage_path
        self._default_keys = {k: v for k, v in (default_keys or {}).items() if v}

    def _load(self) -> dict[str, str]:
        if not self._storage_path.exists():
            return {}
        try:
            data = json.loads(self._storage_path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Failed to read credentials from {self._storage_path}: {e}"
            ) from e
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, str]) -> None:
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        self._storage_path.write_text(json.dumps(data, indent=2))

    def get(self, provider: str) -> str | None:
        """Return the stored key for ``provider``, falling back to configured defaults."""
        key = self._load().get(provider)
        return key or self._default_keys.get(provider)

    def set(self, provider: str, api_key: str) -> None:
        """Store a key for ``provider``; an empty key removes it.

        Raises:
            ConfigurationError: If the key is malformed.
        """
        message = validate_api_key(api_key)
        if message:
            raise ConfigurationError(message)
        if not api_key:
            self.clear(provider)
            return
        data = self._load()
        data[provider] = api_key
        self._save(data)
        logger.info(f"Stored API key for provider {provider}")

    def clear(self, provider: str) -> None:
        """Remove the stored key for ``provider``."""
        data = self._load()
        if data.pop(provider, None) is not None:
            self._save(data)
            logger.info(f"Cleared API key for provider {provider}")

    def resolve(self, provider: str) -> str | None:
        """Return a usable key for ``provider``, or None if it needs none.

        Raises:
            ConfigurationError: If the provider needs a key and none valid is available.
        """
        if provider not in PROVIDERS_REQUIRING_KEY:
            return None
        api_key = self.get(provider)
        if not api_key:
            raise ConfigurationError(f"Please set your {provider} API key in settings")
        message = validate_api_key(api_key)
        if message:
            raise ConfigurationError(message)
        return api_key
