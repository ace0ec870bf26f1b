"""URL and API key helpers."""

from urllib.parse import urlsplit


def normalize_url(url: str) -> str:
    """Prefix https:// when the URL carries no http(s) scheme."""
    url = url.strip()
    if url.startswith(("http://", "https://")):
        return url
    return f"https://{url}"


def validate_url(url: str) -> str | None:
    """Check that a user-supplied URL looks like a reachable web address.

    Returns:
        None if the URL is acceptable, otherwise a message describing the problem.
    """
    if not url:
        return "URL is required"
    if "." not in url or " " in url:
        return "Invalid URL format"

    if "://" in url and not url.startswith(("http://", "https://")):
        return "URL must use http or https protocol"

    try:
        parts = urlsplit(normalize_url(url))
    except ValueError:
        return "Invalid URL format"

    if parts.scheme not in ("http", "https"):
        return "URL must use http or https protocol"
    hostname = parts.hostname or ""
    if len(hostname) < 3:
        return "Invalid hostname in URL"
    if "." not in hostname:
        return "URL must contain a valid domain"
    return None


def validate_api_key(api_key: str) -> str | None:
    """Format-check an OpenAI API key without contacting the provider.

    An empty key is accepted so that a stored key can be removed.

    Returns:
        None if the key is acceptable, otherwise a message describing the problem.
    """
    if not api_key:
        return None
    if not api_key.startswith("sk-"):
        return 'API key must start with "sk-"'
    if len(api_key) < 30:
        return "API key is too short"
    return None
