import logging

import uvicorn

from sitewatch.config import Settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


def main() -> None:
    """Run the sitewatch service with uvicorn."""
    settings = Settings()
    uvicorn.run("sitewatch.app:create_app", factory=True, host=settings.host, port=settings.port)
