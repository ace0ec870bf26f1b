from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    host: str = "127.0.0.1"
    port: int = 8000

    # Database settings
    database_url: str = "sqlite+aiosqlite:///sitewatch.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_echo: bool = False
    db_command_timeout: int = 30  # asyncpg only, seconds

    # Scheduler settings
    poll_interval_seconds: float = 60.0
    persist_retries: int = 3  # Attempts for schedule writes before surfacing the error
    persist_retry_delay: float = 1.0
    timezone: str | None = None  # IANA zone for scheduled_time (None = system local)

    # Vision settings
    vision_provider: str = "openai"  # "openai" or "llama"
    openai_model: str = "gpt-4o"
    openai_api_key: str | None = None  # Used when no key has been stored
    ollama_base_url: str = "http://localhost:11434/v1"
    ollama_model: str = "llama3.2-vision"
    analysis_timeout: float = 120.0

    # Snapshot settings
    snapshot_width: int = 1920
    snapshot_height: int = 1080
    snapshot_settle_ms: int = 2000  # Wait after load before capturing
    snapshot_timeout_ms: int = 60000
    snapshot_dir: str = "snapshots"
    browser_executable: str | None = None
    headless: bool = True

    # Notification settings
    notifier: str = "log"  # "log" or "desktop"
    notification_body_limit: int = 100

    # Credential storage
    credentials_path: str = "credentials.json"

    model_config = SettingsConfigDict(env_prefix="SITEWATCH_")
