"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from ticketflow import __version__


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"
    VERSION: str = __version__

    # Database
    DATABASE_URL: str = "sqlite:///./ticketflow.db"
    DB_AUTO_MIGRATE: bool = False

    # Freshdesk (external ticketing service)
    FRESHDESK_DOMAIN: str = ""  # e.g. acme.freshdesk.com
    FRESHDESK_API_KEY: str = ""  # Sent as basic auth "<key>:X"
    FRESHDESK_TIMEOUT_SECONDS: float = 30.0
    FRESHDESK_PAGE_SIZE: int = 100
    FRESHDESK_OPEN_STATUS: int = 2  # Freshdesk status code for "Open"

    # Task broker (Redis Streams). "memory://" keeps envelopes in-process.
    REDIS_URL: str = "memory://"
    TASK_STREAM_MAXLEN: int = 10000

    # Internal scheduled endpoints (external cron)
    INTERNAL_SECRET: str = ""

    # Scheduler (runs inside the API process unless disabled)
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_POLL_INTERVAL: int = 60
    SCHEDULER_TIMEZONE: str = "UTC"  # Zone the sync_cron expression is evaluated in
    DEFAULT_SYNC_CRON: str = "0 0/5 * * * ?"  # Every 5 minutes

    # Sync lock. With REDIS_URL set the lock is a redis key shared by every process.
    SYNC_LOCK_KEY: str = "ticketflow:sync-lock"
    SYNC_LOCK_TTL_SECONDS: int = 900  # Upper bound on one run; expires a crashed holder

    # Where `cli sync` sends the trigger when the lock is process-local
    API_BASE_URL: str = "http://localhost:8000"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def freshdesk_base_url(self) -> str:
        return f"https://{self.FRESHDESK_DOMAIN}/api/v2"


settings = Settings()
