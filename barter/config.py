"""
Configuration settings for the application.
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Redis document store
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    CHANGE_STREAM_PREFIX: str = os.getenv("CHANGE_STREAM_PREFIX", "changes:")
    CHANGE_STREAM_MAXLEN: int = int(os.getenv("CHANGE_STREAM_MAXLEN", "1000"))

    # Realtime sync bridge
    SYNC_COALESCE_WINDOW_MS: int = int(os.getenv("SYNC_COALESCE_WINDOW_MS", "50"))
    SYNC_BLOCK_MS: int = int(os.getenv("SYNC_BLOCK_MS", "5000"))
    SYNC_POLL_INTERVAL_MS: int = int(os.getenv("SYNC_POLL_INTERVAL_MS", "100"))
    SYNC_RETRY_BASE_MS: int = int(os.getenv("SYNC_RETRY_BASE_MS", "200"))
    SYNC_RETRY_MAX_MS: int = int(os.getenv("SYNC_RETRY_MAX_MS", "10000"))
    SYNC_RETRY_ATTEMPTS: int = int(os.getenv("SYNC_RETRY_ATTEMPTS", "6"))

    # Push delivery
    PUSH_ENABLED: bool = os.getenv("PUSH_ENABLED", "true").lower() == "true"
    PUSH_ENDPOINT_URL: str = os.getenv(
        "PUSH_ENDPOINT_URL",
        "https://exp.host/--/api/v2/push/send",
    )
    PUSH_TIMEOUT_SECONDS: float = float(os.getenv("PUSH_TIMEOUT_SECONDS", "5"))
    PUSH_DLQ_STREAM_KEY: str = os.getenv("PUSH_DLQ_STREAM_KEY", "notifications:dlq")

    # Notification worker
    SESSION_REFRESH_SECONDS: float = float(
        os.getenv("SESSION_REFRESH_SECONDS", "30")
    )

    @property
    def is_production(self) -> bool:
        """
        Check if running in production environment.
        """
        return self.ENVIRONMENT.lower() == "production"

    @property
    def push_configured(self) -> bool:
        """Return True when push notifications can be delivered."""
        return bool(self.PUSH_ENABLED and self.PUSH_ENDPOINT_URL)

    def __init__(self):
        logging.basicConfig(level=logging.DEBUG if self.DEBUG else self.LOG_LEVEL)
        self.logger = logging.getLogger(__name__)

        self.logger.debug(
            f"Config initialized with environment={self.ENVIRONMENT}, "
            f"debug={self.DEBUG}, log_level={self.LOG_LEVEL}"
        )


# Create a global settings instance for import
settings = Settings()
