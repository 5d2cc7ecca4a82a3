"""Configuration management for taskquest."""

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

PLACEHOLDER_POCKETBASE_URL = "http://127.0.0.1:8090"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage Configuration
    storage_backend: Literal["local", "sqlite", "pocketbase"] = Field(
        default="local", description="Where the ledger is persisted: local JSON, SQLite or PocketBase"
    )
    local_store_dir: str = Field(default="./data/local", description="Directory holding local JSON ledgers")
    sqlite_db_path: str = Field(default="./data/taskquest.db", description="SQLite database file path")
    anonymous_owner_id: str = Field(default="anonymous", description="Owner ID of the implicit local ledger")

    # PocketBase Configuration
    pocketbase_url: str = Field(default=PLACEHOLDER_POCKETBASE_URL, description="PocketBase server URL")
    pocketbase_admin_email: str | None = Field(default=None, description="PocketBase admin email for schema sync")
    pocketbase_admin_password: str | None = Field(
        default=None, description="PocketBase admin password for schema sync"
    )

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Deployment environment name")

    # Notifications
    notification_queue_size: int = Field(default=50, description="Maximum queued notifications per session")

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value

    def warn_if_placeholder_backend(self) -> bool:
        """Log a warning when PocketBase is selected but still points at the placeholder URL."""
        if self.storage_backend == "pocketbase" and self.pocketbase_url == PLACEHOLDER_POCKETBASE_URL:
            logger.warning(
                "PocketBase URL not configured, using placeholder. "
                "Set POCKETBASE_URL in your environment for production."
            )
            return True
        return False


# Application Constants
class Constants:
    """Application-wide constants."""

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30

    # Recurrence offsets
    DAILY_OFFSET_HOURS: int = 24
    WEEKLY_OFFSET_DAYS: int = 7
    MONTHLY_OFFSET_DAYS: int = 30

    # Defaults for new records
    DEFAULT_TASK_POINTS: int = 10
    DEFAULT_REWARD_COST: int = 50

    # Achievements
    ACHIEVEMENT_POINTS_THRESHOLD: int = 100
    ACHIEVEMENT_COMPLETED_THRESHOLD: int = 10
    ACHIEVEMENT_TASKS_THRESHOLD: int = 5

    # Progress
    POINTS_MILESTONE: int = 1000

    # Authentication
    MIN_PASSWORD_LENGTH: int = 6

    # Record IDs (PocketBase compatible)
    RECORD_ID_LENGTH: int = 15

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
