"""Application configuration via Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

# Resolve .env from the project root regardless of CWD
_ENV_FILE = Path(__file__).resolve().parents[3] / ".env"


class Settings(BaseSettings):
    """Central configuration loaded from environment variables / .env file."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./investor_platform.db"

    # Sessions / credentials
    session_ttl_days: int = 30
    password_hash_rounds: int = 12
    password_min_length: int = 6
    password_reset_ttl_minutes: int = 60
    secure_cookies: bool = False

    # Notifications
    sendgrid_api_key: str = ""
    notification_from_email: str = "updates@investorpropertiesny.com"
    notification_from_name: str = "Investor Properties NY"

    # Payments (simulated processor)
    payment_simulation_approve: bool = True

    # CORS / Frontend
    cors_origins: str = "http://localhost:5173"
    frontend_url: str = "https://investorpropertiesny.com"

    # General
    debug: bool = True

    model_config = {"env_file": str(_ENV_FILE), "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list.

        In debug mode, returns ["*"] to allow any origin.
        """
        if self.debug:
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()
