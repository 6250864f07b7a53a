"""Configuration settings for the toto settlement worker."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Data service
    service_url: str = ""
    service_user: str = ""
    service_password: str = ""
    service_auth_path: str = "/api/admins/auth-with-password"
    service_timeout_s: float = 30.0
    session_ttl_s: int = 3600  # Re-authenticate proactively after this long
    page_size: int = 200

    # Collections
    matches_collection: str = "matches"
    bets_collection: str = "bets"

    # Worker
    poll_interval_ms: int = 60000

    # Logging
    log_level: str = "INFO"

    # Reports show kickoff in Moscow time; storage stays UTC
    display_utc_offset_hours: int = 3

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def poll_interval_s(self) -> float:
        """Tick period in seconds."""
        return self.poll_interval_ms / 1000.0

    def missing(self) -> list[str]:
        """Names of required environment variables that are not set."""
        required = {
            "SERVICE_URL": self.service_url,
            "SERVICE_USER": self.service_user,
            "SERVICE_PASSWORD": self.service_password,
        }
        return [name for name, value in required.items() if not value]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
