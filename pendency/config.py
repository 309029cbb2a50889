"""Configuration management for the pendency tracker."""

from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Remote endpoint (spreadsheet script)
    api_url: str = Field(
        default="",
        validation_alias=AliasChoices(
            "PENDENCY_API_URL", "GOOGLE_SCRIPT_URL", "API_URL"
        ),
    )

    # HTTP Client Defaults
    http_timeout_seconds: float = Field(default=30.0)
    http_retries: int = Field(default=2)
    http_backoff: float = Field(default=0.5)

    # Data refresh
    cache_ttl_seconds: float = Field(default=120.0)
    poll_interval_seconds: float = Field(default=60.0)
    timezone: str = Field(default="America/Sao_Paulo")
    default_critical_days_limit: int = Field(default=5)

    # Client state (identity, token, read notifications)
    state_file: str = Field(default="pendency_state.db")

    # Operational fallback login, used when the remote source is unreachable
    fallback_admin_username: str = Field(default="admin")
    fallback_admin_password: Optional[str] = Field(default="admin")
    fallback_admin_alt_password: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "FALLBACK_ADMIN_ALT_PASSWORD", "ADMIN_RECOVERY_PASSWORD"
        ),
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False, description="Emit logs as JSON lines")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    def get_fallback_passwords(self) -> List[str]:
        """Return the reserved passwords accepted by the fallback login."""
        return [
            password
            for password in (
                self.fallback_admin_password,
                self.fallback_admin_alt_password,
            )
            if password
        ]

    def validate_api_config(self) -> None:
        """Validate that the remote endpoint is configured."""
        if not self.api_url:
            raise ValueError(
                "No remote endpoint configured. Set PENDENCY_API_URL (or "
                "GOOGLE_SCRIPT_URL) to the deployed spreadsheet script URL."
            )


# Global settings instance
settings = Settings()
