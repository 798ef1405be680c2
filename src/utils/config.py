"""
Configuration management using pydantic-settings.

Loads settings from environment variables and .env files.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "data" / "intake.db"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Vapi Configuration
    vapi_secret: Optional[str] = Field(
        default=None,
        description="Shared secret Vapi sends in the x-vapi-secret header",
    )
    vapi_api_key: Optional[str] = Field(
        default=None,
        description="Bearer token for the Vapi call-detail API (defaults to vapi_secret)",
    )
    vapi_base_url: str = Field(
        default="https://api.vapi.ai",
        description="Base URL of the Vapi REST API",
    )
    vapi_fallback_delay_seconds: float = Field(
        default=2.0,
        description="Wait before the call-detail lookup so Vapi can finish its own analysis",
    )
    vapi_request_timeout_seconds: float = Field(
        default=10.0,
        description="Request timeout for the call-detail lookup",
    )

    # Storage
    database_path: Path = Field(
        default=DEFAULT_DB_PATH,
        description="SQLite database file holding homeowners, claims and calls",
    )

    # Email Configuration
    sendgrid_api_key: Optional[str] = Field(
        default=None,
        description="SendGrid API key. Without it notifications are only logged.",
    )
    notification_from_email: str = Field(
        default="noreply@cascadeconnect.app",
        description="Sender address for call notifications",
    )
    notification_recipients: str = Field(
        default="",
        description="Comma-separated list of notification recipients",
    )
    default_notification_email: str = Field(
        default="info@cascadebuilderservices.com",
        description="Recipient used when no recipients are configured",
    )
    app_url: str = Field(
        default="https://www.cascadeconnect.app",
        description="Dashboard URL used for links in notifications",
    )

    # Intake Rules
    min_address_similarity: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Minimum address similarity for a homeowner match",
    )
    duplicate_lookback_hours: int = Field(
        default=24,
        ge=0,
        description="Window in which an open claim blocks auto-creation",
    )

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")

    @property
    def recipient_list(self) -> list[str]:
        """Parse the comma-separated recipient setting."""
        return [r.strip() for r in self.notification_recipients.split(",") if r.strip()]

    @property
    def vapi_bearer_token(self) -> Optional[str]:
        """Token for the call-detail API; Vapi accounts often reuse the webhook secret."""
        return self.vapi_api_key or self.vapi_secret


@dataclass
class IntakeConfig:
    """
    Explicit configuration for the intake pipeline.

    Built once from Settings at startup (or directly in tests) so that the
    pipeline never reads process environment on its own.
    """
    vapi_secret: Optional[str] = None
    vapi_api_key: Optional[str] = None
    vapi_base_url: str = "https://api.vapi.ai"
    fallback_delay_seconds: float = 2.0
    request_timeout_seconds: float = 10.0
    min_similarity: float = 0.4
    duplicate_lookback_hours: int = 24
    required_fields: tuple[str, ...] = ("property_address",)
    notification_recipients: list[str] = field(default_factory=list)
    default_notification_email: str = "info@cascadebuilderservices.com"
    notification_from_email: str = "noreply@cascadeconnect.app"
    sendgrid_api_key: Optional[str] = None
    app_url: str = "https://www.cascadeconnect.app"

    @classmethod
    def from_settings(cls, settings: "Settings") -> "IntakeConfig":
        """Create pipeline config from application settings."""
        return cls(
            vapi_secret=settings.vapi_secret,
            vapi_api_key=settings.vapi_bearer_token,
            vapi_base_url=settings.vapi_base_url,
            fallback_delay_seconds=settings.vapi_fallback_delay_seconds,
            request_timeout_seconds=settings.vapi_request_timeout_seconds,
            min_similarity=settings.min_address_similarity,
            duplicate_lookback_hours=settings.duplicate_lookback_hours,
            notification_recipients=settings.recipient_list,
            default_notification_email=settings.default_notification_email,
            notification_from_email=settings.notification_from_email,
            sendgrid_api_key=settings.sendgrid_api_key,
            app_url=settings.app_url,
        )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-reading environment on every call.
    """
    return Settings()


# Convenience access
settings = get_settings()
