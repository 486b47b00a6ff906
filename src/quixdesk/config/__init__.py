"""
Configuration Module
====================

Application settings and domain constants, loaded with pydantic-settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Integration keys are optional; features backed by a missing key
    degrade (skip or 503) instead of failing startup.
    """

    # ========== Application ==========
    app_name: str = Field(default="quixdesk", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/quixdesk",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Auth ==========
    jwt_secret: str = Field(
        default="change-me-in-production-please-32chars",
        description="HMAC secret for access tokens"
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(
        default=480,
        description="Access token lifetime in minutes",
        ge=1
    )
    bcrypt_rounds: int = Field(default=12, description="bcrypt work factor", ge=4, le=16)
    password_reset_expire_minutes: int = Field(
        default=30,
        description="Password reset link lifetime in minutes",
        ge=1
    )
    password_reset_url: str = Field(
        default="http://localhost:3000/reset-password",
        description="Frontend page that redeems reset tokens; the token is appended as ?token="
    )

    # ========== Outbound HTTP ==========
    http_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for outbound integration calls",
        ge=0.1,
        le=60
    )

    # ========== Cloudinary (image hosting) ==========
    cloudinary_cloud_name: Optional[str] = Field(
        default=None,
        description="Cloudinary cloud name"
    )
    cloudinary_upload_preset: Optional[str] = Field(
        default=None,
        description="Unsigned upload preset"
    )

    # ========== Email notifications ==========
    email_service_url: Optional[str] = Field(
        default=None,
        description="Endpoint accepting {ticket: {...}} and {passwordReset: {...}} email payloads"
    )

    # ========== Assistant (Mistral via OpenAI-compatible API) ==========
    mistral_api_key: Optional[str] = Field(default=None, description="Mistral API key")
    mistral_base_url: str = Field(
        default="https://api.mistral.ai/v1",
        description="Mistral OpenAI-compatible base URL"
    )
    mock_llm: bool = Field(
        default=False,
        description="Use canned assistant replies (no API calls)"
    )
    assistant_model: str = Field(default="mistral-small-latest", description="Assistant model")
    assistant_max_tokens: int = Field(default=100, ge=1, le=4000)
    assistant_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    assistant_top_p: float = Field(default=1.0, ge=0.0, le=1.0)

    # ========== ElevenLabs (text to speech) ==========
    elevenlabs_api_key: Optional[str] = Field(default=None, description="ElevenLabs API key")
    elevenlabs_voice_id: str = Field(default="EXAVITQu4vr4xnSDxMaL", description="Voice ID")
    elevenlabs_model_id: str = Field(default="eleven_monolingual_v1", description="TTS model")
    elevenlabs_stability: float = Field(default=0.75, ge=0.0, le=1.0)
    elevenlabs_similarity_boost: float = Field(default=0.75, ge=0.0, le=1.0)

    # ========== Response monitoring ==========
    first_response_target_minutes: int = Field(
        default=30,
        description="Minutes an open ticket may wait for its first response",
        ge=1
    )
    response_watch_interval: int = Field(
        default=60,
        description="Seconds between first-response watcher runs",
        ge=5
    )
    response_watch_enabled: bool = Field(default=True, description="Start the watcher on boot")

    # ========== Chat ==========
    typing_timeout_seconds: float = Field(
        default=3.0,
        description="Seconds before an unrefreshed typing indicator is cleared",
        gt=0
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class Role(str):
    """Account roles."""
    USER = "user"
    EMPLOYEE = "employee"
    ADMIN = "admin"


class TicketStatus(str):
    """Ticket lifecycle statuses."""
    OPEN = "open"
    ANSWERED = "answered"
    REQUESTED = "requested"   # closure requested by support
    CLOSED = "closed"


class Priority(str):
    """Ticket priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TicketCategory(str):
    """Ticket categories offered on submission."""
    TECHNICAL = "technical"
    SYSTEM_CRASH = "system_crash"
    SOFTWARE_BUG = "software_bug"
    CONNECTIVITY_ISSUE = "connectivity_issue"
    BILLING = "billing"
    DATA_LOSS = "data_loss"
    SECURITY = "security"
    GENERAL = "general"


class Reaction(str):
    """Message reactions."""
    THUMBS_UP = "👍"
    LAUGH = "😂"
    SURPRISED = "😮"
    SAD = "😢"
    HEART = "❤️"


class DateRange(str):
    """Analytics windows."""
    LAST_7_DAYS = "last7days"
    LAST_30_DAYS = "last30days"
    LAST_90_DAYS = "last90days"


# ========== Lists for validation ==========

VALID_ROLES = [Role.USER, Role.EMPLOYEE, Role.ADMIN]
VALID_STATUSES = [
    TicketStatus.OPEN, TicketStatus.ANSWERED,
    TicketStatus.REQUESTED, TicketStatus.CLOSED
]
VALID_PRIORITIES = [Priority.LOW, Priority.MEDIUM, Priority.HIGH, Priority.CRITICAL]
URGENT_PRIORITIES = [Priority.HIGH, Priority.CRITICAL]
VALID_CATEGORIES = [
    TicketCategory.TECHNICAL, TicketCategory.SYSTEM_CRASH,
    TicketCategory.SOFTWARE_BUG, TicketCategory.CONNECTIVITY_ISSUE,
    TicketCategory.BILLING, TicketCategory.DATA_LOSS,
    TicketCategory.SECURITY, TicketCategory.GENERAL
]
VALID_REACTIONS = [
    Reaction.THUMBS_UP, Reaction.LAUGH, Reaction.SURPRISED,
    Reaction.SAD, Reaction.HEART
]
DATE_RANGE_DAYS = {
    DateRange.LAST_7_DAYS: 7,
    DateRange.LAST_30_DAYS: 30,
    DateRange.LAST_90_DAYS: 90,
}
