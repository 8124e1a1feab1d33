"""Configuration management for the walkthrough recording service."""

from enum import Enum
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class EmailBackend(str, Enum):
    """Mail transport selection."""
    AUTO = "auto"  # Resend if keyed, then SMTP if credentialed, else unconfigured
    SMTP = "smtp"
    RESEND = "resend"
    CONSOLE = "console"  # Development only - logs instead of sending
    DISABLED = "disabled"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # AI Providers - primary and secondary generation backends
    openai_api_key: Optional[SecretStr] = Field(None, description="OpenAI API key (primary provider)")
    openai_model: str = Field("gpt-4o", description="OpenAI model for script and step generation")
    gemini_api_key: Optional[SecretStr] = Field(None, description="Google Gemini API key (secondary provider)")
    gemini_model: str = Field("gemini-2.0-flash", description="Gemini model for script and step generation")
    ai_temperature: float = Field(0.7, description="Sampling temperature for generation")
    ai_timeout_seconds: float = Field(60.0, description="Request timeout for AI providers")

    # Email
    email_backend: EmailBackend = Field(EmailBackend.AUTO, description="Mail transport to use")
    gmail_user: Optional[str] = Field(None, description="Gmail account used for SMTP")
    gmail_app_password: Optional[SecretStr] = Field(None, description="Gmail app password")
    smtp_host: str = Field("smtp.gmail.com", description="SMTP host")
    smtp_port: int = Field(587, description="SMTP port")
    smtp_start_tls: bool = Field(True, description="Upgrade the SMTP connection with STARTTLS")
    resend_api_key: Optional[SecretStr] = Field(None, description="Resend API key")
    email_from: Optional[str] = Field(None, description="Sender address (defaults to the Gmail user)")
    email_from_name: str = Field("Walkthroughs", description="Sender display name")
    public_base_url: str = Field("", description="Prefix for relative video links in emails")

    # Browser
    browser_headless: bool = Field(True, description="Run the recording browser headless")
    browser_executable_path: Optional[str] = Field(None, description="Custom Chromium executable")
    viewport_width: int = Field(1280, description="Recording viewport width")
    viewport_height: int = Field(720, description="Recording viewport height")
    navigation_timeout_ms: int = Field(30000, description="Timeout for the initial page navigation")
    typing_delay_ms: int = Field(100, description="Per-character delay when entering credentials")
    interaction_delay_scale: float = Field(
        1.0,
        description="Multiplier for fixed settle delays (0 disables them)"
    )

    # Recording output
    recordings_dir: str = Field("./recordings", description="Directory for captured videos")
    video_url_prefix: str = Field("/api/recordings", description="URL prefix for serving captured videos")
    fallback_video_url: str = Field(
        "https://commondatastorage.googleapis.com/gtv-videos-bucket/sample/BigBuckBunny.mp4",
        description="Demo video exposed when automation fails (empty disables)"
    )
    post_processing_seconds: float = Field(3.0, description="Simulated post-processing latency")

    # Sessions
    session_retention_hours: int = Field(24, description="Age after which terminal sessions are reaped")
    session_cleanup_interval_seconds: int = Field(3600, description="Interval of the periodic reaper")
    system_user_id: int = Field(1, description="Account that owns generated walkthroughs")

    # Logging
    log_level: str = Field("INFO", description="Log level")
    log_json: bool = Field(False, description="Render logs as JSON")

    @property
    def sender_address(self) -> str:
        """Address used in the From header."""
        return self.email_from or self.gmail_user or "noreply@walkthroughs.app"


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
