"""
Configuration settings for the Meeting Recorder.
Bot, recording, delivery and server settings, each loaded from its own env prefix.
"""

from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class BotSettings(BaseSettings):
    """Browser bot behavior configuration."""
    model_config = SettingsConfigDict(
        env_prefix="BOT_", env_file=".env", extra="ignore", populate_by_name=True
    )

    name: str = Field(default="Recording Bot", description="Display name used when joining")
    email: str = Field(default="", description="Zoom account email for optional sign-in")
    zoom_password: str = Field(
        default="",
        validation_alias=AliasChoices("BOT_ZOOM_PASSWORD", "BOT_ZOOM_PASS"),
        description="Zoom account password for optional sign-in",
    )
    headless: bool = Field(default=True, description="Run Chromium headless")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="Browser user agent")

    navigation_timeout_seconds: float = Field(default=60.0, description="Meeting page load timeout")
    join_settle_seconds: float = Field(default=5.0, description="Wait after join for media elements")
    media_wait_seconds: float = Field(default=20.0, description="Max wait for audio/video elements")
    chunk_interval_ms: int = Field(default=5000, description="MediaRecorder timeslice (ms)")
    monitor_interval_seconds: float = Field(default=10.0, description="Meeting-ended poll interval")


class RecordingSettings(BaseSettings):
    """Capture, assembly and conversion configuration."""
    model_config = SettingsConfigDict(env_prefix="RECORDING_", env_file=".env", extra="ignore")

    work_dir: str = Field(default="recordings/work", description="Spool and intermediate files")
    output_dir: str = Field(default="recordings", description="Where kept artifacts are moved")
    keep_artifacts: bool = Field(default=False, description="Keep the final audio locally")

    drain_seconds: float = Field(default=3.0, description="Grace period for in-flight fragments")
    memory_limit_bytes: int = Field(
        default=32 * 1024 * 1024,
        description="In-memory fragment bytes before spilling to disk",
    )

    # Transcoder
    ffmpeg_path: str = Field(default="ffmpeg", description="ffmpeg executable")
    audio_codec: str = Field(default="libmp3lame", description="Output audio codec")
    output_format: str = Field(default="mp3", description="Output file extension")
    sample_rate: int = Field(default=16000, description="Output sample rate (Hz)")
    channels: int = Field(default=1, description="Output channel count")
    bitrate: str = Field(default="64k", description="Output bitrate")
    convert_timeout_seconds: float = Field(default=600.0, description="Max ffmpeg runtime")

    # Stop watchdogs (disabled when unset)
    max_duration_seconds: Optional[float] = Field(default=None, description="Stop after this long")
    inactivity_timeout_seconds: Optional[float] = Field(
        default=None,
        description="Stop when no fragment arrives for this long",
    )

    @property
    def work_path(self) -> Path:
        return Path(self.work_dir)

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir)


class DeliverySettings(BaseSettings):
    """Downstream webhook configuration."""
    model_config = SettingsConfigDict(
        env_prefix="DELIVERY_", env_file=".env", extra="ignore", populate_by_name=True
    )

    webhook_url: str = Field(
        default="",
        validation_alias=AliasChoices("DELIVERY_WEBHOOK_URL", "N8N_WEBHOOK_URL"),
        description="Webhook receiving the final audio (empty disables delivery)",
    )
    timeout_seconds: float = Field(default=120.0, description="Upload timeout")
    audio_field: str = Field(default="audio", description="Multipart field for the audio file")
    label_field: str = Field(default="customer_name", description="Multipart field for the label")


class ServerSettings(BaseSettings):
    """HTTP server configuration."""
    model_config = SettingsConfigDict(
        env_prefix="SERVER_", env_file=".env", extra="ignore", populate_by_name=True
    )

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(
        default=3000,
        validation_alias=AliasChoices("SERVER_PORT", "PORT"),
        description="Bind port",
    )


class Settings(BaseSettings):
    """Main application settings."""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Nested settings
    bot: BotSettings = Field(default_factory=BotSettings)
    recording: RecordingSettings = Field(default_factory=RecordingSettings)
    delivery: DeliverySettings = Field(default_factory=DeliverySettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    # Application settings
    project_name: str = Field(default="Meeting Recorder", description="API title")
    version: str = Field(default="1.0.0", description="API version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    log_to_file: bool = Field(default=True, description="Also log to logs/ with rotation")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()


# Global settings instance
settings = Settings()
