"""
Application settings using Pydantic Settings.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        # Prefer local overrides while keeping .env as the default source
        env_file=(".env.local", ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Symbol decoding
    decoder_emit_fnc4: bool = Field(
        True, description="Render a redundant CODE A/CODE B switch as {FNC4}"
    )
    decoder_strip_position_counters: bool = Field(
        True, description="Drop interleaved position counters from raw scanner codes"
    )

    # Image normalization
    normalize_min_height: int = Field(200, gt=0, description="Target height after upscaling")
    normalize_padding: int = Field(32, ge=0, description="Quiet zone width in pixels")
    normalize_ink_luma_threshold: float = Field(250, description="Luma below this counts as ink")
    normalize_min_alpha: int = Field(10, ge=0, le=255, description="Minimum opacity for ink")

    # Recognition
    recognizer_rotations: list[int] = Field(default_factory=lambda: [0, 180])
    scan_retry_without_denoise: bool = True

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
