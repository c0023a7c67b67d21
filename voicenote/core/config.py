"""Configuration settings for the voice-note audio backend."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Waveform envelope settings
    waveform_samples: int = 100  # points per envelope
    waveform_scale: float = 400.0  # mean |amplitude| multiplier onto the 0-100 range

    # Compression settings
    target_sample_rate: int = 22050  # Hz
    target_bit_depth: int = 16  # 8, 16 or 24
    lowpass_q_db: float = 1.0  # anti-alias biquad resonance

    # Offline render limits
    min_render_sample_rate: int = 3000
    max_render_sample_rate: int = 768000
    max_channels: int = 32

    # Upload metadata rules
    min_duration_seconds: float = 0.5
    max_duration_seconds: float = 60.0
    min_waveform_points: int = 10
    max_upload_bytes: int = 25 * 1024 * 1024

    # Usage metering for submission endpoints
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 20  # requests per window
    rate_limit_window_seconds: int = 60
    rate_limit_prune_interval_seconds: int = 3600  # drop idle windows this often

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
