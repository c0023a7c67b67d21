"""Request/response models and upload metadata validation."""
from typing import Optional
from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator
from voicenote.core.config import settings

DESTINATION_FIELDS = ("chat_id", "comment_id", "post_id", "reel_id", "story_id")


class AudioMessageMetadata(BaseModel):
    """Metadata stored alongside an uploaded voice note."""
    duration: float
    waveform: list[float]
    mime_type: str = "audio/wav"
    chat_id: Optional[str] = None
    comment_id: Optional[str] = None
    post_id: Optional[str] = None
    reel_id: Optional[str] = None
    story_id: Optional[str] = None

    @field_validator("duration")
    @classmethod
    def check_duration(cls, value: float) -> float:
        if value < settings.min_duration_seconds:
            raise ValueError(f"Audio should be at least {settings.min_duration_seconds} seconds")
        if value > settings.max_duration_seconds:
            raise ValueError(f"Audio cannot exceed {settings.max_duration_seconds} seconds")
        return value

    @field_validator("waveform")
    @classmethod
    def check_waveform(cls, value: list[float]) -> list[float]:
        if len(value) < settings.min_waveform_points:
            raise ValueError("Waveform data is required")
        if any(not 0 <= point <= 100 for point in value):
            raise ValueError("Waveform values must be between 0 and 100")
        return value

    @model_validator(mode="after")
    def check_destination(self, info: ValidationInfo) -> "AudioMessageMetadata":
        context = info.context or {}
        if context.get("require_destination") and not any(getattr(self, f) for f in DESTINATION_FIELDS):
            raise ValueError(
                "Audio message must be associated with a chat, comment, post, reel, or story"
            )
        return self


class WaveformResponse(BaseModel):
    waveform: list[float]
    length: int


class PreparedUploadResponse(BaseModel):
    """JSON rendition of a prepared upload."""
    audio_base64: str
    mime_type: str
    duration_seconds: float
    waveform: list[float]
    size_bytes: int
    sample_rate: Optional[int] = None
    bit_depth: Optional[int] = None


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: list[dict] = Field(default_factory=list)
