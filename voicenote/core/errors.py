"""Error taxonomy for the audio pipeline."""
from typing import Optional


class AudioPipelineError(Exception):
    """Base class for failures raised by the audio pipeline."""


class DecodeError(AudioPipelineError):
    """Input bytes are not parseable as audio (corrupt, truncated or empty)."""


class UnsupportedFormatError(AudioPipelineError):
    """The decoder cannot identify or does not support the codec."""


class RenderError(AudioPipelineError):
    """Offline rendering / resampling could not complete.

    Unlike decode failures, a caller may retry with adjusted parameters
    (for example a lower target sample rate).
    """


class UploadValidationError(AudioPipelineError):
    """Prepared upload metadata violates the storage contract."""

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        super().__init__(message)
        self.errors = errors or []
