"""Audio data models and structures."""
from dataclasses import dataclass
from typing import Optional
import numpy as np

WAV_MIME_TYPE = "audio/wav"


@dataclass
class AudioRecording:
    """Decoded multi-channel PCM audio, one float row per channel."""
    samples: np.ndarray  # float32, shape (channels, frames), nominally [-1, 1]
    sample_rate: int

    def __post_init__(self):
        """Validate and normalise the sample buffer."""
        if not isinstance(self.samples, np.ndarray):
            raise TypeError(f"Expected numpy array, got {type(self.samples).__name__}")
        if self.samples.ndim == 1:
            self.samples = self.samples[np.newaxis, :]
        if self.samples.ndim != 2:
            raise ValueError(f"Expected (channels, frames) array, got shape {self.samples.shape}")
        if self.samples.shape[0] < 1:
            raise ValueError("Recording must have at least one channel")
        if self.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")
        if self.samples.dtype != np.float32:
            self.samples = self.samples.astype(np.float32)

    @property
    def channels(self) -> int:
        return int(self.samples.shape[0])

    @property
    def frames(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration_seconds(self) -> float:
        return self.frames / self.sample_rate

    def channel(self, index: int) -> np.ndarray:
        """Return the samples of a single channel."""
        return self.samples[index]


@dataclass(frozen=True)
class WaveformEnvelope:
    """Fixed-length amplitude summary, each point in [0, 100]."""
    samples: tuple[float, ...]

    @property
    def length(self) -> int:
        return len(self.samples)

    def to_list(self) -> list[float]:
        return list(self.samples)


@dataclass(frozen=True)
class CompressedAudioArtifact:
    """WAV payload produced by the compressor."""
    data: bytes
    sample_rate: int
    bit_depth: int
    channels: int
    frames: int
    mime_type: str = WAV_MIME_TYPE

    @property
    def duration_seconds(self) -> float:
        return self.frames / self.sample_rate

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class PreparedUpload:
    """Inputs for the storage/upload collaborator."""
    audio: bytes
    mime_type: str
    duration_seconds: float
    waveform: list[float]
    sample_rate: Optional[int] = None
    bit_depth: Optional[int] = None
