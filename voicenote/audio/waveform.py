"""Waveform envelope extraction for visualising recordings."""
import numpy as np
from voicenote.audio.decode import decode_audio
from voicenote.audio.models import AudioRecording, WaveformEnvelope

DEFAULT_SAMPLES_COUNT = 100
# Tunable: maps typical speech/music mean amplitudes onto most of 0-100.
WAVEFORM_SCALE = 400.0
WAVEFORM_MAX = 100.0


def block_means(channel: np.ndarray, samples_count: int) -> np.ndarray:
    """
    Mean absolute amplitude of ``samples_count`` contiguous blocks.

    Blocks are ``len(channel) // samples_count`` samples long and the trailing
    remainder is ignored. When the channel is shorter than ``samples_count``
    each sample forms its own block and the missing blocks read as silence.
    """
    magnitudes = np.abs(np.nan_to_num(channel.astype(np.float64), nan=0.0))
    total = len(magnitudes)
    block_size = total // samples_count

    if block_size == 0:
        means = np.zeros(samples_count, dtype=np.float64)
        means[:total] = magnitudes
        return means

    blocks = magnitudes[:block_size * samples_count].reshape(samples_count, block_size)
    return blocks.mean(axis=1)


def extract_waveform(
    recording: AudioRecording,
    samples_count: int = DEFAULT_SAMPLES_COUNT,
    scale: float = WAVEFORM_SCALE
) -> WaveformEnvelope:
    """
    Reduce a recording to a fixed-length amplitude envelope.

    Only the first channel is used.

    Args:
        recording: Decoded audio
        samples_count: Number of envelope points (>= 1)
        scale: Multiplier applied to each block's mean absolute amplitude

    Returns:
        WaveformEnvelope with exactly ``samples_count`` values in [0, 100]
    """
    if samples_count < 1:
        raise ValueError(f"samples_count must be >= 1, got {samples_count}")

    means = block_means(recording.channel(0), samples_count)
    normalized = np.minimum(WAVEFORM_MAX, np.maximum(0.0, means * scale))
    return WaveformEnvelope(samples=tuple(float(v) for v in normalized))


def blob_to_waveform(
    data: bytes,
    samples_count: int = DEFAULT_SAMPLES_COUNT,
    scale: float = WAVEFORM_SCALE
) -> WaveformEnvelope:
    """Decode an audio blob and extract its waveform envelope."""
    return extract_waveform(decode_audio(data), samples_count=samples_count, scale=scale)
