"""Sample-rate conversion for offline rendering."""
from math import gcd
import numpy as np
from scipy.signal import resample_poly


def render_length(frames: int, source_rate: int, target_rate: int) -> int:
    """
    Number of output frames for a render at ``target_rate``.

    Equals ``ceil(duration_seconds * target_rate)``, computed on integers so
    that float rounding cannot add or drop a frame.
    """
    return -(-frames * target_rate // source_rate)


def fit_length(samples: np.ndarray, length: int) -> np.ndarray:
    """Trim or zero-pad the frame axis of a (channels, frames) buffer."""
    current = samples.shape[-1]
    if current == length:
        return samples
    if current > length:
        return samples[..., :length]
    padding = np.zeros(samples.shape[:-1] + (length - current,), dtype=samples.dtype)
    return np.concatenate([samples, padding], axis=-1)


def resample(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """
    Polyphase resampling of a (channels, frames) buffer.

    Args:
        samples: Input buffer at ``source_rate``
        source_rate: Input sample rate in Hz
        target_rate: Output sample rate in Hz

    Returns:
        float32 buffer with exactly ``render_length`` frames
    """
    length = render_length(samples.shape[-1], source_rate, target_rate)

    if source_rate == target_rate:
        return samples.astype(np.float32, copy=True)

    divisor = gcd(source_rate, target_rate)
    up = target_rate // divisor
    down = source_rate // divisor
    converted = resample_poly(samples.astype(np.float64), up, down, axis=-1)

    return np.ascontiguousarray(fit_length(converted, length), dtype=np.float32)
