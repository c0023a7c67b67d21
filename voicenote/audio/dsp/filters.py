"""Anti-alias low-pass filter and gain stage for the offline render chain."""
import numpy as np
from scipy.signal import lfilter
from voicenote.core.logging import logger


def lowpass_coefficients(cutoff_hz: float, sample_rate: int, q_db: float = 1.0) -> tuple[np.ndarray, np.ndarray]:
    """
    Second-order low-pass coefficients (RBJ cookbook, Q expressed in dB).

    The cutoff is clamped to [0, Nyquist]. At Nyquist the filter is the
    identity, at 0 it silences the signal.

    Args:
        cutoff_hz: Cutoff frequency in Hz
        sample_rate: Rate of the signal being filtered
        q_db: Resonance in dB

    Returns:
        (b, a) normalised so that a[0] == 1
    """
    nyquist = sample_rate / 2.0
    normalized = min(max(cutoff_hz / nyquist, 0.0), 1.0)

    if normalized == 1.0:
        return np.array([1.0, 0.0, 0.0]), np.array([1.0, 0.0, 0.0])
    if normalized == 0.0:
        return np.array([0.0, 0.0, 0.0]), np.array([1.0, 0.0, 0.0])

    w0 = np.pi * normalized
    cos_w0 = np.cos(w0)
    alpha = np.sin(w0) / (2.0 * 10 ** (q_db / 20.0))

    b = np.array([(1.0 - cos_w0) / 2.0, 1.0 - cos_w0, (1.0 - cos_w0) / 2.0])
    a = np.array([1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha])
    return b / a[0], a / a[0]


def apply_lowpass(samples: np.ndarray, cutoff_hz: float, sample_rate: int, q_db: float = 1.0) -> np.ndarray:
    """
    Low-pass every channel of a (channels, frames) buffer.

    Returns a new array; the input is left untouched.
    """
    b, a = lowpass_coefficients(cutoff_hz, sample_rate, q_db)
    if b[0] == 1.0 and not b[1:].any() and not a[1:].any():
        logger.debug(f"Low-pass at {cutoff_hz:.0f} Hz is above Nyquist of {sample_rate} Hz, passing through")
        return samples.astype(np.float32, copy=True)
    filtered = lfilter(b, a, samples.astype(np.float64), axis=-1)
    return filtered.astype(np.float32)


def apply_gain(samples: np.ndarray, gain: float = 1.0) -> np.ndarray:
    """
    Constant gain stage, reserved for noise gating.

    At unity gain this is an exact pass-through copy.
    """
    if gain == 1.0:
        return samples.astype(np.float32, copy=True)
    return (samples * gain).astype(np.float32)
