"""Audio compression: anti-alias filter, offline resample and WAV re-encode."""
from voicenote.audio.decode import decode_audio
from voicenote.audio.dsp.filters import apply_gain, apply_lowpass
from voicenote.audio.dsp.resample import render_length, resample
from voicenote.audio.models import AudioRecording, CompressedAudioArtifact
from voicenote.audio.wav import HEADER_SIZE, SUPPORTED_BIT_DEPTHS, encode_wav
from voicenote.core.config import settings
from voicenote.core.errors import RenderError
from voicenote.core.logging import logger

DEFAULT_TARGET_SAMPLE_RATE = 22050
DEFAULT_TARGET_BIT_DEPTH = 16
NOISE_GATE_GAIN = 1.0


def _validate_render(recording: AudioRecording, target_sample_rate: int) -> None:
    if recording.frames == 0 or recording.duration_seconds <= 0:
        raise RenderError("Cannot render a recording with no duration")
    if not 1 <= recording.channels <= settings.max_channels:
        raise RenderError(
            f"Unsupported channel count {recording.channels} (max {settings.max_channels})"
        )
    if not settings.min_render_sample_rate <= target_sample_rate <= settings.max_render_sample_rate:
        raise RenderError(
            f"Target sample rate {target_sample_rate} Hz outside "
            f"[{settings.min_render_sample_rate}, {settings.max_render_sample_rate}]"
        )


def render_offline(recording: AudioRecording, target_sample_rate: int) -> AudioRecording:
    """
    Render a recording through the filter chain at a new sample rate.

    The chain is low-pass (cutoff at the target Nyquist) -> unity gain ->
    resample. Filtering runs at the source rate, before rate conversion.

    Args:
        recording: Source audio
        target_sample_rate: Output rate in Hz

    Returns:
        New AudioRecording with ``ceil(duration * target_sample_rate)`` frames

    Raises:
        RenderError: Invalid duration, channel count or rate, or the render failed
    """
    _validate_render(recording, target_sample_rate)

    try:
        filtered = apply_lowpass(
            recording.samples,
            cutoff_hz=target_sample_rate / 2.0,
            sample_rate=recording.sample_rate,
            q_db=settings.lowpass_q_db
        )
        gated = apply_gain(filtered, NOISE_GATE_GAIN)
        rendered = resample(gated, recording.sample_rate, target_sample_rate)
    except (MemoryError, ValueError, FloatingPointError) as e:
        raise RenderError(f"Offline render failed: {e}") from e

    expected = render_length(recording.frames, recording.sample_rate, target_sample_rate)
    if rendered.shape != (recording.channels, expected):
        raise RenderError(f"Render produced shape {rendered.shape}, expected {(recording.channels, expected)}")

    return AudioRecording(samples=rendered, sample_rate=target_sample_rate)


def compress_recording(
    recording: AudioRecording,
    target_sample_rate: int = DEFAULT_TARGET_SAMPLE_RATE,
    target_bit_depth: int = DEFAULT_TARGET_BIT_DEPTH
) -> CompressedAudioArtifact:
    """
    Lower the sample rate and bit depth of a recording and encode it as WAV.

    Args:
        recording: Decoded source audio
        target_sample_rate: Output rate in Hz
        target_bit_depth: Output resolution (8, 16 or 24)

    Returns:
        CompressedAudioArtifact holding the WAV bytes
    """
    if target_bit_depth not in SUPPORTED_BIT_DEPTHS:
        raise ValueError(f"Unsupported bit depth {target_bit_depth}, expected one of {SUPPORTED_BIT_DEPTHS}")

    rendered = render_offline(recording, target_sample_rate)
    data = encode_wav(rendered, bit_depth=target_bit_depth)

    logger.debug(
        f"Compressed {recording.sample_rate} Hz/{recording.frames} frames -> "
        f"{target_sample_rate} Hz/{target_bit_depth}-bit, {len(data)} bytes"
    )

    return CompressedAudioArtifact(
        data=data,
        sample_rate=target_sample_rate,
        bit_depth=target_bit_depth,
        channels=rendered.channels,
        frames=rendered.frames
    )


def compress_audio_blob(
    data: bytes,
    target_sample_rate: int = DEFAULT_TARGET_SAMPLE_RATE,
    target_bit_depth: int = DEFAULT_TARGET_BIT_DEPTH
) -> CompressedAudioArtifact:
    """Decode an audio blob and compress it."""
    return compress_recording(decode_audio(data), target_sample_rate, target_bit_depth)


def uncompressed_size(recording: AudioRecording, bit_depth: int) -> int:
    """Size in bytes of the recording encoded as WAV at its own rate."""
    return HEADER_SIZE + recording.frames * recording.channels * (bit_depth // 8)
