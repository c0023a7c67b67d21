"""Decode compressed audio blobs into float PCM recordings."""
import asyncio
import io
import numpy as np
import soundfile as sf
from voicenote.audio.models import AudioRecording
from voicenote.audio.wav import is_float_tagged_integer_wav, read_wav
from voicenote.core.errors import DecodeError, UnsupportedFormatError
from voicenote.core.logging import logger

# libsndfile error code for streams it cannot identify
SF_ERR_UNRECOGNISED_FORMAT = 1


def _is_unrecognised(exc: Exception) -> bool:
    code = getattr(exc, "code", None)
    if code is not None:
        return code == SF_ERR_UNRECOGNISED_FORMAT
    message = str(exc).lower()
    return "recognised" in message or "recognized" in message or "unknown format" in message


def _decode_with_soundfile(data: bytes) -> AudioRecording:
    try:
        with sf.SoundFile(io.BytesIO(data)) as audio_file:
            sample_rate = audio_file.samplerate
            frames = audio_file.read(dtype="float32", always_2d=True)
    except RuntimeError as e:
        # LibsndfileError and the older soundfile errors both derive from RuntimeError
        if _is_unrecognised(e):
            raise UnsupportedFormatError(f"Unsupported audio format: {e}") from e
        raise DecodeError(f"Failed to decode audio: {e}") from e
    except (ValueError, TypeError) as e:
        raise DecodeError(f"Failed to decode audio: {e}") from e

    # soundfile returns (frames, channels)
    return AudioRecording(samples=np.ascontiguousarray(frames.T), sample_rate=int(sample_rate))


def decode_audio(data: bytes) -> AudioRecording:
    """
    Decode an audio blob into a multi-channel float PCM recording.

    WAV blobs written by this service with format tag 3 over an integer
    payload are parsed directly; everything else, plain PCM WAV included,
    goes through libsndfile.

    Args:
        data: Raw bytes of the audio blob

    Returns:
        AudioRecording with samples shaped (channels, frames)

    Raises:
        DecodeError: Empty, truncated or corrupt input, or no audio frames
        UnsupportedFormatError: The codec is not recognised by the decoder
    """
    if not data:
        raise DecodeError("Received empty audio data")

    if is_float_tagged_integer_wav(data):
        contents = read_wav(data)
        recording = AudioRecording(samples=contents.samples, sample_rate=contents.sample_rate)
    else:
        recording = _decode_with_soundfile(data)

    if recording.frames == 0:
        raise DecodeError("Decoded audio contains no frames")

    logger.debug(
        f"Decoded {len(data)} bytes: {recording.channels}ch, {recording.sample_rate} Hz, "
        f"{recording.duration_seconds:.2f}s"
    )
    return recording


async def decode_audio_async(data: bytes) -> AudioRecording:
    """Decode without blocking the event loop."""
    return await asyncio.to_thread(decode_audio, data)
