"""Unit tests for the decode primitive."""
import io
import wave
import asyncio
import pytest
import numpy as np
import soundfile as sf
from voicenote.audio.decode import decode_audio, decode_audio_async
from voicenote.audio.models import AudioRecording
from voicenote.audio.wav import encode_wav, is_float_tagged_integer_wav
from voicenote.core.errors import DecodeError, UnsupportedFormatError


def tone(frequency=440.0, duration=1.0, sample_rate=16000, amplitude=0.5):
    t = np.arange(int(sample_rate * duration)) / sample_rate
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


def test_decode_canonical_wav_from_encoder():
    """Test decoding a WAV produced by the encoder (format tag 3, integer payload)."""
    source = AudioRecording(samples=np.vstack([tone(), tone(880.0)]), sample_rate=16000)
    blob = encode_wav(source, bit_depth=24)

    recording = decode_audio(blob)

    assert recording.sample_rate == 16000
    assert recording.channels == 2
    assert recording.frames == 16000
    assert np.allclose(recording.samples, source.samples, atol=1e-6)


def test_decode_standard_pcm_wav():
    """Test decoding a plain 16-bit PCM WAV written by the wave module."""
    samples = (tone() * 32767).astype(np.int16)
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(16000)
        wav_file.writeframes(samples.tobytes())

    recording = decode_audio(buf.getvalue())

    assert recording.sample_rate == 16000
    assert recording.channels == 1
    assert recording.frames == len(samples)
    assert np.allclose(recording.channel(0), tone(), atol=1e-3)


def test_decode_streamed_wav_with_placeholder_sizes():
    """Test a recorder WAV whose RIFF and data sizes were never filled in."""
    samples = (tone() * 32767).astype(np.int16)
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(16000)
        wav_file.writeframes(samples.tobytes())
    blob = bytearray(buf.getvalue())
    blob[4:8] = b"\xff\xff\xff\xff"
    blob[40:44] = b"\xff\xff\xff\xff"

    assert not is_float_tagged_integer_wav(bytes(blob))

    recording = decode_audio(bytes(blob))

    assert recording.sample_rate == 16000
    assert recording.frames == 16000
    assert np.allclose(recording.channel(0), tone(), atol=1e-3)


def test_decode_flac_through_soundfile():
    """Test that compressed codecs are decoded by libsndfile."""
    stereo = np.stack([tone(), tone(220.0)], axis=1)
    buf = io.BytesIO()
    sf.write(buf, stereo, 16000, format="FLAC")

    recording = decode_audio(buf.getvalue())

    assert recording.sample_rate == 16000
    assert recording.channels == 2
    assert recording.frames == 16000
    assert recording.samples.dtype == np.float32
    assert np.allclose(recording.samples, stereo.T, atol=1e-3)


def test_decode_empty_data():
    """Test that empty input raises DecodeError."""
    with pytest.raises(DecodeError):
        decode_audio(b"")


def test_decode_unrecognised_format():
    """Test that bytes the decoder cannot identify raise UnsupportedFormatError."""
    with pytest.raises(UnsupportedFormatError):
        decode_audio(b"this is definitely not audio data " * 20)


def test_decode_truncated_wav():
    """Test that a truncated WAV data chunk raises DecodeError."""
    blob = encode_wav(AudioRecording(samples=tone(), sample_rate=16000), bit_depth=16)

    with pytest.raises(DecodeError):
        decode_audio(blob[:1000])


def test_decode_header_only_wav():
    """Test that a WAV without frames raises DecodeError."""
    blob = encode_wav(AudioRecording(samples=np.zeros(0, dtype=np.float32), sample_rate=16000))

    with pytest.raises(DecodeError):
        decode_audio(blob)


def test_decode_async_matches_sync():
    """Test the awaitable decode wrapper."""
    blob = encode_wav(AudioRecording(samples=tone(), sample_rate=16000), bit_depth=16)

    recording = asyncio.run(decode_audio_async(blob))

    assert np.array_equal(recording.samples, decode_audio(blob).samples)
