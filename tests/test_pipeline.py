"""Unit tests for the async pipeline and upload metadata validation."""
import asyncio
import logging
import pytest
import numpy as np
from pydantic import ValidationError
from voicenote.audio import pipeline
from voicenote.audio.models import AudioRecording, WaveformEnvelope
from voicenote.audio.schemas import AudioMessageMetadata
from voicenote.audio.wav import encode_wav, read_wav
from voicenote.core.config import settings
from voicenote.core.errors import DecodeError, UnsupportedFormatError, UploadValidationError


def tone_blob(duration=1.0, sample_rate=44100, bit_depth=16, channels=1):
    t = np.arange(int(sample_rate * duration)) / sample_rate
    wave = 0.3 * np.sin(2 * np.pi * 440 * t)
    samples = np.tile(wave, (channels, 1)).astype(np.float32)
    return encode_wav(AudioRecording(samples=samples, sample_rate=sample_rate), bit_depth=bit_depth)


def test_pipeline_compress_uses_config_defaults():
    """Test compression falls back to the configured rate and bit depth."""
    artifact = asyncio.run(pipeline.compress(tone_blob()))

    assert artifact.sample_rate == settings.target_sample_rate
    assert artifact.bit_depth == settings.target_bit_depth
    assert artifact.frames == settings.target_sample_rate


def test_pipeline_waveform_on_original_and_compressed():
    """Test the extractor runs on both the original and compressed blob."""
    blob = tone_blob()
    artifact = asyncio.run(pipeline.compress(blob, target_sample_rate=22050))

    original = asyncio.run(pipeline.waveform(blob))
    compressed = asyncio.run(pipeline.waveform(artifact.data))

    assert original.length == compressed.length == settings.waveform_samples
    assert np.mean(compressed.to_list()) == pytest.approx(np.mean(original.to_list()), rel=0.03)


def test_pipeline_propagates_decode_errors():
    """Test decode failures reach the caller unchanged."""
    with pytest.raises(UnsupportedFormatError):
        asyncio.run(pipeline.compress(b"garbage bytes that are not audio " * 10))
    with pytest.raises(DecodeError):
        asyncio.run(pipeline.waveform(b""))


def test_prepare_upload_compressed():
    """Test preparing a complete upload from a recorded blob."""
    upload = asyncio.run(pipeline.prepare_upload(tone_blob(channels=2), samples_count=64))

    assert upload.mime_type == "audio/wav"
    assert upload.duration_seconds == pytest.approx(1.0)
    assert len(upload.waveform) == 64
    assert all(0 <= v <= 100 for v in upload.waveform)
    contents = read_wav(upload.audio)
    assert contents.sample_rate == settings.target_sample_rate
    assert contents.channels == 2


def test_prepare_upload_pass_through():
    """Test preparing an upload without re-encoding."""
    blob = tone_blob(sample_rate=16000)

    upload = asyncio.run(pipeline.prepare_upload(blob, reencode=False, mime_type="audio/x-wav"))

    assert upload.audio == blob
    assert upload.mime_type == "audio/x-wav"
    assert upload.sample_rate == 16000
    assert upload.bit_depth is None


def test_prepare_upload_rejects_short_recording():
    """Test recordings below the minimum duration fail validation."""
    with pytest.raises(UploadValidationError) as exc_info:
        asyncio.run(pipeline.prepare_upload(tone_blob(duration=0.2)))

    assert exc_info.value.errors
    assert exc_info.value.errors[0]["loc"] == ("duration",)


def test_prepare_upload_rejects_sparse_waveform():
    """Test envelopes below the minimum point count fail validation."""
    with pytest.raises(UploadValidationError):
        asyncio.run(pipeline.prepare_upload(tone_blob(), samples_count=5))


def test_prepare_upload_checks_waveform_points_before_decoding():
    """Test a too-small envelope length is rejected without touching the audio."""
    with pytest.raises(UploadValidationError) as exc_info:
        asyncio.run(pipeline.prepare_upload(b"not audio at all " * 10, samples_count=5))

    assert exc_info.value.errors[0]["loc"] == ("waveform",)


def test_prepare_upload_logs_failures(caplog):
    """Test preparation failures are logged at WARNING and re-raised."""
    with caplog.at_level(logging.WARNING):
        with pytest.raises(UnsupportedFormatError):
            asyncio.run(pipeline.prepare_upload(b"garbage bytes that are not audio " * 10))

    assert any(
        record.levelno == logging.WARNING and "Upload preparation failed" in record.getMessage()
        for record in caplog.records
    )


def test_metadata_requires_destination_when_asked():
    """Test destination rules for stored audio messages."""
    envelope = WaveformEnvelope(samples=tuple([10.0] * 20))

    with pytest.raises(UploadValidationError):
        pipeline.validate_metadata(2.0, envelope, "audio/wav", require_destination=True)

    metadata = pipeline.validate_metadata(
        2.0, envelope, "audio/wav", require_destination=True, chat_id="user-42"
    )
    assert metadata.chat_id == "user-42"


def test_metadata_rejects_out_of_range_values():
    """Test duration and waveform value limits."""
    with pytest.raises(ValidationError):
        AudioMessageMetadata(duration=61.0, waveform=[10.0] * 20)
    with pytest.raises(ValidationError):
        AudioMessageMetadata(duration=5.0, waveform=[10.0] * 19 + [101.0])

    metadata = AudioMessageMetadata(duration=5.0, waveform=[0.0] * 10 + [100.0])
    assert metadata.mime_type == "audio/wav"
