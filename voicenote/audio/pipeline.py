"""Voice-note capture-to-storage pipeline orchestrator."""
import asyncio
import time
from typing import Optional
from pydantic import ValidationError
from voicenote.audio.compress import compress_recording, uncompressed_size
from voicenote.audio.decode import decode_audio_async
from voicenote.audio.models import CompressedAudioArtifact, PreparedUpload, WaveformEnvelope
from voicenote.audio.schemas import AudioMessageMetadata
from voicenote.audio.waveform import extract_waveform
from voicenote.core.config import settings
from voicenote.core.errors import AudioPipelineError, UploadValidationError
from voicenote.core.logging import logger


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000


async def compress(
    data: bytes,
    target_sample_rate: Optional[int] = None,
    target_bit_depth: Optional[int] = None
) -> CompressedAudioArtifact:
    """
    Decode an audio blob and re-encode it at a lower rate/bit depth.

    Args:
        data: Raw bytes of the recorded blob
        target_sample_rate: Output rate (defaults to config value)
        target_bit_depth: Output resolution (defaults to config value)

    Returns:
        CompressedAudioArtifact with WAV bytes
    """
    if target_sample_rate is None:
        target_sample_rate = settings.target_sample_rate
    if target_bit_depth is None:
        target_bit_depth = settings.target_bit_depth

    start_time = time.perf_counter()
    try:
        recording = await decode_audio_async(data)
        artifact = await asyncio.to_thread(
            compress_recording, recording, target_sample_rate, target_bit_depth
        )
    except AudioPipelineError as e:
        logger.warning(f"Compression failed after {_elapsed_ms(start_time):.1f}ms: {e}")
        raise

    original = uncompressed_size(recording, target_bit_depth)
    logger.info(
        f"Compressed {len(data)} byte blob to {artifact.size} bytes "
        f"({artifact.size / original:.0%} of uncompressed) in {_elapsed_ms(start_time):.1f}ms"
    )
    return artifact


async def waveform(data: bytes, samples_count: Optional[int] = None) -> WaveformEnvelope:
    """
    Decode an audio blob and extract its waveform envelope.

    Args:
        data: Raw bytes of an audio blob (original or compressed)
        samples_count: Envelope length (defaults to config value)

    Returns:
        WaveformEnvelope of exactly ``samples_count`` points
    """
    if samples_count is None:
        samples_count = settings.waveform_samples

    start_time = time.perf_counter()
    try:
        recording = await decode_audio_async(data)
    except AudioPipelineError as e:
        logger.warning(f"Waveform extraction failed: {e}")
        raise

    envelope = extract_waveform(recording, samples_count=samples_count, scale=settings.waveform_scale)
    logger.debug(f"Extracted {envelope.length}-point waveform in {_elapsed_ms(start_time):.1f}ms")
    return envelope


def validate_metadata(
    duration_seconds: float,
    envelope: WaveformEnvelope,
    mime_type: str,
    require_destination: bool = False,
    **destinations: Optional[str]
) -> AudioMessageMetadata:
    """
    Check prepared upload metadata against the storage contract.

    Raises:
        UploadValidationError: If any rule is violated
    """
    try:
        return AudioMessageMetadata.model_validate(
            {
                "duration": duration_seconds,
                "waveform": envelope.to_list(),
                "mime_type": mime_type,
                **destinations,
            },
            context={"require_destination": require_destination},
        )
    except ValidationError as e:
        raise UploadValidationError(
            "Prepared audio failed upload validation",
            errors=e.errors(include_url=False, include_context=False, include_input=False)
        ) from e


async def prepare_upload(
    data: bytes,
    samples_count: Optional[int] = None,
    reencode: bool = True,
    mime_type: Optional[str] = None,
    target_sample_rate: Optional[int] = None,
    target_bit_depth: Optional[int] = None
) -> PreparedUpload:
    """
    Prepare the inputs for the storage/upload collaborator.

    The blob is decoded once; compression and envelope extraction run
    concurrently. Either a complete upload is returned or an error is
    raised, never a partial artifact.

    Args:
        data: Raw bytes of the recorded blob
        samples_count: Envelope length (defaults to config value)
        reencode: Re-encode the audio as compact WAV before upload
        mime_type: MIME type of ``data`` when it is uploaded as-is
        target_sample_rate: Output rate when compressing
        target_bit_depth: Output resolution when compressing

    Returns:
        PreparedUpload with audio bytes, mime type, duration and waveform
    """
    if samples_count is None:
        samples_count = settings.waveform_samples
    if target_sample_rate is None:
        target_sample_rate = settings.target_sample_rate
    if target_bit_depth is None:
        target_bit_depth = settings.target_bit_depth

    if samples_count < settings.min_waveform_points:
        raise UploadValidationError(
            f"Waveform needs at least {settings.min_waveform_points} points, got {samples_count}",
            errors=[{
                "type": "too_short",
                "loc": ("waveform",),
                "msg": "Waveform data is required",
            }]
        )

    start_time = time.perf_counter()
    try:
        recording = await decode_audio_async(data)

        if reencode:
            artifact, envelope = await asyncio.gather(
                asyncio.to_thread(compress_recording, recording, target_sample_rate, target_bit_depth),
                asyncio.to_thread(extract_waveform, recording, samples_count, settings.waveform_scale),
            )
            upload = PreparedUpload(
                audio=artifact.data,
                mime_type=artifact.mime_type,
                duration_seconds=artifact.duration_seconds,
                waveform=envelope.to_list(),
                sample_rate=artifact.sample_rate,
                bit_depth=artifact.bit_depth
            )
        else:
            envelope = extract_waveform(recording, samples_count, settings.waveform_scale)
            upload = PreparedUpload(
                audio=data,
                mime_type=mime_type or "application/octet-stream",
                duration_seconds=recording.duration_seconds,
                waveform=envelope.to_list(),
                sample_rate=recording.sample_rate
            )

        validate_metadata(upload.duration_seconds, envelope, upload.mime_type)
    except AudioPipelineError as e:
        logger.warning(f"Upload preparation failed after {_elapsed_ms(start_time):.1f}ms: {e}")
        raise

    logger.info(
        f"Prepared upload: {len(upload.audio)} bytes, {upload.duration_seconds:.2f}s, "
        f"{len(upload.waveform)} waveform points in {_elapsed_ms(start_time):.1f}ms"
    )
    return upload
