"""REST endpoints for voice-note compression, waveforms and upload preparation."""
import base64
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from voicenote.audio import pipeline
from voicenote.audio.models import WAV_MIME_TYPE
from voicenote.audio.schemas import ErrorResponse, PreparedUploadResponse, WaveformResponse
from voicenote.core.config import settings
from voicenote.core.errors import (
    AudioPipelineError,
    DecodeError,
    RenderError,
    UnsupportedFormatError,
    UploadValidationError,
)
from voicenote.core.logging import logger
from voicenote.services.rate_limit import RateLimitResult, rate_limiter

router = APIRouter(prefix="/audio", tags=["audio"])

_ERROR_STATUS = {
    DecodeError: 400,
    UnsupportedFormatError: 415,
    RenderError: 422,
    UploadValidationError: 422,
}


def client_identity(request: Request) -> str:
    """User id header, else client address, else anonymous."""
    user_id = request.headers.get("x-user-id")
    if user_id:
        return user_id
    if request.client and request.client.host:
        return request.client.host
    return "anonymous"


async def enforce_rate_limit(request: Request, response: Response) -> Optional[RateLimitResult]:
    """Meter submission requests per caller identity."""
    if not settings.rate_limit_enabled:
        return None

    result = rate_limiter.check(
        client_identity(request),
        settings.rate_limit_requests,
        settings.rate_limit_window_seconds
    )
    if not result.allowed:
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded. Please try again in {result.reset_after_seconds} seconds.",
            headers=result.headers()
        )
    response.headers.update(result.headers())
    return result


async def read_audio_body(request: Request) -> bytes:
    """Read the raw request body as the audio blob."""
    data = await request.body()
    if not data:
        raise HTTPException(status_code=400, detail="Request body must contain audio data")
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"Audio exceeds {settings.max_upload_bytes} bytes"
        )
    return data


def pipeline_error_response(error: Exception, limit: Optional[RateLimitResult] = None) -> JSONResponse:
    """Translate a pipeline failure into an HTTP error payload."""
    status_code = 400
    for error_type, code in _ERROR_STATUS.items():
        if isinstance(error, error_type):
            status_code = code
            break

    details = error.errors if isinstance(error, UploadValidationError) else []
    body = ErrorResponse(error=type(error).__name__, message=str(error), details=details)
    headers = limit.headers() if limit is not None else None
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


@router.post("/waveform", response_model=WaveformResponse)
async def audio_waveform(
    samples: Optional[int] = Query(default=None, ge=1, le=10000),
    data: bytes = Depends(read_audio_body)
):
    """
    Compute the waveform envelope of an uploaded blob.

    Args:
        samples: Envelope length (defaults to config value)

    Returns:
        Envelope values in [0, 100]
    """
    try:
        envelope = await pipeline.waveform(data, samples_count=samples)
    except AudioPipelineError as e:
        return pipeline_error_response(e)

    return WaveformResponse(waveform=envelope.to_list(), length=envelope.length)


@router.post("/compress")
async def audio_compress(
    sample_rate: Optional[int] = Query(default=None),
    bit_depth: Optional[int] = Query(default=None),
    data: bytes = Depends(read_audio_body),
    limit: Optional[RateLimitResult] = Depends(enforce_rate_limit)
):
    """
    Re-encode an uploaded blob as compact WAV.

    Returns:
        ``audio/wav`` bytes with the render parameters in response headers
    """
    try:
        artifact = await pipeline.compress(data, sample_rate, bit_depth)
    except AudioPipelineError as e:
        return pipeline_error_response(e, limit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    headers = {
        "X-Audio-Sample-Rate": str(artifact.sample_rate),
        "X-Audio-Bit-Depth": str(artifact.bit_depth),
        "X-Audio-Duration": f"{artifact.duration_seconds:.3f}",
    }
    if limit is not None:
        headers.update(limit.headers())
    return Response(content=artifact.data, media_type=WAV_MIME_TYPE, headers=headers)


@router.post("/prepare", response_model=PreparedUploadResponse)
async def audio_prepare(
    request: Request,
    samples: Optional[int] = Query(default=None, ge=1, le=10000),
    reencode: bool = Query(default=True),
    data: bytes = Depends(read_audio_body),
    limit: Optional[RateLimitResult] = Depends(enforce_rate_limit)
):
    """
    Compress a recording and compute its waveform for upload.

    Returns:
        Base64 audio plus the metadata the storage layer expects
    """
    try:
        upload = await pipeline.prepare_upload(
            data,
            samples_count=samples,
            reencode=reencode,
            mime_type=request.headers.get("content-type")
        )
    except AudioPipelineError as e:
        return pipeline_error_response(e, limit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Prepared upload for {client_identity(request)}: {len(upload.audio)} bytes")

    return PreparedUploadResponse(
        audio_base64=base64.b64encode(upload.audio).decode("ascii"),
        mime_type=upload.mime_type,
        duration_seconds=upload.duration_seconds,
        waveform=upload.waveform,
        size_bytes=len(upload.audio),
        sample_rate=upload.sample_rate,
        bit_depth=upload.bit_depth
    )
