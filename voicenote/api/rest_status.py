"""REST endpoints for health and status."""
from fastapi import APIRouter
from voicenote.core.config import settings
from voicenote.services.rate_limit import rate_limiter

VERSION = "0.1.0"

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        Status and version information
    """
    return {
        "status": "ok",
        "version": VERSION
    }


@router.get("/status")
async def status():
    """
    Pipeline defaults and metering state.

    Returns:
        Active audio defaults and the number of metered identities
    """
    return {
        "target_sample_rate": settings.target_sample_rate,
        "target_bit_depth": settings.target_bit_depth,
        "waveform_samples": settings.waveform_samples,
        "rate_limit": {
            "enabled": settings.rate_limit_enabled,
            "requests": settings.rate_limit_requests,
            "window_seconds": settings.rate_limit_window_seconds,
            "tracked_identities": len(rate_limiter),
        },
    }
