"""FastAPI application entrypoint."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from voicenote.api import rest_audio, rest_status
from voicenote.core.config import settings
from voicenote.core.logging import setup_logging

# Setup logging
setup_logging()

# Create FastAPI app
app = FastAPI(
    title="Voice Note Audio Backend",
    description="Voice-note compression, waveform extraction and upload preparation",
    version=rest_status.VERSION
)

# CORS middleware (allow frontend connections)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify allowed origins
    allow_credentials=False,  # Must be False when using "*" origins
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
)

# Include routers
app.include_router(rest_status.router)
app.include_router(rest_audio.router)


@app.on_event("startup")
async def startup_event():
    """Initialize on startup."""
    from voicenote.core.logging import logger
    from voicenote.services.rate_limit import prune_periodically, rate_limiter
    import asyncio
    import os

    port = os.getenv("PORT", settings.port)
    logger.info(f"Starting Voice Note Audio Backend on {settings.host}:{port}")
    logger.info(
        f"Compression target: {settings.target_sample_rate} Hz, {settings.target_bit_depth}-bit; "
        f"waveform: {settings.waveform_samples} points"
    )
    if settings.rate_limit_enabled:
        logger.info(
            f"Rate limit: {settings.rate_limit_requests} requests / {settings.rate_limit_window_seconds}s"
        )
        app.state.rate_limit_pruner = asyncio.create_task(
            prune_periodically(
                rate_limiter,
                interval_seconds=settings.rate_limit_prune_interval_seconds,
                max_age_seconds=settings.rate_limit_prune_interval_seconds
            )
        )
    else:
        logger.info("Rate limit disabled (set RATE_LIMIT_ENABLED=true to enable)")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    from voicenote.core.logging import logger
    pruner = getattr(app.state, "rate_limit_pruner", None)
    if pruner is not None:
        pruner.cancel()
    logger.info("Shutting down Voice Note Audio Backend")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "voicenote.main:app",
        host=settings.host,
        port=settings.port,
        reload=True
    )
