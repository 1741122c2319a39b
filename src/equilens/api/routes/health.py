"""Health check endpoint."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from equilens.api.deps import get_engine
from equilens.config import settings
from equilens.services.engine import FFmpegEngine

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model.

    ``status`` is "degraded" while no Gemini API key is configured, since
    every upload and analysis request would fail.
    """

    status: str
    version: str
    gemini_configured: bool
    engine_loaded: bool
    engine_version: str | None = None


@router.get("/health", response_model=HealthResponse)
async def health_check(engine: FFmpegEngine = Depends(get_engine)) -> HealthResponse:
    """Report configuration and video processor readiness.

    The engine is loaded lazily by the first compression, so
    ``engine_loaded`` is false on a fresh process.
    """
    from equilens import __version__

    configured = bool(settings.gemini_api_key)
    return HealthResponse(
        status="healthy" if configured else "degraded",
        version=__version__,
        gemini_configured=configured,
        engine_loaded=engine.loaded,
        engine_version=engine.version if engine.loaded else None,
    )
