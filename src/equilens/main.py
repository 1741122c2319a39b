"""Main entry point for the EquiLens API server."""

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI

from equilens.api.deps import close_engine, init_job_manager
from equilens.api.errors import register_error_handlers
from equilens.api.routes import analyze, health, jobs, upload
from equilens.config import settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize resources on startup, clean up on shutdown."""
    settings.ensure_directories()
    init_job_manager(max_concurrent=settings.max_concurrent_jobs)
    yield
    await close_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="EquiLens",
        description="Show-jumping video analysis",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(jobs.router)
    app.include_router(upload.router)
    app.include_router(analyze.router)
    register_error_handlers(app)

    return app


app = create_app()


def main() -> None:
    """Run the application."""
    settings.ensure_directories()
    uvicorn.run(
        "equilens.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
