"""
AInspire HTTP service.

create_app builds the application around an AppServices bundle (the
pipeline, its classifier and decoder, the credential store). Tests hand
in a bundle made of fakes; the server builds one from Settings.

Run locally with:
    uvicorn ainspire.main:app --reload

Queues and the collection live in this process, so run one worker only.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.dependencies import AppServices, build_services
from .api.routes import credential, health, images, videos
from .config.settings import Settings, get_settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup state; on shutdown stop extraction so no decode session outlives the process."""
    services: AppServices = app.state.services
    settings = services.settings

    logger.info(
        "AInspire API starting",
        extra={
            "version": __version__,
            "mock_mode": {
                "classifier": settings.classifier_mock_mode,
                "video": settings.video_mock_mode,
            },
            "credential_configured": services.has_credential,
        }
    )

    problems = settings.validate_required_fields()
    if problems:
        logger.error(
            "Invalid configuration",
            extra={"problems": problems}
        )

    yield

    await services.collector.shutdown()
    logger.info("AInspire API shutting down")


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[AppServices] = None,
) -> FastAPI:
    """Build the app. services defaults to a bundle assembled from settings."""
    settings = settings or (services.settings if services else get_settings())
    logging.getLogger().setLevel(settings.log_level.upper())

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        description="""
        Build a reference library of film stills.

        ## Workflow

        1. **Set API key**: `PUT /api/v1/credential`
        2. **Upload videos**: `POST /api/v1/videos`
           - Frames are sampled every few seconds and classified in the background
        3. **Watch progress**: `GET /api/v1/status`
        4. **Browse**: `GET /api/v1/images?q=...&composition=Close-Up`
        5. **Keep it**: `GET /api/v1/images/export`, `POST /api/v1/images/import`
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.services = services or build_services(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        credential.router,
        prefix="/api/v1/credential",
        tags=["Credential"],
    )

    app.include_router(
        videos.router,
        prefix="/api/v1",
        tags=["Pipeline"],
    )

    app.include_router(
        images.router,
        prefix="/api/v1/images",
        tags=["Images"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": settings.api_title,
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        # full details go to the log only
        logger.error(
            "Request failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error"
            }
        )

    logger.info(
        "Application ready",
        extra={
            "title": settings.api_title,
            "version": __version__,
        }
    )

    return app


def __getattr__(name: str):
    # uvicorn imports ainspire.main:app; build it on first access so that
    # importing create_app in tests doesn't spin up FFmpeg checks
    if name == "app":
        application = create_app()
        globals()["app"] = application
        return application
    raise AttributeError(name)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "ainspire.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
