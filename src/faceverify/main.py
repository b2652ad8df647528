"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from faceverify.api.routes import router
from faceverify.config import Settings, get_settings
from faceverify.errors import FaceServiceError, FaceVerifyError
from faceverify.ml.inference import InferencePool
from faceverify.ml.model_manager import OnnxModelManager
from faceverify.pipeline import FacePipeline
from faceverify.storage.repository import SqlEmbeddingRepository

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings
    configure_logging(settings)

    logger.info(
        "Starting FaceVerify (device=%s, max_concurrent=%s, model=%s, threshold=%s)",
        settings.device,
        settings.max_concurrent,
        settings.model_path,
        settings.match_threshold,
    )

    inference_pool = InferencePool(settings)
    model_manager = OnnxModelManager(settings)
    repository = SqlEmbeddingRepository(settings.database_url)
    repository.create_tables()

    app.state.inference_pool = inference_pool
    app.state.model_manager = model_manager
    app.state.pipeline = FacePipeline.from_settings(settings, model_manager, repository)

    if settings.warmup_on_startup:
        try:
            await inference_pool.run(model_manager.warm_up)
        except FaceVerifyError:
            # Encode/compare keep failing with the same error; health stays up.
            logger.exception("Model warm-up failed")

    logger.info("FaceVerify ready")
    yield

    logger.info("Shutting down FaceVerify")
    inference_pool.shutdown()
    model_manager.shutdown()
    repository.close()
    logger.info("FaceVerify shutdown complete")


async def face_verify_error_handler(request: Request, exc: FaceVerifyError) -> JSONResponse:
    """Render pipeline errors as {success, error, detail[, violations]}."""
    if isinstance(exc, FaceServiceError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, **exc.to_dict()},
        headers=exc.headers,
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="FaceVerify",
        description="Face embedding extraction and verification API",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(FaceVerifyError, face_verify_error_handler)  # type: ignore[arg-type]
    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Serve the application with uvicorn."""
    settings = get_settings()
    uvicorn.run("faceverify.main:app", host=settings.host, port=settings.port)
