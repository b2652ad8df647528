"""API route definitions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status

from faceverify.api.middleware import verify_api_key
from faceverify.api.schemas import (
    CompareResponse,
    EncodeResponse,
    ErrorResponse,
    HealthResponse,
)
from faceverify.errors import MissingStoredEmbedding, NoImageUploaded, UnsupportedMediaType

if TYPE_CHECKING:
    from faceverify.ml.inference import InferencePool
    from faceverify.pipeline import FacePipeline

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])

ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/png"})

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
    status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    status.HTTP_504_GATEWAY_TIMEOUT: {"model": ErrorResponse},
}


def _get_pipeline(request: Request) -> FacePipeline:
    pipeline: FacePipeline = request.app.state.pipeline
    return pipeline


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _check_upload(image: UploadFile | None) -> UploadFile:
    if image is None or not image.filename:
        raise NoImageUploaded()
    if image.content_type not in ALLOWED_CONTENT_TYPES:
        raise UnsupportedMediaType()
    return image


@router.post(
    "/encode",
    response_model=EncodeResponse,
    responses=_ERROR_RESPONSES,
    summary="Extract and store a face embedding",
)
async def encode_face(
    request: Request,
    image: Annotated[UploadFile | None, File(description="JPEG or PNG face photo")] = None,
) -> EncodeResponse:
    """Extract a face embedding from an uploaded image and store it."""
    upload = _check_upload(image)
    data = await upload.read()

    pool = _get_inference_pool(request)
    pipeline = _get_pipeline(request)
    # Only extraction is time-bounded; a timed-out request never reaches storage.
    embedding = await pool.run(pipeline.embed, data)
    record = await pool.run(pipeline.store, embedding, bounded=False)
    return EncodeResponse(id=record.id, embedding=record.embedding, created_at=record.created_at)


@router.post(
    "/compare",
    response_model=CompareResponse,
    responses=_ERROR_RESPONSES,
    summary="Compare a face against a stored embedding",
)
async def compare_face(
    request: Request,
    image: Annotated[UploadFile | None, File(description="JPEG or PNG face photo")] = None,
    stored_embedding: Annotated[
        str | None, Form(alias="storedEmbedding", description="Reference embedding as a JSON array")
    ] = None,
    threshold: Annotated[float | None, Form(ge=-1.0, le=1.0, description="Match threshold")] = None,
) -> CompareResponse:
    """Compare the face in an uploaded image with a reference embedding."""
    upload = _check_upload(image)
    if not stored_embedding or not stored_embedding.strip():
        raise MissingStoredEmbedding()
    data = await upload.read()

    result = await _get_inference_pool(request).run(
        _get_pipeline(request).compare, data, stored_embedding, threshold
    )
    return CompareResponse(is_match=result.is_match, similarity=result.similarity)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service liveness; does not require the model to be loaded."""
    pipeline = _get_pipeline(request)
    pool = _get_inference_pool(request)
    return HealthResponse(
        status="ok",
        model_loaded=pipeline.extractor.is_ready,
        model_path=str(request.app.state.model_manager.model_path),
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )
