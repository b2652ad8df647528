"""Typed error hierarchy for the face pipeline.

Every failure the pipeline can report is one of the classes below. Each class
carries a stable ``code`` (returned to API clients) and the HTTP status it maps
to. ``FaceValidationError`` subclasses mean the caller's input was rejected;
``FaceServiceError`` subclasses mean the service itself is broken or overloaded.
"""

from __future__ import annotations

from typing import ClassVar

from fastapi import status


class FaceVerifyError(Exception):
    """Base class for all pipeline errors."""

    code: str = "face_verify_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Face verification failed"
    headers: ClassVar[dict[str, str] | None] = None

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, object]:
        return {"error": self.code, "detail": self.message}


class FaceValidationError(FaceVerifyError):
    """The request input was rejected."""

    code = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class FaceServiceError(FaceVerifyError):
    """The service could not complete a valid request."""

    code = "internal_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class NoImageUploaded(FaceValidationError):
    code = "no_image_uploaded"
    default_message = "No image file uploaded"


class UnsupportedMediaType(FaceValidationError):
    code = "unsupported_media_type"
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    default_message = "Only JPEG and PNG images are allowed"


class Unauthorized(FaceValidationError):
    code = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid or missing API key"
    headers: ClassVar[dict[str, str] | None] = {"WWW-Authenticate": "Bearer"}


class MissingStoredEmbedding(FaceValidationError):
    code = "missing_stored_embedding"
    default_message = "storedEmbedding is required"


# ---------------------------------------------------------------------------
# Image quality
# ---------------------------------------------------------------------------


class ImageTooLarge(FaceValidationError):
    code = "image_too_large"
    status_code = status.HTTP_413_CONTENT_TOO_LARGE
    default_message = "Image file too large"


class ImageTooSmall(FaceValidationError):
    code = "image_too_small"
    default_message = "Image file too small or empty"


class ImageUnreadable(FaceValidationError):
    code = "image_unreadable"
    default_message = "Unable to read image file - it may be corrupted or in an unsupported format"


class TooDark(FaceValidationError):
    code = "too_dark"
    default_message = "Image is too dark - please retake photo in better lighting conditions"


class Overexposed(FaceValidationError):
    code = "overexposed"
    default_message = "Image is overexposed - please reduce lighting or avoid direct sunlight"


class QualityCheckFailed(FaceValidationError):
    """Several quality checks failed at once."""

    code = "quality_check_failed"

    def __init__(self, violations: list[FaceValidationError]) -> None:
        self.violations = tuple(violations)
        super().__init__(". ".join(v.message for v in self.violations))

    def to_dict(self) -> dict[str, object]:
        data = super().to_dict()
        data["violations"] = [v.to_dict() for v in self.violations]
        return data


# ---------------------------------------------------------------------------
# Face geometry
# ---------------------------------------------------------------------------


class NoFaceDetected(FaceValidationError):
    code = "no_face_detected"
    default_message = "No face detected in the image"


class FaceTooSmall(FaceValidationError):
    code = "face_too_small"
    default_message = "Face is too small in the image - please move closer or crop the image"


class FaceCutOff(FaceValidationError):
    code = "face_cut_off"
    default_message = "Face appears to be cut off at the edge - please center the face in the frame"


class UnusualProportions(FaceValidationError):
    code = "unusual_proportions"
    default_message = "Detected face has unusual proportions - please ensure full face is visible"


class InvalidBox(FaceValidationError):
    code = "invalid_box"
    default_message = "Face bounding box is missing or outside the image"


# ---------------------------------------------------------------------------
# Embedding format
# ---------------------------------------------------------------------------


class InvalidEmbeddingFormat(FaceValidationError):
    code = "invalid_embedding_format"
    default_message = "Invalid embedding format: must be a valid JSON array of numbers"


class LengthMismatch(FaceValidationError):
    code = "length_mismatch"
    default_message = "Embeddings must have the same length"


class ZeroNormVector(FaceValidationError):
    code = "zero_norm_vector"
    default_message = "Cannot calculate similarity with zero-norm vectors"


# ---------------------------------------------------------------------------
# Service faults
# ---------------------------------------------------------------------------


class ModelNotFound(FaceServiceError):
    code = "model_not_found"
    default_message = "Face embedding model not found"


class ModelLoadFailed(FaceServiceError):
    code = "model_load_failed"
    default_message = "Face embedding model could not be loaded"


class InferenceFailed(FaceServiceError):
    code = "inference_failed"
    default_message = "Embedding extraction failed"


class InferenceTimeout(FaceServiceError):
    code = "inference_timeout"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_message = "Face processing timed out"


class ServiceBusy(FaceServiceError):
    code = "service_busy"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Too many concurrent requests, try again later"


class StorageError(FaceServiceError):
    code = "storage_error"
    default_message = "Failed to store face embedding"
