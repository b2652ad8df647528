"""Pydantic request/response schemas for the FaceVerify API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class EncodeResponse(BaseModel):
    """A stored face embedding."""

    success: bool = True
    id: int
    embedding: list[float] = Field(description="Face embedding vector (512 dimensions)")
    created_at: datetime


class CompareResponse(BaseModel):
    """Result of comparing an image against a stored embedding."""

    success: bool = True
    is_match: bool = Field(serialization_alias="isMatch")
    similarity: float = Field(ge=-1.0, le=1.0, description="Cosine similarity rounded to 4 decimals")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    model_loaded: bool
    model_path: str
    concurrent_requests: int
    queue_depth: int


class ErrorDetail(BaseModel):
    error: str
    detail: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    success: bool = False
    error: str = Field(description="Stable error code, e.g. 'too_dark' or 'model_not_found'")
    detail: str
    violations: list[ErrorDetail] | None = None
