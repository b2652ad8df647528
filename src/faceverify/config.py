"""Environment-based configuration for FaceVerify."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from FACEVERIFY_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FACEVERIFY_",
        case_sensitive=False,
        protected_namespaces=("settings_",),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3000
    log_level: str = "INFO"

    # Authentication (None = disabled)
    api_key: str | None = None

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # Embedding model. When model_repo_id is set, a missing model_path is
    # fetched from the Hugging Face Hub first.
    model_path: str = "./models/arcface.onnx"
    model_repo_id: str | None = None
    model_filename: str = "arcface.onnx"
    model_input_name: str | None = None
    embedding_dim: int = Field(default=512, ge=1)
    warmup_on_startup: bool = False

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)
    gpu_mem_limit: int = Field(default=2_147_483_648, ge=0)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)
    inference_timeout: float = Field(default=30.0, ge=0)

    # Input limits
    max_file_size: int = Field(default=10 * 1024 * 1024, ge=1)
    min_file_size: int = Field(default=1024, ge=0)
    max_image_pixels: int = Field(default=16_777_216, ge=1)

    # Lighting (average perceived brightness, 0-255)
    min_brightness: float = 40.0
    max_brightness: float = 220.0
    dim_brightness: float = 60.0
    bright_brightness: float = 200.0

    # Face localization
    face_localizer: Literal["fixed_inset"] = "fixed_inset"
    face_inset: float = Field(default=0.1, ge=0.0, lt=0.5)
    min_face_ratio: float = 0.10
    max_face_ratio: float = 0.95
    edge_margin: int = Field(default=10, ge=0)
    min_aspect_ratio: float = 0.5
    max_aspect_ratio: float = 2.0

    # Matching. 0.6 is the single default used whenever a caller omits a threshold.
    match_threshold: float = Field(default=0.6, ge=-1.0, le=1.0)

    # Storage
    database_url: str = "sqlite:///./faceverify.db"


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
