"""Model manager: resolve, download, and load the face embedding ONNX model.

Owns the single InferenceSession shared by every request. The session is
created lazily on first use (or on explicit warm-up) behind a lock that is held
for the whole construction, so concurrent first requests build exactly one
session. Once built, the session is read-only and shared across threads.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from huggingface_hub import hf_hub_download
from huggingface_hub.errors import HfHubHTTPError
from onnxruntime import InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from faceverify.errors import ModelLoadFailed, ModelNotFound

if TYPE_CHECKING:
    from faceverify.config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol (kept for test mocking)
# ---------------------------------------------------------------------------


class ModelManager(Protocol):
    """Protocol for model lifecycle management."""

    @property
    def model_path(self) -> Path:
        """Return the configured model file location."""
        ...

    @property
    def is_loaded(self) -> bool:
        """Return True once the session has been created."""
        ...

    def get_session(self) -> InferenceSession:
        """Return the shared InferenceSession, creating it on first use."""
        ...

    def shutdown(self) -> None:
        """Release the session."""
        ...


# ---------------------------------------------------------------------------
# Concrete implementation
# ---------------------------------------------------------------------------


class OnnxModelManager:
    """Resolves the model file and owns the lazily created InferenceSession."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._model_path = Path(settings.model_path).expanduser().resolve()

        self._lock = threading.Lock()
        self._session: InferenceSession | None = None

        self._providers = self._build_providers()
        self._session_options = self._build_session_options()

    # -- Public API ---------------------------------------------------------

    @property
    def model_path(self) -> Path:
        return self._model_path

    @property
    def is_loaded(self) -> bool:
        return self._session is not None

    def resolve_model_path(self) -> Path:
        """Return the model file path, downloading it first if a repo is configured.

        Raises:
            ModelNotFound: If the file is absent and cannot be fetched.
        """
        if self._model_path.is_file():
            return self._model_path

        repo_id = self._settings.model_repo_id
        if repo_id is None:
            raise ModelNotFound(f"ONNX model not found at: {self._model_path}")

        try:
            downloaded = Path(
                hf_hub_download(
                    repo_id=repo_id,
                    filename=self._settings.model_filename,
                    local_dir=str(self._model_path.parent),
                )
            )
        except (HfHubHTTPError, OSError, ValueError) as exc:
            raise ModelNotFound(f"Could not download {self._settings.model_filename} from {repo_id}") from exc

        if downloaded != self._model_path:
            downloaded.replace(self._model_path)
        logger.info("Downloaded %s from %s to %s", self._settings.model_filename, repo_id, self._model_path)
        return self._model_path

    def get_session(self) -> InferenceSession:
        """Return the shared InferenceSession, creating it on first use.

        Raises:
            ModelNotFound: If the model file does not exist.
            ModelLoadFailed: If ONNX Runtime cannot load the model.
        """
        session = self._session
        if session is not None:
            return session

        with self._lock:
            if self._session is None:
                self._session = self._load_session()
            return self._session

    def warm_up(self) -> None:
        """Load the session ahead of the first request."""
        self.get_session()

    def shutdown(self) -> None:
        """Release the session."""
        with self._lock:
            self._session = None
            logger.info("Model session released")

    # -- Internal -----------------------------------------------------------

    def _load_session(self) -> InferenceSession:
        model_path = self.resolve_model_path()
        try:
            session = InferenceSession(
                str(model_path),
                sess_options=self._session_options,
                providers=self._providers,
            )
        except Exception as exc:
            raise ModelLoadFailed(f"Failed to load ONNX model {model_path}: {exc}") from exc
        logger.info("Loaded embedding model from %s (providers=%s)", model_path, session.get_providers())
        return session

    def _build_providers(self) -> list[str | tuple[str, dict[str, object]]]:
        device = self._settings.device
        if device == "cuda":
            return [
                (
                    "CUDAExecutionProvider",
                    {
                        "device_id": 0,
                        "gpu_mem_limit": self._settings.gpu_mem_limit,
                        "arena_extend_strategy": "kSameAsRequested",
                    },
                ),
                "CPUExecutionProvider",
            ]
        if device == "openvino":
            return [
                ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
                "CPUExecutionProvider",
            ]
        return ["CPUExecutionProvider"]

    def _build_session_options(self) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
        opts.enable_mem_pattern = True
        opts.enable_mem_reuse = True

        if self._settings.device == "openvino":
            # OpenVINO does its own graph optimization
            from onnxruntime import GraphOptimizationLevel

            opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
        return opts
