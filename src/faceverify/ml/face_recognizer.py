"""Face embedding extraction through the shared ONNX session."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from faceverify.errors import InferenceFailed

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from faceverify.ml.model_manager import ModelManager

logger = logging.getLogger(__name__)


class EmbeddingExtractor:
    """Turns a normalized NHWC face tensor into an embedding vector."""

    def __init__(self, model_manager: ModelManager, input_name: str | None = None) -> None:
        self._model_manager = model_manager
        self._input_name = input_name

    @property
    def is_ready(self) -> bool:
        return self._model_manager.is_loaded

    def warm_up(self) -> None:
        """Load the model session without running inference."""
        self._model_manager.get_session()

    def extract(self, tensor: NDArray[np.float32]) -> NDArray[np.float32]:
        """Run the embedding model on a single face.

        Args:
            tensor: float32 array of shape (1, 112, 112, 3).

        Returns:
            1-D float32 embedding, in the model's output order.

        Raises:
            ModelNotFound: If the model file is missing.
            ModelLoadFailed: If the model cannot be loaded.
            InferenceFailed: If the forward pass fails or returns nothing.
        """
        session = self._model_manager.get_session()
        input_name = self._input_name or session.get_inputs()[0].name
        output_name = session.get_outputs()[0].name

        try:
            outputs = session.run([output_name], {input_name: np.ascontiguousarray(tensor, dtype=np.float32)})
        except Exception as exc:
            logger.exception("Embedding inference failed")
            raise InferenceFailed(f"Embedding extraction failed: {exc}") from exc

        if not outputs:
            raise InferenceFailed("Embedding model returned no output")
        embedding = np.asarray(outputs[0], dtype=np.float32).reshape(-1)
        if embedding.size == 0:
            raise InferenceFailed("Embedding model returned an empty vector")
        return embedding
