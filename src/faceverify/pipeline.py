"""Face pipeline orchestration.

encode:  bytes -> quality gate -> localize -> preprocess -> embed -> store
compare: bytes -> quality gate -> localize -> preprocess -> embed -> cosine vs stored

Stages run sequentially and synchronously; callers run these methods on a
worker thread. Any stage error propagates unchanged.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from faceverify.errors import InferenceFailed
from faceverify.ml.face_detector import create_localizer, validate_face_box
from faceverify.ml.face_recognizer import EmbeddingExtractor
from faceverify.ml.preprocessing import FacePreprocessor, RawImage
from faceverify.ml.quality import QualityGate
from faceverify.ml.similarity import SimilarityComparator, parse_embedding

if TYPE_CHECKING:
    from collections.abc import Sequence

    import numpy as np
    from numpy.typing import NDArray

    from faceverify.config import Settings
    from faceverify.ml.face_detector import FaceLocalizer
    from faceverify.ml.model_manager import ModelManager
    from faceverify.ml.similarity import ComparisonResult
    from faceverify.storage.repository import EmbeddingRepository, StoredEmbeddingRecord

logger = logging.getLogger(__name__)


class FacePipeline:
    """Runs the encode and compare flows over injected stage components."""

    def __init__(
        self,
        settings: Settings,
        quality_gate: QualityGate,
        localizer: FaceLocalizer,
        preprocessor: FacePreprocessor,
        extractor: EmbeddingExtractor,
        comparator: SimilarityComparator,
        repository: EmbeddingRepository,
    ) -> None:
        self._settings = settings
        self._quality_gate = quality_gate
        self._localizer = localizer
        self._preprocessor = preprocessor
        self._extractor = extractor
        self._comparator = comparator
        self._repository = repository

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        model_manager: ModelManager,
        repository: EmbeddingRepository,
    ) -> FacePipeline:
        """Wire the default stage implementations from configuration."""
        return cls(
            settings=settings,
            quality_gate=QualityGate(settings),
            localizer=create_localizer(settings),
            preprocessor=FacePreprocessor(),
            extractor=EmbeddingExtractor(model_manager, input_name=settings.model_input_name),
            comparator=SimilarityComparator(settings.match_threshold),
            repository=repository,
        )

    @property
    def extractor(self) -> EmbeddingExtractor:
        return self._extractor

    @property
    def repository(self) -> EmbeddingRepository:
        return self._repository

    def embed(self, image_bytes: bytes) -> NDArray[np.float32]:
        """Run quality gate, localization, preprocessing and extraction."""
        image = RawImage(image_bytes, max_pixels=self._settings.max_image_pixels)
        report = self._quality_gate.validate(image)
        logger.debug("Quality check passed: %s", report)

        box = self._localizer.locate(image)
        validate_face_box(
            box,
            report.width,
            report.height,
            min_ratio=self._settings.min_face_ratio,
            max_ratio=self._settings.max_face_ratio,
            edge_margin=self._settings.edge_margin,
            min_aspect=self._settings.min_aspect_ratio,
            max_aspect=self._settings.max_aspect_ratio,
        )
        logger.debug("Face located by %s at %s", self._localizer.name, box)

        tensor = self._preprocessor.preprocess(image, box)
        embedding = self._extractor.extract(tensor)
        if embedding.size != self._settings.embedding_dim:
            raise InferenceFailed(
                f"Model produced a {embedding.size}-dimensional embedding, expected {self._settings.embedding_dim}"
            )
        return embedding

    def store(self, embedding: NDArray[np.float32]) -> StoredEmbeddingRecord:
        """Persist an extracted embedding."""
        return self._repository.insert(embedding.tolist())

    def encode(self, image_bytes: bytes) -> StoredEmbeddingRecord:
        """Extract an embedding from an image and persist it."""
        return self.store(self.embed(image_bytes))

    def compare(
        self,
        image_bytes: bytes,
        stored_embedding: str | bytes | Sequence[object],
        threshold: float | None = None,
    ) -> ComparisonResult:
        """Compare the face in an image with a serialized reference embedding."""
        reference = parse_embedding(stored_embedding)
        embedding = self.embed(image_bytes)
        result = self._comparator.compare(embedding, reference, threshold)
        logger.info("Face comparison: similarity=%.4f match=%s", result.similarity, result.is_match)
        return result
