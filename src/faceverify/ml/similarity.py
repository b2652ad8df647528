"""Embedding comparison: cosine similarity and threshold matching."""

from __future__ import annotations

import json
import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from faceverify.errors import InvalidEmbeddingFormat, LengthMismatch, ZeroNormVector

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

DEFAULT_MATCH_THRESHOLD: float = 0.6
REPORT_PRECISION: int = 4


@dataclass(frozen=True)
class ComparisonResult:
    is_match: bool
    similarity: float


def similarity(a: ArrayLike, b: ArrayLike) -> float:
    """Cosine similarity of two equal-length vectors, in [-1, 1].

    Raises:
        LengthMismatch: If the vectors differ in length.
        ZeroNormVector: If either vector is all zeros.
    """
    va = np.asarray(a, dtype=np.float64).reshape(-1)
    vb = np.asarray(b, dtype=np.float64).reshape(-1)
    if va.shape != vb.shape:
        raise LengthMismatch(f"Embeddings must have the same length ({va.size} != {vb.size})")

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        raise ZeroNormVector()

    cosine = float(np.dot(va, vb)) / (norm_a * norm_b)
    return max(-1.0, min(1.0, cosine))


def match(score: float, threshold: float) -> bool:
    """True if ``score`` reaches ``threshold`` (inclusive)."""
    return score >= threshold


def parse_embedding(encoded: str | bytes | Sequence[object]) -> NDArray[np.float64]:
    """Decode a stored embedding from its JSON array form.

    Raises:
        InvalidEmbeddingFormat: Unless ``encoded`` is a non-empty flat array of
            finite numbers.
    """
    if isinstance(encoded, (str, bytes, bytearray)):
        try:
            values = json.loads(encoded)
        except (ValueError, UnicodeDecodeError) as exc:
            raise InvalidEmbeddingFormat() from exc
    else:
        values = encoded

    if not isinstance(values, list | tuple) or not values:
        raise InvalidEmbeddingFormat()
    components: list[float] = []
    for value in values:
        # bool is an int subclass but never a valid component
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise InvalidEmbeddingFormat()
        try:
            component = float(value)
        except OverflowError as exc:
            raise InvalidEmbeddingFormat() from exc
        if not math.isfinite(component):
            raise InvalidEmbeddingFormat()
        components.append(component)
    return np.asarray(components, dtype=np.float64)


class SimilarityComparator:
    """Compares embeddings against a configurable default threshold."""

    def __init__(self, default_threshold: float = DEFAULT_MATCH_THRESHOLD) -> None:
        self.default_threshold = default_threshold

    def compare(self, a: ArrayLike, b: ArrayLike, threshold: float | None = None) -> ComparisonResult:
        """Score two embeddings and decide whether they match.

        The match decision uses the unrounded score; the reported score is
        rounded to four decimal places.
        """
        if threshold is None:
            threshold = self.default_threshold
        score = similarity(a, b)
        return ComparisonResult(
            is_match=match(score, threshold),
            similarity=round(score, REPORT_PRECISION),
        )
