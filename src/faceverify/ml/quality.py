"""Image quality gate: size, decodability and lighting checks.

Runs before any expensive work. Every fatal check is evaluated so a caller
sees all violations at once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from faceverify.errors import (
    FaceValidationError,
    ImageTooLarge,
    ImageTooSmall,
    Overexposed,
    QualityCheckFailed,
    TooDark,
)

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from faceverify.config import Settings
    from faceverify.ml.preprocessing import RawImage

logger = logging.getLogger(__name__)

# ITU-R BT.601 luma weights for R, G, B.
LUMINOSITY_WEIGHTS: tuple[float, float, float] = (0.299, 0.587, 0.114)


@dataclass(frozen=True)
class QualityReport:
    """Outcome of a successful quality check."""

    valid: bool
    brightness: float
    width: int
    height: int
    warnings: tuple[str, ...] = ()


def average_brightness(pixels: NDArray[np.uint8]) -> float:
    """Mean perceived brightness (0 = black, 255 = white) of an HxWx3 RGB array."""
    luminance = pixels[..., :3].astype(np.float64) @ np.asarray(LUMINOSITY_WEIGHTS)
    return float(luminance.mean())


def raise_violations(violations: list[FaceValidationError]) -> None:
    """Raise the single violation as-is, or all of them wrapped together."""
    if len(violations) == 1:
        raise violations[0]
    if violations:
        raise QualityCheckFailed(violations)


class QualityGate:
    """Validates raw uploads before face processing."""

    def __init__(self, settings: Settings) -> None:
        self._max_file_size = settings.max_file_size
        self._min_file_size = settings.min_file_size
        self._min_brightness = settings.min_brightness
        self._max_brightness = settings.max_brightness
        self._dim_brightness = settings.dim_brightness
        self._bright_brightness = settings.bright_brightness

    def validate(self, image: RawImage) -> QualityReport:
        """Check file size, decodability and lighting of an image.

        Raises:
            FaceValidationError: The single failed check, or
                ``QualityCheckFailed`` listing every failed check.
        """
        violations: list[FaceValidationError] = []

        if image.byte_size > self._max_file_size:
            limit_mb = self._max_file_size / (1024 * 1024)
            violations.append(ImageTooLarge(f"Image file too large (maximum {limit_mb:g}MB allowed)"))
        if image.byte_size < self._min_file_size:
            violations.append(ImageTooSmall())

        try:
            pixels = image.decode()
        except FaceValidationError as exc:
            violations.append(exc)
            raise_violations(violations)
            raise

        brightness = average_brightness(pixels)
        logger.debug("Image brightness: %.2f", brightness)

        warnings: list[str] = []
        if brightness < self._min_brightness:
            violations.append(TooDark())
        elif brightness > self._max_brightness:
            violations.append(Overexposed())
        elif brightness < self._dim_brightness:
            warnings.append("Image lighting is on the darker side, may affect accuracy")
        elif brightness > self._bright_brightness:
            warnings.append("Image lighting is on the brighter side, may affect accuracy")

        raise_violations(violations)

        for warning in warnings:
            logger.warning(warning)

        height, width = pixels.shape[:2]
        return QualityReport(
            valid=True,
            brightness=brightness,
            width=int(width),
            height=int(height),
            warnings=tuple(warnings),
        )
