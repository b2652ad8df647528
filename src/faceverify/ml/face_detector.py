"""Face localization.

Implementations: fixed-inset heuristic (default). A trained detector can be
added by implementing the ``FaceLocalizer`` protocol and registering it in
``create_localizer``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from faceverify.errors import FaceCutOff, FaceTooSmall, NoFaceDetected, UnusualProportions

if TYPE_CHECKING:
    from faceverify.config import Settings
    from faceverify.ml.preprocessing import RawImage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FaceBox:
    """Face bounding box in pixel coordinates of the source image."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def fits_within(self, image_width: int, image_height: int) -> bool:
        return self.x >= 0 and self.y >= 0 and self.right <= image_width and self.bottom <= image_height


class FaceLocalizer(Protocol):
    """Protocol for face localization."""

    @property
    def name(self) -> str:
        """Return the localizer identifier string."""
        ...

    def locate(self, image: RawImage) -> FaceBox:
        """Find the face in an image.

        Args:
            image: Decodable source image.

        Returns:
            Bounding box of the face.

        Raises:
            NoFaceDetected: If no usable face region exists.
        """
        ...


class FixedInsetLocalizer:
    """Assumes a single face filling the image minus a fixed inset on every side.

    This is a stand-in for a trained detector: it never looks at pixel content.
    """

    def __init__(self, inset: float = 0.1) -> None:
        self._inset = inset

    @property
    def name(self) -> str:
        return "fixed_inset"

    def locate(self, image: RawImage) -> FaceBox:
        width, height = image.width, image.height
        span = 1.0 - 2 * self._inset
        box = FaceBox(
            x=math.floor(width * self._inset),
            y=math.floor(height * self._inset),
            width=math.floor(width * span),
            height=math.floor(height * span),
        )
        if box.area == 0:
            raise NoFaceDetected(f"No face region found in {width}x{height} image")
        return box


def validate_face_box(
    box: FaceBox,
    image_width: int,
    image_height: int,
    *,
    min_ratio: float = 0.10,
    max_ratio: float = 0.95,
    edge_margin: int = 10,
    min_aspect: float = 0.5,
    max_aspect: float = 2.0,
) -> tuple[str, ...]:
    """Check that a face box plausibly contains a complete face.

    Returns:
        Advisory warnings (the box is still accepted).

    Raises:
        FaceTooSmall: If the face covers less than ``min_ratio`` of the image.
        FaceCutOff: If the box comes within ``edge_margin`` pixels of an edge.
        UnusualProportions: If width/height is outside [min_aspect, max_aspect].
    """
    warnings: list[str] = []
    face_ratio = box.area / (image_width * image_height)
    logger.debug("Face occupies %.2f%% of image", face_ratio * 100)

    if face_ratio < min_ratio:
        raise FaceTooSmall()
    if face_ratio > max_ratio:
        warnings.append("Face is very close to camera, ensure entire face is visible")

    if (
        box.x < edge_margin
        or box.y < edge_margin
        or box.right > image_width - edge_margin
        or box.bottom > image_height - edge_margin
    ):
        raise FaceCutOff()

    aspect = box.width / box.height
    if aspect < min_aspect or aspect > max_aspect:
        raise UnusualProportions(f"Detected face has unusual proportions (aspect ratio {aspect:.2f})")

    for warning in warnings:
        logger.warning(warning)
    return tuple(warnings)


def create_localizer(settings: Settings) -> FaceLocalizer:
    """Build the face localizer selected by configuration."""
    if settings.face_localizer == "fixed_inset":
        return FixedInsetLocalizer(inset=settings.face_inset)
    raise ValueError(f"Unknown face localizer: {settings.face_localizer}")
