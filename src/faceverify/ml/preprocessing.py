"""Image decoding and face preprocessing.

Decoding turns uploaded bytes into an RGB uint8 array (EXIF orientation
applied, JPEG/PNG only). Preprocessing crops a face box, resizes it to the
recognition model's input size, and scales pixels to [0, 1] in NHWC layout.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageOps

from faceverify.errors import ImageTooLarge, ImageUnreadable, InvalidBox, UnsupportedMediaType

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from faceverify.ml.face_detector import FaceBox

FACE_SIZE: int = 112
SUPPORTED_FORMATS: frozenset[str] = frozenset({"JPEG", "PNG"})
DEFAULT_MAX_PIXELS: int = 16_777_216


def decode_image(image_bytes: bytes, max_pixels: int = DEFAULT_MAX_PIXELS) -> NDArray[np.uint8]:
    """Decode raw image bytes into an RGB uint8 numpy array.

    Args:
        image_bytes: Raw file bytes.
        max_pixels: Largest accepted width * height.

    Returns:
        HxWx3 RGB uint8 numpy array.

    Raises:
        ImageUnreadable: If the bytes are not a decodable image.
        UnsupportedMediaType: If the image is neither JPEG nor PNG.
        ImageTooLarge: If the decoded image exceeds ``max_pixels``.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            if img.format not in SUPPORTED_FORMATS:
                raise UnsupportedMediaType(f"Unsupported image format: {img.format}")
            if img.width * img.height > max_pixels:
                raise ImageTooLarge(f"Image dimensions too large ({img.width}x{img.height} pixels)")
            oriented = ImageOps.exif_transpose(img)
            return np.asarray(oriented.convert("RGB"), dtype=np.uint8)
    except (OSError, SyntaxError, EOFError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageUnreadable() from exc


@dataclass
class RawImage:
    """Uploaded image bytes plus their decoded pixels.

    Pixels are decoded on first access and cached, so every pipeline stage
    shares a single decode.
    """

    data: bytes
    pixels: NDArray[np.uint8] | None = field(default=None, repr=False)
    max_pixels: int = DEFAULT_MAX_PIXELS

    @classmethod
    def from_array(cls, pixels: NDArray[np.uint8]) -> RawImage:
        """Wrap an already decoded HxWx3 array."""
        return cls(data=b"", pixels=pixels)

    @property
    def byte_size(self) -> int:
        return len(self.data)

    def decode(self) -> NDArray[np.uint8]:
        if self.pixels is None:
            self.pixels = decode_image(self.data, self.max_pixels)
        return self.pixels

    @property
    def width(self) -> int:
        return int(self.decode().shape[1])

    @property
    def height(self) -> int:
        return int(self.decode().shape[0])


class FacePreprocessor:
    """Crops a face and converts it to the recognition model's input tensor."""

    def __init__(self, size: int = FACE_SIZE) -> None:
        self._size = size

    @property
    def output_shape(self) -> tuple[int, int, int, int]:
        return (1, self._size, self._size, 3)

    def preprocess(self, image: RawImage, box: FaceBox | None) -> NDArray[np.float32]:
        """Crop ``box`` out of ``image`` and build a normalized NHWC tensor.

        Args:
            image: Decodable source image.
            box: Face region in pixel coordinates of ``image``.

        Returns:
            float32 array of shape (1, size, size, 3) with values in [0, 1].
            Flattened, it holds R, G, B for each pixel in row-major order.

        Raises:
            InvalidBox: If ``box`` is missing, empty or outside the image.
        """
        if box is None:
            raise InvalidBox("No face detected to preprocess")
        if box.width <= 0 or box.height <= 0 or not box.fits_within(image.width, image.height):
            raise InvalidBox(
                f"Face box {box.x},{box.y} {box.width}x{box.height} is outside "
                f"the {image.width}x{image.height} image"
            )

        face = Image.fromarray(image.decode()).crop((box.x, box.y, box.right, box.bottom))
        resized = face.resize((self._size, self._size), Image.Resampling.BICUBIC)
        tensor = np.asarray(resized, dtype=np.float32) / np.float32(255.0)
        return tensor.reshape(self.output_shape)
