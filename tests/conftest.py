"""Shared fixtures: synthetic images and a fake ONNX model."""

from __future__ import annotations

import io
import time
from pathlib import Path
from types import SimpleNamespace
from typing import TYPE_CHECKING

import numpy as np
import pytest
from PIL import Image

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray


def make_pixels(
    color: tuple[int, int, int] = (128, 128, 128),
    size: tuple[int, int] = (200, 200),
    noise: int = 8,
    seed: int = 0,
) -> NDArray[np.uint8]:
    """Build a (height, width, 3) image of ``color`` with optional uniform noise."""
    width, height = size
    pixels = np.full((height, width, 3), color, dtype=np.int16)
    if noise:
        rng = np.random.default_rng(seed)
        pixels += rng.integers(-noise, noise + 1, size=pixels.shape, dtype=np.int16)
    return np.clip(pixels, 0, 255).astype(np.uint8)


def encode_pixels(pixels: NDArray[np.uint8], fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(pixels).save(buffer, format=fmt)
    return buffer.getvalue()


def make_image_bytes(
    color: tuple[int, int, int] = (128, 128, 128),
    size: tuple[int, int] = (200, 200),
    noise: int = 8,
    fmt: str = "PNG",
    seed: int = 0,
) -> bytes:
    return encode_pixels(make_pixels(color, size, noise, seed), fmt)


class FakeSession:
    """Deterministic stand-in for an onnxruntime InferenceSession.

    The "embedding" is the first ``dim`` tensor values (cycled) plus a small
    offset, so identical images give identical embeddings.
    """

    def __init__(
        self,
        dim: int = 512,
        input_name: str = "input_1",
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.dim = dim
        self.input_name = input_name
        self.error = error
        self.delay = delay
        self.calls: list[dict[str, NDArray[np.float32]]] = []

    def get_inputs(self) -> list[SimpleNamespace]:
        return [SimpleNamespace(name=self.input_name, shape=[1, 112, 112, 3])]

    def get_outputs(self) -> list[SimpleNamespace]:
        return [SimpleNamespace(name="embedding", shape=[1, self.dim])]

    def run(self, output_names: list[str], feeds: dict[str, NDArray[np.float32]]) -> list[NDArray[np.float32]]:
        self.calls.append(feeds)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        tensor = feeds[self.input_name]
        embedding = np.resize(tensor.reshape(-1), self.dim).astype(np.float32) + np.float32(0.01)
        return [embedding.reshape(1, self.dim)]


class FakeModelManager:
    """ModelManager that hands out a FakeSession, or fails to load."""

    def __init__(self, session: FakeSession | None = None, error: Exception | None = None) -> None:
        self.session = session or FakeSession()
        self.error = error
        self._loaded = False

    @property
    def model_path(self) -> Path:
        return Path("/models/fake.onnx")

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def get_session(self) -> FakeSession:
        if self.error is not None:
            raise self.error
        self._loaded = True
        return self.session

    def shutdown(self) -> None:
        self._loaded = False


@pytest.fixture()
def image_factory() -> Callable[..., bytes]:
    """Factory for encoded synthetic images."""
    return make_image_bytes


@pytest.fixture()
def gray_image() -> bytes:
    """A 200x200 mid-gray PNG (brightness ~128)."""
    return make_image_bytes()


@pytest.fixture()
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture()
def fake_model_manager(fake_session: FakeSession) -> FakeModelManager:
    return FakeModelManager(fake_session)
