"""Tests for the image quality gate."""

from __future__ import annotations

import pytest
from conftest import encode_pixels, make_image_bytes, make_pixels

from faceverify.config import Settings
from faceverify.errors import (
    ImageTooLarge,
    ImageTooSmall,
    ImageUnreadable,
    Overexposed,
    QualityCheckFailed,
    TooDark,
    UnsupportedMediaType,
)
from faceverify.ml.preprocessing import RawImage
from faceverify.ml.quality import QualityGate, average_brightness


def _gate(**overrides: object) -> QualityGate:
    return QualityGate(Settings(**overrides))  # type: ignore[arg-type]


class TestAverageBrightness:
    def test_gray(self) -> None:
        assert average_brightness(make_pixels((128, 128, 128), noise=0)) == pytest.approx(128.0)

    def test_uses_luminosity_weights(self) -> None:
        assert average_brightness(make_pixels((255, 0, 0), noise=0)) == pytest.approx(0.299 * 255)
        assert average_brightness(make_pixels((0, 255, 0), noise=0)) == pytest.approx(0.587 * 255)
        assert average_brightness(make_pixels((0, 0, 255), noise=0)) == pytest.approx(0.114 * 255)


class TestQualityGate:
    def test_gray_image_passes(self) -> None:
        report = _gate().validate(RawImage(make_image_bytes()))

        assert report.valid is True
        assert report.brightness == pytest.approx(128.0, abs=1.0)
        assert (report.width, report.height) == (200, 200)
        assert report.warnings == ()

    def test_black_image_is_too_dark(self) -> None:
        data = make_image_bytes((0, 0, 0), size=(1000, 1000), noise=0)
        with pytest.raises(TooDark):
            _gate().validate(RawImage(data))

    def test_white_image_is_overexposed(self) -> None:
        data = make_image_bytes((255, 255, 255), size=(1000, 1000), noise=0)
        with pytest.raises(Overexposed):
            _gate().validate(RawImage(data))

    def test_dim_image_passes_with_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        report = _gate().validate(RawImage(make_image_bytes((50, 50, 50))))

        assert report.valid is True
        assert len(report.warnings) == 1
        assert "darker side" in report.warnings[0]
        assert "darker side" in caplog.text

    def test_bright_image_passes_with_warning(self) -> None:
        report = _gate().validate(RawImage(make_image_bytes((210, 210, 210))))
        assert "brighter side" in report.warnings[0]

    def test_file_below_minimum_size(self) -> None:
        with pytest.raises(ImageTooSmall):
            _gate().validate(RawImage(make_image_bytes(size=(8, 8), noise=0)))

    def test_file_above_maximum_size(self) -> None:
        with pytest.raises(ImageTooLarge, match="maximum"):
            _gate(max_file_size=2048).validate(RawImage(make_image_bytes()))

    def test_too_many_pixels(self) -> None:
        image = RawImage(make_image_bytes(), max_pixels=100 * 100)
        with pytest.raises(ImageTooLarge, match="dimensions"):
            _gate().validate(image)

    def test_garbage_bytes_are_unreadable(self) -> None:
        with pytest.raises(ImageUnreadable):
            _gate().validate(RawImage(b"\x00not an image" * 200))

    def test_gif_is_unsupported(self) -> None:
        data = encode_pixels(make_pixels(), fmt="GIF")
        with pytest.raises(UnsupportedMediaType):
            _gate(min_file_size=0).validate(RawImage(data))

    def test_collects_every_violation(self) -> None:
        data = make_image_bytes((0, 0, 0), size=(1000, 1000), noise=0)
        with pytest.raises(QualityCheckFailed) as exc_info:
            _gate(min_file_size=len(data) + 1).validate(RawImage(data))

        codes = [v.code for v in exc_info.value.violations]
        assert codes == ["image_too_small", "too_dark"]
        assert [v["error"] for v in exc_info.value.to_dict()["violations"]] == codes  # type: ignore[union-attr]

    def test_size_and_decode_errors_reported_together(self) -> None:
        with pytest.raises(QualityCheckFailed) as exc_info:
            _gate().validate(RawImage(b"tiny"))

        assert [type(v) for v in exc_info.value.violations] == [ImageTooSmall, ImageUnreadable]

    def test_decode_is_cached_on_image(self) -> None:
        image = RawImage(make_image_bytes())
        _gate().validate(image)
        assert image.pixels is not None
        assert image.decode() is image.pixels
