"""Tests for face localization and completeness checks."""

from __future__ import annotations

import pytest
from conftest import make_pixels

from faceverify.config import Settings
from faceverify.errors import FaceCutOff, FaceTooSmall, NoFaceDetected, UnusualProportions
from faceverify.ml.face_detector import (
    FaceBox,
    FixedInsetLocalizer,
    create_localizer,
    validate_face_box,
)
from faceverify.ml.preprocessing import RawImage


class TestFixedInsetLocalizer:
    def test_box_is_ten_percent_inset(self) -> None:
        image = RawImage.from_array(make_pixels(size=(300, 200), noise=0))
        box = FixedInsetLocalizer().locate(image)
        assert box == FaceBox(x=30, y=20, width=240, height=160)

    def test_box_coordinates_are_floored(self) -> None:
        image = RawImage.from_array(make_pixels(size=(257, 133), noise=0))
        box = FixedInsetLocalizer().locate(image)
        assert box == FaceBox(x=25, y=13, width=205, height=106)

    def test_box_covers_64_percent(self) -> None:
        image = RawImage.from_array(make_pixels(size=(500, 500), noise=0))
        box = FixedInsetLocalizer().locate(image)
        assert box.area / (500 * 500) == pytest.approx(0.64)

    def test_degenerate_image_has_no_face(self) -> None:
        image = RawImage.from_array(make_pixels(size=(1, 1), noise=0))
        with pytest.raises(NoFaceDetected):
            FixedInsetLocalizer().locate(image)

    def test_default_box_passes_validation(self) -> None:
        image = RawImage.from_array(make_pixels(size=(200, 200), noise=0))
        box = FixedInsetLocalizer().locate(image)
        assert validate_face_box(box, 200, 200) == ()

    def test_create_localizer_from_settings(self) -> None:
        localizer = create_localizer(Settings(face_inset=0.2))
        assert localizer.name == "fixed_inset"
        image = RawImage.from_array(make_pixels(size=(100, 100), noise=0))
        assert localizer.locate(image) == FaceBox(x=20, y=20, width=60, height=60)


class TestValidateFaceBox:
    def test_five_percent_face_is_too_small(self) -> None:
        box = FaceBox(x=400, y=400, width=200, height=250)
        with pytest.raises(FaceTooSmall):
            validate_face_box(box, 1000, 1000)

    def test_fifty_percent_face_passes(self) -> None:
        box = FaceBox(x=100, y=100, width=800, height=625)
        assert validate_face_box(box, 1000, 1000) == ()

    def test_box_touching_edge_is_cut_off(self) -> None:
        with pytest.raises(FaceCutOff):
            validate_face_box(FaceBox(x=0, y=0, width=600, height=600), 1000, 1000)

    @pytest.mark.parametrize(
        "box",
        [
            FaceBox(x=9, y=100, width=500, height=500),
            FaceBox(x=100, y=9, width=500, height=500),
            FaceBox(x=491, y=100, width=500, height=500),
            FaceBox(x=100, y=491, width=500, height=500),
        ],
    )
    def test_box_within_margin_is_cut_off(self, box: FaceBox) -> None:
        with pytest.raises(FaceCutOff):
            validate_face_box(box, 1000, 1000)

    def test_box_exactly_at_margin_passes(self) -> None:
        assert validate_face_box(FaceBox(x=10, y=10, width=980, height=980), 1000, 1000)

    @pytest.mark.parametrize(
        "box",
        [
            FaceBox(x=100, y=50, width=800, height=390),
            FaceBox(x=300, y=50, width=300, height=610),
        ],
    )
    def test_unusual_proportions(self, box: FaceBox) -> None:
        with pytest.raises(UnusualProportions):
            validate_face_box(box, 1000, 1000)

    def test_very_large_face_is_advisory(self, caplog: pytest.LogCaptureFixture) -> None:
        warnings = validate_face_box(FaceBox(x=0, y=0, width=100, height=100), 100, 100, edge_margin=0)
        assert len(warnings) == 1
        assert "very close" in caplog.text
