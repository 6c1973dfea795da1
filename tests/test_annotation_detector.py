"""
Unit Tests for AnnotationDetector

Tests for:
- Border / content detection on synthetic framed images
- No-marker and low-alpha images
- Red center and green rotation markers
- Palette tolerance and input validation
- Property-based tests with Hypothesis
"""

import math

import cv2
import pytest
from hypothesis import given, strategies as st, settings

from template_engine.annotation_detector import AnnotationDetector, detect_annotations
from template_engine.models import AnnotationResult

from conftest import BLUE, GREEN, RED, framed, outline


class TestAnnotationDetector:
    """Tests for AnnotationDetector class"""

    def test_detector_initialization(self):
        detector = AnnotationDetector()

        assert detector.tolerance == 60
        assert detector.alpha_threshold == 50
        assert detector.min_green_pixels == 20
        assert detector.endpoint_fraction == 0.1
        assert detector.debug == False

    def test_detector_custom_parameters(self):
        detector = AnnotationDetector(tolerance=10, alpha_threshold=200, min_green_pixels=5, debug=True)

        assert detector.tolerance == 10
        assert detector.alpha_threshold == 200
        assert detector.min_green_pixels == 5
        assert detector.debug == True

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            AnnotationDetector(tolerance=-1)
        with pytest.raises(ValueError):
            AnnotationDetector(endpoint_fraction=0.0)

    def test_border_detection(self, framed_image):
        result = AnnotationDetector().detect_image(framed_image(10))

        assert isinstance(result, AnnotationResult)
        assert result.content.width == 80
        assert result.content.height == 80
        assert result.content.aspect_ratio == pytest.approx(1.0)
        assert result.border_thickness == 10
        assert (result.border.left, result.border.right) == (10, 90)
        assert (result.border.top, result.border.bottom) == (10, 90)
        assert 0.0 <= result.confidence <= 1.0
        assert result.marker_pixel_count == 4 * 81 - 4

    def test_border_follows_outer_edge_of_thick_outline(self, framed_image):
        result = AnnotationDetector().detect_image(framed_image(10, line=4))

        assert (result.border.left, result.border.right) == (10, 90)
        assert result.content.width == 80
        assert result.border_thickness == 10

    def test_edge_to_edge_frame_has_zero_thickness(self, framed_image):
        image = framed_image(10)
        image[0, 0] = BLUE
        image[99, 99] = BLUE

        result = AnnotationDetector().detect_image(image)

        assert (result.border.left, result.border.right) == (0, 99)
        assert result.content.width == 99
        assert result.border_thickness == 0

    def test_single_pixel_mark(self, rgba_image):
        image = rgba_image(100, 100)
        image[30, 40] = BLUE

        result = AnnotationDetector().detect_image(image)

        assert (result.content.width, result.content.height) == (0, 0)
        assert result.content.aspect_ratio == 0.0
        assert result.border_thickness == 30

    def test_detect_from_bytes(self, framed_image):
        image = framed_image(10)

        result = AnnotationDetector().detect(image.tobytes(), 100, 100)

        assert result.content.width == 80
        assert result.border_thickness == 10

    def test_all_black_image_returns_none(self, rgba_image):
        image = rgba_image(100, 100)

        assert AnnotationDetector().detect(image.tobytes(), 100, 100) is None
        assert detect_annotations(image, 100, 100) is None

    def test_transparent_markers_are_ignored(self, framed_image):
        image = framed_image(10)
        image[:, :, 3] = 10

        assert AnnotationDetector().detect_image(image) is None

    def test_solid_block(self, rgba_image):
        image = rgba_image(100, 100)
        image[20:41, 30:71] = BLUE

        result = AnnotationDetector().detect_image(image)

        assert (result.border.left, result.border.right) == (30, 70)
        assert (result.border.top, result.border.bottom) == (20, 40)
        assert result.content.width == 40
        assert result.content.height == 20
        assert result.content.aspect_ratio == pytest.approx(2.0)
        assert result.border_thickness == 20

    def test_asymmetric_margins_use_smallest_side(self, rgba_image):
        image = outline(rgba_image(100, 100), left=5, top=20, right=80, bottom=90)

        result = AnnotationDetector().detect_image(image)

        assert (result.border.left, result.border.right) == (5, 80)
        assert (result.border.top, result.border.bottom) == (20, 90)
        assert result.content.width == 75
        assert result.content.height == 70
        assert result.border_thickness == 5

    def test_confidence_density(self, rgba_image):
        image = rgba_image(100, 100)
        image[0:5, 0:10] = BLUE  # 50 pixels, half of 1% of the image

        result = AnnotationDetector().detect_image(image)

        assert result.confidence == pytest.approx(0.5)

    def test_center_fallback(self, framed_image):
        result = AnnotationDetector().detect_image(framed_image(10))

        assert (result.center.x, result.center.y) == (50.0, 50.0)

    def test_red_centroid(self, framed_image):
        image = framed_image(10)
        image[40:50, 60:70] = RED

        result = AnnotationDetector().detect_image(image)

        assert result.center.x == pytest.approx(64.5)
        assert result.center.y == pytest.approx(44.5)

    def test_palette_tolerance(self, rgba_image):
        near = rgba_image(100, 100)
        near[0:10, 0:10] = (20, 20, 235, 255)
        far = rgba_image(100, 100)
        far[0:10, 0:10] = (0, 0, 150, 255)

        assert AnnotationDetector().detect_image(near) is not None
        assert AnnotationDetector().detect_image(far) is None

    def test_custom_palette(self, rgba_image):
        image = rgba_image(100, 100)
        image[0:10, 0:10] = (255, 0, 255, 255)

        detector = AnnotationDetector(palettes={"blue": [(255, 0, 255)]})

        assert detector.detect_image(image) is not None

    def test_buffer_size_mismatch(self):
        with pytest.raises(ValueError):
            AnnotationDetector().detect(b"\x00" * 10, 100, 100)

    def test_array_shape_mismatch(self, rgba_image):
        with pytest.raises(ValueError):
            AnnotationDetector().detect(rgba_image(50, 50), 100, 100)

    def test_empty_image(self):
        assert AnnotationDetector().detect(b"", 0, 0) is None

    def test_result_to_dict(self, framed_image):
        data = AnnotationDetector().detect_image(framed_image(10)).to_dict()

        assert data["content"]["width"] == 80
        assert data["border_thickness"] == 10
        assert set(data["border"]) == {"left", "right", "top", "bottom"}


class TestRotation:
    """Tests for green rotation markers"""

    def test_horizontal_line(self, framed_image):
        image = framed_image(5)
        cv2.line(image, (10, 50), (90, 50), GREEN, 1)

        result = AnnotationDetector().detect_image(image)

        assert result.rotation_degrees == pytest.approx(0.0, abs=1e-6)

    def test_upward_slope_is_negative(self, framed_image):
        image = framed_image(5)
        cv2.line(image, (10, 50), (90, 10), GREEN, 1)

        result = AnnotationDetector().detect_image(image)

        expected = math.degrees(math.atan2(10 - 50, 90 - 10))
        assert result.rotation_degrees < 0
        assert result.rotation_degrees == pytest.approx(expected, abs=2.0)

    def test_downward_slope_is_positive(self, framed_image):
        image = framed_image(5)
        cv2.line(image, (10, 10), (90, 90), GREEN, 1)

        result = AnnotationDetector().detect_image(image)

        assert result.rotation_degrees == pytest.approx(45.0, abs=1.0)

    def test_below_noise_floor(self, framed_image):
        image = framed_image(5)
        cv2.line(image, (10, 50), (20, 40), GREEN, 1)

        result = AnnotationDetector().detect_image(image)

        assert result.rotation_degrees == 0.0

    def test_blue_takes_priority_over_other_palettes(self, framed_image):
        # A red palette overlapping blue must not pull the center onto the frame
        detector = AnnotationDetector(palettes={"red": [(0, 0, 255)]})

        result = detector.detect_image(framed_image(10))

        assert (result.center.x, result.center.y) == (50.0, 50.0)
        assert result.marker_pixel_count == 4 * 81 - 4


class TestAnnotationProperties:
    """Property-based tests for border detection"""

    @given(inset=st.integers(min_value=1, max_value=40))
    @settings(max_examples=40, deadline=None)
    def test_outline_inset(self, inset):
        """Property: an outline inset by t on every side gives a (100 - 2t) square and thickness t"""
        result = AnnotationDetector().detect_image(framed(inset))

        assert result.content.width == 100 - 2 * inset
        assert result.content.height == 100 - 2 * inset
        assert result.border_thickness == inset
        assert 0.0 <= result.confidence <= 1.0

    @given(
        width=st.integers(min_value=20, max_value=120),
        height=st.integers(min_value=20, max_value=120),
    )
    @settings(max_examples=30, deadline=None)
    def test_non_square_frames(self, width, height):
        """Property: frames on non-square images keep the right aspect ratio"""
        result = AnnotationDetector().detect_image(framed(5, width, height))

        assert result.image_width == width
        assert result.image_height == height
        assert result.content.width == width - 10
        assert result.content.height == height - 10
        assert result.content.aspect_ratio == pytest.approx((width - 10) / (height - 10))
