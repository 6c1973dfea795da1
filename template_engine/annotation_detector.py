"""
Annotation Marker Detection using OpenCV

Infers crop geometry from color-coded marker pixels painted onto a
reference image:
- Blue marks frame the content area (mandatory)
- Red marks the content center (optional)
- Green draws a line whose slope gives the content rotation (optional)

How it works:
1. Takes an RGBA image (row-major bytes or an H x W x 4 numpy array)
2. Drops pixels whose alpha is below the threshold
3. Classifies the rest against per-category palettes with a shared
   per-channel tolerance (cv2.inRange per palette entry)
4. Derives border box, center, rotation and a confidence score

Coordinate System:
- Pixel coordinates with origin at the top-left of the image
- x grows to the right, y grows downwards, so a line rising to the right
  has a negative rotation (atan2 convention)

Classification priority: blue, then red, then green. A pixel matching
several palettes counts for the first category only.
"""

import math
from typing import Dict, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from .config import settings
from .models import AnnotationResult, BorderBox, ContentSize, Point
from .utils.logging import get_logger

logger = get_logger(__name__)

Color = Tuple[int, int, int]

DEFAULT_PALETTES: Dict[str, List[Color]] = {
    "blue": [(0, 0, 255), (0, 102, 255), (30, 144, 255), (33, 150, 243)],
    "red": [(255, 0, 0), (229, 57, 53), (244, 67, 54)],
    "green": [(0, 255, 0), (0, 200, 83), (76, 175, 80)],
}

PixelInput = Union[bytes, bytearray, memoryview, np.ndarray]


class AnnotationDetector:
    """
    Tolerance-based marker pixel classifier.

    Responsibilities:
    - Accept a decoded RGBA pixel buffer
    - Classify marker pixels into blue / red / green masks
    - Return an AnnotationResult, or None when no blue marks exist

    Border Strategy:
    1. Border box = min/max x and y of blue pixels
    2. Content size = box width (right - left) and height (bottom - top)
    3. Border thickness = min(left, top, W - right, H - bottom)

    Example:
        detector = AnnotationDetector()
        result = detector.detect(rgba_bytes, width, height)
        if result is not None:
            print(result.content.width, result.rotation_degrees)
    """

    def __init__(
        self,
        tolerance: Optional[int] = None,
        alpha_threshold: Optional[int] = None,
        min_green_pixels: Optional[int] = None,
        endpoint_fraction: Optional[float] = None,
        palettes: Optional[Dict[str, Sequence[Color]]] = None,
        debug: bool = False,
    ):
        """
        Initialize the detector.

        Args:
            tolerance: Max per-channel difference from a palette entry
            alpha_threshold: Pixels with alpha below this are ignored
            min_green_pixels: Rotation is computed only above this count
            endpoint_fraction: Share of x-sorted green pixels averaged into
                               each line endpoint (at least one pixel)
            palettes: Override for DEFAULT_PALETTES ("blue", "red", "green")
            debug: If True, log per-category pixel counts
        """
        self.tolerance = settings.annotation_tolerance if tolerance is None else tolerance
        self.alpha_threshold = (
            settings.annotation_alpha_threshold if alpha_threshold is None else alpha_threshold
        )
        self.min_green_pixels = (
            settings.annotation_min_green_pixels if min_green_pixels is None else min_green_pixels
        )
        self.endpoint_fraction = (
            settings.annotation_endpoint_fraction if endpoint_fraction is None else endpoint_fraction
        )
        self.palettes = dict(DEFAULT_PALETTES)
        if palettes:
            self.palettes.update({name: list(colors) for name, colors in palettes.items()})
        self.debug = debug

        if self.tolerance < 0:
            raise ValueError(f"tolerance must be >= 0, got {self.tolerance}")
        if not (0.0 < self.endpoint_fraction <= 0.5):
            raise ValueError(f"endpoint_fraction must be in (0, 0.5], got {self.endpoint_fraction}")

    def detect(self, pixels: PixelInput, width: int, height: int) -> Optional[AnnotationResult]:
        """
        Detect marker geometry in an RGBA image.

        Args:
            pixels: Row-major RGBA bytes (width * height * 4) or an
                    H x W x 4 uint8 array
            width: Image width in pixels
            height: Image height in pixels

        Returns:
            AnnotationResult, or None when the image holds no blue marks

        Raises:
            ValueError: negative size or a buffer that does not match it
        """
        if width < 0 or height < 0:
            raise ValueError(f"image size must be >= 0, got {width}x{height}")
        if width == 0 or height == 0:
            return None

        image = self._to_array(pixels, width, height)
        return self.detect_image(image)

    def detect_image(self, image: np.ndarray) -> Optional[AnnotationResult]:
        """
        Detect marker geometry in an H x W x 4 RGBA array.

        Returns:
            AnnotationResult, or None when the image holds no blue marks
        """
        if image is None or image.size == 0:
            return None
        if image.ndim != 3 or image.shape[2] != 4:
            raise ValueError(f"expected an H x W x 4 RGBA array, got shape {image.shape}")

        height, width = image.shape[:2]
        blue, red, green = self._classify(image)

        blue_count = int(np.count_nonzero(blue))
        if self.debug:
            logger.debug(
                f"Marker pixels: blue={blue_count} red={int(np.count_nonzero(red))} "
                f"green={int(np.count_nonzero(green))}"
            )
        if blue_count == 0:
            logger.debug("No blue marker pixels found")
            return None

        border = self._find_border(blue)
        content_width = border.right - border.left
        content_height = border.bottom - border.top
        thickness = min(
            border.left,
            border.top,
            width - border.right,
            height - border.bottom,
        )

        center = self._find_center(red, width, height)
        rotation = self._find_rotation(green)
        confidence = min(1.0, blue_count / (width * height * 0.01))

        result = AnnotationResult(
            image_width=width,
            image_height=height,
            border=border,
            content=ContentSize(
                width=content_width,
                height=content_height,
                aspect_ratio=content_width / content_height if content_height else 0.0,
            ),
            center=center,
            rotation_degrees=rotation,
            border_thickness=thickness,
            marker_pixel_count=blue_count,
            confidence=confidence,
        )
        logger.info(
            f"Annotation: content {content_width}x{content_height}, "
            f"thickness {thickness}, rotation {rotation:.2f}, confidence {confidence:.2f}"
        )
        return result

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    @staticmethod
    def _to_array(pixels: PixelInput, width: int, height: int) -> np.ndarray:
        if isinstance(pixels, np.ndarray):
            image = pixels
            if image.shape[:2] != (height, width) or image.ndim != 3 or image.shape[2] != 4:
                raise ValueError(
                    f"pixel array shape {image.shape} does not match {width}x{height} RGBA"
                )
            return image.astype(np.uint8, copy=False)

        buffer = np.frombuffer(bytes(pixels), dtype=np.uint8)
        expected = width * height * 4
        if buffer.size != expected:
            raise ValueError(
                f"pixel buffer has {buffer.size} bytes, expected {expected} for {width}x{height} RGBA"
            )
        return buffer.reshape(height, width, 4)

    def _palette_mask(self, rgb: np.ndarray, colors: Sequence[Color]) -> np.ndarray:
        """Boolean mask of pixels within tolerance of any palette entry"""
        mask = np.zeros(rgb.shape[:2], dtype=bool)
        for color in colors:
            reference = np.array(color, dtype=np.int16)
            lower = np.clip(reference - self.tolerance, 0, 255).astype(np.uint8)
            upper = np.clip(reference + self.tolerance, 0, 255).astype(np.uint8)
            mask |= cv2.inRange(rgb, lower, upper) > 0
        return mask

    def _classify(self, image: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        rgb = np.ascontiguousarray(image[:, :, :3])
        visible = image[:, :, 3] >= self.alpha_threshold

        blue = self._palette_mask(rgb, self.palettes["blue"]) & visible
        red = self._palette_mask(rgb, self.palettes["red"]) & visible & ~blue
        green = self._palette_mask(rgb, self.palettes["green"]) & visible & ~blue & ~red
        return blue, red, green

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    @staticmethod
    def _find_border(blue: np.ndarray) -> BorderBox:
        """Bounding box of the blue marks, edges inclusive"""
        ys, xs = np.nonzero(blue)
        return BorderBox(
            left=int(xs.min()),
            right=int(xs.max()),
            top=int(ys.min()),
            bottom=int(ys.max()),
        )

    @staticmethod
    def _find_center(red: np.ndarray, width: int, height: int) -> Point:
        ys, xs = np.nonzero(red)
        if xs.size == 0:
            return Point(x=width / 2, y=height / 2)
        return Point(x=float(xs.mean()), y=float(ys.mean()))

    def _find_rotation(self, green: np.ndarray) -> float:
        ys, xs = np.nonzero(green)
        if xs.size <= self.min_green_pixels:
            return 0.0

        order = np.lexsort((ys, xs))
        xs, ys = xs[order], ys[order]
        k = max(1, int(xs.size * self.endpoint_fraction))

        start_x, start_y = xs[:k].mean(), ys[:k].mean()
        end_x, end_y = xs[-k:].mean(), ys[-k:].mean()
        return math.degrees(math.atan2(end_y - start_y, end_x - start_x))


def detect_annotations(pixels: PixelInput, width: int, height: int) -> Optional[AnnotationResult]:
    """Run the detector with default settings"""
    return AnnotationDetector().detect(pixels, width, height)
