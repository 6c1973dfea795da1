"""
Font-aware text layout helpers.

Line spacing for multi-line text is derived from the metrics of the
element's actual font:

    line_height = ascent + descent + gap_ratio * font_size   (gap_ratio 0.2)

A fixed multiplier overlaps lines of condensed fonts and leaves large gaps
for tall ones, so metrics come from a FontMetricsProvider:
- PillowFontMetrics reads TrueType/OpenType files through Pillow
- HeuristicFontMetrics approximates (ascent 0.8em, descent 0.2em, glyph
  width 0.6em) for families without a font file
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable

from PIL import ImageFont

from .config import settings
from .document import SvgDocument
from .utils.logging import get_logger

logger = get_logger(__name__)

_STYLE_RE = re.compile(r"\s*([\w-]+)\s*:\s*([^;]+)")
_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


@dataclass(frozen=True)
class FontMetrics:
    """Vertical metrics of a font at a given size, in user units"""
    ascent: float
    descent: float

    def __post_init__(self):
        if self.ascent < 0 or self.descent < 0:
            raise ValueError(f"metrics must be >= 0, got ascent={self.ascent} descent={self.descent}")


@runtime_checkable
class FontMetricsProvider(Protocol):
    """
    Protocol for font measurement backends.

    The renderer treats measurement as an injected capability; any object
    implementing these two methods can be used.
    """

    def metrics(self, font_family: str, font_size: float) -> FontMetrics:
        ...

    def text_width(self, text: str, font_family: str, font_size: float) -> float:
        ...


class HeuristicFontMetrics:
    """Approximate metrics for when no font file is available"""

    ASCENT_RATIO = 0.8
    DESCENT_RATIO = 0.2
    CHAR_WIDTH_RATIO = 0.6

    def metrics(self, font_family: str, font_size: float) -> FontMetrics:
        return FontMetrics(
            ascent=font_size * self.ASCENT_RATIO,
            descent=font_size * self.DESCENT_RATIO,
        )

    def text_width(self, text: str, font_family: str, font_size: float) -> float:
        return len(text) * font_size * self.CHAR_WIDTH_RATIO


class PillowFontMetrics:
    """
    Measures fonts with Pillow's FreeType bindings.

    Example:
        provider = PillowFontMetrics({"Roboto": "/fonts/Roboto-Regular.ttf"})
        provider.metrics("Roboto", 16)
    """

    def __init__(
        self,
        font_files: Optional[Dict[str, str]] = None,
        fallback: Optional[FontMetricsProvider] = None,
    ):
        """
        Initialize the provider.

        Args:
            font_files: Font family -> font file path (defaults to
                        settings.font_files)
            fallback: Provider used for families without a file or whose
                      file cannot be loaded (HeuristicFontMetrics by default)
        """
        if font_files is None:
            font_files = settings.font_file_map()
        self.font_files = {family.lower(): path for family, path in font_files.items()}
        self.fallback = fallback or HeuristicFontMetrics()
        self._fonts: Dict[Tuple[str, int], Optional[ImageFont.FreeTypeFont]] = {}

    def _font(self, font_family: str, font_size: float) -> Optional[ImageFont.FreeTypeFont]:
        size = max(1, int(round(font_size)))
        key = (font_family.lower(), size)
        if key in self._fonts:
            return self._fonts[key]

        font = None
        path = self.font_files.get(font_family.lower())
        if path:
            try:
                font = ImageFont.truetype(path, size)
            except OSError as e:
                logger.warning(f"Cannot load font {font_family!r} from {path}: {e}")
        self._fonts[key] = font
        return font

    def metrics(self, font_family: str, font_size: float) -> FontMetrics:
        font = self._font(font_family, font_size)
        if font is None:
            return self.fallback.metrics(font_family, font_size)
        ascent, descent = font.getmetrics()
        # Pillow measures at an integer pixel size
        scale = font_size / font.size
        return FontMetrics(ascent=ascent * scale, descent=descent * scale)

    def text_width(self, text: str, font_family: str, font_size: float) -> float:
        font = self._font(font_family, font_size)
        if font is None:
            return self.fallback.text_width(text, font_family, font_size)
        return font.getlength(text) * (font_size / font.size)


def line_height(metrics: FontMetrics, font_size: float, gap_ratio: Optional[float] = None) -> float:
    """Distance between consecutive baselines"""
    gap_ratio = settings.line_gap_ratio if gap_ratio is None else gap_ratio
    return metrics.ascent + metrics.descent + gap_ratio * font_size


def _parse_size(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    match = _NUMBER_RE.search(value)
    if not match:
        return None
    size = float(match.group())
    return size if size > 0 else None


def _first_family(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    family = value.split(",")[0].strip().strip("'\"")
    return family or None


def font_of(document: SvgDocument, handle: int) -> Tuple[str, float]:
    """
    Font family and size in effect for an element.

    Looks at the element's own ``style`` and presentation attributes, then
    its ancestors, then the configured defaults.

    Returns:
        (font_family, font_size)
    """
    family: Optional[str] = None
    size: Optional[float] = None

    for current in [handle, *document.ancestors(handle)]:
        style = dict(
            (name.lower(), value.strip())
            for name, value in _STYLE_RE.findall(document.get(current, "style") or "")
        )
        if family is None:
            family = _first_family(style.get("font-family") or document.get(current, "font-family"))
        if size is None:
            size = _parse_size(style.get("font-size") or document.get(current, "font-size"))
        if family is not None and size is not None:
            break

    return (
        family or settings.default_font_family,
        size or settings.default_font_size,
    )


def wrap_text(
    text: str,
    max_width: float,
    font_family: str,
    font_size: float,
    provider: Optional[FontMetricsProvider] = None,
) -> List[str]:
    """
    Greedy word wrap.

    Explicit newlines always break; within a paragraph words are added
    while the measured width stays within max_width. A single word wider
    than max_width gets a line of its own.

    Returns:
        Lines of text (at least one)
    """
    provider = provider or HeuristicFontMetrics()
    if not text or max_width <= 0:
        return (text or "").split("\n")

    lines: List[str] = []
    for paragraph in text.split("\n"):
        words = paragraph.split()
        if not words:
            lines.append("")
            continue
        current = words[0]
        for word in words[1:]:
            candidate = f"{current} {word}"
            if provider.text_width(candidate, font_family, font_size) > max_width:
                lines.append(current)
                current = word
            else:
                current = candidate
        lines.append(current)
    return lines
