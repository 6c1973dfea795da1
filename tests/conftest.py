"""
Shared fixtures: template markup, synthetic RGBA marker images and a font file.
"""

import random

import numpy as np
import pytest
from PIL import ImageFont

from template_engine.document import SvgDocument
from template_engine.renderer import TemplateRenderer
from template_engine.text_layout import HeuristicFontMetrics


BLUE = (0, 0, 255, 255)
RED = (255, 0, 0, 255)
GREEN = (0, 255, 0, 255)

TEMPLATE_SVG = """<svg xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink" width="400" height="300">
  <defs>
    <linearGradient id="Grad.text"><stop offset="0"/></linearGradient>
  </defs>
  <text id="Title" x="10" y="20">Employee Card</text>
  <text id="Full_Name.text.max_30" x="10" y="40" font-family="Arial" font-size="20">John Smith</text>
  <text id="First.depends_Full_Name[w1]" x="10" y="60">First</text>
  <text id="Code.gen_FL(rn[5]).mode[auto]" x="10" y="80">XXXX</text>
  <text id="Issued.date_format[DD/MM/YYYY]" x="10" y="100">2024-03-05</text>
  <text id="Gender.select_male" x="200" y="120">Male</text>
  <text id="Gender.select_female" x="200" y="120">Female</text>
  <image id="Photo.upload" x="10" y="130" width="100" height="100" xlink:href=""/>
  <path id="Agree.checkbox" d="M0 0 L10 10"/>
  <text x="10" y="280">Test Document</text>
</svg>"""

LAYERED_SVG = """<svg xmlns="http://www.w3.org/2000/svg">
  <g id="layer">
    <rect id="A" width="10" height="10"/>
    <rect id="B"/>
    <rect id="C"/>
  </g>
  <text id="Label">Hello</text>
  <rect class="plain"/>
  <rect class="plain"/>
</svg>"""


@pytest.fixture
def template_svg():
    return TEMPLATE_SVG


@pytest.fixture
def template_document():
    return SvgDocument.parse(TEMPLATE_SVG)


@pytest.fixture
def layered_svg():
    return LAYERED_SVG


@pytest.fixture
def renderer():
    """Renderer with deterministic metrics and random source"""
    return TemplateRenderer(font_metrics=HeuristicFontMetrics(), rng=random.Random(7))


@pytest.fixture
def rgba_image():
    """Factory for opaque black RGBA images"""
    def make(width: int = 100, height: int = 100) -> np.ndarray:
        image = np.zeros((height, width, 4), dtype=np.uint8)
        image[:, :, 3] = 255
        return image
    return make


def outline(image: np.ndarray, left: int, top: int, right: int, bottom: int, line: int = 1) -> np.ndarray:
    """Paint a blue rectangle outline whose outer edges sit on the given box (inclusive)"""
    image[top:top + line, left:right + 1] = BLUE
    image[bottom - line + 1:bottom + 1, left:right + 1] = BLUE
    image[top:bottom + 1, left:left + line] = BLUE
    image[top:bottom + 1, right - line + 1:right + 1] = BLUE
    return image


def framed(inset: int = 10, width: int = 100, height: int = 100, line: int = 1) -> np.ndarray:
    """Opaque black image with a blue outline inset from every edge"""
    image = np.zeros((height, width, 4), dtype=np.uint8)
    image[:, :, 3] = 255
    return outline(image, inset, inset, width - inset, height - inset, line)


@pytest.fixture
def framed_image():
    """Factory for framed marker images"""
    return framed


@pytest.fixture
def bundled_font_file(tmp_path):
    """Pillow's built-in FreeType font written out as a .ttf file"""
    font = ImageFont.load_default(size=10)
    if not isinstance(font, ImageFont.FreeTypeFont):
        pytest.skip("Pillow built without FreeType support")
    path = tmp_path / "bundled.ttf"
    path.write_bytes(font.font_bytes)
    return str(path)


def element_by_id(document: SvgDocument, identifier: str) -> int:
    handle = document.find(identifier, ["id"])
    assert handle is not None, f"no element with id {identifier!r}"
    return handle
