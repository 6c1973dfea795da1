"""
SVG template field engine.

- ConventionParser: element identifiers -> FieldDefinitions
- generate_value: generation rule interpreter
- PatchEngine: deterministic replay of editor patches
- TemplateRenderer: field values -> rendered document
- AnnotationDetector: marker pixels -> crop geometry
"""

from .annotation_detector import AnnotationDetector, detect_annotations
from .convention_parser import ConventionParser, parse_fields, parse_identifier
from .document import SvgDocument
from .errors import MalformedDocumentError, TemplateEngineError
from .generation import apply_max_generation, generate_value
from .identity import assign_identities, ensure_identities
from .models import (
    AnnotationResult,
    BorderBox,
    ContentSize,
    FieldDefinition,
    FieldKind,
    PatchReport,
    Point,
    SelectOption,
)
from .patch_engine import PatchEngine, replay_patches
from .renderer import TemplateRenderer, render_markup
from .schemas import Patch, ReorderTarget
from .text_layout import FontMetrics, HeuristicFontMetrics, PillowFontMetrics

__all__ = [
    "AnnotationDetector",
    "AnnotationResult",
    "BorderBox",
    "ContentSize",
    "ConventionParser",
    "FieldDefinition",
    "FieldKind",
    "FontMetrics",
    "HeuristicFontMetrics",
    "MalformedDocumentError",
    "Patch",
    "PatchEngine",
    "PatchReport",
    "PillowFontMetrics",
    "Point",
    "ReorderTarget",
    "SelectOption",
    "SvgDocument",
    "TemplateEngineError",
    "TemplateRenderer",
    "apply_max_generation",
    "assign_identities",
    "detect_annotations",
    "ensure_identities",
    "generate_value",
    "parse_fields",
    "parse_identifier",
    "render_markup",
    "replay_patches",
]
