"""
Core Data Models for the Template Field Engine

This module defines the shared data structures used across the engine:
- FieldKind: Enum of input kinds a template field can have
- SelectOption / FieldDefinition: Parsed field metadata for one element
- PatchReport: Partial-success summary of a patch replay
- BorderBox / ContentSize / Point / AnnotationResult: Output of the
  annotation detector

These models serve as the common interface between:
- ConventionParser (produces FieldDefinition)
- TemplateRenderer (consumes FieldDefinition)
- PatchEngine (produces PatchReport)
- AnnotationDetector (produces AnnotationResult)

Coordinate System (annotation results):
- Pixel coordinates with origin at the top-left of the image
- x grows to the right, y grows downwards
- Box edges are inclusive pixel indices
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


Scalar = Union[str, int, float, bool]


class FieldKind(str, Enum):
    """
    Kind of template field.

    The kind decides which input the form layer offers and how the
    renderer writes the value back into the element.
    """
    TEXT = "text"
    TEXTAREA = "textarea"
    CHECKBOX = "checkbox"
    DATE = "date"
    UPLOAD = "upload"
    NUMBER = "number"
    EMAIL = "email"
    TEL = "tel"
    URL = "url"
    PASSWORD = "password"
    RANGE = "range"
    COLOR = "color"
    FILE = "file"
    SELECT = "select"
    STATIC = "static"

    @property
    def is_textual(self) -> bool:
        """True when the value is written as element text content"""
        return self not in (
            FieldKind.CHECKBOX,
            FieldKind.UPLOAD,
            FieldKind.FILE,
            FieldKind.SELECT,
            FieldKind.STATIC,
        )

    @property
    def is_image(self) -> bool:
        """True when the value is a data reference for an image source"""
        return self in (FieldKind.UPLOAD, FieldKind.FILE)


@dataclass
class SelectOption:
    """
    One choice of a select group.

    Attributes:
        value: Value submitted when this option is chosen (element text)
        label: Human-readable label shown to the end user
        source_element_id: Full identifier of the element that renders it
    """
    value: str
    label: str
    source_element_id: str

    def to_dict(self) -> dict:
        return {
            'value': self.value,
            'label': self.label,
            'source_element_id': self.source_element_id,
        }


@dataclass
class FieldDefinition:
    """
    Parsed metadata describing one editable unit of a template.

    A FieldDefinition is derived (never hand-authored) from a document
    element's identifier every time the document is parsed.

    Attributes:
        id: Stable base identifier, unique within one document's field set
        name: Human-readable label derived from id
        kind: FieldKind of the field
        svg_element_id: Full original identifier string of the element
        identity: Stable identity of the element (see identity.py)
        default_value: Value found in the document
        current_value: Value to render (starts equal to default_value)
        max_length / min_length: Optional bounds from max_N / min_N tokens
        date_format: Optional display format for date fields
        generation_rule: Optional generation rule source
        generation_mode: Optional execution hint ("auto")
        depends_on: Optional reference to another field (may carry an
                    extraction suffix such as "Name[w1]")
        editable: False when the identifier carries editable_false
        options: Select choices, in document order
        hidden_when: "checked" / "unchecked" visibility rule, if any
        rotation: Optional rotation in degrees, set by the caller
        tracking_id: True for the document's main tracking id field
        tracking_link: URL where the tracking id is looked up (link_<url>)
        tracking_role: Role name from a trailing track_<role> token
        grayscale: Render image fields in grayscale
    """
    id: str
    name: str
    kind: FieldKind
    svg_element_id: str
    identity: Optional[str] = None
    default_value: Optional[Scalar] = None
    current_value: Optional[Scalar] = None
    max_length: Optional[int] = None
    min_length: Optional[int] = None
    date_format: Optional[str] = None
    generation_rule: Optional[str] = None
    generation_mode: Optional[str] = None
    depends_on: Optional[str] = None
    editable: bool = True
    options: List[SelectOption] = field(default_factory=list)
    hidden_when: Optional[str] = None
    rotation: Optional[float] = None
    tracking_id: bool = False
    tracking_link: Optional[str] = None
    tracking_role: Optional[str] = None
    grayscale: bool = False

    def __post_init__(self):
        """Validate field definition data"""
        if not self.id:
            raise ValueError("id must be a non-empty string")
        if not isinstance(self.kind, FieldKind):
            raise TypeError(f"kind must be FieldKind enum, got {type(self.kind)}")
        if self.max_length is not None and self.max_length < 0:
            raise ValueError(f"max_length must be >= 0, got {self.max_length}")
        if self.min_length is not None and self.min_length < 0:
            raise ValueError(f"min_length must be >= 0, got {self.min_length}")
        if self.hidden_when not in (None, "checked", "unchecked"):
            raise ValueError(f"hidden_when must be 'checked' or 'unchecked', got {self.hidden_when}")

    @property
    def is_select(self) -> bool:
        return self.kind == FieldKind.SELECT and bool(self.options)

    @property
    def is_generated(self) -> bool:
        return bool(self.generation_rule)

    def to_dict(self) -> dict:
        """
        Convert to dictionary for serialization.

        Returns:
            Dict representation suitable for JSON serialization
        """
        return {
            'id': self.id,
            'name': self.name,
            'kind': self.kind.value,
            'svg_element_id': self.svg_element_id,
            'identity': self.identity,
            'default_value': self.default_value,
            'current_value': self.current_value,
            'max_length': self.max_length,
            'min_length': self.min_length,
            'date_format': self.date_format,
            'generation_rule': self.generation_rule,
            'generation_mode': self.generation_mode,
            'depends_on': self.depends_on,
            'editable': self.editable,
            'options': [option.to_dict() for option in self.options],
            'hidden_when': self.hidden_when,
            'rotation': self.rotation,
            'tracking_id': self.tracking_id,
            'tracking_link': self.tracking_link,
            'tracking_role': self.tracking_role,
            'grayscale': self.grayscale,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FieldDefinition':
        """
        Create FieldDefinition from dictionary.

        Args:
            data: Dict with field definition data (as produced by to_dict)

        Returns:
            FieldDefinition instance
        """
        return cls(
            id=data['id'],
            name=data.get('name') or data['id'].replace('_', ' '),
            kind=FieldKind(data.get('kind', FieldKind.TEXT.value)),
            svg_element_id=data.get('svg_element_id', data['id']),
            identity=data.get('identity'),
            default_value=data.get('default_value'),
            current_value=data.get('current_value'),
            max_length=data.get('max_length'),
            min_length=data.get('min_length'),
            date_format=data.get('date_format'),
            generation_rule=data.get('generation_rule'),
            generation_mode=data.get('generation_mode'),
            depends_on=data.get('depends_on'),
            editable=data.get('editable', True),
            options=[
                SelectOption(
                    value=option['value'],
                    label=option.get('label', option['value']),
                    source_element_id=option['source_element_id'],
                )
                for option in data.get('options') or []
            ],
            hidden_when=data.get('hidden_when'),
            rotation=data.get('rotation'),
            tracking_id=data.get('tracking_id', False),
            tracking_link=data.get('tracking_link'),
            tracking_role=data.get('tracking_role'),
            grayscale=data.get('grayscale', False),
        )


@dataclass
class PatchReport:
    """
    Partial-success summary of one patch replay.

    Attributes:
        applied: Number of patches that changed the document
        total: Number of patches supplied
        skipped: Indices (into the supplied list) of skipped patches
    """
    applied: int = 0
    total: int = 0
    skipped: List[int] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def complete(self) -> bool:
        return self.applied == self.total

    def __str__(self) -> str:
        return f"{self.applied}/{self.total}"


@dataclass
class BorderBox:
    """Content box edges in pixel coordinates (inclusive, top-left origin)"""
    left: int
    right: int
    top: int
    bottom: int

    def __post_init__(self):
        if self.right < self.left:
            raise ValueError(f"right must be >= left, got {self.right} < {self.left}")
        if self.bottom < self.top:
            raise ValueError(f"bottom must be >= top, got {self.bottom} < {self.top}")


@dataclass
class ContentSize:
    """Size of the annotated content area in pixels"""
    width: int
    height: int
    aspect_ratio: float


@dataclass
class Point:
    x: float
    y: float


@dataclass
class AnnotationResult:
    """
    Geometry inferred from color-coded marker pixels of one image.

    Attributes:
        image_width / image_height: Size of the analysed image
        border: Bounding box of the blue marker pixels (edges inclusive)
        content: Border box width (right - left), height (bottom - top) and ratio
        center: Red marker centroid, or the image center without red marks
        rotation_degrees: Angle of the green marker line (0 without one)
        border_thickness: min(left, top, image_width - right, image_height - bottom)
        marker_pixel_count: Number of blue marker pixels
        confidence: Density heuristic in [0, 1]
    """
    image_width: int
    image_height: int
    border: BorderBox
    content: ContentSize
    center: Point
    rotation_degrees: float
    border_thickness: int
    marker_pixel_count: int
    confidence: float

    def __post_init__(self):
        """Validate annotation data"""
        if self.image_width <= 0 or self.image_height <= 0:
            raise ValueError(
                f"image size must be positive, got {self.image_width}x{self.image_height}"
            )
        if not (0.0 <= self.confidence <= 1.0):
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")
        if self.marker_pixel_count < 0:
            raise ValueError(f"marker_pixel_count must be >= 0, got {self.marker_pixel_count}")

    def to_dict(self) -> dict:
        """
        Convert to dictionary for serialization.

        Returns:
            Dict representation suitable for JSON serialization
        """
        return {
            'image_width': self.image_width,
            'image_height': self.image_height,
            'border': {
                'left': self.border.left,
                'right': self.border.right,
                'top': self.border.top,
                'bottom': self.border.bottom,
            },
            'content': {
                'width': self.content.width,
                'height': self.content.height,
                'aspect_ratio': self.content.aspect_ratio,
            },
            'center': {'x': self.center.x, 'y': self.center.y},
            'rotation_degrees': self.rotation_degrees,
            'border_thickness': self.border_thickness,
            'marker_pixel_count': self.marker_pixel_count,
            'confidence': self.confidence,
        }
