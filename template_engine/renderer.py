"""
Template Renderer

Projects field values back into a document.

How it works:
1. Copies the input document (the caller's document is never mutated)
2. Resolves every field's value, in field order:
   depends_on extraction > generation rule > supplied value > current value
   Resolved values feed the fields that come after them
3. Locates each field's element by identity (falling back to its id) and
   writes the value according to the field kind:
   - text kinds: text content, one tspan per line for multi-line values
   - date: formatted with date_format first
   - upload / file: image source attribute, verbatim
   - checkbox: visibility attributes
   - select: shows the chosen option element, hides the others
   - static: untouched
4. Applies rotation transforms and hide_checked / hide_unchecked toggles

Multi-line layout:
- Each line is a tspan at the element's x anchor
- Consecutive lines are ``ascent + descent + 0.2 * font_size`` apart, with
  ascent/descent measured for the element's own font (text_layout.py)
"""

import random
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from .config import settings
from .convention_parser import ConventionParser
from .date_format import format_date
from .document import NBSP, SvgDocument
from .extraction import base_reference, extract_from_dependency, stringify
from .generation import generate_value
from .identity import assign_identities
from .models import FieldDefinition, FieldKind
from .text_layout import (
    FontMetricsProvider,
    PillowFontMetrics,
    font_of,
    line_height,
    wrap_text,
)
from .utils.logging import get_logger

logger = get_logger(__name__)

TRUTHY = frozenset({"true", "1", "yes", "on", "checked"})
GRAYSCALE_FILTER = "grayscale(100%)"


def format_number(value: float) -> str:
    """Compact attribute number: 60.0 -> "60", 19.200000001 -> "19.2" """
    rounded = round(float(value), 4)
    if rounded.is_integer():
        return str(int(rounded))
    return str(rounded)


def is_checked(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return stringify(value).strip().lower() in TRUTHY


def _attribute_number(document: SvgDocument, handle: int, name: str) -> float:
    raw = document.get(handle, name)
    if not raw:
        return 0.0
    try:
        return float(raw.strip().rstrip("px"))
    except ValueError:
        return 0.0


def rotation_transform(document: SvgDocument, handle: int, degrees: float) -> str:
    """``rotate(θ, cx, cy)`` around the element's own geometric center"""
    x = _attribute_number(document, handle, "x")
    y = _attribute_number(document, handle, "y")
    width = _attribute_number(document, handle, "width")
    height = _attribute_number(document, handle, "height")
    cx = x + width / 2
    cy = y + height / 2
    return f"rotate({format_number(degrees)}, {format_number(cx)}, {format_number(cy)})"


def set_visible(document: SvgDocument, handle: int, visible: bool) -> None:
    if visible:
        document.set(handle, "opacity", "1")
        document.set(handle, "visibility", "visible")
        document.remove(handle, "display")
    else:
        document.set(handle, "opacity", "0")
        document.set(handle, "visibility", "hidden")
        document.set(handle, "display", "none")


def set_style_property(document: SvgDocument, handle: int, name: str, value: str) -> None:
    """Set one property of the inline ``style`` attribute, keeping the others"""
    declarations = []
    for declaration in (document.get(handle, "style") or "").split(";"):
        prop, _, current = declaration.partition(":")
        if prop.strip() and prop.strip() != name:
            declarations.append(f"{prop.strip()}: {current.strip()}")
    declarations.append(f"{name}: {value}")
    document.set(handle, "style", "; ".join(declarations))


class TemplateRenderer:
    """
    Writes field values into a copy of a template document.

    Example:
        renderer = TemplateRenderer()
        fields = ConventionParser().parse(document)
        output = renderer.render(document, fields, values={"Full_Name": "Jane Doe"})
        markup = output.serialize()
    """

    def __init__(
        self,
        font_metrics: Optional[FontMetricsProvider] = None,
        rng: Optional[random.Random] = None,
        identity_attribute: Optional[str] = None,
        debug: bool = False,
    ):
        """
        Initialize the renderer.

        Args:
            font_metrics: Font measurement backend (PillowFontMetrics with
                          settings.font_files by default)
            rng: Random source for generation rules; each render call uses a
                 private instance when omitted
            identity_attribute: Attribute holding element identities
            debug: If True, log every written field
        """
        self.font_metrics = font_metrics or PillowFontMetrics()
        self.rng = rng
        self.identity_attribute = identity_attribute or settings.identity_attribute
        self.debug = debug

    def render(
        self,
        document: SvgDocument,
        fields: List[FieldDefinition],
        values: Optional[Mapping[str, Any]] = None,
        changed: Optional[Iterable[str]] = None,
        wrap_widths: Optional[Mapping[str, float]] = None,
        toggles: Optional[Mapping[str, bool]] = None,
    ) -> SvgDocument:
        """
        Render field values into a copy of ``document``.

        Args:
            document: Template document
            fields: Field definitions parsed from the document
            values: Field id -> value supplied by the user
            changed: When given, only these field ids (and fields depending
                     on them) are written
            wrap_widths: Field id -> maximum line width for word wrapping
            toggles: Field id -> checked state for hide_checked /
                     hide_unchecked fields that are not checkboxes

        Returns:
            The rendered copy
        """
        values = values or {}
        wrap_widths = wrap_widths or {}
        toggles = toggles or {}
        rng = self.rng or random.Random()

        output = document.copy()
        by_identity = {
            identity: handle
            for handle, identity in assign_identities(output, self.identity_attribute).items()
        }
        targets = self._render_targets(fields, changed)

        known: Dict[str, Any] = {}
        for definition in fields:
            known[definition.id] = self._exposed(definition, self._given(definition, values))

        written = 0
        for definition in fields:
            if definition.id not in targets:
                continue
            value = self.resolve_value(definition, values, known, rng)
            known[definition.id] = self._exposed(definition, value)

            if definition.kind == FieldKind.STATIC:
                continue
            handle = self._locate(output, definition, by_identity)
            if handle is None:
                logger.debug(f"No element for field {definition.id!r}")
                continue

            self._write(output, handle, definition, value, wrap_widths.get(definition.id))
            self._apply_rotation(output, handle, definition)
            if definition.hidden_when and definition.kind != FieldKind.CHECKBOX:
                self._apply_toggle(output, handle, definition, toggles.get(definition.id, False))
            written += 1

            if self.debug:
                logger.debug(f"Rendered {definition.id} ({definition.kind.value})")

        logger.info(f"Rendered {written} of {len(fields)} fields")
        return output

    def resolve_value(
        self,
        definition: FieldDefinition,
        values: Mapping[str, Any],
        known: Mapping[str, Any],
        rng: Optional[random.Random] = None,
    ) -> Any:
        """
        Value a field renders with.

        Order: depends_on extraction, generation rule (mode "auto", or no
        value at all), supplied value, current value.
        """
        if definition.depends_on:
            return extract_from_dependency(definition.depends_on, known)

        given = self._given(definition, values)
        if definition.generation_rule and (
            definition.generation_mode == "auto" or given is None or given == ""
        ):
            return generate_value(
                definition.generation_rule,
                known,
                max_length=definition.max_length,
                rng=rng or self.rng,
            )
        return given

    # ------------------------------------------------------------------
    # Value plumbing
    # ------------------------------------------------------------------

    @staticmethod
    def _given(definition: FieldDefinition, values: Mapping[str, Any]) -> Any:
        if definition.id in values:
            return values[definition.id]
        return definition.current_value

    @staticmethod
    def _exposed(definition: FieldDefinition, value: Any) -> Any:
        """Selects are referenced by their option label"""
        if definition.kind == FieldKind.SELECT:
            for option in definition.options:
                if option.value == stringify(value):
                    return option.label
        return value

    @staticmethod
    def _render_targets(fields: List[FieldDefinition], changed: Optional[Iterable[str]]) -> Set[str]:
        if changed is None:
            return {definition.id for definition in fields}
        targets = set(changed)
        for definition in fields:
            if definition.depends_on and base_reference(definition.depends_on) in targets:
                targets.add(definition.id)
        return targets

    @staticmethod
    def _locate(document: SvgDocument, definition: FieldDefinition,
                by_identity: Mapping[str, int]) -> Optional[int]:
        if definition.identity and definition.identity in by_identity:
            return by_identity[definition.identity]
        return document.find(definition.svg_element_id, ["id"])

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def _write(self, document: SvgDocument, handle: int, definition: FieldDefinition,
               value: Any, wrap_width: Optional[float]) -> None:
        kind = definition.kind

        if kind == FieldKind.SELECT:
            self._write_select(document, definition, value)
        elif kind == FieldKind.CHECKBOX:
            visible = is_checked(value)
            if definition.hidden_when == "checked":
                visible = not visible
            set_visible(document, handle, visible)
        elif kind.is_image:
            self._write_image(document, handle, value)
            if definition.grayscale:
                set_style_property(document, handle, "filter", GRAYSCALE_FILTER)
        elif value is not None:
            text = stringify(value)
            if kind == FieldKind.DATE and definition.date_format:
                text = format_date(value, definition.date_format) or text
            self.write_text(document, handle, text, wrap_width)

    def write_text(self, document: SvgDocument, handle: int, text: str,
                   wrap_width: Optional[float] = None) -> None:
        """
        Write text content, laying out multiple lines as tspans.

        Args:
            document: Document to mutate
            handle: Text element
            text: Value; "\\n" starts a new line
            wrap_width: Optional maximum line width for word wrapping
        """
        family, size = font_of(document, handle)
        if wrap_width:
            lines = wrap_text(text, wrap_width, family, size, self.font_metrics)
        else:
            lines = text.split("\n")

        if len(lines) <= 1:
            document.set_text(handle, text)
            return

        spacing = format_number(line_height(self.font_metrics.metrics(family, size), size))
        x = document.get(handle, "x")
        document.clear(handle)
        for index, line in enumerate(lines):
            attributes = {}
            if x is not None:
                attributes["x"] = x
            if index > 0:
                attributes["dy"] = spacing
            document.append_child(handle, "tspan", attributes, line or NBSP)

    @staticmethod
    def _write_image(document: SvgDocument, handle: int, value: Any) -> None:
        reference = stringify(value)
        if not reference:
            return
        attribute = "href" if document.has(handle, "href") else "xlink:href"
        document.set(handle, attribute, reference)

    @staticmethod
    def _write_select(document: SvgDocument, definition: FieldDefinition, value: Any) -> None:
        selected = stringify(value)
        chosen = next(
            (option for option in definition.options if option.value == selected),
            definition.options[0] if definition.options else None,
        )
        for option in definition.options:
            handle = document.find(option.source_element_id, ["id"])
            if handle is None:
                continue
            if option is chosen:
                set_visible(document, handle, True)
            else:
                set_visible(document, handle, False)
                document.remove(handle, "style")

    @staticmethod
    def _apply_rotation(document: SvgDocument, handle: int, definition: FieldDefinition) -> None:
        if definition.rotation is None:
            return
        if definition.rotation == 0:
            document.remove(handle, "transform")
            return
        document.set(handle, "transform", rotation_transform(document, handle, definition.rotation))

    @staticmethod
    def _apply_toggle(document: SvgDocument, handle: int, definition: FieldDefinition,
                      checked: bool) -> None:
        if definition.hidden_when == "checked":
            set_visible(document, handle, not checked)
        else:
            set_visible(document, handle, checked)


def render_markup(
    svg_text: str,
    values: Optional[Mapping[str, Any]] = None,
    renderer: Optional[TemplateRenderer] = None,
    **kwargs,
) -> str:
    """
    Parse markup, derive its fields and render ``values`` into it.

    Raises:
        MalformedDocumentError: markup cannot be parsed
    """
    document = SvgDocument.parse(svg_text)
    fields = ConventionParser().parse(document)
    renderer = renderer or TemplateRenderer()
    return renderer.render(document, fields, values=values, **kwargs).serialize()
