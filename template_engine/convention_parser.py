"""
Convention Parser

Turns structured SVG element identifiers into typed field definitions.

Identifier grammar:
    <base>[.<token>]*

    Base_Id                       -> static, non-editable field
    Full_Name.text.max_30         -> text field, max length 30
    Code.gen_FL(rn[5]).mode[auto] -> generated field, rule "FL(rn[5])"
    Gender.select_male            -> option of the "Gender" select group
    Initial.depends_Full_Name     -> value copied from Full_Name
    Issued.date.date_format[DD/MM/YYYY]
    Photo.upload                  -> image source field
    Serial.text.editable_false    -> not editable

Token rules:
- Kind tokens come from a fixed vocabulary (KIND_TOKENS); when no kind
  token is present but other tokens are, the kind is "text"
- ``max_<int>`` / ``min_<int>`` set length bounds
- ``gen_`` starts a generation rule that runs up to the earliest
  occurrence of ``.<reserved extension>`` (RESERVED_EXTENSIONS) or the end
  of the identifier. Rule text that itself contains ``.`` followed by a
  reserved word is cut there.
- ``mode[x]``, ``depends_<name>`` and ``date_format[x]`` set the
  generation mode, dependency and date format
- ``editable_false`` clears the editable flag
- ``tracking_id`` marks the main tracking id field; ``link_<url>`` is cut
  out like a generation rule and gives its tracking URL
- ``track_<role>`` names a tracking role (on any option of a select group)
- ``grayscale`` asks for grayscale rendering of upload/file fields
- Unknown tokens are ignored

Elements under non-content containers and elements holding only the
reserved filler phrase never become fields.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from .config import settings
from .document import SvgDocument
from .identity import UniqueKeys, assign_identities
from .models import FieldDefinition, FieldKind, SelectOption
from .utils.logging import get_logger

logger = get_logger(__name__)

# Reserved extension prefixes, in scan order. A generation rule ends at the
# earliest ".<prefix>" found after "gen_".
RESERVED_EXTENSIONS: Tuple[str, ...] = (
    "max_", "min_", "editable", "track", "link", "date_format", "mode",
    "hide_", "grayscale", "select_", "depends_", "tracking_id", "text",
    "email", "number", "checkbox", "gen_", "date",
)

KIND_TOKENS: Dict[str, FieldKind] = {
    "text": FieldKind.TEXT,
    "textarea": FieldKind.TEXTAREA,
    "checkbox": FieldKind.CHECKBOX,
    "date": FieldKind.DATE,
    "upload": FieldKind.UPLOAD,
    "number": FieldKind.NUMBER,
    "email": FieldKind.EMAIL,
    "tel": FieldKind.TEL,
    "url": FieldKind.URL,
    "password": FieldKind.PASSWORD,
    "range": FieldKind.RANGE,
    "color": FieldKind.COLOR,
    "file": FieldKind.FILE,
    # aliases
    "gen": FieldKind.TEXT,
    "sign": FieldKind.UPLOAD,
}

GEN_PREFIX = "gen_"
SELECT_PREFIX = "select_"
DEPENDS_PREFIX = "depends_"
LINK_PREFIX = "link_"
TRACK_PREFIX = "track_"

_BOUND_RE = re.compile(r"^(?P<which>max|min)_(?P<value>\d+)$")
_MODE_RE = re.compile(r"^mode\[(?P<value>[^\]]*)\]$")
_DATE_FORMAT_RE = re.compile(r"^date_format\[(?P<value>.*)\]$")


@dataclass
class ParsedIdentifier:
    """
    Everything a single identifier says about its field.

    Attributes:
        base: Identifier text before the first "."
        tokens: Extension tokens (generation rule and link spans excluded)
        kind: Recognised kind, None when no kind token is present
        generation_rule: Rule text after "gen_", if any
        select_value: Suffix of a "select_" token, if any
        tracking_link: URL after "link_", cut like a generation rule
    """
    base: str
    tokens: List[str] = field(default_factory=list)
    kind: Optional[FieldKind] = None
    max_length: Optional[int] = None
    min_length: Optional[int] = None
    generation_rule: Optional[str] = None
    generation_mode: Optional[str] = None
    depends_on: Optional[str] = None
    date_format: Optional[str] = None
    editable: bool = True
    select_value: Optional[str] = None
    hidden_when: Optional[str] = None
    tracking_id: bool = False
    tracking_link: Optional[str] = None
    tracking_role: Optional[str] = None
    grayscale: bool = False

    @property
    def has_extensions(self) -> bool:
        return (
            bool(self.tokens)
            or self.generation_rule is not None
            or self.tracking_link is not None
        )


def find_rule_end(text: str, reserved: Tuple[str, ...] = RESERVED_EXTENSIONS) -> int:
    """
    Index in ``text`` where a generation rule ends.

    Scans for the earliest ``.<reserved>`` occurrence; returns len(text)
    when none is found.
    """
    end = len(text)
    for name in reserved:
        index = text.find(f".{name}")
        if index != -1 and index < end:
            end = index
    return end


def cut_span(text: str, prefix: str) -> Tuple[Optional[str], str]:
    """
    Remove a ``.<prefix><value>`` span from ``text``.

    The value runs up to the earliest reserved extension (find_rule_end).

    Returns:
        (value or None when the prefix is absent, remaining text)
    """
    index = text.find(f".{prefix}")
    if index == -1:
        return None, text
    after = text[index + 1 + len(prefix):]
    end = find_rule_end(after)
    return after[:end], text[:index] + after[end:]


def split_tokens(text: str) -> List[str]:
    """Split on "." outside square brackets; empty tokens are dropped"""
    tokens = []
    depth = 0
    current = []
    for char in text:
        if char == "[":
            depth += 1
        elif char == "]" and depth > 0:
            depth -= 1
        if char == "." and depth == 0:
            tokens.append("".join(current))
            current = []
        else:
            current.append(char)
    tokens.append("".join(current))
    return [token for token in tokens if token]


def parse_identifier(identifier: str) -> ParsedIdentifier:
    """
    Parse one element identifier.

    Args:
        identifier: Full id attribute, e.g. "Code.gen_FL(rn[5]).max_7"

    Returns:
        ParsedIdentifier; malformed tokens are ignored, never raised
    """
    base, _, rest = identifier.partition(".")
    parsed = ParsedIdentifier(base=base)
    if not rest:
        return parsed

    # Cut the generation rule and the link URL out before tokenizing; their
    # text may contain dots and brackets of its own.
    rest = "." + rest
    parsed.generation_rule, rest = cut_span(rest, GEN_PREFIX)
    parsed.tracking_link, rest = cut_span(rest, LINK_PREFIX)

    parsed.tokens = split_tokens(rest)

    for token in parsed.tokens:
        if token in KIND_TOKENS:
            if parsed.kind is None:
                parsed.kind = KIND_TOKENS[token]
            continue

        match = _BOUND_RE.match(token)
        if match:
            if match.group("which") == "max":
                parsed.max_length = int(match.group("value"))
            else:
                parsed.min_length = int(match.group("value"))
            continue

        match = _MODE_RE.match(token)
        if match:
            parsed.generation_mode = match.group("value") or None
            continue

        match = _DATE_FORMAT_RE.match(token)
        if match:
            parsed.date_format = match.group("value") or None
            if parsed.kind is None:
                parsed.kind = FieldKind.DATE
            continue

        if token.startswith(DEPENDS_PREFIX):
            parsed.depends_on = token[len(DEPENDS_PREFIX):] or None
        elif token.startswith(SELECT_PREFIX):
            parsed.select_value = token[len(SELECT_PREFIX):]
        elif token == "editable_false":
            parsed.editable = False
        elif token in ("hide_checked", "hide_unchecked"):
            parsed.hidden_when = token[len("hide_"):]
        elif token == "tracking_id":
            parsed.tracking_id = True
        elif token == "grayscale":
            parsed.grayscale = True
        elif token.startswith(TRACK_PREFIX):
            parsed.tracking_role = token[len(TRACK_PREFIX):] or None

    return parsed


def humanize(base_id: str) -> str:
    return base_id.replace("_", " ").strip()


class ConventionParser:
    """
    Derives FieldDefinitions from a document's element identifiers.

    Responsibilities:
    - Visit eligible elements with non-empty ids in document order
    - Parse each identifier into kind, bounds, rules and flags
    - Group select_ options by base id into one select field
    - Give duplicate base ids "_<n>" suffixes instead of dropping fields

    Example:
        parser = ConventionParser()
        fields = parser.parse(SvgDocument.parse(svg_text))
    """

    def __init__(self, placeholder_phrase: Optional[str] = None, debug: bool = False):
        """
        Initialize the parser.

        Args:
            placeholder_phrase: Reserved filler phrase (defaults to settings)
            debug: If True, log every parsed field
        """
        self.placeholder_phrase = (
            settings.placeholder_phrase if placeholder_phrase is None else placeholder_phrase
        )
        self.debug = debug

    def parse(self, document: SvgDocument) -> List[FieldDefinition]:
        """
        Produce one FieldDefinition per eligible element.

        Args:
            document: Parsed SVG document

        Returns:
            Field definitions in document order (a select group sits at the
            position of its first option)
        """
        identities = assign_identities(document)
        fields: List[FieldDefinition] = []
        selects: Dict[str, FieldDefinition] = {}
        candidates = [
            (handle, identifier, parse_identifier(identifier))
            for handle, identifier in self._identified_elements(document)
        ]
        field_ids = UniqueKeys(parsed.base for _, _, parsed in candidates)

        for handle, identifier, parsed in candidates:
            text = document.display_text(handle)

            if parsed.select_value is not None:
                option = SelectOption(
                    value=text or humanize(parsed.select_value),
                    label=text or humanize(parsed.select_value),
                    source_element_id=identifier,
                )
                group = selects.get(parsed.base)
                if group is None:
                    group = FieldDefinition(
                        id=field_ids.claim(parsed.base),
                        name=humanize(parsed.base),
                        kind=FieldKind.SELECT,
                        svg_element_id=identifier,
                        identity=identities.get(handle),
                        default_value=option.value,
                        current_value=option.value,
                        editable=parsed.editable,
                    )
                    selects[parsed.base] = group
                    fields.append(group)
                group.options.append(option)
                if parsed.tracking_role:
                    group.tracking_role = parsed.tracking_role
                continue

            definition = self._build_field(
                parsed,
                field_id=field_ids.claim(parsed.base),
                identifier=identifier,
                identity=identities.get(handle),
                text=text,
            )
            fields.append(definition)

            if self.debug:
                logger.debug(f"Parsed {identifier!r} -> {definition.id} ({definition.kind.value})")

        logger.info(f"Parsed {len(fields)} fields ({len(selects)} select groups)")
        return fields

    def _identified_elements(self, document: SvgDocument) -> Iterator[Tuple[int, str]]:
        """Eligible (handle, id) pairs in document order"""
        for handle in document.handles():
            identifier = document.get(handle, "id")
            if not identifier or not identifier.strip():
                continue
            if handle == document.root or not document.is_content(handle):
                continue
            if document.is_placeholder(handle, self.placeholder_phrase):
                continue
            yield handle, identifier

    def _build_field(
        self,
        parsed: ParsedIdentifier,
        field_id: str,
        identifier: str,
        identity: Optional[str],
        text: str,
    ) -> FieldDefinition:
        """
        Build the FieldDefinition for a non-select element.

        Args:
            parsed: Parsed identifier
            field_id: Unique field id (base id, disambiguated)
            identifier: Full element identifier
            identity: Stable element identity
            text: Element display text

        Returns:
            FieldDefinition
        """
        if not parsed.has_extensions:
            return FieldDefinition(
                id=field_id,
                name=humanize(parsed.base),
                kind=FieldKind.STATIC,
                svg_element_id=identifier,
                identity=identity,
                default_value=text,
                current_value=text,
                editable=False,
            )

        kind = parsed.kind or FieldKind.TEXT
        value = False if kind == FieldKind.CHECKBOX else text
        return FieldDefinition(
            id=field_id,
            name=humanize(parsed.base),
            kind=kind,
            svg_element_id=identifier,
            identity=identity,
            default_value=value,
            current_value=value,
            max_length=parsed.max_length,
            min_length=parsed.min_length,
            date_format=parsed.date_format,
            generation_rule=parsed.generation_rule,
            generation_mode=parsed.generation_mode,
            depends_on=parsed.depends_on,
            editable=parsed.editable,
            hidden_when=parsed.hidden_when,
            tracking_id=parsed.tracking_id,
            tracking_link=parsed.tracking_link,
            tracking_role=parsed.tracking_role,
            grayscale=parsed.grayscale and kind.is_image,
        )


def parse_fields(svg_text: str) -> List[FieldDefinition]:
    """Parse markup and return its field definitions"""
    return ConventionParser().parse(SvgDocument.parse(svg_text))
