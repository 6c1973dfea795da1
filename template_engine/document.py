"""
SVG Document Arena

This module wraps a parsed SVG tree in an arena of element records
addressed by integer handles. All engine components read and mutate the
document through this interface:
- element iteration in document order
- attribute get / set / remove (``xlink:href`` style names are accepted)
- text content get / set, including tspan-aware line extraction
- element reordering within a parent
- serialization back to markup

Handles:
- A handle is assigned the first time an element is seen and never reused
- Handles stay valid across reordering and attribute/text mutation
- Elements created through ``append_child`` receive new handles

Parsing uses ``xml.etree.ElementTree``; the SVG and XLink namespaces are
registered so that serialized output keeps the default ``svg`` namespace and
the ``xlink:`` prefix.
"""

import copy as _copy
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional

from .config import settings
from .errors import MalformedDocumentError


SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"
XML_NS = "http://www.w3.org/XML/1998/namespace"

NAMESPACE_PREFIXES = {
    "svg": SVG_NS,
    "xlink": XLINK_NS,
    "xml": XML_NS,
}

ET.register_namespace("", SVG_NS)
ET.register_namespace("xlink", XLINK_NS)

# Containers whose subtree never carries template content
NON_CONTENT_TAGS = frozenset({
    "defs", "style", "linearGradient", "radialGradient",
    "pattern", "clipPath", "mask", "filter",
    "feGaussianBlur", "feOffset", "feFlood",
    "feComposite", "feMerge", "feMergeNode",
})

NBSP = "\u00a0"

_TAG_RE = re.compile(r"^\{[^}]*\}")


def local_name(tag: str) -> str:
    """Strip the ``{namespace}`` part of an ElementTree tag or attribute name"""
    if not isinstance(tag, str):
        return ""
    return _TAG_RE.sub("", tag)


def qualify(name: str) -> str:
    """Turn ``xlink:href`` into ElementTree's ``{namespace}href`` form"""
    if ":" in name and not name.startswith("{"):
        prefix, local = name.split(":", 1)
        namespace = NAMESPACE_PREFIXES.get(prefix)
        if namespace:
            return f"{{{namespace}}}{local}"
    return name


def display_name(name: str) -> str:
    """Inverse of ``qualify`` for the registered prefixes"""
    if name.startswith("{"):
        namespace, local = name[1:].split("}", 1)
        for prefix, uri in NAMESPACE_PREFIXES.items():
            if uri == namespace:
                return f"{prefix}:{local}"
        return local
    return name


@dataclass
class ElementInfo:
    """
    Flat description of one element for editor listings.

    Attributes:
        handle: Arena handle of the element
        tag: Local tag name
        id: The element's ``id`` attribute, if any
        internal_id: The element's identity attribute, if any
        attributes: All attributes (prefixed names for namespaced ones)
        inner_text: Text content, tspan lines joined by newlines
    """
    handle: int
    tag: str
    id: Optional[str] = None
    internal_id: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)
    inner_text: Optional[str] = None


class SvgDocument:
    """
    Mutable SVG document addressed through stable element handles.

    Example:
        doc = SvgDocument.parse(svg_text)
        for handle in doc.handles():
            if doc.get(handle, "id") == "Name.text":
                doc.set_text(handle, "Jane")
        output = doc.serialize()
    """

    def __init__(self, root: ET.Element):
        if local_name(root.tag) != "svg":
            raise MalformedDocumentError(
                f"root element must be <svg>, got <{local_name(root.tag)}>"
            )
        self._root = root
        self._elements: List[ET.Element] = []
        self._handle_of: Dict[int, int] = {}
        self._parents: Optional[Dict[int, ET.Element]] = None
        for element in root.iter():
            self._register(element)

    @classmethod
    def parse(cls, text: str) -> 'SvgDocument':
        """
        Parse SVG markup.

        Args:
            text: SVG markup

        Returns:
            SvgDocument instance

        Raises:
            MalformedDocumentError: markup is empty, not well-formed XML, or
                                    its root is not an svg element
        """
        if not text or not text.strip():
            raise MalformedDocumentError("document is empty")
        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            raise MalformedDocumentError("document is not well-formed XML", original=e)
        return cls(root)

    # ------------------------------------------------------------------
    # Handles and traversal
    # ------------------------------------------------------------------

    def _register(self, element: ET.Element) -> int:
        key = id(element)
        handle = self._handle_of.get(key)
        if handle is None:
            handle = len(self._elements)
            self._elements.append(element)
            self._handle_of[key] = handle
        return handle

    def _element(self, handle: int) -> ET.Element:
        try:
            return self._elements[handle]
        except (IndexError, TypeError):
            raise KeyError(f"unknown element handle: {handle}")

    @property
    def root(self) -> int:
        return self._handle_of[id(self._root)]

    def handles(self) -> List[int]:
        """All element handles in current document order (root first)"""
        return [self._register(element) for element in self._root.iter()
                if isinstance(element.tag, str)]

    def __iter__(self) -> Iterator[int]:
        return iter(self.handles())

    def __len__(self) -> int:
        return len(self.handles())

    def tag(self, handle: int) -> str:
        return local_name(self._element(handle).tag)

    def parent(self, handle: int) -> Optional[int]:
        if self._parents is None:
            self._parents = {
                id(child): parent for parent in self._root.iter() for child in parent
            }
        parent = self._parents.get(id(self._element(handle)))
        if parent is None:
            return None
        return self._register(parent)

    def children(self, handle: int) -> List[int]:
        return [self._register(child) for child in self._element(handle)
                if isinstance(child.tag, str)]

    def ancestors(self, handle: int) -> Iterator[int]:
        current = self.parent(handle)
        while current is not None:
            yield current
            current = self.parent(current)

    def is_content(self, handle: int) -> bool:
        """False for non-content containers and everything beneath them"""
        if self.tag(handle) in NON_CONTENT_TAGS:
            return False
        return not any(self.tag(a) in NON_CONTENT_TAGS for a in self.ancestors(handle))

    def is_placeholder(self, handle: int, phrase: Optional[str] = None) -> bool:
        """True when the trimmed text equals the reserved filler phrase"""
        phrase = settings.placeholder_phrase if phrase is None else phrase
        if not phrase:
            return False
        return self.text(handle).strip().lower() == phrase.strip().lower()

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------

    def get(self, handle: int, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._element(handle).get(qualify(name), default)

    def has(self, handle: int, name: str) -> bool:
        return qualify(name) in self._element(handle).attrib

    def set(self, handle: int, name: str, value) -> None:
        self._element(handle).set(qualify(name), str(value))

    def remove(self, handle: int, name: str) -> None:
        self._element(handle).attrib.pop(qualify(name), None)

    def attributes(self, handle: int) -> Dict[str, str]:
        return {display_name(k): v for k, v in self._element(handle).attrib.items()}

    def find(self, value: str, attributes: Iterable[str]) -> Optional[int]:
        """
        Locate the first element whose attribute equals ``value``.

        Attributes are tried in the given order; the whole document is
        searched for one attribute before moving on to the next.

        Args:
            value: Attribute value to look for
            attributes: Attribute names in lookup priority order

        Returns:
            Handle of the element, or None
        """
        if not value:
            return None
        handles = self.handles()
        for name in attributes:
            key = qualify(name)
            for handle in handles:
                if self._elements[handle].get(key) == value:
                    return handle
        return None

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def text(self, handle: int) -> str:
        """Concatenated text of the element and all its descendants"""
        return "".join(self._element(handle).itertext())

    def lines(self, handle: int) -> List[str]:
        """
        Text split into the lines a reader sees.

        Direct text and each child ``tspan`` form separate lines; without
        tspans the whole (trimmed) text content is one line.
        """
        element = self._element(handle)
        tspans = [child for child in element if local_name(child.tag) == "tspan"]
        if not tspans:
            text = self.text(handle).strip()
            return [text] if text else []

        lines = []
        if element.text and element.text.strip():
            lines.append(element.text.strip())
        for child in element:
            if local_name(child.tag) == "tspan":
                line = "".join(child.itertext()).replace(NBSP, "")
                if line:
                    lines.append(line)
            if child.tail and child.tail.strip():
                lines.append(child.tail.strip())
        return lines

    def display_text(self, handle: int) -> str:
        return "\n".join(self.lines(handle))

    def set_text(self, handle: int, value: str) -> None:
        """Replace all content of the element with plain text"""
        element = self._element(handle)
        for child in list(element):
            element.remove(child)
        element.text = value
        self._parents = None

    def clear(self, handle: int) -> None:
        self.set_text(handle, None)

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def append_child(self, handle: int, tag: str, attributes: Optional[Dict[str, str]] = None,
                     text: Optional[str] = None) -> int:
        """Create ``tag`` (in the SVG namespace) as the last child of ``handle``"""
        parent = self._element(handle)
        child = ET.SubElement(parent, f"{{{SVG_NS}}}{tag}")
        for name, value in (attributes or {}).items():
            child.set(qualify(name), str(value))
        child.text = text
        self._parents = None
        return self._register(child)

    def _move(self, handle: int, reference: int, after: bool) -> bool:
        if handle == reference:
            return False
        parent_handle = self.parent(handle)
        if parent_handle is None or parent_handle != self.parent(reference):
            return False
        parent = self._element(parent_handle)
        element = self._element(handle)
        parent.remove(element)
        index = list(parent).index(self._element(reference))
        parent.insert(index + 1 if after else index, element)
        self._parents = None
        return True

    def move_before(self, handle: int, reference: int) -> bool:
        """Move ``handle`` immediately before its sibling ``reference``"""
        return self._move(handle, reference, after=False)

    def move_after(self, handle: int, reference: int) -> bool:
        """Move ``handle`` immediately after its sibling ``reference``"""
        return self._move(handle, reference, after=True)

    # ------------------------------------------------------------------
    # Listing and output
    # ------------------------------------------------------------------

    def list_elements(self, identity_attribute: Optional[str] = None) -> List[ElementInfo]:
        """
        Describe every element below the root for an editor element list.

        Elements holding only the reserved filler phrase are left out.
        """
        identity_attribute = identity_attribute or settings.identity_attribute
        infos = []
        for handle in self.handles():
            if handle == self.root or self.is_placeholder(handle):
                continue
            inner_text = self.display_text(handle)
            infos.append(ElementInfo(
                handle=handle,
                tag=self.tag(handle),
                id=self.get(handle, "id"),
                internal_id=self.get(handle, identity_attribute),
                attributes=self.attributes(handle),
                inner_text=inner_text or None,
            ))
        return infos

    def serialize(self) -> str:
        return ET.tostring(self._root, encoding="unicode")

    def copy(self) -> 'SvgDocument':
        """Deep copy; handles of the copy match the handles of this document"""
        clone = SvgDocument.__new__(SvgDocument)
        clone._root = _copy.deepcopy(self._root)
        clone._elements = []
        clone._handle_of = {}
        clone._parents = None
        mapping = dict(zip(
            (id(e) for e in self._root.iter()),
            clone._root.iter(),
        ))
        # Reproduce this arena's handle numbering for elements still attached
        for element in self._elements:
            copied = mapping.get(id(element))
            clone._elements.append(copied if copied is not None else ET.Element("detached"))
            if copied is not None:
                clone._handle_of[id(copied)] = len(clone._elements) - 1
        for element in clone._root.iter():
            clone._register(element)
        return clone

    def __str__(self) -> str:
        return self.serialize()
