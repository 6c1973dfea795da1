"""
Deterministic element identity assignment.

Every eligible element gets a stable key so that patches recorded against
one parse of a base document stay valid against a later parse of the same
document:

- elements are visited in document order
- the root, non-content containers (and their subtrees) and elements that
  only hold the reserved filler phrase are skipped
- base key = ``id`` attribute, else a previously assigned identity, else
  ``el-<tag>``
- the first occurrence of a base key keeps it; later occurrences get
  ``_2``, ``_3``, ..., skipping any suffix that is itself a base key in
  the document or was already handed out
"""

from collections import defaultdict
from typing import Dict, Iterable, Optional, Set

from .config import settings
from .document import SvgDocument
from .utils.logging import get_logger

logger = get_logger(__name__)


def base_key(document: SvgDocument, handle: int, identity_attribute: Optional[str] = None) -> str:
    identity_attribute = identity_attribute or settings.identity_attribute
    return (
        document.get(handle, "id")
        or document.get(handle, identity_attribute)
        or f"el-{document.tag(handle).lower()}"
    )


def disambiguate(key: str, occurrence: int) -> str:
    """``key`` for the first occurrence, ``key_<n>`` for the n-th (n >= 2)"""
    return key if occurrence <= 1 else f"{key}_{occurrence}"


class UniqueKeys:
    """
    Hands out keys that are unique within one pass over a document.

    Literal keys passed as ``reserved`` are never produced as a suffix of
    another key, so ``x, x, x_2`` becomes ``x, x_3, x_2``.
    """

    def __init__(self, reserved: Iterable[str] = ()):
        self.reserved: Set[str] = set(reserved)
        self.issued: Set[str] = set()
        self.counts: Dict[str, int] = defaultdict(int)

    def claim(self, key: str) -> str:
        occurrence = self.counts[key] + 1
        candidate = disambiguate(key, occurrence)
        while candidate in self.issued or (occurrence > 1 and candidate in self.reserved):
            occurrence += 1
            candidate = disambiguate(key, occurrence)
        self.counts[key] = occurrence
        self.issued.add(candidate)
        return candidate


def is_eligible(document: SvgDocument, handle: int) -> bool:
    if handle == document.root:
        return False
    return document.is_content(handle) and not document.is_placeholder(handle)


def assign_identities(document: SvgDocument, identity_attribute: Optional[str] = None) -> Dict[int, str]:
    """
    Compute the identity of every eligible element without touching the document.

    Args:
        document: Parsed SVG document
        identity_attribute: Attribute holding previously assigned identities
                            (defaults to settings.identity_attribute)

    Returns:
        Dict mapping element handle -> identity, in document order
    """
    keys = {
        handle: base_key(document, handle, identity_attribute)
        for handle in document.handles()
        if is_eligible(document, handle)
    }
    allocator = UniqueKeys(keys.values())
    return {handle: allocator.claim(key) for handle, key in keys.items()}


def ensure_identities(document: SvgDocument, identity_attribute: Optional[str] = None) -> Dict[int, str]:
    """
    Write identities into the identity attribute of every eligible element.

    Returns:
        The handle -> identity map that was written
    """
    identity_attribute = identity_attribute or settings.identity_attribute
    identities = assign_identities(document, identity_attribute)
    for handle, identity in identities.items():
        document.set(handle, identity_attribute, identity)
    logger.debug(f"Assigned {len(identities)} element identities")
    return identities


def identify_markup(svg_text: str) -> str:
    """Parse markup, write identities and serialize it again"""
    document = SvgDocument.parse(svg_text)
    ensure_identities(document)
    return document.serialize()
