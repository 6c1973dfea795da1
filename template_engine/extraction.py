"""
Value extraction from other fields.

Supports:
- Name            - whole value
- Name[w2]        - second whitespace-delimited word (1-indexed)
- Name[ch3]       - third character
- Name[ch1-4]     - characters 1 through 4
- Name[ch1,2,5]   - characters 1, 2 and 5

Image data references (``data:image/...`` and ``blob:`` URLs) are always
returned whole; word/character extraction makes no sense for them.
"""

import re
from typing import Any, Mapping, Optional

_EXTRACTION_RE = re.compile(r"^(?P<name>.+?)\[(?P<kind>w|ch)(?P<pattern>.+)\]$")
_INT_RE = re.compile(r"-?\d+")


def stringify(value: Any) -> str:
    """Render a field value the way it appears in a document"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _to_int(text: str) -> Optional[int]:
    match = _INT_RE.search(text)
    return int(match.group()) if match else None


def is_image_reference(value: Any) -> bool:
    return isinstance(value, str) and (value.startswith("data:image/") or value.startswith("blob:"))


def extract_word(text: str, pattern: str) -> str:
    words = text.split()
    index = _to_int(pattern)
    if index is None or index < 1 or index > len(words):
        return ""
    return words[index - 1]


def extract_chars(text: str, pattern: str) -> str:
    # ch1,2,5
    if "," in pattern:
        picked = []
        for part in pattern.split(","):
            index = _to_int(part)
            if index is not None and 1 <= index <= len(text):
                picked.append(text[index - 1])
        return "".join(picked)

    # ch1-4
    if "-" in pattern:
        start_text, end_text = pattern.split("-", 1)
        start, end = _to_int(start_text), _to_int(end_text)
        if start is None or end is None:
            return ""
        return text[max(start, 1) - 1:max(end, 0)]

    # ch3
    index = _to_int(pattern)
    if index is None or index < 1 or index > len(text):
        return ""
    return text[index - 1]


def apply_extraction(value: str, kind: Optional[str], pattern: Optional[str]) -> str:
    if kind == "w":
        return extract_word(value, pattern or "")
    if kind == "ch":
        return extract_chars(value, pattern or "")
    return value


def split_reference(reference: str):
    """Split ``Name[w1]`` into (``Name``, ``w``, ``1``); plain names give (name, None, None)"""
    match = _EXTRACTION_RE.match(reference)
    if match:
        return match.group("name"), match.group("kind"), match.group("pattern")
    return reference, None, None


def base_reference(reference: str) -> str:
    """Field name of a reference with any extraction suffix removed"""
    return reference.split("[", 1)[0]


def extract_from_dependency(reference: str, known_fields: Mapping[str, Any]) -> str:
    """
    Resolve a ``depends_`` reference against known field values.

    Args:
        reference: Field name, optionally followed by [wN] or [ch...]
        known_fields: Field id -> current value

    Returns:
        Extracted string; "" when the field is unknown
    """
    name, kind, pattern = split_reference(reference)
    if name not in known_fields:
        name = base_reference(reference)
    raw = known_fields.get(name)
    if is_image_reference(raw):
        return raw
    return apply_extraction(stringify(raw), kind, pattern)
