"""
Generation rule interpreter.

A rule is static text interleaved with parenthesized directives:

    FL(rn[12])            - "FL" + 12 random digits
    (rn[6])(ru[6])        - 6 digits then 6 uppercase letters
    (rc[4]) / (rl[4])     - mixed-case / lowercase letters
    (A[10])               - "A" repeated 10 times (or a field's value, if
                            a field is called "A")
    (Name) / (dep_Name)   - copy another field
    (Name[w1])            - first word of another field
    (Name[ch1-4])         - characters 1-4 of another field
    (<[fill])             - pad with "<" up to max_length

Fill directives are resolved last: the final ``[fill]`` directive absorbs
whatever length is left after everything else is concatenated, earlier ones
contribute nothing. Without a max_length fill is a no-op. A multi-character
fill is repeated and cut to exactly the remaining width, so text after it
survives; repeating the fill once per missing character and truncating the
whole value instead would push that trailing text past max_length.

Unresolvable references produce "" and never raise.
"""

import random
import re
import string
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from .extraction import apply_extraction, split_reference, stringify
from .utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_FILL_CHAR = "<"

_FILL_RE = re.compile(r"^(?P<char>.*?)\[fill\]$", re.DOTALL)
_RANDOM_DIGITS_RE = re.compile(r"^rn\[(?P<count>\d+)\]$")
_RANDOM_CHARS_RE = re.compile(r"^(?P<kind>rc|ru|rl)\[(?P<count>\d+)\]$")
_DUPLICATE_RE = re.compile(r"^(?P<literal>.+)\[(?P<count>\d+)\]$", re.DOTALL)

ALPHABETS = {
    "rc": string.ascii_letters,
    "ru": string.ascii_uppercase,
    "rl": string.ascii_lowercase,
}


@dataclass
class Segment:
    """One piece of a tokenized rule"""
    text: str
    directive: bool = False


def tokenize(rule: str) -> List[Segment]:
    """
    Split a rule into static text and balanced ``( ... )`` directives.

    An opening parenthesis without a matching close is kept as static text
    together with everything after it.
    """
    segments: List[Segment] = []
    buffer = []
    i = 0
    while i < len(rule):
        char = rule[i]
        if char != "(":
            buffer.append(char)
            i += 1
            continue

        depth = 0
        end = -1
        for j in range(i, len(rule)):
            if rule[j] == "(":
                depth += 1
            elif rule[j] == ")":
                depth -= 1
                if depth == 0:
                    end = j
                    break
        if end == -1:
            buffer.append(rule[i:])
            break

        if buffer:
            segments.append(Segment("".join(buffer)))
            buffer = []
        segments.append(Segment(rule[i + 1:end], directive=True))
        i = end + 1

    if buffer:
        segments.append(Segment("".join(buffer)))
    return segments


def random_digits(count: int, rng: random.Random) -> str:
    return "".join(str(rng.randrange(10)) for _ in range(count))


def random_chars(count: int, kind: str, rng: random.Random) -> str:
    alphabet = ALPHABETS.get(kind, ALPHABETS["rc"])
    return "".join(rng.choice(alphabet) for _ in range(count))


def resolve_reference(content: str, known_fields: Mapping[str, Any]) -> str:
    """Resolve ``Name``, ``dep_Name`` and their ``[w..]`` / ``[ch..]`` forms"""
    name, kind, pattern = split_reference(content)
    candidates = [name]
    if name.startswith("dep_"):
        candidates.append(name[len("dep_"):])

    for candidate in candidates:
        if candidate in known_fields and known_fields[candidate] is not None:
            return apply_extraction(stringify(known_fields[candidate]), kind, pattern)
    return ""


def resolve_directive(content: str, known_fields: Mapping[str, Any], rng: random.Random) -> str:
    """
    Evaluate one directive (the text between parentheses).

    Dispatch order: random digits, random letters, duplication, field
    reference. Anything unrecognised resolves to "".
    """
    match = _RANDOM_DIGITS_RE.match(content)
    if match:
        return random_digits(int(match.group("count")), rng)

    match = _RANDOM_CHARS_RE.match(content)
    if match:
        return random_chars(int(match.group("count")), match.group("kind"), rng)

    match = _DUPLICATE_RE.match(content)
    if match:
        literal = match.group("literal")
        count = int(match.group("count"))
        value = known_fields.get(literal)
        if value is not None and stringify(value) != "":
            return stringify(value) * count
        return literal * count

    return resolve_reference(content, known_fields)


def generate_value(
    rule: str,
    known_fields: Optional[Mapping[str, Any]] = None,
    max_length: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Generate a field value from a generation rule.

    Args:
        rule: Generation rule source, e.g. "FL(rn[5])"
        known_fields: Field id -> current value, for references
        max_length: Target length for fill directives and truncation
        rng: Random source; a private instance is created when omitted so
             concurrent calls never share state

    Returns:
        The generated string (never None)
    """
    if not rule:
        return ""
    known_fields = known_fields or {}
    rng = rng or random.Random()

    parts: List[Optional[str]] = []
    fill_chars: List[str] = []
    fill_slots: List[int] = []

    for segment in tokenize(rule):
        if not segment.directive:
            parts.append(segment.text)
            continue

        fill = _FILL_RE.match(segment.text)
        if fill:
            if max_length is None:
                continue
            fill_slots.append(len(parts))
            fill_chars.append(fill.group("char") or DEFAULT_FILL_CHAR)
            parts.append(None)
            continue

        parts.append(resolve_directive(segment.text, known_fields, rng))

    if fill_slots:
        current_length = sum(len(part) for part in parts if part is not None)
        needed = max(0, max_length - current_length)
        last = fill_slots[-1]
        for slot, char in zip(fill_slots, fill_chars):
            if slot == last:
                repeats = -(-needed // len(char))
                parts[slot] = (char * repeats)[:needed]
            else:
                parts[slot] = ""

    result = "".join(part for part in parts if part is not None)

    if max_length is not None and len(result) > max_length:
        logger.debug(f"Generated value truncated from {len(result)} to {max_length} characters")
        result = result[:max_length]

    return result


def apply_max_generation(value: str, max_generation: str) -> str:
    """
    Right-pad a value using a ``(char[width])`` directive.

    Example: apply_max_generation("123", "(A[10])") -> "123AAAAAAA"
    """
    content = max_generation.strip()
    if content.startswith("(") and content.endswith(")"):
        content = content[1:-1]
    match = _DUPLICATE_RE.match(content)
    if not match:
        return value
    char = match.group("literal")
    width = int(match.group("count"))
    needed = max(0, width - len(value))
    repeats = -(-needed // len(char))
    return value + (char * repeats)[:needed]
