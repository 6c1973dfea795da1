"""
Date formatting for ``date_format[...]`` fields.

Format codes:
    YYYY 2025    YY 25
    MMMM January MMM Jan   MM 01   M 1
    DD   01      D  1
    dddd Monday  ddd Mon
    HH   01-23   H  1-23   hh 01-12   h 1-12
    mm   minutes m  (no padding)
    ss   seconds s  (no padding)
    A    AM/PM   a  am/pm

Underscores in the format are rendered as spaces, so identifiers can carry
formats such as ``date_format[MMM_DD,_YYYY]``. Text in square brackets is
copied without code substitution: ``DD_[at]_HH`` gives "05 at 14". Letters
outside brackets are always read as codes, so ``DD_at_HH`` gives "05 pmt 14".
"""

import re
from datetime import date, datetime
from typing import Union

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

# Longest codes first so "YYYY" wins over "YY" and "MMMM" over "MM"
_TOKEN_RE = re.compile(r"\[(?P<literal>[^\]]*)\]|YYYY|YY|MMMM|MMM|MM|M|DD|D|dddd|ddd|HH|H|hh|h|mm|m|ss|s|A|a")


def parse_date(value: Union[str, date, datetime]) -> datetime:
    """
    Coerce a date value into a datetime.

    Raises:
        ValueError: value is not an ISO 8601 date/datetime
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def format_date(value: Union[str, date, datetime], fmt: str) -> str:
    """
    Format a date with the codes listed in the module docstring.

    Returns:
        The formatted string, or "" when value cannot be parsed
    """
    try:
        moment = parse_date(value)
    except (TypeError, ValueError):
        return ""

    hours12 = moment.hour % 12 or 12
    meridiem = "PM" if moment.hour >= 12 else "AM"
    replacements = {
        "YYYY": f"{moment.year:04d}",
        "YY": f"{moment.year % 100:02d}",
        "MMMM": MONTH_NAMES[moment.month - 1],
        "MMM": MONTH_NAMES[moment.month - 1][:3],
        "MM": f"{moment.month:02d}",
        "M": str(moment.month),
        "DD": f"{moment.day:02d}",
        "D": str(moment.day),
        "dddd": DAY_NAMES[moment.weekday()],
        "ddd": DAY_NAMES[moment.weekday()][:3],
        "HH": f"{moment.hour:02d}",
        "H": str(moment.hour),
        "hh": f"{hours12:02d}",
        "h": str(hours12),
        "mm": f"{moment.minute:02d}",
        "m": str(moment.minute),
        "ss": f"{moment.second:02d}",
        "s": str(moment.second),
        "A": meridiem,
        "a": meridiem.lower(),
    }

    def substitute(match: "re.Match[str]") -> str:
        literal = match.group("literal")
        if literal is not None:
            return literal
        return replacements[match.group()]

    result = _TOKEN_RE.sub(substitute, fmt)
    return result.replace("_", " ")
