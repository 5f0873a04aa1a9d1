# core/price.py
"""
Price text normalization.

All amounts are integers in minor units (1/100 of the currency unit), so
parsing never touches floating point.
"""
import re
from typing import Optional

CURRENCY_SUFFIX = "zł"
_CURRENCY_MARKERS = ("zł", "pln")
_NUMBER_RUN_RE = re.compile(r"\d[\d\s.,]*")
_NON_DIGIT_RE = re.compile(r"\D")
_WS_RE = re.compile(r"\s+")

# pl-PL groups thousands with a no-break space, but only from five digits up
_GROUP_SEP = "\u00a0"
_MIN_GROUPING_DIGITS = 5


def _split_minor(major: str, minor: str) -> Optional[int]:
    major_digits = _NON_DIGIT_RE.sub("", major)
    if not major_digits:
        return None
    minor_digits = _NON_DIGIT_RE.sub("", minor)[:2].ljust(2, "0")
    return int(major_digits) * 100 + int(minor_digits)


def normalize(text: Optional[str]) -> Optional[int]:
    """
    Parse a locale-formatted price into minor units.

      "2399,00 zł"  -> 239900
      "2399.00"     -> 239900
      "2.399,00 zł" -> 239900
      "2399"        -> 239900

    Returns None when no amount can be found. Never raises.
    """
    if not text:
        return None

    t = text.lower()
    for marker in _CURRENCY_MARKERS:
        t = t.replace(marker, "")
    m = _NUMBER_RUN_RE.search(t.strip())
    if not m:
        return None

    num = _WS_RE.sub("", m.group(0))
    has_comma = "," in num
    has_dot = "." in num

    if has_comma and not has_dot:
        parts = num.split(",")
        return _split_minor(parts[0], parts[1] if len(parts) > 1 else "00")

    if has_dot and not has_comma:
        parts = num.split(".")
        return _split_minor(parts[0], parts[1] if len(parts) > 1 else "00")

    if has_comma and has_dot:
        # dots group thousands, the comma is the decimal mark
        num = num.replace(".", "").replace(",", ".", 1)
        parts = num.split(".")
        return _split_minor(parts[0], parts[1] if len(parts) > 1 else "00")

    return _split_minor(num, "00")


def _group_major(major: int) -> str:
    digits = str(major)
    if len(digits) < _MIN_GROUPING_DIGITS:
        return digits
    groups = []
    while digits:
        groups.insert(0, digits[-3:])
        digits = digits[:-3]
    return _GROUP_SEP.join(groups)


def format_minor_units(minor_units: int) -> str:
    """Render minor units for humans, e.g. 1239900 -> '12 399,00 zł'."""
    major, minor = divmod(minor_units, 100)
    return f"{_group_major(major)},{minor:02d} {CURRENCY_SUFFIX}"


def format_delta(delta_minor_units: int) -> str:
    sign = "+" if delta_minor_units > 0 else "-" if delta_minor_units < 0 else "±"
    return f"{sign}{format_minor_units(abs(delta_minor_units))}"
