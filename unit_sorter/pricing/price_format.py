# unit_sorter/pricing/price_format.py

"""Locale-aware price parsing and formatting ("$1.348,47")."""

import math
import re

from unit_sorter.config.settings import Settings

_CURRENCY_RE = re.compile(r"\$")
_WHITESPACE_RE = re.compile(r"\s")
_FIRST_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


def parse_price(text: str | None) -> float:
    """Parse an Argentine-formatted price such as ``$3.950,00``.

    ``.`` is the thousands separator and ``,`` the decimal separator.
    Returns ``nan`` when the text cannot be parsed; callers must check
    with :func:`math.isnan` before doing arithmetic.
    """
    if text is None:
        return math.nan
    cleaned = _CURRENCY_RE.sub("", str(text))
    cleaned = _WHITESPACE_RE.sub("", cleaned)
    cleaned = cleaned.replace(".", "").replace(",", ".", 1)
    try:
        return float(cleaned)
    except ValueError:
        return math.nan


def format_price(value: float | None) -> str:
    """Format a number as ``$1.348,47``; ``—`` for None/NaN."""
    if value is None or math.isnan(value):
        return Settings.MISSING_PRICE_TEXT
    int_part, dec_part = f"{value:.2f}".split(".")
    negative = int_part.startswith("-")
    digits = int_part.lstrip("-")
    grouped = f"{int(digits):,}".replace(",", ".")
    sign = "-" if negative else ""
    return f"{sign}{Settings.CURRENCY_SYMBOL}{grouped},{dec_part}"


def parse_api_number(raw: object) -> float:
    """Parse an API value (``"1348.47"``, ``1348.47``, ``"1348,47"``).

    Returns ``nan`` for None, empty strings and garbage.
    """
    if raw is None or isinstance(raw, bool):
        return math.nan
    if isinstance(raw, (int, float)):
        return float(raw)
    text = str(raw).strip().replace(",", ".")
    if not text:
        return math.nan
    try:
        return float(text)
    except ValueError:
        return math.nan


def first_number(text: str | None) -> float:
    """Extract the first US-formatted number in free text.

    ``"$1235.00c/u"`` gives ``1235.0``; ``nan`` when none is present.
    """
    if not text:
        return math.nan
    match = _FIRST_NUMBER_RE.search(str(text))
    return float(match.group(0)) if match else math.nan
