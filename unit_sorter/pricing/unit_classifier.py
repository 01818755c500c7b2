# unit_sorter/pricing/unit_classifier.py

"""Map free-text unit labels to a canonical :class:`UnitCategory`."""

import re

from unit_sorter.models.product import UnitCategory

_AREA_FORMAT_RE = re.compile(r"m\s*(?:2|²)", re.IGNORECASE)

# Prefix vocabulary of the rendered "Precio por 1 <unit>" line.
_LABEL_PREFIXES: list[tuple[str, UnitCategory]] = [
    ("kilo", UnitCategory.WEIGHT),
    ("litro", UnitCategory.VOLUME),
    ("cuadrado", UnitCategory.AREA),
    ("unidad", UnitCategory.COUNT),
]


def classify(
    label: str | None, quantity_hint: str = "1"
) -> UnitCategory:
    """Classify a rendered unit label such as ``Kilogramo`` or ``Gramos``.

    Grams only count as :attr:`UnitCategory.PER_100G` when the label
    was preceded by "100"; a per-gram price is not a supported category.
    Unknown labels yield :attr:`UnitCategory.NONE`.
    """
    if not label:
        return UnitCategory.NONE
    lower = label.strip().lower()
    for prefix, category in _LABEL_PREFIXES:
        if lower.startswith(prefix):
            return category
    if lower.startswith("gramo") and str(quantity_hint).strip() == "100":
        return UnitCategory.PER_100G
    return UnitCategory.NONE


def classify_format(format_text: str | None) -> UnitCategory:
    """Classify an API unit format field (``cFormato`` / ``product_format``)."""
    if not format_text:
        return UnitCategory.NONE
    f = format_text.strip().lower()
    if f.startswith(("kilo", "kg")):
        return UnitCategory.WEIGHT
    if f.startswith(("litro", "lt")):
        return UnitCategory.VOLUME
    if f.startswith("100"):
        return UnitCategory.PER_100G
    if (
        f.startswith("metro")
        or "cuadrad" in f
        or _AREA_FORMAT_RE.search(f)
    ):
        return UnitCategory.AREA
    if f.startswith("uni"):
        return UnitCategory.COUNT
    return UnitCategory.NONE

