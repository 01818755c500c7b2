# unit_sorter/pricing/promotions.py

"""Deal descriptor parsing and discount ratio resolution."""

import json
import logging
import math
import re
from typing import Any

from unit_sorter.config.settings import Settings
from unit_sorter.pricing.price_format import first_number

logger = logging.getLogger("unit_sorter.promotions")

# "3X2", "2x1": take N, pay M
_TAKE_PAY_RE = re.compile(r"\b(\d+)\s*[xX]\s*(\d+)\b")
# "70% 2da", "50% en la 2do unidad"
_SECOND_UNIT_RE = re.compile(
    r"(\d+(?:[.,]\d+)?)\s*%.*?\b2\s*(?:da|do|°|º)", re.IGNORECASE
)


def parse_deal_descriptors(raw: Any) -> list[dict[str, Any]]:
    """Decode the JSON-encoded deal array of a record.

    Accepts an already-decoded list.  Anything unparsable is treated as
    "no deals" rather than an error.
    """
    if raw is None or raw == "":
        return []
    data: Any = raw
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Unparsable deal descriptors: %.80s", raw)
            return []
    if not isinstance(data, list):
        return []
    return [d for d in data if isinstance(d, dict)]


def ratio_from_deal_text(text: str | None) -> float:
    """Interpret a deal headline as a price ratio.

    ``3X2`` pays 2 of 3 units (ratio 2/3); ``70% 2da`` discounts the
    second unit, so two units cost ``(2 - 0.70) / 2`` each.  Returns
    ``nan`` for text that describes no computable deal.
    """
    if not text:
        return math.nan
    take_pay = _TAKE_PAY_RE.search(text)
    if take_pay:
        take, pay = int(take_pay.group(1)), int(take_pay.group(2))
        if take > pay > 0:
            return pay / take
    second = _SECOND_UNIT_RE.search(text)
    if second:
        pct = float(second.group(1).replace(",", "."))
        if 0 < pct <= 100:
            return (2 - pct / 100) / 2
    return math.nan


def descriptor_ratio(
    descriptor: dict[str, Any], current_price: float
) -> float:
    """Effective price ratio of one deal descriptor.

    ``precioDescuento`` (the per-unit price when taking the deal) wins;
    the deal texts are only interpreted when it is absent.
    """
    effective = first_number(descriptor.get("precioDescuento"))
    if not math.isnan(effective) and effective > 0:
        return effective / current_price
    for key in ("textoDescuento", "textoLlevando"):
        ratio = ratio_from_deal_text(descriptor.get(key))
        if not math.isnan(ratio):
            return ratio
    return math.nan


def best_deal_ratio(
    descriptors: list[dict[str, Any]], current_price: float
) -> float:
    """Lowest ratio across descriptors, or 1.0 when none is a discount."""
    if not descriptors or not current_price > 0:
        return 1.0
    best = math.inf
    for descriptor in descriptors:
        ratio = descriptor_ratio(descriptor, current_price)
        if not math.isnan(ratio) and 0 < ratio < best:
            best = ratio
    return best if best < 1 else 1.0


def list_price_ratio(current_price: float, list_price: float) -> float:
    """``current / list`` when the list price is a real markdown."""
    if (
        not math.isnan(list_price)
        and not math.isnan(current_price)
        and current_price > 0
        and list_price > current_price
    ):
        return current_price / list_price
    return 1.0


def deal_labels(descriptors: list[dict[str, Any]]) -> list[str]:
    """Human-readable deal texts, in descriptor order."""
    labels: list[str] = []
    for descriptor in descriptors:
        for key in ("textoLlevando", "textoDescuento"):
            text = str(descriptor.get(key) or "").strip()
            if text and text not in labels:
                labels.append(text)
    return labels


def offer_type_labels(values: Any) -> list[str]:
    """Sale-type strings without the catch-all "all offers" bucket."""
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, list):
        return []
    labels: list[str] = []
    for value in values:
        text = str(value or "").strip()
        if text and text != Settings.ALL_OFFERS_PLACEHOLDER:
            labels.append(text)
    return labels
