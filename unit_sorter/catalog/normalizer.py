# unit_sorter/catalog/normalizer.py

"""Convert raw catalog records into canonical :class:`Product` objects.

Three source shapes converge here:

* Dialect A (Endeca/ATG): an attribute bag keyed by dotted names whose
  values are single-element lists.
* Dialect B (Constructor.io): a flat ``data`` object per result.
* A rendered product card taken from the page markup.

Each mapper raises :class:`RecordParseError` for a record it cannot
read at all; callers skip that record and keep going.
"""

import logging
import math
import re
from typing import Any
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from unit_sorter.catalog.errors import RecordParseError
from unit_sorter.config.settings import Settings
from unit_sorter.models.product import Product, UnitCategory
from unit_sorter.pricing.price_format import parse_api_number, parse_price
from unit_sorter.pricing.promotions import (
    best_deal_ratio,
    deal_labels,
    list_price_ratio,
    offer_type_labels,
    parse_deal_descriptors,
)
from unit_sorter.pricing.unit_classifier import classify, classify_format

logger = logging.getLogger("unit_sorter.normalizer")

UNIT_PRICE_RE = re.compile(
    r"Precio\s+por\s+(1|100)\s+"
    r"(Kilo(?:gramo)?s?(?:\s+escurrido)?|Litros?|Gramos?|Cuadrados?|Unidad(?:es)?)"
    r"\s*:\s*\$\s*(\d[\d.]*(?:,\d+)?)",
    re.IGNORECASE,
)
REGULAR_PRICE_RE = re.compile(
    r"Precio\s+Regular\s*:\s*\$\s*(\d[\d.]*(?:,\d+)?)", re.IGNORECASE
)

_REGULAR_PRICE_ATTR = "data-cnstrc-item-price"


def _positive(value: float) -> float:
    """Collapse NaN and non-positive numbers to 0."""
    return value if not math.isnan(value) and value > 0 else 0.0


def _match_unit_price(
    text: str,
) -> tuple[float, UnitCategory] | None:
    """Find a "Precio por 1|100 <unit>: $X" sentence in *text*."""
    match = UNIT_PRICE_RE.search(text)
    if not match:
        return None
    qty, label, amount = match.groups()
    return _positive(parse_price(amount)), classify(label, qty)


# ── Dialect A ────────────────────────────────────────────


def normalize_dialect_a(record: Any) -> Product:
    """Map one inner Endeca record (``attributes`` + ``detailsAction``)."""
    if not isinstance(record, dict):
        raise RecordParseError(
            f"Endeca record is {type(record).__name__}, not an object"
        )
    attributes = record.get("attributes")
    if not isinstance(attributes, dict):
        raise RecordParseError("Endeca record has no attribute bag")

    def get(key: str) -> Any:
        values = attributes.get(key)
        if isinstance(values, list):
            return values[0] if values else None
        return values

    name = str(
        get("product.displayName") or get("sku.displayName") or ""
    )
    image = get("product.largeImage.url") or get("product.mediumImage.url")
    active_price = _positive(parse_api_number(get("sku.activePrice")))
    reference_price = _positive(
        parse_api_number(get("sku.referencePrice"))
    )
    category = classify_format(get("product.cFormato"))

    link = None
    details = record.get("detailsAction")
    record_state = (
        details.get("recordState") if isinstance(details, dict) else None
    )
    if record_state:
        link = Settings.PRODUCT_URL_PREFIX + str(record_state).split("?")[0]

    descriptors = parse_deal_descriptors(get("product.dtoDescuentos"))
    ratio = best_deal_ratio(descriptors, active_price)
    if ratio < 1:
        logger.debug(
            "[discount] %s: deal ratio=%.4f over active=%.2f",
            name,
            ratio,
            active_price,
        )
    else:
        ratio = list_price_ratio(
            active_price, parse_api_number(get("sku.listPrice"))
        )
        if ratio < 1:
            logger.debug(
                "[discount] %s: list price fallback ratio=%.4f",
                name,
                ratio,
            )

    labels = deal_labels(descriptors) + offer_type_labels(
        attributes.get("product.tipoOferta")
    )

    product = Product(
        name=name,
        displayed_price=active_price,
        reference_unit_price=reference_price,
        unit_category=category,
        discount_ratio=ratio,
        link=link,
        image_ref=str(image) if image else None,
        promotion_labels=tuple(labels),
        source="endeca",
    )
    logger.debug(
        "Parsed A: %s | price=%.2f | type=%s | ratio=%.4f",
        product.name,
        product.displayed_price,
        product.unit_category.value,
        product.discount_ratio,
    )
    return product


# ── Dialect B ────────────────────────────────────────────


def _tax_inclusive_prices(entries: Any) -> list[float]:
    """Convert ``price[].priceWithoutTax`` to final shelf prices."""
    if not isinstance(entries, list):
        return []
    prices: list[float] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        net = parse_api_number(entry.get("priceWithoutTax"))
        if not math.isnan(net) and net > 0:
            prices.append(round(net * Settings.TAX_MULTIPLIER, 2))
    return prices


def _discount_texts(discounts: Any) -> list[str]:
    """Readable labels from the free-form ``discounts`` list."""
    if not isinstance(discounts, list):
        return []
    labels: list[str] = []
    for discount in discounts:
        if isinstance(discount, str):
            text = discount
        elif isinstance(discount, dict):
            text = next(
                (
                    str(discount[key])
                    for key in ("description", "name", "text", "title")
                    if discount.get(key)
                ),
                "",
            )
        else:
            continue
        if text.strip():
            labels.append(text.strip())
    return labels


def normalize_dialect_b(result: Any) -> Product:
    """Map one Constructor.io result (``value`` + ``data``)."""
    if not isinstance(result, dict):
        raise RecordParseError(
            f"Constructor result is {type(result).__name__}, not an object"
        )
    data = result.get("data")
    if not isinstance(data, dict):
        raise RecordParseError("Constructor result has no data object")

    name = str(data.get("sku_display_name") or result.get("value") or "")

    list_price = _positive(parse_api_number(data.get("product_list_price")))
    tax_prices = _tax_inclusive_prices(data.get("price"))
    current_price = max([list_price, *tax_prices])

    ratio = 1.0
    if tax_prices and current_price > 0:
        lowest = min(tax_prices)
        if lowest < current_price:
            ratio = lowest / current_price

    # The unit price and its unit must come from the same sentence;
    # product_format only labels records without one.
    reference_price = 0.0
    description = str(data.get("sku_description") or "")
    unit_match = _match_unit_price(description)
    if unit_match:
        reference_price, category = unit_match
    else:
        category = classify_format(data.get("product_format"))

    url = data.get("url")
    link = urljoin(Settings.SITE_BASE_URL, str(url)) if url else None
    image = (
        data.get("product_large_image_url")
        or data.get("product_medium_image_url")
        or data.get("image_url")
    )

    labels = offer_type_labels(data.get("sale_type")) + _discount_texts(
        data.get("discounts")
    )

    product = Product(
        name=name,
        displayed_price=current_price,
        reference_unit_price=reference_price,
        unit_category=category,
        discount_ratio=ratio,
        link=link,
        image_ref=str(image) if image else None,
        promotion_labels=tuple(labels),
        source="constructor",
    )
    logger.debug(
        "Parsed B: %s | price=%.2f | type=%s | ratio=%.4f",
        product.name,
        product.displayed_price,
        product.unit_category.value,
        product.discount_ratio,
    )
    return product


# ── Rendered entry ───────────────────────────────────────


def _entry_root(markup: Any) -> Tag:
    """Resolve the element holding a card's product markup."""
    if isinstance(markup, str):
        soup = BeautifulSoup(markup, "lxml")
        root: Tag | None = soup.body or soup
    elif isinstance(markup, Tag):
        root = markup
    else:
        raise RecordParseError(
            f"Cannot read rendered entry of type {type(markup).__name__}"
        )
    product_el = root.find("catalogue-product")
    return product_el if isinstance(product_el, Tag) else root


def _regular_price(root: Tag, smalls: list[Tag]) -> float:
    """Undiscounted price from the data attribute or "Precio Regular"."""
    holder = (
        root
        if root.has_attr(_REGULAR_PRICE_ATTR)
        else root.select_one(f"[{_REGULAR_PRICE_ATTR}]")
    )
    if holder is not None:
        value = _positive(
            parse_api_number(holder.get(_REGULAR_PRICE_ATTR))
        )
        if value:
            return value
    for small in smalls:
        match = REGULAR_PRICE_RE.search(small.get_text(" ", strip=True))
        if match:
            return _positive(parse_price(match.group(1)))
    return 0.0


def normalize_rendered_entry(markup: Any) -> Product:
    """Read a rendered product card (HTML string or BeautifulSoup tag)."""
    root = _entry_root(markup)
    smalls = root.find_all("small")

    reference_price = 0.0
    category = UnitCategory.NONE
    for small in smalls:
        unit_match = _match_unit_price(small.get_text(" ", strip=True))
        if unit_match:
            reference_price, category = unit_match
            break

    heading = root.select_one("h4.card-title")
    paid = _positive(
        parse_price(heading.get_text(strip=True)) if heading else math.nan
    )
    regular = _regular_price(root, smalls) or paid

    ratio = paid / regular if paid > 0 and regular > 0 else 1.0

    name_el = root.select_one("h3.nombre-producto")
    link_el = root.select_one("a[href]")
    image_el = root.select_one("img[src]")

    product = Product(
        name=name_el.get_text(strip=True) if name_el else "",
        displayed_price=paid,
        reference_unit_price=reference_price,
        unit_category=category,
        discount_ratio=ratio,
        link=(
            urljoin(Settings.SITE_BASE_URL, str(link_el["href"]))
            if link_el
            else None
        ),
        image_ref=str(image_el["src"]) if image_el else None,
        source="rendered",
    )
    logger.debug(
        "%s: listed=%.2f, paid=%.2f, regular=%.2f, ratio=%.4f, "
        "adjusted=%.2f /%s",
        product.name,
        product.reference_unit_price,
        paid,
        regular,
        product.discount_ratio,
        product.adjusted_unit_price,
        product.unit_category.short_label,
    )
    return product
