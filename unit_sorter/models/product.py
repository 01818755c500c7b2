# unit_sorter/models/product.py

"""Canonical product model shared by retrieval and live sorting."""

import math
from dataclasses import dataclass, field
from enum import Enum

from unit_sorter.config.settings import Settings
from unit_sorter.pricing.price_format import format_price


class UnitCategory(str, Enum):
    """Canonical unit of measure a reference price is expressed in."""

    WEIGHT = "weight"
    VOLUME = "volume"
    PER_100G = "100g"
    AREA = "square"
    COUNT = "unit"
    NONE = "none"

    @property
    def short_label(self) -> str:
        """Compact label used in badges: ``kg``, ``L``, ``m²``..."""
        return _SHORT_LABELS[self]

    @property
    def separator_label(self) -> str:
        """Long label used to head a group of products."""
        return _SEPARATOR_LABELS[self]

    @classmethod
    def rankable(cls) -> list["UnitCategory"]:
        """Categories in display order, excluding ``NONE``."""
        return [c for c in cls if c is not cls.NONE]


_SHORT_LABELS: dict[UnitCategory, str] = {
    UnitCategory.WEIGHT: "kg",
    UnitCategory.VOLUME: "L",
    UnitCategory.PER_100G: "100g",
    UnitCategory.AREA: "m²",
    UnitCategory.COUNT: "u",
    UnitCategory.NONE: "?",
}

_SEPARATOR_LABELS: dict[UnitCategory, str] = {
    UnitCategory.WEIGHT: "Precio por 1 Kg",
    UnitCategory.VOLUME: "Precio por 1 Litro",
    UnitCategory.PER_100G: "Precio por 100 Gramos",
    UnitCategory.AREA: "Precio por 1 Metro Cuadrado",
    UnitCategory.COUNT: "Precio por 1 Unidad",
    UnitCategory.NONE: "Sin categoría de ordenamiento",
}


@dataclass(frozen=True)
class Product:
    """A catalog product with a single promotion-adjusted unit price.

    ``discount_ratio`` is the fraction of the regular price the shopper
    pays today.  Anything outside ``(0, 1]`` (or NaN) is coerced to 1 so
    the adjusted unit price can never exceed the reference one.
    """

    name: str
    displayed_price: float = 0.0
    reference_unit_price: float = 0.0
    unit_category: UnitCategory = UnitCategory.NONE
    discount_ratio: float = 1.0
    link: str | None = None
    image_ref: str | None = None
    promotion_labels: tuple[str, ...] = field(default_factory=tuple)
    source: str = ""

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            object.__setattr__(self, "name", Settings.DEFAULT_PRODUCT_NAME)
        ratio = self.discount_ratio
        if math.isnan(ratio) or ratio <= 0 or ratio > 1:
            object.__setattr__(self, "discount_ratio", 1.0)
        ref = self.reference_unit_price
        if math.isnan(ref) or ref < 0:
            object.__setattr__(self, "reference_unit_price", 0.0)
        if math.isnan(self.displayed_price):
            object.__setattr__(self, "displayed_price", 0.0)
        labels = tuple(dict.fromkeys(
            label for label in self.promotion_labels if label
        ))
        object.__setattr__(self, "promotion_labels", labels)

    @property
    def adjusted_unit_price(self) -> float:
        """Reference unit price after applying the discount ratio."""
        return self.reference_unit_price * self.discount_ratio

    @property
    def has_discount(self) -> bool:
        return self.discount_ratio < Settings.DISCOUNT_EPSILON

    @property
    def is_rankable(self) -> bool:
        """True when the product can be ranked within its category."""
        return (
            self.unit_category is not UnitCategory.NONE
            and self.reference_unit_price > 0
        )

    @property
    def discounted_price(self) -> float | None:
        """Effective price of one retail unit with the best deal applied."""
        if not self.has_discount:
            return None
        return self.displayed_price * self.discount_ratio

    @property
    def unit_price_text(self) -> str | None:
        """Badge text such as ``$/kg: $1.348,47``."""
        if not self.is_rankable:
            return None
        shown = (
            self.adjusted_unit_price
            if self.has_discount
            else self.reference_unit_price
        )
        return (
            f"{Settings.CURRENCY_SYMBOL}/{self.unit_category.short_label}: "
            f"{format_price(shown)}"
        )

    def to_dict(self) -> dict[str, object]:
        """Serialise to plain JSON-friendly values."""
        return {
            "name": self.name,
            "link": self.link,
            "image_ref": self.image_ref,
            "displayed_price": self.displayed_price,
            "discounted_price": self.discounted_price,
            "reference_unit_price": self.reference_unit_price,
            "adjusted_unit_price": round(self.adjusted_unit_price, 2),
            "unit_category": self.unit_category.value,
            "discount_ratio": round(self.discount_ratio, 4),
            "promotion_labels": list(self.promotion_labels),
            "source": self.source,
        }
