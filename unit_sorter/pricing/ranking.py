# unit_sorter/pricing/ranking.py

"""Ordering of canonical products by true unit price."""

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from unit_sorter.models.product import Product, UnitCategory

T = TypeVar("T")


@dataclass
class ProductGroup:
    """Products sharing one unit category, cheapest first."""

    category: UnitCategory
    label: str
    products: list[Product]


def partition_for_category(
    items: Sequence[T],
    category: UnitCategory,
    product_of: Callable[[T], Product | None],
) -> tuple[list[T], list[T]]:
    """Split *items* into (ranked, rest) for *category*.

    Ranked items are those whose product belongs to *category* with a
    known unit price, ordered ascending by adjusted unit price.  The
    sort is stable, so ties and the rest keep their relative order.
    """
    ranked: list[tuple[T, float]] = []
    rest: list[T] = []
    for item in items:
        product = product_of(item)
        if (
            product is not None
            and product.unit_category is category
            and product.is_rankable
        ):
            ranked.append((item, product.adjusted_unit_price))
        else:
            rest.append(item)
    ranked.sort(key=lambda pair: pair[1])
    return [item for item, _ in ranked], rest


def rank_by_category(
    products: Sequence[Product], category: UnitCategory
) -> list[Product]:
    """Products of *category* cheapest first, followed by everything else."""
    ranked, rest = partition_for_category(
        products, category, lambda p: p
    )
    return ranked + rest


def _group_sort_key(product: Product) -> float:
    if product.is_rankable:
        return product.adjusted_unit_price
    return product.displayed_price if product.displayed_price > 0 else math.inf


def group_by_category(products: Sequence[Product]) -> list[ProductGroup]:
    """Group products by category in display order (Kg, L, 100g, m², u, none).

    Each group is ordered by adjusted unit price; products without a
    unit price fall back to their shelf price.
    """
    buckets: dict[UnitCategory, list[Product]] = {}
    for product in products:
        buckets.setdefault(product.unit_category, []).append(product)

    groups: list[ProductGroup] = []
    for category in [*UnitCategory.rankable(), UnitCategory.NONE]:
        members = buckets.get(category)
        if members:
            groups.append(
                ProductGroup(
                    category=category,
                    label=category.separator_label,
                    products=sorted(members, key=_group_sort_key),
                )
            )
    return groups
