# tests/test_product_model.py

"""Tests for the Product dataclass and UnitCategory."""

import dataclasses
import math
import unittest

from unit_sorter.models.product import Product, UnitCategory


class TestProductModel(unittest.TestCase):
    """Product dataclass unit tests."""

    def test_init_with_all_fields(self) -> None:
        """All fields are stored correctly."""
        product = Product(
            name="Yerba Playadito 1 Kg",
            displayed_price=1348.47,
            reference_unit_price=1797.96,
            unit_category=UnitCategory.WEIGHT,
            discount_ratio=0.75,
            link="https://example.com/p",
            image_ref="https://example.com/img.jpg",
            promotion_labels=("3X2",),
            source="rendered",
        )
        self.assertEqual(product.name, "Yerba Playadito 1 Kg")
        self.assertEqual(product.displayed_price, 1348.47)
        self.assertEqual(product.unit_category, UnitCategory.WEIGHT)
        self.assertEqual(product.link, "https://example.com/p")
        self.assertEqual(product.promotion_labels, ("3X2",))
        self.assertAlmostEqual(product.adjusted_unit_price, 1348.47)

    def test_defaults(self) -> None:
        """Optional fields default to expected values."""
        product = Product(name="X")
        self.assertEqual(product.discount_ratio, 1.0)
        self.assertEqual(product.reference_unit_price, 0.0)
        self.assertEqual(product.unit_category, UnitCategory.NONE)
        self.assertIsNone(product.link)
        self.assertEqual(product.promotion_labels, ())

    def test_blank_name_falls_back(self) -> None:
        self.assertEqual(Product(name="  ").name, "Producto")

    def test_is_frozen(self) -> None:
        product = Product(name="X")
        with self.assertRaises(dataclasses.FrozenInstanceError):
            product.name = "Y"  # type: ignore[misc]

    def test_ratio_above_one_is_clamped(self) -> None:
        product = Product(
            name="X", reference_unit_price=100.0, discount_ratio=1.3
        )
        self.assertEqual(product.discount_ratio, 1.0)
        self.assertLessEqual(
            product.adjusted_unit_price, product.reference_unit_price
        )

    def test_invalid_ratios_become_one(self) -> None:
        for ratio in (0.0, -0.5, math.nan):
            with self.subTest(ratio=ratio):
                self.assertEqual(
                    Product(name="X", discount_ratio=ratio).discount_ratio,
                    1.0,
                )

    def test_labels_deduplicated_in_order(self) -> None:
        product = Product(
            name="X", promotion_labels=("3X2", "", "Oferta", "3X2")
        )
        self.assertEqual(product.promotion_labels, ("3X2", "Oferta"))

    def test_rankable_requires_category_and_price(self) -> None:
        self.assertTrue(
            Product(
                name="X",
                reference_unit_price=10.0,
                unit_category=UnitCategory.VOLUME,
            ).is_rankable
        )
        self.assertFalse(
            Product(name="X", unit_category=UnitCategory.VOLUME).is_rankable
        )
        self.assertFalse(
            Product(name="X", reference_unit_price=10.0).is_rankable
        )

    def test_unit_price_text_uses_adjusted_price(self) -> None:
        product = Product(
            name="X",
            displayed_price=1900.0,
            reference_unit_price=4016.91,
            unit_category=UnitCategory.VOLUME,
            discount_ratio=0.65,
        )
        self.assertTrue(product.has_discount)
        self.assertEqual(product.unit_price_text, "$/L: $2.610,99")
        self.assertAlmostEqual(product.discounted_price or 0, 1235.0)

    def test_unit_price_text_without_discount(self) -> None:
        product = Product(
            name="X",
            reference_unit_price=4300.0,
            unit_category=UnitCategory.VOLUME,
        )
        self.assertFalse(product.has_discount)
        self.assertIsNone(product.discounted_price)
        self.assertEqual(product.unit_price_text, "$/L: $4.300,00")

    def test_to_dict(self) -> None:
        data = Product(
            name="X",
            reference_unit_price=100.0,
            unit_category=UnitCategory.WEIGHT,
            discount_ratio=0.5,
        ).to_dict()
        self.assertEqual(data["unit_category"], "weight")
        self.assertEqual(data["adjusted_unit_price"], 50.0)


class TestUnitCategory(unittest.TestCase):
    """UnitCategory labels and ordering."""

    def test_short_labels(self) -> None:
        self.assertEqual(UnitCategory.WEIGHT.short_label, "kg")
        self.assertEqual(UnitCategory.AREA.short_label, "m²")
        self.assertEqual(UnitCategory.COUNT.short_label, "u")

    def test_rankable_order_excludes_none(self) -> None:
        self.assertEqual(
            UnitCategory.rankable(),
            [
                UnitCategory.WEIGHT,
                UnitCategory.VOLUME,
                UnitCategory.PER_100G,
                UnitCategory.AREA,
                UnitCategory.COUNT,
            ],
        )

    def test_value_lookup(self) -> None:
        self.assertIs(UnitCategory("100g"), UnitCategory.PER_100G)


if __name__ == "__main__":
    unittest.main()
