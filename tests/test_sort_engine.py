# tests/test_sort_engine.py

"""Tests for the live sort engine over a BeautifulSoup grid."""

import asyncio
import unittest
from pathlib import Path
from unittest import mock

from unit_sorter.config.settings import Settings
from unit_sorter.live.grid import SoupGrid
from unit_sorter.live.sort_engine import SortEngine
from unit_sorter.models.product import UnitCategory

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def card(name: str, kilo_price: int | None, paid: int = 1000) -> str:
    """A rendered card with an optional "Precio por 1 Kilo" line."""
    unit = (
        f"<small>Precio por 1 Kilo: ${kilo_price},00</small>"
        if kilo_price is not None
        else ""
    )
    return (
        '<div class="producto-card"><catalogue-product>'
        '<div class="card-container">'
        f'<h3 class="nombre-producto">{name}</h3>'
        f'<h4 class="card-title">${paid},00</h4>{unit}'
        "</div></catalogue-product></div>"
    )


def grid_of(cards: list[str]) -> SoupGrid:
    return SoupGrid.from_html(
        '<html><body><div class="productos row">'
        + "".join(cards)
        + "</div></body></html>"
    )


def listing_grid() -> SoupGrid:
    html = (FIXTURES_DIR / "listing.html").read_text(encoding="utf-8")
    return SoupGrid.from_html(html)


LISTING_ORDER = [
    "Yerba Playadito 1 Kg",
    "Detergente Magistral 500 ml",
    "Arroz Gallo Oro 500 g",
    "Encendedor Bic",
]


class TestSortBy(unittest.TestCase):
    """Synchronous sorting behaviour."""

    def test_weight_sort_on_listing(self) -> None:
        grid = listing_grid()
        engine = SortEngine(grid)
        engine.sort_by(UnitCategory.WEIGHT)

        self.assertEqual(
            grid.names(),
            [
                "Yerba Playadito 1 Kg",
                "Arroz Gallo Oro 500 g",
                "Detergente Magistral 500 ml",
                "Encendedor Bic",
            ],
        )
        self.assertEqual(engine.current_category, UnitCategory.WEIGHT)
        self.assertFalse(engine.busy)

    def test_seven_ranked_then_three_unranked(self) -> None:
        prices = [500, 300, None, 700, 100, None, 600, 200, None, 400]
        grid = grid_of(
            [card(f"P{i}", price) for i, price in enumerate(prices)]
        )
        SortEngine(grid).sort_by(UnitCategory.WEIGHT)

        self.assertEqual(
            grid.names(),
            ["P4", "P7", "P1", "P9", "P0", "P6", "P3", "P2", "P5", "P8"],
        )

    def test_ties_keep_original_order(self) -> None:
        grid = grid_of(
            [card("A", 900), card("B", 500), card("C", 500), card("D", 500)]
        )
        SortEngine(grid).sort_by(UnitCategory.WEIGHT)
        self.assertEqual(grid.names(), ["B", "C", "D", "A"])

    def test_sorting_twice_is_idempotent(self) -> None:
        grid = listing_grid()
        engine = SortEngine(grid)
        engine.sort_by(UnitCategory.WEIGHT)
        first = grid.names()
        engine.sort_by(UnitCategory.WEIGHT)
        self.assertEqual(grid.names(), first)

    def test_other_category_moves_everything_else_after(self) -> None:
        grid = listing_grid()
        SortEngine(grid).sort_by(UnitCategory.VOLUME)
        self.assertEqual(grid.names()[0], "Detergente Magistral 500 ml")
        self.assertEqual(
            grid.names()[1:],
            [
                "Yerba Playadito 1 Kg",
                "Arroz Gallo Oro 500 g",
                "Encendedor Bic",
            ],
        )

    def test_badges_added(self) -> None:
        grid = listing_grid()
        SortEngine(grid).sort_by(UnitCategory.WEIGHT)

        entries = {
            name: entry for name, entry in zip(grid.names(), grid.entries())
        }
        yerba = entries["Yerba Playadito 1 Kg"]
        badge = yerba.select_one(f".{Settings.BADGE_CLASS}")
        self.assertIsNotNone(badge)
        self.assertEqual(badge.get_text(), "$/kg: $1.348,47")
        self.assertIn(f"{Settings.BADGE_CLASS}-discount", badge["class"])
        self.assertEqual(yerba[Settings.BADGE_ATTR], "done")

        detergente = entries["Detergente Magistral 500 ml"]
        badge = detergente.select_one(f".{Settings.BADGE_CLASS}")
        self.assertEqual(badge.get_text(), "$/L: $4.300,00")
        self.assertIn(f"{Settings.BADGE_CLASS}-regular", badge["class"])

        encendedor = entries["Encendedor Bic"]
        self.assertIsNone(encendedor.select_one(f".{Settings.BADGE_CLASS}"))
        self.assertEqual(encendedor[Settings.BADGE_ATTR], "no-data")

    def test_resorting_does_not_duplicate_badges(self) -> None:
        grid = listing_grid()
        engine = SortEngine(grid)
        engine.sort_by(UnitCategory.WEIGHT)
        engine.sort_by(UnitCategory.VOLUME)
        self.assertEqual(
            len(grid.soup.select(f".{Settings.BADGE_CLASS}")), 3
        )


class TestReset(unittest.TestCase):
    """Restoring the pre-sort order."""

    def test_reset_restores_original_order(self) -> None:
        grid = listing_grid()
        engine = SortEngine(grid)
        engine.sort_by(UnitCategory.WEIGHT)
        engine.sort_by(UnitCategory.VOLUME)
        engine.reset()

        self.assertEqual(grid.names(), LISTING_ORDER)
        self.assertIsNone(engine.current_category)
        self.assertEqual(grid.soup.select(f".{Settings.BADGE_CLASS}"), [])
        self.assertEqual(grid.soup.select(f"[{Settings.BADGE_ATTR}]"), [])

    def test_reset_without_sort_is_noop(self) -> None:
        grid = listing_grid()
        engine = SortEngine(grid)
        with mock.patch.object(grid, "reorder") as reorder:
            engine.reset()
        reorder.assert_not_called()
        self.assertEqual(grid.names(), LISTING_ORDER)
        self.assertFalse(engine.has_original_order)

    def test_entries_added_after_first_sort_go_last(self) -> None:
        grid = grid_of([card("A", 300), card("B", 100)])
        engine = SortEngine(grid)
        engine.sort_by(UnitCategory.WEIGHT)
        grid.append_entry(card("C", 50))
        engine.sort_by(UnitCategory.WEIGHT)
        self.assertEqual(grid.names(), ["C", "B", "A"])

        engine.reset()
        self.assertEqual(grid.names(), ["A", "B", "C"])

    def test_original_order_kept_across_sorts(self) -> None:
        grid = grid_of([card("A", 300), card("B", 100), card("C", 200)])
        engine = SortEngine(grid)
        engine.sort_by(UnitCategory.WEIGHT)
        engine.reset()
        engine.sort_by(UnitCategory.VOLUME)
        engine.reset()
        self.assertEqual(grid.names(), ["A", "B", "C"])


class TestMutationsWithoutLoop(unittest.TestCase):
    """Notifications outside an event loop reconcile immediately."""

    def test_own_changes_are_ignored(self) -> None:
        grid = listing_grid()
        engine = SortEngine(grid)
        engine.attach()
        with mock.patch.object(engine, "_reconcile") as reconcile:
            engine.sort_by(UnitCategory.WEIGHT)
            engine.reset()
        reconcile.assert_not_called()

    def test_external_entry_is_reintegrated(self) -> None:
        grid = listing_grid()
        engine = SortEngine(grid)
        engine.attach()
        engine.sort_by(UnitCategory.WEIGHT)

        grid.append_entry(card("Azucar Ledesma 1 Kg", 900))
        self.assertEqual(grid.names()[0], "Azucar Ledesma 1 Kg")

    def test_new_entries_annotated_without_category(self) -> None:
        grid = grid_of([card("A", 300)])
        engine = SortEngine(grid)
        engine.attach()

        added = grid.append_entry(card("B", None))
        self.assertIsNotNone(added)
        self.assertEqual(added[Settings.BADGE_ATTR], "no-data")
        self.assertEqual(grid.entries()[0][Settings.BADGE_ATTR], "done")
        self.assertEqual(grid.names(), ["A", "B"])

    def test_annotate_new_entries_skips_done(self) -> None:
        grid = grid_of([card("A", 300), card("B", 100)])
        engine = SortEngine(grid)
        self.assertEqual(engine.annotate_new_entries(), 2)
        self.assertEqual(engine.annotate_new_entries(), 0)


class TestMutationsInLoop(unittest.IsolatedAsyncioTestCase):
    """Debounced reconciliation inside a running event loop."""

    async def test_busy_released_on_next_turn(self) -> None:
        grid = listing_grid()
        engine = SortEngine(grid, debounce=0.01)
        engine.attach()

        engine.sort_by(UnitCategory.WEIGHT)
        self.assertTrue(engine.busy)
        self.assertIsNone(engine._pending)

        await asyncio.sleep(0)
        self.assertFalse(engine.busy)
        engine.close()

    async def test_new_entry_sorted_after_quiet_window(self) -> None:
        grid = listing_grid()
        engine = SortEngine(grid, debounce=0.01)
        engine.attach()
        engine.sort_by(UnitCategory.WEIGHT)
        await asyncio.sleep(0)

        grid.append_entry(card("Azucar Ledesma 1 Kg", 900))
        self.assertEqual(grid.names()[-1], "Azucar Ledesma 1 Kg")

        await asyncio.sleep(0.1)
        self.assertEqual(grid.names()[0], "Azucar Ledesma 1 Kg")
        self.assertEqual(
            grid.entries()[0][Settings.BADGE_ATTR], "done"
        )
        engine.close()

    async def test_burst_of_mutations_reconciles_once(self) -> None:
        grid = listing_grid()
        engine = SortEngine(grid, debounce=0.02)
        engine.attach()
        engine.sort_by(UnitCategory.WEIGHT)
        await asyncio.sleep(0)

        with mock.patch.object(
            engine, "_reconcile", wraps=engine._reconcile
        ) as reconcile:
            for i in range(3):
                grid.append_entry(card(f"Nuevo {i}", 100 + i))
            await asyncio.sleep(0.15)

        self.assertEqual(reconcile.call_count, 1)
        self.assertEqual(
            grid.names()[:3], ["Nuevo 0", "Nuevo 1", "Nuevo 2"]
        )
        engine.close()

    async def test_close_cancels_pending(self) -> None:
        grid = listing_grid()
        engine = SortEngine(grid, debounce=0.01)
        engine.attach()

        with mock.patch.object(engine, "_reconcile") as reconcile:
            grid.append_entry(card("Nuevo", 100))
            engine.close()
            await asyncio.sleep(0.05)
        reconcile.assert_not_called()


if __name__ == "__main__":
    unittest.main()
