# unit_sorter/live/sort_engine.py

"""Keep the rendered product list ordered by true unit price.

The host renderer owns the list and may add cards at any time (infinite
scroll, filters).  The engine reorders what is there, remembers the
original order for :meth:`SortEngine.reset`, and reacts to list
mutations after a quiet window.  Mutations reported while the engine
itself is reordering are ignored; the guard is released on the next
event loop turn so the echo of our own changes is absorbed.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from unit_sorter.catalog.errors import RecordParseError
from unit_sorter.catalog.normalizer import normalize_rendered_entry
from unit_sorter.config.settings import Settings
from unit_sorter.live.grid import RenderedGrid
from unit_sorter.models.product import Product, UnitCategory
from unit_sorter.pricing.ranking import partition_for_category

logger = logging.getLogger("unit_sorter.sorter")


@dataclass
class EntryBinding:
    """A rendered entry and the position it had before the first sort."""

    entry: Any
    index: int


class SortEngine:
    """Sorts, resets and re-integrates rendered product cards."""

    def __init__(
        self,
        grid: RenderedGrid,
        debounce: float = Settings.DEBOUNCE_SECONDS,
    ) -> None:
        self.grid = grid
        self.debounce = debounce
        self.current_category: UnitCategory | None = None
        self.busy = False
        self._bindings: dict[int, EntryBinding] = {}
        self._pending: asyncio.TimerHandle | None = None

    def attach(self) -> None:
        """Start listening to the grid's mutation notifications."""
        self.grid.subscribe(self.notify_mutation)

    # ── Helpers ──────────────────────────────────────────

    def _product(self, entry: Any) -> Product | None:
        try:
            return normalize_rendered_entry(self.grid.markup(entry))
        except RecordParseError as exc:
            logger.debug("Unreadable entry skipped: %s", exc)
            return None

    def _annotate(self, entry: Any, product: Product | None) -> None:
        text = product.unit_price_text if product else None
        self.grid.annotate(
            entry, text, discounted=bool(product and product.has_discount)
        )

    def _capture_original_order(self, entries: list[Any]) -> None:
        self._bindings = {
            id(entry): EntryBinding(entry, index)
            for index, entry in enumerate(entries)
        }
        logger.debug("Original order saved (%d entries)", len(entries))

    def _release(self) -> None:
        self.busy = False

    def _schedule_release(self) -> None:
        """Drop the busy guard once pending notifications are delivered."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.busy = False
            return
        loop.call_soon(self._release)

    @property
    def has_original_order(self) -> bool:
        return bool(self._bindings)

    # ── Operations ───────────────────────────────────────

    def sort_by(self, category: UnitCategory) -> None:
        """Order entries of *category* cheapest first, the rest after."""
        self.busy = True
        try:
            entries = self.grid.entries()
            if not self._bindings:
                self._capture_original_order(entries)

            items = [(entry, self._product(entry)) for entry in entries]
            ranked, rest = partition_for_category(
                items, category, lambda item: item[1]
            )
            self.grid.reorder([entry for entry, _ in ranked + rest])
            for entry, product in items:
                self._annotate(entry, product)
            self.current_category = category
            logger.info(
                "Sort complete. %d products with %s price, %d without",
                len(ranked),
                category.value,
                len(rest),
            )
        finally:
            self._schedule_release()

    def reset(self) -> None:
        """Put every entry back where it was before the first sort."""
        if not self._bindings:
            return
        self.busy = True
        try:
            entries = self.grid.entries()
            unknown = len(self._bindings)

            def original_index(entry: Any) -> int:
                binding = self._bindings.get(id(entry))
                if binding is None or binding.entry is not entry:
                    return unknown
                return binding.index

            self.grid.reorder(sorted(entries, key=original_index))
            self.grid.clear_annotations()
            self.current_category = None
            logger.info("Order reset to original")
        finally:
            self._schedule_release()

    def annotate_new_entries(self) -> int:
        """Badge entries the renderer added since the last pass."""
        fresh = [e for e in self.grid.entries() if not self.grid.is_annotated(e)]
        if not fresh:
            return 0
        self.busy = True
        try:
            for entry in fresh:
                self._annotate(entry, self._product(entry))
            logger.debug("Annotated %d new entries", len(fresh))
        finally:
            self._schedule_release()
        return len(fresh)

    # ── Mutation handling ────────────────────────────────

    def _reconcile(self) -> None:
        self._pending = None
        logger.debug("List mutation settled, reconciling")
        if self.current_category is not None:
            self.sort_by(self.current_category)
        else:
            self.annotate_new_entries()

    def notify_mutation(self) -> None:
        """Entry point for "the rendered list changed" notifications."""
        if self.busy:
            return
        if self._pending is not None:
            self._pending.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._reconcile()
            return
        self._pending = loop.call_later(self.debounce, self._reconcile)

    def close(self) -> None:
        """Cancel a pending reconciliation."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
