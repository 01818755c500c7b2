# unit_sorter/live/grid.py

"""Adapters over the rendered product list owned by the host page."""

import logging
from collections.abc import Callable
from typing import Any, Protocol

from bs4 import BeautifulSoup, Tag

from unit_sorter.config.settings import Settings

logger = logging.getLogger("unit_sorter.grid")

MutationListener = Callable[[], None]


class RenderedGrid(Protocol):
    """The list of product cards as currently displayed.

    Entry handles are opaque to the sort engine: it only passes them
    back to the grid and keeps them to remember the original order.
    """

    def entries(self) -> list[Any]: ...

    def reorder(self, entries: list[Any]) -> None: ...

    def markup(self, entry: Any) -> Any: ...

    def annotate(
        self, entry: Any, text: str | None, discounted: bool = False
    ) -> None: ...

    def is_annotated(self, entry: Any) -> bool: ...

    def clear_annotations(self) -> None: ...

    def subscribe(self, listener: MutationListener) -> None: ...


class SoupGrid:
    """A product grid parsed from page HTML with BeautifulSoup.

    Cards are the ``.producto-card`` children of ``.productos.row``.
    Every structural change, ours or an external one made through
    :meth:`append_entry`, is reported to the subscribed listeners the
    way a DOM mutation observer would.
    """

    CONTAINER_SELECTOR = ".productos.row"
    ENTRY_CLASS = "producto-card"

    def __init__(self, soup: BeautifulSoup) -> None:
        self.soup = soup
        self._listeners: list[MutationListener] = []

    @classmethod
    def from_html(cls, html: str) -> "SoupGrid":
        return cls(BeautifulSoup(html, "lxml"))

    @property
    def container(self) -> Tag | None:
        return self.soup.select_one(self.CONTAINER_SELECTOR)

    def subscribe(self, listener: MutationListener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    def entries(self) -> list[Tag]:
        container = self.container
        if container is None:
            logger.debug(
                "Product container %s not found", self.CONTAINER_SELECTOR
            )
            return []
        return [
            child
            for child in container.find_all(
                class_=self.ENTRY_CLASS, recursive=False
            )
            if isinstance(child, Tag)
        ]

    def reorder(self, entries: list[Tag]) -> None:
        container = self.container
        if container is None:
            return
        for entry in entries:
            container.append(entry.extract())
        self._notify()

    def markup(self, entry: Tag) -> Tag:
        return entry

    def annotate(
        self, entry: Tag, text: str | None, discounted: bool = False
    ) -> None:
        """Replace the entry's badge; ``None`` marks it as without data."""
        for badge in entry.select(f".{Settings.BADGE_CLASS}"):
            badge.decompose()
        if text is None:
            entry[Settings.BADGE_ATTR] = "no-data"
            self._notify()
            return

        modifier = "discount" if discounted else "regular"
        badge = self.soup.new_tag(
            "div",
            attrs={
                "class": [
                    Settings.BADGE_CLASS,
                    f"{Settings.BADGE_CLASS}-{modifier}",
                ]
            },
        )
        badge.string = text
        holder = entry.select_one(".card-container") or entry
        holder.insert(0, badge)
        entry[Settings.BADGE_ATTR] = "done"
        self._notify()

    def is_annotated(self, entry: Tag) -> bool:
        return entry.has_attr(Settings.BADGE_ATTR)

    def clear_annotations(self) -> None:
        for badge in self.soup.select(f".{Settings.BADGE_CLASS}"):
            badge.decompose()
        for marked in self.soup.select(f"[{Settings.BADGE_ATTR}]"):
            del marked[Settings.BADGE_ATTR]
        self._notify()

    def append_entry(self, html: str) -> Tag | None:
        """Add a card the way the host renderer does on infinite scroll."""
        container = self.container
        if container is None:
            return None
        fragment = BeautifulSoup(html, "lxml")
        card = fragment.find(class_=self.ENTRY_CLASS)
        if not isinstance(card, Tag):
            return None
        container.append(card.extract())
        self._notify()
        return card

    def names(self) -> list[str]:
        """Product names in display order (for reports and tests)."""
        names: list[str] = []
        for entry in self.entries():
            heading = entry.select_one("h3.nombre-producto")
            names.append(heading.get_text(strip=True) if heading else "")
        return names
