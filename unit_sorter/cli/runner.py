# unit_sorter/cli/runner.py

"""Headless runners for catalog retrieval and rendered-page sorting."""

import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.progress import Progress
from rich.table import Table

from unit_sorter.catalog.discovery import (
    EndpointDiscovery,
    HarTimeline,
    RecordedTimeline,
    RequestTimeline,
)
from unit_sorter.catalog.errors import CatalogError
from unit_sorter.catalog.retrieval import CatalogRetriever
from unit_sorter.live.grid import SoupGrid
from unit_sorter.live.sort_engine import SortEngine
from unit_sorter.models.product import Product, UnitCategory
from unit_sorter.pricing.price_format import format_price
from unit_sorter.pricing.ranking import group_by_category, rank_by_category

logger = logging.getLogger("unit_sorter.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def resolve_category(value: str | None) -> UnitCategory | None:
    """Map a CLI category value to a :class:`UnitCategory`.

    Raises ``SystemExit`` on unknown values.
    """
    if value is None:
        return None
    try:
        return UnitCategory(value)
    except ValueError:
        valid = ", ".join(c.value for c in UnitCategory.rankable())
        _err.print(f"[red]Unknown category: {value}[/red]")
        _err.print(f"[dim]Available: {valid}[/dim]")
        raise SystemExit(1) from None


def _print_table(products: list[Product], title: str) -> None:
    """Render a Rich table of products to stdout."""
    table = Table(title=title, show_lines=False, title_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Product", max_width=50)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Unit price", justify="right", style="bold")
    table.add_column("Deals", style="magenta")

    for idx, p in enumerate(products, 1):
        price = format_price(p.displayed_price)
        if p.discounted_price is not None:
            price = f"{price} → {format_price(p.discounted_price)}"
        table.add_row(
            str(idx),
            p.name[:50],
            price,
            p.unit_price_text or "—",
            ", ".join(p.promotion_labels),
        )

    Console().print(table)


def _timeline(har_path: str | None) -> RequestTimeline:
    if har_path:
        return HarTimeline(Path(har_path))
    return RecordedTimeline()


async def cli_fetch(
    page_url: str,
    har_path: str | None,
    category_value: str | None,
    max_count: int | None,
    output_format: str,
) -> int:
    """Retrieve a whole listing and print it; returns an exit code."""
    category = resolve_category(category_value)
    discovery = EndpointDiscovery(_timeline(har_path), page_url)
    retriever = CatalogRetriever(discovery)

    _err.print(f"[bold]Fetching catalog:[/bold] {page_url}")
    try:
        with Progress(console=_err, transient=True) as progress:
            task = progress.add_task("Fetching products...", total=None)

            def on_progress(loaded: int, total: int) -> None:
                progress.update(
                    task,
                    completed=loaded,
                    total=total or None,
                    description=f"Fetching products ({loaded}/{total})",
                )

            products, session = await retriever.fetch_catalog(
                on_progress, max_count
            )
    except CatalogError as exc:
        logger.error("Retrieval failed: %s", exc, exc_info=True)
        _err.print(f"[red]Retrieval failed: {exc}[/red]")
        return 1

    if not products:
        _err.print("[yellow]No products found on this page.[/yellow]")
        return 1

    skipped = f", {session.skipped} skipped" if session.skipped else ""
    _err.print(
        f"[green]✓ {len(products)} products via "
        f"{session.dialect.value}{skipped}[/green]"
    )

    if category is not None:
        ordered = rank_by_category(products, category)
        if output_format == "table":
            _print_table(ordered, category.separator_label)
        else:
            _dump_json([p.to_dict() for p in ordered])
        return 0

    groups = group_by_category(products)
    if output_format == "table":
        for group in groups:
            _print_table(group.products, group.label)
    else:
        _dump_json(
            [
                {
                    "category": g.category.value,
                    "label": g.label,
                    "products": [p.to_dict() for p in g.products],
                }
                for g in groups
            ]
        )
    return 0


def cli_sort(
    html_path: str, category_value: str, reset: bool
) -> int:
    """Sort the cards of a saved listing page and print the new order."""
    category = resolve_category(category_value)
    if category is None:
        return 1
    try:
        html = Path(html_path).read_text(encoding="utf-8")
    except OSError as exc:
        _err.print(f"[red]Cannot read {html_path}: {exc}[/red]")
        return 1

    grid = SoupGrid.from_html(html)
    if not grid.entries():
        _err.print("[yellow]No product cards found in the page.[/yellow]")
        return 1

    engine = SortEngine(grid)
    engine.sort_by(category)
    if reset:
        engine.reset()

    _dump_json(grid.names())
    return 0


def _dump_json(payload: object) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")
