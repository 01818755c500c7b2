# main.py

"""Entry point for the unit_sorter headless tools."""

import argparse
import asyncio
import logging
import sys

from unit_sorter.config.logging_config import setup_logging
from unit_sorter.models.product import UnitCategory

logger = logging.getLogger("unit_sorter.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    categories = [c.value for c in UnitCategory.rankable()]

    parser = argparse.ArgumentParser(
        prog="unit_sorter",
        description="Compare grocery products by true price per unit.",
        epilog=f"Categories: {', '.join(categories)}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=None,
        help="Mirror debug logging to the console.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    fetch = sub.add_parser(
        "fetch", help="Retrieve every product of a catalog page."
    )
    fetch.add_argument(
        "--page-url",
        required=True,
        help="Address of the category or search page.",
    )
    fetch.add_argument(
        "--har",
        default=None,
        help="HAR export of the page, used to discover API endpoints.",
    )
    fetch.add_argument(
        "-c",
        "--category",
        choices=categories,
        default=None,
        help="Rank by this unit category (default: group by category).",
    )
    fetch.add_argument(
        "-n",
        "--max",
        type=int,
        default=None,
        dest="max_count",
        help="Keep only the first N products.",
    )
    fetch.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )

    sort = sub.add_parser(
        "sort", help="Sort the product cards of a saved page."
    )
    sort.add_argument("--html", required=True, help="Saved page HTML.")
    sort.add_argument(
        "-c",
        "--category",
        choices=categories,
        required=True,
        help="Unit category to sort by.",
    )
    sort.add_argument(
        "--reset",
        action="store_true",
        default=False,
        help="Restore the original order after sorting.",
    )
    return parser


def main() -> None:
    """Route to the fetch or sort runner."""
    parser = _build_parser()
    args = parser.parse_args()

    log_file = setup_logging(debug=args.debug)
    logger.info("unit_sorter starting, log file: %s", log_file)

    from unit_sorter.cli.runner import cli_fetch, cli_sort

    if args.command == "fetch":
        exit_code = asyncio.run(
            cli_fetch(
                page_url=args.page_url,
                har_path=args.har,
                category_value=args.category,
                max_count=args.max_count,
                output_format=args.output_format,
            )
        )
    else:
        exit_code = cli_sort(args.html, args.category, args.reset)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
