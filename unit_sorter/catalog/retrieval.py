# unit_sorter/catalog/retrieval.py

"""Resilient paginated retrieval of a whole catalog listing.

A call starts with dialect A (the Endeca JSON view of the current
page).  If that dialect answers with an error status or without the
results container, the *whole* call switches to dialect B
(Constructor.io) using an endpoint observed on the network timeline.
A failure in dialect B ends the call.
"""

import asyncio
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import parse_qsl, unquote, urlencode, urlsplit, urlunsplit

from unit_sorter.catalog.discovery import EndpointDiscovery
from unit_sorter.catalog.errors import (
    NetworkError,
    RecordParseError,
    StructuralError,
)
from unit_sorter.catalog.http_client import CatalogHttpClient
from unit_sorter.catalog.normalizer import (
    normalize_dialect_a,
    normalize_dialect_b,
)
from unit_sorter.config.settings import Settings
from unit_sorter.models.product import Product
from unit_sorter.pricing.price_format import parse_api_number

logger = logging.getLogger("unit_sorter.retrieval")

ProgressCallback = Callable[[int, int], None]

_ENDECA_PARAMS = frozenset({"format", "No", "Nrpp", "_dyncharset"})
_CONSTRUCTOR_PARAMS = frozenset({"page", "num_results_per_page"})


class Dialect(str, Enum):
    """Catalog API flavour a session talks to."""

    ENDECA = "endeca"
    CONSTRUCTOR = "constructor"


@dataclass
class RetrievalSession:
    """State of one retrieval call for one dialect."""

    dialect: Dialect
    base_url: str
    page_size: int
    parallel: int
    cursor: int = 0
    total: int = 0
    products: list[Product] = field(default_factory=list)
    skipped: int = 0


# ── URL building ─────────────────────────────────────────


def repair_endeca_url(url: str) -> str:
    """Undo two ways the host mangles its own listing URLs.

    A relative XHR issued from ``/sitios/cdigi/`` resolves to a doubled
    ``/sitios/cdigi/sitios/cdigi/...`` path, and ATG sometimes folds the
    query string into the path as ``%3F``.
    """
    parts = urlsplit(url)
    path = parts.path
    prefix = Settings.ENDECA_DOUBLED_PREFIX
    if path.startswith(prefix + prefix):
        logger.debug("Fixed doubled path prefix in %s", path)
        path = path[len(prefix):]

    query = parts.query
    qmark = path.lower().find("%3f")
    if qmark != -1:
        smuggled = unquote(path[qmark + 3:])
        path = path[:qmark]
        query = "&".join(q for q in (query, smuggled) if q)
        logger.debug("Decoded path-encoded params: %s", smuggled)

    return urlunsplit((parts.scheme, parts.netloc, path, query, ""))


def _with_params(
    url: str, drop: frozenset[str], extra: dict[str, str]
) -> str:
    parts = urlsplit(url)
    pairs = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in drop
    ]
    pairs.extend(extra.items())
    return urlunsplit(
        (parts.scheme, parts.netloc, parts.path, urlencode(pairs), "")
    )


def build_endeca_url(base_url: str, offset: int, page_size: int) -> str:
    """JSON listing URL for records ``offset .. offset + page_size``."""
    return _with_params(
        repair_endeca_url(base_url),
        _ENDECA_PARAMS,
        {"format": "json", "No": str(offset), "Nrpp": str(page_size)},
    )


def build_constructor_url(base_url: str, page: int, page_size: int) -> str:
    """Browse/search URL for a 1-based *page*."""
    return _with_params(
        base_url,
        _CONSTRUCTOR_PARAMS,
        {"page": str(page), "num_results_per_page": str(page_size)},
    )


def constructor_page_size(url: str) -> int:
    """Page size baked into an observed Constructor URL."""
    for key, value in parse_qsl(urlsplit(url).query):
        if key == "num_results_per_page" and value.isdigit():
            size = int(value)
            if size > 0:
                return size
    return Settings.CONSTRUCTOR_DEFAULT_PAGE_SIZE


# ── Response navigation ──────────────────────────────────


def find_results_list(data: Any) -> dict[str, Any] | None:
    """Locate the ``Category_ResultsList`` node of an Endeca page."""
    target = Settings.ENDECA_RESULTS_TYPE
    if not isinstance(data, dict):
        return None
    contents = data.get("contents")
    if not isinstance(contents, list) or not contents:
        return None
    page = contents[0]
    slot = page.get("Main") if isinstance(page, dict) else None
    if not isinstance(slot, list):
        return None
    for slot_item in slot:
        if not isinstance(slot_item, dict):
            continue
        if slot_item.get("@type") == target:
            return slot_item
        for content in slot_item.get("contents") or []:
            if isinstance(content, dict) and content.get("@type") == target:
                return content
    return None


def _endeca_records(results_list: dict[str, Any]) -> list[Any]:
    inner: list[Any] = []
    for outer in results_list.get("records") or []:
        if isinstance(outer, dict):
            inner.extend(outer.get("records") or [])
    return inner


def _parse_total(container: dict[str, Any], key: str) -> int:
    """Record count reported by the first page; a missing count is 0."""
    raw = container.get(key)
    if raw is None or raw == "":
        return 0
    total = parse_api_number(raw)
    if not math.isfinite(total) or total < 0:
        raise StructuralError(f"{key} is not a number: {raw!r}")
    return int(total)


def _constructor_response(data: Any) -> dict[str, Any]:
    response = data.get("response") if isinstance(data, dict) else None
    if not isinstance(response, dict) or not isinstance(
        response.get("results"), list
    ):
        raise StructuralError("Constructor response has no results list")
    return response


# ── Retriever ────────────────────────────────────────────


class CatalogRetriever:
    """Fetches every product of the listing the shopper is looking at."""

    def __init__(
        self,
        discovery: EndpointDiscovery,
        client: CatalogHttpClient | None = None,
        endeca_page_size: int = Settings.ENDECA_PAGE_SIZE,
        endeca_parallel: int = Settings.ENDECA_PARALLEL,
        constructor_parallel: int = Settings.CONSTRUCTOR_PARALLEL,
        constructor_wait: float = Settings.CONSTRUCTOR_WAIT_TIMEOUT,
    ) -> None:
        self.discovery = discovery
        self.client = client or CatalogHttpClient(
            referer=discovery.page_url
        )
        self.endeca_page_size = endeca_page_size
        self.endeca_parallel = max(1, endeca_parallel)
        self.constructor_parallel = max(1, constructor_parallel)
        self.constructor_wait = constructor_wait

    async def _get_json(self, url: str) -> Any:
        return await asyncio.to_thread(self.client.get_json, url)

    def _parse(
        self,
        session: RetrievalSession,
        records: list[Any],
        mapper: Callable[[Any], Product],
    ) -> list[Product]:
        products: list[Product] = []
        for record in records:
            try:
                products.append(mapper(record))
            except RecordParseError as exc:
                session.skipped += 1
                logger.warning("Skipping malformed record: %s", exc)
        return products

    @staticmethod
    def _report(
        session: RetrievalSession,
        progress_callback: ProgressCallback | None,
    ) -> None:
        logger.debug(
            "Progress: %d/%d", len(session.products), session.total
        )
        if progress_callback:
            progress_callback(len(session.products), session.total)

    async def _gather_groups(
        self,
        session: RetrievalSession,
        cursors: list[int],
        fetch_one: Callable[[int], Any],
        progress_callback: ProgressCallback | None,
        max_count: int | None,
    ) -> None:
        """Request *cursors* in fixed-size concurrent groups, in order."""
        step = session.parallel
        for i in range(0, len(cursors), step):
            if max_count and len(session.products) >= max_count:
                break
            group = cursors[i:i + step]
            batches = await asyncio.gather(*(fetch_one(c) for c in group))
            for batch in batches:
                session.products.extend(batch)
            session.cursor = group[-1] + (
                session.page_size
                if session.dialect is Dialect.ENDECA
                else 1
            )
            self._report(session, progress_callback)

    # ── Dialect A ────────────────────────────────────────

    async def _fetch_endeca_page(
        self, session: RetrievalSession, offset: int
    ) -> list[Product]:
        url = build_endeca_url(session.base_url, offset, session.page_size)
        logger.debug("Fetching offset %d: %s", offset, url)
        data = await self._get_json(url)
        results_list = find_results_list(data)
        if results_list is None:
            raise StructuralError(
                f"No {Settings.ENDECA_RESULTS_TYPE} at offset {offset}. "
                "Is this a category or search page?"
            )
        return self._parse(
            session, _endeca_records(results_list), normalize_dialect_a
        )

    async def _run_endeca(
        self,
        progress_callback: ProgressCallback | None,
        max_count: int | None,
    ) -> RetrievalSession:
        session = RetrievalSession(
            dialect=Dialect.ENDECA,
            base_url=self.discovery.dialect_a_base(),
            page_size=self.endeca_page_size,
            parallel=self.endeca_parallel,
        )
        first_url = build_endeca_url(session.base_url, 0, session.page_size)
        logger.info("Fetching first Endeca batch: %s", first_url)
        data = await self._get_json(first_url)
        results_list = find_results_list(data)
        if results_list is None:
            raise StructuralError(
                f"No {Settings.ENDECA_RESULTS_TYPE} in the response. "
                "Is this a category or search page?"
            )
        session.total = _parse_total(results_list, "totalNumRecs")
        session.products.extend(
            self._parse(
                session, _endeca_records(results_list), normalize_dialect_a
            )
        )
        session.cursor = session.page_size
        logger.info("Total products from API: %d", session.total)
        self._report(session, progress_callback)

        offsets = list(
            range(session.page_size, session.total, session.page_size)
        )

        async def fetch_one(offset: int) -> list[Product]:
            return await self._fetch_endeca_page(session, offset)

        await self._gather_groups(
            session, offsets, fetch_one, progress_callback, max_count
        )
        return session

    # ── Dialect B ────────────────────────────────────────

    async def _fetch_constructor_page(
        self, session: RetrievalSession, page: int
    ) -> list[Product]:
        url = build_constructor_url(session.base_url, page, session.page_size)
        logger.debug("Fetching page %d: %s", page, url)
        response = _constructor_response(await self._get_json(url))
        return self._parse(
            session, response["results"], normalize_dialect_b
        )

    async def _run_constructor(
        self,
        template_url: str,
        progress_callback: ProgressCallback | None,
        max_count: int | None,
    ) -> RetrievalSession:
        session = RetrievalSession(
            dialect=Dialect.CONSTRUCTOR,
            base_url=template_url,
            page_size=constructor_page_size(template_url),
            parallel=self.constructor_parallel,
            cursor=1,
        )
        first_url = build_constructor_url(
            session.base_url, 1, session.page_size
        )
        logger.info("Fetching first Constructor page: %s", first_url)
        response = _constructor_response(await self._get_json(first_url))
        session.total = _parse_total(response, "total_num_results")
        session.products.extend(
            self._parse(session, response["results"], normalize_dialect_b)
        )
        session.cursor = 2
        self._report(session, progress_callback)

        last_page = math.ceil(session.total / session.page_size)
        pages = list(range(2, last_page + 1))

        async def fetch_one(page: int) -> list[Product]:
            return await self._fetch_constructor_page(session, page)

        await self._gather_groups(
            session, pages, fetch_one, progress_callback, max_count
        )
        return session

    # ── Public API ───────────────────────────────────────

    async def fetch_catalog(
        self,
        progress_callback: ProgressCallback | None = None,
        max_count: int | None = None,
    ) -> tuple[list[Product], RetrievalSession]:
        """Retrieve the listing, falling back from dialect A to B.

        Returns the products in API order (truncated to *max_count*
        when given) together with the session that produced them.
        """
        try:
            session = await self._run_endeca(progress_callback, max_count)
        except (NetworkError, StructuralError) as endeca_error:
            logger.warning(
                "Endeca retrieval failed (%s); trying Constructor",
                endeca_error,
            )
            template = await self.discovery.wait_for_dialect_b(
                timeout=self.constructor_wait
            )
            if template is None:
                raise endeca_error
            session = await self._run_constructor(
                template, progress_callback, max_count
            )

        products = session.products
        if max_count and max_count > 0 and len(products) > max_count:
            products = products[:max_count]
            logger.debug("Limited to first %d products", max_count)
        logger.info(
            "Retrieval complete via %s: %d products (%d skipped)",
            session.dialect.value,
            len(products),
            session.skipped,
        )
        return products, session

    async def fetch_all(
        self,
        progress_callback: ProgressCallback | None = None,
        max_count: int | None = None,
    ) -> list[Product]:
        """Like :meth:`fetch_catalog` but returns only the products."""
        products, _ = await self.fetch_catalog(progress_callback, max_count)
        return products

