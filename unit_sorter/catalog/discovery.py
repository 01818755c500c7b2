# unit_sorter/catalog/discovery.py

"""Passive discovery of catalog API endpoints from observed requests.

The host page issues its own catalog requests while the shopper
browses.  Rather than reverse-engineering those URLs we look at the
recorded network timeline (browser resource timings, a HAR export, or
any object exposing ``entries()``) and reuse the most recent match.
"""

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import parse_qs, unquote, urlparse

from unit_sorter.config.settings import Settings

logger = logging.getLogger("unit_sorter.discovery")

_ENDECA_SEGMENT_RE = re.compile(r"/_/N-[a-z0-9]+", re.IGNORECASE)
_ENDECA_MARKER = "/_/N-"
_NETWORK_INITIATORS = frozenset({"xmlhttprequest", "fetch"})


@dataclass(frozen=True)
class ResourceEntry:
    """One observed request: its URL and what initiated it."""

    name: str
    initiator_type: str = "fetch"


class RequestTimeline(Protocol):
    """Anything that can list recently observed requests, oldest first."""

    def entries(self) -> list[ResourceEntry]: ...


class RecordedTimeline:
    """In-memory timeline fed by whoever observes the network."""

    def __init__(self, entries: list[ResourceEntry] | None = None) -> None:
        self._entries: list[ResourceEntry] = list(entries or [])

    def record(self, url: str, initiator_type: str = "fetch") -> None:
        self._entries.append(ResourceEntry(url, initiator_type))

    def entries(self) -> list[ResourceEntry]:
        return list(self._entries)


class HarTimeline:
    """Timeline backed by a browser HAR export (DevTools > Save as HAR).

    XHR/fetch requests are tagged by Chromium through ``_resourceType``;
    entries without that hint are assumed to be fetches.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def entries(self) -> list[ResourceEntry]:
        try:
            with open(self.path, encoding="utf-8") as f:
                har: dict[str, Any] = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Could not read HAR file %s: %s", self.path, exc)
            return []
        found: list[ResourceEntry] = []
        for entry in har.get("log", {}).get("entries", []):
            url = entry.get("request", {}).get("url")
            if not url:
                continue
            kind = str(entry.get("_resourceType") or "fetch").lower()
            if kind == "xhr":
                kind = "xmlhttprequest"
            found.append(ResourceEntry(url, kind))
        return found


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}".lower()


def is_endeca_url(url: str, page_url: str) -> bool:
    """Same-origin catalog listing call of dialect A."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if not parsed.scheme or _origin(url) != _origin(page_url):
        return False
    if _ENDECA_SEGMENT_RE.search(parsed.path):
        return True
    query = parse_qs(parsed.query, keep_blank_values=True)
    return "Nr" in query or "Nf" in query


def is_constructor_url(url: str) -> bool:
    """Constructor.io browse/search call of dialect B."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    host = (parsed.hostname or "").lower()
    if not host.endswith(Settings.CONSTRUCTOR_HOST_SUFFIX):
        return False
    return any(
        marker in parsed.path
        for marker in Settings.CONSTRUCTOR_PATH_MARKERS
    )


def endeca_base_path(url: str) -> str:
    """Decoded path before the ``/_/N-`` listing segment."""
    decoded = unquote(urlparse(url).path)
    idx = decoded.find(_ENDECA_MARKER)
    return decoded[:idx] if idx != -1 else decoded


class EndpointDiscovery:
    """Tracks one candidate endpoint URL per dialect for the current page."""

    def __init__(
        self,
        timeline: RequestTimeline,
        page_url: str,
    ) -> None:
        self.timeline = timeline
        self.page_url = page_url
        self.endeca_url: str | None = None
        self.constructor_url: str | None = None

    def _network_entries(self) -> list[ResourceEntry]:
        return [
            e
            for e in self.timeline.entries()
            if e.initiator_type.lower() in _NETWORK_INITIATORS
        ]

    def refresh(self) -> None:
        """Rescan the timeline, newest first, and update both candidates."""
        try:
            entries = self._network_entries()
            endeca = next(
                (
                    e.name
                    for e in reversed(entries)
                    if is_endeca_url(e.name, self.page_url)
                ),
                None,
            )
            constructor = next(
                (
                    e.name
                    for e in reversed(entries)
                    if is_constructor_url(e.name)
                ),
                None,
            )
        except Exception as exc:
            logger.warning("Timeline scan failed: %s", exc, exc_info=True)
            return

        if endeca:
            if endeca != self.endeca_url:
                logger.debug("[ApiCapture] Endeca URL: %s", endeca)
            self.endeca_url = endeca
        if constructor:
            if constructor != self.constructor_url:
                logger.debug("[ApiCapture] Constructor URL: %s", constructor)
            self.constructor_url = constructor

    def matches_current_page(self, url: str | None) -> bool:
        """Reject a captured URL that belongs to a previous category."""
        if not url:
            return False
        captured = endeca_base_path(url).rstrip("/")
        current = unquote(urlparse(self.page_url).path).rstrip("/")
        return current.startswith(captured) or captured.startswith(current)

    def dialect_a_base(self) -> str:
        """Best base URL for dialect A requests."""
        self.refresh()
        if self.endeca_url and self.matches_current_page(self.endeca_url):
            return self.endeca_url
        if self.endeca_url:
            logger.debug(
                "[ApiCapture] Captured URL doesn't match current page, "
                "falling back to page URL"
            )
        return self.page_url

    async def wait_for_dialect_b(
        self,
        timeout: float = Settings.CONSTRUCTOR_WAIT_TIMEOUT,
        poll_interval: float = Settings.CONSTRUCTOR_POLL_INTERVAL,
    ) -> str | None:
        """Poll the timeline until a dialect B URL shows up or time runs out."""
        deadline = time.monotonic() + timeout
        while True:
            self.refresh()
            if self.constructor_url:
                return self.constructor_url
            if time.monotonic() >= deadline:
                logger.info(
                    "No Constructor endpoint observed within %.1fs", timeout
                )
                return None
            await asyncio.sleep(poll_interval)
