# unit_sorter/catalog/http_client.py

"""Blocking JSON transport for catalog API calls."""

import json
import logging
import time
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from curl_cffi import requests as curl_requests

from unit_sorter.catalog.errors import NetworkError, StructuralError
from unit_sorter.config.settings import Settings


class CatalogHttpClient:
    """GET JSON documents with browser impersonation.

    Transport errors are retried with a linear backoff; once curl_cffi
    is exhausted the request is replayed through cloudscraper.  A
    non-200 answer is reported immediately as :class:`NetworkError`
    because the caller decides whether to switch dialect.
    """

    def __init__(self, referer: str | None = None) -> None:
        self.logger = logging.getLogger("unit_sorter.http")
        self.settings = Settings()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self.referer = referer
        self._request_timeout: int = self.settings.REQUEST_TIMEOUT

    def _headers(self) -> dict[str, str]:
        headers = dict(self.settings.DEFAULT_HEADERS)
        if self.referer:
            headers["Referer"] = self.referer
        return headers

    def _fetch(self, url: str) -> Any | None:
        """Return a response, or None when every transport attempt failed."""
        headers = self._headers()
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                return self.session.get(
                    url,
                    headers=headers,
                    timeout=self._request_timeout,
                )
            except Exception as exc:
                self.logger.warning(
                    "Request error on attempt %d for %s: %s",
                    attempt + 1,
                    url,
                    exc,
                    exc_info=True,
                )
                time.sleep(self.settings.REQUEST_DELAY * (attempt + 1))

        # Fallback: cloudscraper (JS challenge solver)
        self.logger.info(
            "curl_cffi exhausted, falling back to cloudscraper"
        )
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            return scraper.get(
                url,
                headers=headers,
                timeout=self._request_timeout,
            )
        except Exception as exc:
            self.logger.error(
                "cloudscraper fallback also failed: %s",
                exc,
                exc_info=True,
            )
        return None

    def get_json(self, url: str) -> Any:
        """GET *url* and decode its JSON body."""
        resp = self._fetch(url)
        if resp is None:
            raise NetworkError(f"No response from {url}")
        if resp.status_code != 200:
            raise NetworkError(
                f"API error {resp.status_code}", status=resp.status_code
            )
        try:
            return resp.json()
        except (ValueError, json.JSONDecodeError) as exc:
            raise StructuralError(
                f"Response from {url} is not JSON"
            ) from exc
