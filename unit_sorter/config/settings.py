# unit_sorter/config/settings.py

"""Central configuration for the unit_sorter engine."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str) -> bool:
    """Read a boolean flag from the environment ("1", "true", "yes")."""
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Central configuration for the unit_sorter engine."""

    # --- Debug ---
    DEBUG: bool = _env_flag("UNIT_SORTER_DEBUG")

    # --- Transport ---
    REQUEST_DELAY: float = 0.5          # Base backoff between retries
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Retry count on transport errors
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "es-AR,es;q=0.9,en;q=0.8",
        "sec-fetch-dest": "empty",
        "sec-fetch-mode": "cors",
        "sec-fetch-site": "same-origin",
    }

    # --- Dialect A (Endeca / ATG) ---
    ENDECA_PAGE_SIZE: int = 50          # Records per request
    ENDECA_PARALLEL: int = 3            # Concurrent requests per group
    ENDECA_DOUBLED_PREFIX: str = "/sitios/cdigi"
    ENDECA_RESULTS_TYPE: str = "Category_ResultsList"
    PRODUCT_URL_PREFIX: str = (
        "https://www.cotodigital.com.ar/sitios/cdigi/productos"
    )

    # --- Dialect B (Constructor.io) ---
    CONSTRUCTOR_HOST_SUFFIX: str = "cnstrc.com"
    CONSTRUCTOR_PATH_MARKERS: tuple[str, ...] = ("/browse/", "/search/")
    CONSTRUCTOR_DEFAULT_PAGE_SIZE: int = 24
    CONSTRUCTOR_PARALLEL: int = 6
    CONSTRUCTOR_WAIT_TIMEOUT: float = 5.0   # Seconds polling the timeline
    CONSTRUCTOR_POLL_INTERVAL: float = 0.25
    TAX_MULTIPLIER: float = 1.21        # priceWithoutTax -> final price
    SITE_BASE_URL: str = "https://www.cotodigital.com.ar"

    # --- Pricing ---
    CURRENCY_SYMBOL: str = "$"
    MISSING_PRICE_TEXT: str = "—"
    DISCOUNT_EPSILON: float = 0.999     # Ratios below this count as a deal
    ALL_OFFERS_PLACEHOLDER: str = "Todas las Ofertas"
    DEFAULT_PRODUCT_NAME: str = "Producto"

    # --- Live reconciliation ---
    DEBOUNCE_SECONDS: float = 0.4
    BADGE_CLASS: str = "unit-sorter-badge"
    BADGE_ATTR: str = "data-unit-sorter-processed"

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    LOGS_DIR: Path = Path(
        os.getenv("UNIT_SORTER_LOGS_DIR", str(BASE_DIR / "logs"))
    )
