"""HTTP fetcher with optional Playwright fallback for JS-rendered pages."""

from __future__ import annotations

import logging
import re

import httpx

from llamap.config import settings
from llamap.errors import FetchError
from llamap.scraper.models import RawPage

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# SPA / JS-rendered page detection heuristics
# ---------------------------------------------------------------------------
_SPA_PATTERNS = [
    re.compile(r'<div[^>]+id=["\'](?:root|app)["\']\s*>\s*</div>', re.IGNORECASE),
    re.compile(r"window\.__NEXT_DATA__", re.IGNORECASE),
    re.compile(r"ng-version=", re.IGNORECASE),
    re.compile(r"data-reactroot", re.IGNORECASE),
]


def _headers() -> dict[str, str]:
    return {"User-Agent": settings.user_agent}


def _is_spa(html: str) -> bool:
    """Return ``True`` if *html* looks like a JavaScript SPA that needs rendering."""
    for pattern in _SPA_PATTERNS:
        if pattern.search(html):
            return True
    # Very little visible text relative to total HTML size.  <script> and
    # <style> bodies do not count as visible text.
    no_scripts = re.sub(
        r"<(script|style)[^>]*>.*?</(script|style)>", "", html, flags=re.IGNORECASE | re.DOTALL
    )
    stripped = re.sub(r"<[^>]+>", "", no_scripts).strip()
    return len(html) > 2000 and len(stripped) < 200


def _fetch_with_playwright(url: str) -> RawPage:
    """Render *url* with a headless Chromium browser and return its HTML.

    Playwright is imported lazily so the default (non-rendering) path does not
    need a browser installed.
    """
    from playwright.sync_api import Error as PlaywrightError  # noqa: PLC0415
    from playwright.sync_api import sync_playwright  # noqa: PLC0415

    try:
        with sync_playwright() as pw:
            browser = pw.chromium.launch(headless=True)
            try:
                page = browser.new_page(user_agent=settings.user_agent)
                response = page.goto(
                    url,
                    timeout=int(settings.request_timeout * 1000),
                    wait_until="networkidle",
                )
                html = page.content()
            finally:
                browser.close()
    except PlaywrightError as exc:
        raise FetchError(f"Rendering {url} failed: {exc}", url=url) from exc

    status_code = response.status if response is not None else 200
    return RawPage(url=url, html=html, status_code=status_code, fetched_by="playwright")


def _get(url: str) -> httpx.Response:
    """GET *url* and raise :class:`FetchError` on transport or HTTP errors."""
    try:
        with httpx.Client(
            headers=_headers(),
            timeout=settings.request_timeout,
            follow_redirects=True,
        ) as client:
            response = client.get(url)
            response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise FetchError(
            f"HTTP {exc.response.status_code} for {url}", url=url
        ) from exc
    except httpx.HTTPError as exc:
        raise FetchError(f"Request to {url} failed: {exc}", url=url) from exc
    return response


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def fetch_url(url: str) -> RawPage:
    """Fetch *url* and return a :class:`RawPage`.

    Uses ``httpx`` for standard pages.  When ``settings.render_js`` is on and a
    JavaScript SPA fingerprint is detected in the response, the page is
    re-rendered with a headless Playwright browser.

    Raises:
        FetchError: If the request fails or the server returns 4xx/5xx.
    """
    response = _get(url)
    raw = RawPage(url=url, html=response.text, status_code=response.status_code)

    if settings.render_js and _is_spa(raw.html):
        logger.debug("SPA fingerprint on %s, rendering with Playwright", url)
        raw = _fetch_with_playwright(url)

    return raw


def fetch_sitemap(url: str) -> bytes:
    """Return the raw body of the sitemap document at *url*.

    The body is returned undecoded so gzip-compressed sitemaps can be
    detected by the parser.

    Raises:
        FetchError: If the request fails or the server returns 4xx/5xx.
    """
    logger.debug("Fetching sitemap %s", url)
    return _get(url).content
