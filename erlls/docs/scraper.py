"""
Documentation scraped from the Erlang/OTP man pages.

The man page layout is not a stable format, so extraction is a best-effort
regular-expression heuristic:
1. Find the anchor named after the function (``<a name="map-2">``), or
   failing that the DESCRIPTION heading of the page.
2. Take everything from there up to the next ``</div>``.
3. Render the fragment as plain text.
"""

from __future__ import annotations

import re

import httpx

from erlls.docs.html import strip_html
from erlls.errors import AnchorNotFoundError, ExtractionError, FetchError

DESCRIPTION_PATTERN = re.compile(r"<h\d[^>]*>\s*DESCRIPTION\s*</h\d>", re.IGNORECASE)
BLOCK_END_PATTERN = re.compile(r"</div>", re.IGNORECASE)


def man_page_url(base_url: str, module: str) -> str:
    return f"{base_url.rstrip('/')}/man/{module}.html"


def _anchor_pattern(function: str) -> re.Pattern:
    name = re.escape(function)
    return re.compile(
        rf"<a\s[^>]*(?:name|id)\s*=\s*\"{name}(?:-\d+)?\"[^>]*>", re.IGNORECASE
    )


def extract_fragment(page: str, function: str) -> str:
    """
    Cut the hypertext describing ``function`` out of a man page.

    Raises:
        AnchorNotFoundError: Neither the function anchor nor DESCRIPTION found.
        ExtractionError: No closing block marker after the anchor.
    """
    anchor = _anchor_pattern(function).search(page) or DESCRIPTION_PATTERN.search(page)
    if anchor is None:
        raise AnchorNotFoundError(f"no anchor for {function!r}")

    end = BLOCK_END_PATTERN.search(page, anchor.end())
    if end is None:
        raise ExtractionError(f"unterminated block after anchor for {function!r}")

    return page[anchor.end() : end.start()]


class ManPageScraper:
    """Fetches man pages over HTTP and extracts function documentation."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 3.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            base_url: Documentation site root, e.g. https://www.erlang.org/doc
            timeout: Seconds allowed for the whole request.
            transport: httpx transport override (tests use httpx.MockTransport).
        """
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    async def fetch(self, module: str) -> str:
        """
        Download the man page of ``module``.

        Raises:
            FetchError: On network errors, timeouts or non-2xx responses.
        """
        url = man_page_url(self.base_url, module)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.text
        except httpx.HTTPError as e:
            raise FetchError(f"GET {url} failed: {e}") from e

    async def get_doc(self, module: str, function: str) -> str:
        """
        Plain-text documentation of ``module:function``.

        Raises:
            ScrapeError: If any step fails.
        """
        page = await self.fetch(module)
        fragment = extract_fragment(page, function)
        text = strip_html(fragment)
        if not text:
            raise ExtractionError(f"empty documentation for {module}:{function}")
        return text
