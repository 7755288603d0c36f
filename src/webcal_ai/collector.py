"""Capture page materials for extraction.

:class:`PageCollector` fetches a page over HTTP (the command-line stand-in
for reading the active browser tab) and derives its visible text.
:func:`load_local_materials` builds materials from a saved HTML file.
Either way the result is a :class:`~webcal_ai.models.page.PageMaterials`.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import mimetypes
import re
from pathlib import Path

import httpx
from bs4 import BeautifulSoup

from webcal_ai.exceptions import ContentUnavailableError
from webcal_ai.models.page import PageMaterials
from webcal_ai.urls import validate_fetch_url

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0
DEFAULT_RETRIES = 2
DEFAULT_BACKOFF = 1.0

_USER_AGENT = "Mozilla/5.0 (compatible; webcal-ai/0.1; +https://github.com/webcal-ai)"


def html_to_text(html: str) -> str:
    """Return the visible text of *html*.

    Scripts, styles and ``<head>`` are removed; blank-line runs collapse.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "head", "noscript", "template"]):
        tag.decompose()

    text = soup.get_text(separator="\n")
    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def encode_image(path: Path) -> str:
    """Encode an image file as a ``data:`` URL.

    Raises:
        ContentUnavailableError: If the file cannot be read.
    """
    mime_type = mimetypes.guess_type(path.name)[0] or "image/png"
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ContentUnavailableError(f"Cannot read screenshot {path}: {exc}") from exc
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def load_local_materials(
    path: Path,
    url: str,
    screenshot: Path | None = None,
) -> PageMaterials:
    """Build materials from a saved HTML file.

    Args:
        path: HTML file on disk.
        url: The address the file was saved from.
        screenshot: Optional image to attach.

    Raises:
        ContentUnavailableError: If a file cannot be read.
    """
    try:
        html = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise ContentUnavailableError(f"Cannot read {path}: {exc}") from exc

    logger.info("Loaded %d chars of markup from %s", len(html), path)
    return PageMaterials(
        url=url,
        html=html,
        text=html_to_text(html),
        screenshot=encode_image(screenshot) if screenshot else None,
    )


class PageCollector:
    """Fetch a page and turn it into :class:`PageMaterials`.

    Args:
        http_client: Optional shared ``httpx.AsyncClient``.
        timeout: Per-request timeout in seconds.
        retries: Extra attempts after the first failure.
        backoff: Fixed delay between attempts, in seconds.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        backoff: float = DEFAULT_BACKOFF,
    ) -> None:
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": _USER_AGENT},
        )
        self._retries = retries
        self._backoff = backoff

    async def collect(self, url: str, screenshot: Path | None = None) -> PageMaterials:
        """Fetch *url* and return its materials.

        Raises:
            ContentUnavailableError: If the URL is not allowed or every
                attempt fails.
        """
        try:
            validate_fetch_url(url)
        except ValueError as exc:
            raise ContentUnavailableError(str(exc)) from exc

        html = await self._fetch(url)
        logger.info("Fetched %d chars of markup from %s", len(html), url)
        return PageMaterials(
            url=url,
            html=html,
            text=html_to_text(html),
            screenshot=encode_image(screenshot) if screenshot else None,
        )

    async def _fetch(self, url: str) -> str:
        last_error = ""
        for attempt in range(1, self._retries + 2):
            try:
                response = await self._http_client.get(url)
                response.raise_for_status()
                return response.text
            except httpx.HTTPStatusError as exc:
                last_error = f"HTTP {exc.response.status_code}"
                # Client errors will not go away on retry.
                if exc.response.status_code < 500:
                    break
            except httpx.HTTPError as exc:
                last_error = str(exc) or type(exc).__name__

            if attempt <= self._retries:
                logger.warning(
                    "Fetching %s failed (%s), retrying in %.1fs (attempt %d/%d)",
                    url,
                    last_error,
                    self._backoff,
                    attempt,
                    self._retries + 1,
                )
                await asyncio.sleep(self._backoff)

        raise ContentUnavailableError(f"Could not fetch {url}: {last_error}")

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()
