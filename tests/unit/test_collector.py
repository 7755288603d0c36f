"""Tests for page collection and local materials."""

from __future__ import annotations

import asyncio
import base64
from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from webcal_ai.collector import PageCollector, html_to_text, load_local_materials
from webcal_ai.exceptions import ContentUnavailableError

_PAGE = """\
<html>
  <head><title>Ignored</title><style>body { color: red; }</style></head>
  <body>
    <script>var tracking = 1;</script>
    <h1>Board Meeting</h1>


    <p>March 10, 2025 at 2pm</p>
  </body>
</html>
"""


def _collector(handler: object, retries: int = 2) -> PageCollector:
    transport = httpx.MockTransport(handler)  # type: ignore[arg-type]
    return PageCollector(
        http_client=httpx.AsyncClient(transport=transport),
        retries=retries,
        backoff=0.0,
    )


class TestHtmlToText:
    def test_scripts_styles_and_head_removed(self) -> None:
        text = html_to_text(_PAGE)

        assert "tracking" not in text
        assert "color: red" not in text
        assert "Ignored" not in text
        assert "Board Meeting" in text
        assert "March 10, 2025 at 2pm" in text

    def test_blank_runs_collapsed(self) -> None:
        assert "\n\n\n" not in html_to_text(_PAGE)

    def test_empty(self) -> None:
        assert html_to_text("") == ""


class TestPageCollector:
    def test_collects_markup_and_text(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=_PAGE)

        materials = asyncio.run(_collector(handler).collect("https://example.org/board"))

        assert materials.url == "https://example.org/board"
        assert materials.html == _PAGE
        assert "Board Meeting" in materials.text
        assert materials.screenshot is None

    def test_blocked_url_is_not_fetched(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, text=_PAGE)

        with pytest.raises(ContentUnavailableError, match="not allowed"):
            asyncio.run(_collector(handler).collect("http://127.0.0.1/admin"))

        assert calls == []

    def test_server_errors_are_retried(self) -> None:
        responses = [httpx.Response(503), httpx.Response(503), httpx.Response(200, text=_PAGE)]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        materials = asyncio.run(_collector(handler).collect("https://example.org/board"))

        assert "Board Meeting" in materials.text
        assert responses == []

    def test_gives_up_after_retries(self) -> None:
        calls: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(ContentUnavailableError, match="Could not fetch"):
            asyncio.run(_collector(handler, retries=2).collect("https://example.org/board"))

        assert len(calls) == 3

    def test_client_errors_are_not_retried(self) -> None:
        calls: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(404)

        with pytest.raises(ContentUnavailableError, match="HTTP 404"):
            asyncio.run(_collector(handler).collect("https://example.org/missing"))

        assert len(calls) == 1

    def test_backoff_between_attempts(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        collector = PageCollector(
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            retries=2,
            backoff=1.5,
        )

        with patch("webcal_ai.collector.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(ContentUnavailableError):
                asyncio.run(collector.collect("https://example.org/board"))

        assert [c.args[0] for c in sleep.await_args_list] == [1.5, 1.5]


class TestLoadLocalMaterials:
    def test_reads_saved_page(self, tmp_path: Path) -> None:
        page = tmp_path / "board.html"
        page.write_text(_PAGE, encoding="utf-8")

        materials = load_local_materials(page, "https://example.org/board")

        assert materials.html == _PAGE
        assert materials.url == "https://example.org/board"
        assert "March 10, 2025 at 2pm" in materials.text

    def test_screenshot_encoded_as_data_url(self, tmp_path: Path) -> None:
        page = tmp_path / "board.html"
        page.write_text(_PAGE, encoding="utf-8")
        shot = tmp_path / "shot.png"
        shot.write_bytes(b"png-bytes")

        materials = load_local_materials(page, "https://example.org/board", screenshot=shot)

        expected = "data:image/png;base64," + base64.b64encode(b"png-bytes").decode("ascii")
        assert materials.screenshot == expected

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ContentUnavailableError, match="Cannot read"):
            load_local_materials(tmp_path / "missing.html", "https://example.org")
