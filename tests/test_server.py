"""Tests for MCP tool dispatch with capture stubbed out."""

from __future__ import annotations

import asyncio
import io
import json
from pathlib import Path
from typing import Any

import pytest  # type: ignore[import-not-found]
from mcp import types
from PIL import Image

from web_compare_mcp import config, server
from web_compare_mcp.capture import CapturedPage, CaptureOptions, PageSummary


def _png(width: int, height: int, color: tuple[int, int, int]) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def _call(name: str, arguments: dict[str, Any]) -> list[Any]:
    return asyncio.run(server.call_tool(name, arguments))


@pytest.fixture(autouse=True)
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> config.Settings:
    """Point output at tmp_path and reset the shared loader."""
    current = config.Settings(output_dir=str(tmp_path / "shots"))
    monkeypatch.setattr(config, "_settings", current)
    monkeypatch.setattr(server, "client", None)
    return current


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> list[tuple[list[str], CaptureOptions]]:
    """Replace the browser with canned pages; records each call."""
    calls: list[tuple[list[str], CaptureOptions]] = []
    shots = {
        "http://a.test": _png(60, 60, (0, 0, 0)),
        "http://b.test": _png(60, 60, (0, 0, 0)),
        "http://c.test": _png(60, 60, (255, 255, 255)),
    }

    async def fake_capture(
        urls: list[str], options: CaptureOptions | None = None, settings: Any = None
    ) -> list[CapturedPage]:
        assert options is not None
        calls.append((urls, options))
        return [
            CapturedPage(
                url=url,
                screenshot=shots[url],
                summary=PageSummary(
                    title=f"Page {url}", visible_elements=10, main_elements={"buttons": 1}
                ),
            )
            for url in urls
        ]

    monkeypatch.setattr(server, "capture_pages", fake_capture)
    return calls


class TestListTools:
    def test_tool_names(self) -> None:
        tools = asyncio.run(server.list_tools())
        assert [t.name for t in tools] == [
            "take_screenshot",
            "compare_screenshots",
            "compare_images",
        ]

    def test_required_fields(self) -> None:
        by_name = {t.name: t for t in server.TOOLS}
        assert by_name["compare_screenshots"].inputSchema["required"] == ["urlA", "urlB"]
        assert by_name["compare_images"].inputSchema["required"] == ["source", "target"]


class TestCompareImagesTool:
    def test_identical_files(self, tmp_path: Path) -> None:
        a = tmp_path / "a.png"
        b = tmp_path / "b.png"
        a.write_bytes(_png(50, 50, (10, 10, 10)))
        b.write_bytes(_png(50, 50, (10, 10, 10)))

        result = _call("compare_images", {"source": str(a), "target": str(b)})
        assert len(result) == 2
        assert isinstance(result[0], types.TextContent)
        assert "## Overall Similarity: 100.0% PASS" in result[0].text
        data = json.loads(result[1].text)
        assert data["analysis"]["similarity"] == 1.0
        assert data["analysis"]["colors"]["significantDifferences"] == 0

    def test_missing_field(self) -> None:
        result = _call("compare_images", {"source": "a.png"})
        assert result[0].text == "Error: Missing required field: target"

    def test_unloadable_source(self, tmp_path: Path) -> None:
        b = tmp_path / "b.png"
        b.write_bytes(_png(5, 5, (0, 0, 0)))
        result = _call(
            "compare_images", {"source": str(tmp_path / "nope.png"), "target": str(b)}
        )
        assert result[0].text.startswith("Error loading source image: Image source not found")

    def test_undecodable_image(self, tmp_path: Path) -> None:
        a = tmp_path / "a.png"
        b = tmp_path / "b.png"
        a.write_bytes(b"not an image at all")
        b.write_bytes(_png(5, 5, (0, 0, 0)))
        result = _call("compare_images", {"source": str(a), "target": str(b)})
        assert len(result) == 1
        assert result[0].text.startswith("Error: Cannot decode source image")

    def test_invalid_threshold(self, tmp_path: Path) -> None:
        result = _call(
            "compare_images", {"source": "a", "target": "b", "threshold": 2}
        )
        assert result[0].text.startswith("Error: threshold must be between 0 and 1")


class TestCompareScreenshotsTool:
    def test_reports_and_saves(
        self,
        captured: list[tuple[list[str], CaptureOptions]],
        settings: config.Settings,
    ) -> None:
        result = _call(
            "compare_screenshots",
            {"urlA": "http://a.test", "urlB": "http://c.test", "seed": 1},
        )
        text = result[0].text
        assert text.startswith("Visual comparison between http://a.test and http://c.test")
        assert "VISUAL SIMILARITY: 0.0% FAIL" in text
        assert '- Source Title: "Page http://a.test"' in text
        assert "## Layout Analysis" in text

        data = json.loads(result[1].text)
        assert data["analysis"]["similar"] is False
        assert data["contentComparison"]["titles"]["match"] is False
        for key in ("pathA", "pathB"):
            path = Path(data["screenshots"][key])
            assert path.parent == Path(settings.output_dir)
            assert path.is_file()

        urls, options = captured[0]
        assert urls == ["http://a.test", "http://c.test"]
        assert options.browser == "chromium"
        assert options.wait_for_spa

    def test_identical_pages_pass(
        self, captured: list[tuple[list[str], CaptureOptions]]
    ) -> None:
        result = _call(
            "compare_screenshots",
            {
                "urlA": "http://a.test",
                "urlB": "http://b.test",
                "browser": "firefox",
                "waitForSPA": False,
                "analyzeTypography": False,
            },
        )
        assert "VISUAL SIMILARITY: 100.0% PASS" in result[0].text
        assert "## Typography Analysis" not in result[0].text
        _, options = captured[0]
        assert options.browser == "firefox"
        assert not options.wait_for_spa

    def test_missing_url(self) -> None:
        result = _call("compare_screenshots", {"urlA": "http://a.test"})
        assert result[0].text == "Error: Missing required field: urlB"


class TestTakeScreenshotTool:
    def test_returns_summary_and_image(
        self, captured: list[tuple[list[str], CaptureOptions]]
    ) -> None:
        result = _call("take_screenshot", {"url": "http://a.test", "fullPage": False})
        assert result[0].text.startswith("Screenshot captured from http://a.test")
        assert "- Visible Elements: 10" in result[0].text
        assert isinstance(result[1], types.ImageContent)
        assert result[1].mimeType == "image/png"
        _, options = captured[0]
        assert not options.full_page


class TestUnknownTool:
    def test_unknown(self) -> None:
        result = _call("does_not_exist", {})
        assert result[0].text == "Unknown tool: does_not_exist"
