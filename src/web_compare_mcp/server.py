"""MCP Server for visual web page comparison.

This server provides tools for:
- Capturing screenshots of rendered pages (including React/SPA apps)
- Comparing two pages or two images for layout, color, and typography differences
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import time
from pathlib import Path
from typing import Any

from mcp import types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from .capture import CaptureOptions, capture_pages, compare_content
from .client import ImageSourceClient
from .config import SUPPORTED_BROWSERS, get_settings
from .pixels import DecodeError
from .report import (
    DEFAULT_THRESHOLD,
    CompareOptions,
    compare,
    format_analysis,
    format_content_comparison,
    format_page_summary,
    format_percent,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# MCP Server instance
server = Server("web-compare-mcp")
client: ImageSourceClient | None = None


def get_client() -> ImageSourceClient:
    """Get or create the image source client."""
    global client
    if client is None:
        client = ImageSourceClient()
    return client


def _require(arguments: dict[str, Any], *fields: str) -> None:
    for field in fields:
        if not arguments.get(field):
            raise ValueError(f"Missing required field: {field}")


def save_screenshot(data: bytes, prefix: str) -> str:
    """Write PNG bytes to the output directory and return the path."""
    output_dir = Path(get_settings().output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{prefix}-{time.time_ns() // 1_000_000}.png"
    path.write_bytes(data)
    return str(path)


def _analysis_json(analysis: dict[str, Any]) -> types.TextContent:
    return types.TextContent(type="text", text=json.dumps(analysis, indent=2))


# -----------------------------------------------------------------------------
# Tool Definitions
# -----------------------------------------------------------------------------

_ANALYSIS_PROPERTIES: dict[str, Any] = {
    "threshold": {
        "type": "number",
        "default": DEFAULT_THRESHOLD,
        "minimum": 0,
        "maximum": 1,
        "description": "Allowed difference ratio (0-1). Passes when similarity >= 1 - threshold.",
    },
    "analyzeLayout": {
        "type": "boolean",
        "default": True,
        "description": "Analyze layout positioning and alignment",
    },
    "analyzeColors": {
        "type": "boolean",
        "default": True,
        "description": "Analyze exact color differences",
    },
    "analyzeTypography": {
        "type": "boolean",
        "default": True,
        "description": "Analyze font sizes, weights, and spacing",
    },
    "seed": {
        "type": "integer",
        "description": "Seed for color sampling. Omit for a random sample.",
    },
}

_BROWSER_PROPERTY: dict[str, Any] = {
    "type": "string",
    "enum": list(SUPPORTED_BROWSERS),
    "description": "Browser engine to use. Defaults to WEB_COMPARE_BROWSER.",
}

_WAIT_FOR_SPA_PROPERTY: dict[str, Any] = {
    "type": "boolean",
    "default": True,
    "description": "Wait for SPA frameworks to load and hydrate",
}

TOOLS = [
    types.Tool(
        name="take_screenshot",
        description="""Take a screenshot of a web page.

Waits for SPA frameworks (React, Vue, Angular) or Expo/React Native web
hydration before capturing. Returns a page summary (title, visible elements,
headings, buttons, ...) and the PNG image.""",
        inputSchema={
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "URL to capture"},
                "browser": _BROWSER_PROPERTY,
                "fullPage": {
                    "type": "boolean",
                    "default": True,
                    "description": "Capture full page or just viewport",
                },
                "waitForSPA": _WAIT_FOR_SPA_PROPERTY,
            },
            "required": ["url"],
        },
    ),
    types.Tool(
        name="compare_screenshots",
        description="""Take screenshots of two pages and compare them visually.

Reports overall pixel similarity (PASS/FAIL against threshold), a 20x20 grid
layout analysis with alignment hints, sampled color palette differences, and
block-contrast typography differences, plus title and element count
comparison of the two pages. Both screenshots are saved for reference.""",
        inputSchema={
            "type": "object",
            "properties": {
                "urlA": {"type": "string", "description": "First page (source)"},
                "urlB": {"type": "string", "description": "Second page (target)"},
                "browser": _BROWSER_PROPERTY,
                **_ANALYSIS_PROPERTIES,
                "waitForSPA": _WAIT_FOR_SPA_PROPERTY,
                "fullPage": {
                    "type": "boolean",
                    "default": True,
                    "description": "Capture full pages or just the viewport",
                },
            },
            "required": ["urlA", "urlB"],
        },
    ),
    types.Tool(
        name="compare_images",
        description="""Compare two existing images without a browser.

Each source may be a file path, an http(s) URL, a data: URI, or a base64
string. Images of different sizes are resized to the smaller common size.""",
        inputSchema={
            "type": "object",
            "properties": {
                "source": {"type": "string", "description": "Source image"},
                "target": {"type": "string", "description": "Target image"},
                **_ANALYSIS_PROPERTIES,
            },
            "required": ["source", "target"],
        },
    ),
]


@server.list_tools()  # type: ignore
async def list_tools() -> list[types.Tool]:
    """List available web compare tools."""
    return TOOLS


def _capture_options(arguments: dict[str, Any]) -> CaptureOptions:
    return CaptureOptions(
        browser=arguments.get("browser") or get_settings().browser,
        full_page=arguments.get("fullPage", True),
        wait_for_spa=arguments.get("waitForSPA", True),
    )


@server.call_tool()  # type: ignore
async def call_tool(
    name: str, arguments: dict[str, Any]
) -> list[types.TextContent | types.ImageContent]:
    """Handle tool calls."""
    arguments = arguments or {}

    try:
        if name == "take_screenshot":
            _require(arguments, "url")
            url = arguments["url"]
            (page,) = await capture_pages([url], _capture_options(arguments))
            path = save_screenshot(page.screenshot, "screenshot")
            return [
                types.TextContent(
                    type="text", text=format_page_summary(url, page.summary, path)
                ),
                types.ImageContent(
                    type="image",
                    data=base64.b64encode(page.screenshot).decode(),
                    mimeType="image/png",
                ),
            ]

        elif name == "compare_screenshots":
            _require(arguments, "urlA", "urlB")
            url_a = arguments["urlA"]
            url_b = arguments["urlB"]
            options = CompareOptions.from_arguments(arguments)

            page_a, page_b = await capture_pages(
                [url_a, url_b], _capture_options(arguments)
            )
            path_a = save_screenshot(page_a.screenshot, "compare-source")
            path_b = save_screenshot(page_b.screenshot, "compare-target")

            analysis = await asyncio.to_thread(
                compare, page_a.screenshot, page_b.screenshot, options
            )
            content = compare_content(page_a.summary, page_b.summary)
            verdict = "PASS" if analysis.similar else "FAIL"

            lines = [
                f"Visual comparison between {url_a} and {url_b}:",
                "",
                "Screenshots saved:",
                f"- Source: {path_a}",
                f"- Target: {path_b}",
                "",
                f"VISUAL SIMILARITY: {format_percent(analysis.similarity)} {verdict}",
                "",
                format_content_comparison(content),
                format_analysis(analysis),
            ]
            result = {
                "analysis": analysis.to_dict(),
                "contentComparison": content.to_dict(),
                "screenshots": {"pathA": path_a, "pathB": path_b},
            }
            return [
                types.TextContent(type="text", text="\n".join(lines)),
                _analysis_json(result),
            ]

        elif name == "compare_images":
            _require(arguments, "source", "target")
            options = CompareOptions.from_arguments(arguments)
            loader = get_client()
            source_resp, target_resp = await asyncio.gather(
                loader.load(arguments["source"]), loader.load(arguments["target"])
            )
            for label, resp in (("source", source_resp), ("target", target_resp)):
                if not resp.success or resp.data is None:
                    return [
                        types.TextContent(
                            type="text",
                            text=f"Error loading {label} image: {resp.error}",
                        )
                    ]

            analysis = await asyncio.to_thread(
                compare, source_resp.data, target_resp.data, options
            )
            return [
                types.TextContent(type="text", text=format_analysis(analysis)),
                _analysis_json({"analysis": analysis.to_dict()}),
            ]

        else:
            return [types.TextContent(type="text", text=f"Unknown tool: {name}")]

    except DecodeError as e:
        logger.warning("Tool %s could not decode an image: %s", name, e)
        return [types.TextContent(type="text", text=f"Error: {e}")]
    except Exception as e:
        logger.exception(f"Error calling tool {name}")
        return [types.TextContent(type="text", text=f"Error: {str(e)}")]


async def main() -> None:
    """Run the MCP server."""
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)
    logger.info("Starting web compare MCP server (output dir: %s)", settings.output_dir)

    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
    finally:
        if client is not None:
            await client.close()


def run() -> None:
    """Entry point for the MCP server."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
