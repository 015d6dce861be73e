"""Headless browser capture of rendered pages via Playwright."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from playwright.async_api import Browser, Page, async_playwright
from playwright.async_api import Error as PlaywrightError

from .config import SUPPORTED_BROWSERS, Settings, get_settings

logger = logging.getLogger(__name__)

BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]

SPA_WAIT_TIMEOUT_MS = 5000
LOADING_DETACH_TIMEOUT_MS = 2000
HYDRATION_LOADING_TIMEOUT_MS = 5000
SETTLE_DELAY_MS = 1000
FALLBACK_DELAY_MS = 3000

LOADING_SELECTORS = (
    '[data-testid*="loading"]',
    '[data-testid*="spinner"]',
    ".loading",
    ".spinner",
    ".loader",
    '[aria-label*="loading"]',
    '[class*="loading"]',
    '[class*="spinner"]',
)

HYDRATION_LOADING_SELECTORS = (
    '[data-testid*="loading"]',
    '[data-testid*="spinner"]',
    ".loading",
    ".spinner",
    '[aria-label*="loading"]',
)

IS_SPA_JS = """
() => !!(
    window.React || window.Vue || window.angular || window.ng ||
    window.__REACT_DEVTOOLS_GLOBAL_HOOK__ ||
    document.querySelector('[data-reactroot]') ||
    document.querySelector('#root') ||
    document.querySelector('#app') ||
    document.querySelector('[ng-version]') ||
    document.querySelector('[data-vue-app]') ||
    document.querySelector('script[src*="react"]') ||
    document.querySelector('script[src*="vue"]') ||
    document.querySelector('script[src*="angular"]') ||
    document.querySelector('meta[name="generator"][content*="React"]') ||
    document.querySelector('meta[name="generator"][content*="Vue"]') ||
    document.querySelector('meta[name="generator"][content*="Angular"]')
)
"""

SPA_READY_JS = """
() => !!(
    window.React || window.Vue || window.angular || window.ng ||
    document.querySelector('[data-reactroot]') ||
    document.querySelector('#root') ||
    document.querySelector('#app') ||
    document.querySelector('.vue-app') ||
    document.querySelector('[ng-version]')
)
"""

REACT_HYDRATED_JS = """
() => !!(
    window.React || window.__REACT_DEVTOOLS_GLOBAL_HOOK__ ||
    document.querySelector('[data-reactroot]') ||
    document.querySelector('#root [data-testid]') ||
    document.querySelector('.expo-web-view')
)
"""

PAGE_SUMMARY_JS = """
() => {
    const body = document.body;
    const text = (body && body.textContent ? body.textContent : '').trim();
    const visible = Array.from(document.querySelectorAll('*')).filter(el => {
        const style = window.getComputedStyle(el);
        return style.display !== 'none' && style.visibility !== 'hidden';
    });
    return {
        title: document.title,
        bodyText: text.substring(0, 300),
        visibleElements: visible.length,
        hasContent: text.length > 100,
        mainElements: {
            headings: document.querySelectorAll('h1, h2, h3, h4, h5, h6').length,
            paragraphs: document.querySelectorAll('p').length,
            buttons: document.querySelectorAll('button').length,
            inputs: document.querySelectorAll('input').length,
            tables: document.querySelectorAll('table').length,
            tableRows: document.querySelectorAll('tr').length,
            lists: document.querySelectorAll('ul, ol').length,
        },
    };
}
"""

STRUCTURAL_ELEMENTS = ("headings", "paragraphs", "buttons", "tables", "tableRows")


@dataclass
class PageSummary:
    """A lightweight DOM census of a rendered page."""

    title: str = ""
    body_text: str = ""
    visible_elements: int = 0
    has_content: bool = False
    main_elements: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PageSummary:
        return cls(
            title=data.get("title") or "",
            body_text=data.get("bodyText") or "",
            visible_elements=int(data.get("visibleElements", 0)),
            has_content=bool(data.get("hasContent", False)),
            main_elements={k: int(v) for k, v in (data.get("mainElements") or {}).items()},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "bodyText": self.body_text,
            "visibleElements": self.visible_elements,
            "hasContent": self.has_content,
            "mainElements": dict(self.main_elements),
        }


@dataclass
class CapturedPage:
    url: str
    screenshot: bytes
    summary: PageSummary


@dataclass
class CaptureOptions:
    browser: str = "chromium"
    full_page: bool = True
    wait_for_spa: bool = True


@dataclass
class ContentComparison:
    """DOM-level comparison of two captured pages."""

    source: PageSummary
    target: PageSummary

    @property
    def titles_match(self) -> bool:
        return self.source.title == self.target.title

    @property
    def element_difference(self) -> int:
        return abs(self.source.visible_elements - self.target.visible_elements)

    def structural(self) -> dict[str, dict[str, int]]:
        return {
            name: {
                "source": self.source.main_elements.get(name, 0),
                "target": self.target.main_elements.get(name, 0),
            }
            for name in STRUCTURAL_ELEMENTS
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "titles": {
                "source": self.source.title,
                "target": self.target.title,
                "match": self.titles_match,
            },
            "elementCounts": {
                "source": self.source.visible_elements,
                "target": self.target.visible_elements,
                "difference": self.element_difference,
            },
            "structuralElements": self.structural(),
        }


def compare_content(source: PageSummary, target: PageSummary) -> ContentComparison:
    return ContentComparison(source=source, target=target)


def is_expo_url(url: str) -> bool:
    """Expo/Metro dev servers need a React hydration wait."""
    return "expo" in url or ":8081" in url


# =============================================================================
# Readiness waits
# =============================================================================


async def is_spa(page: Page) -> bool:
    """Detect a client-side rendered app by framework globals or root markers."""
    return bool(await page.evaluate(IS_SPA_JS))


async def _wait_detached(page: Page, selectors: tuple[str, ...], timeout: int) -> None:
    for selector in selectors:
        try:
            await page.wait_for_selector(selector, state="detached", timeout=timeout)
        except PlaywrightError:
            # Indicator never existed or never went away
            continue


async def wait_for_spa_ready(page: Page) -> None:
    """Wait for a framework root, then for loading indicators to go away.

    Falls back to a fixed delay when no framework marker appears in time.
    """
    try:
        await page.wait_for_function(SPA_READY_JS, timeout=SPA_WAIT_TIMEOUT_MS)
        await _wait_detached(page, LOADING_SELECTORS, LOADING_DETACH_TIMEOUT_MS)
        await page.wait_for_timeout(SETTLE_DELAY_MS)
    except PlaywrightError as e:
        logger.warning("SPA readiness wait failed for %s: %s", page.url, e)
        await page.wait_for_timeout(FALLBACK_DELAY_MS)


async def wait_for_react_hydration(page: Page, timeout: int) -> bool:
    """Wait for React/Expo hydration markers. Returns False on timeout."""
    try:
        await page.wait_for_function(REACT_HYDRATED_JS, timeout=timeout)
        await page.wait_for_timeout(SETTLE_DELAY_MS)
        await _wait_detached(page, HYDRATION_LOADING_SELECTORS, HYDRATION_LOADING_TIMEOUT_MS)
        return True
    except PlaywrightError as e:
        logger.warning("React hydration wait failed for %s: %s", page.url, e)
        return False


# =============================================================================
# Capture
# =============================================================================


async def _launch(playwright: Any, browser_name: str) -> Browser:
    if browser_name not in SUPPORTED_BROWSERS:
        raise ValueError(
            f"Unsupported browser {browser_name!r}. "
            f"Use one of: {', '.join(SUPPORTED_BROWSERS)}"
        )
    launcher = getattr(playwright, browser_name)
    launch_options: dict[str, Any] = {"headless": True}
    if browser_name == "chromium":
        launch_options["args"] = BROWSER_ARGS
    return await launcher.launch(**launch_options)


async def _capture_one(
    page: Page, url: str, options: CaptureOptions, settings: Settings
) -> CapturedPage:
    await page.goto(
        url, wait_until="networkidle", timeout=settings.navigation_timeout_ms
    )

    if options.wait_for_spa and await is_spa(page):
        await wait_for_spa_ready(page)
    elif is_expo_url(url):
        await wait_for_react_hydration(page, settings.hydration_timeout_ms)

    screenshot = await page.screenshot(full_page=options.full_page, type="png")
    summary = PageSummary.from_dict(await page.evaluate(PAGE_SUMMARY_JS))
    logger.info(
        "Captured %s (%d bytes, %d visible elements)",
        url,
        len(screenshot),
        summary.visible_elements,
    )
    return CapturedPage(url=url, screenshot=screenshot, summary=summary)


async def capture_pages(
    urls: list[str],
    options: CaptureOptions | None = None,
    settings: Settings | None = None,
) -> list[CapturedPage]:
    """Capture screenshots and page summaries for several URLs.

    All pages share one browser and context and are loaded concurrently.
    The browser is always closed, even when a navigation fails.

    Args:
        urls: Pages to capture, in result order.
        options: Browser engine, full-page flag and SPA wait flag.
        settings: Timeouts. Defaults to the environment settings.
    """
    options = options or CaptureOptions()
    settings = settings or get_settings()

    async with async_playwright() as playwright:
        browser = await _launch(playwright, options.browser)
        try:
            context = await browser.new_context()
            try:
                pages = await asyncio.gather(*(context.new_page() for _ in urls))
                # Settle every capture before the context closes under them
                results = await asyncio.gather(
                    *(
                        _capture_one(page, url, options, settings)
                        for page, url in zip(pages, urls)
                    ),
                    return_exceptions=True,
                )
                for result in results:
                    if isinstance(result, BaseException):
                        raise result
                return list(results)
            finally:
                await context.close()
        finally:
            await browser.close()
