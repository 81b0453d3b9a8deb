"""
Browser driver - Thin async wrapper around Playwright.

Contains:
- BrowserDriver: owns the Playwright instance and browser, hands out pages
- BrowserPage: the page operations the recorder and verifiers need

Every page gets its own context, so viewport, device scale and cookies never
leak between captures.
"""

import contextlib
from typing import Any, AsyncIterator, Dict, Optional, Tuple

from playwright.async_api import Browser, Page, Playwright, async_playwright

from speed_agent.core.schemas import ElementState
from speed_agent.utils.constants import (
    BROWSER_ARGS,
    CHROME_UA,
    CLICK_TIMEOUT,
    DEFAULT_NAVIGATION_TIMEOUT,
    RELOAD_TIMEOUT,
    VIEWPORTS,
)

Viewport = Tuple[str, int, int, int]
DESKTOP: Viewport = VIEWPORTS[0]

# ============================================================================
# IN-PAGE SCRIPTS
# ============================================================================

CAPTURE_STATE_JS = """(sel) => {
    const el = document.querySelector(sel);
    if (!el) return null;
    const rect = el.getBoundingClientRect();
    const style = window.getComputedStyle(el);
    const active = el.querySelector('.slick-current, .swiper-slide-active, .owl-item.active');
    return {
        is_visible: rect.width > 0 && rect.height > 0 && style.visibility !== 'hidden'
            && style.display !== 'none' && parseFloat(style.opacity) > 0,
        bounding_box: {x: rect.x, y: rect.y, width: rect.width, height: rect.height},
        computed_style: {
            display: style.display, visibility: style.visibility,
            opacity: style.opacity, height: style.height
        },
        class_list: Array.from(el.classList),
        inner_text: (el.innerText || '').substring(0, 200),
        active_slide_index: active
            ? Array.from(el.querySelectorAll('.slick-slide, .swiper-slide, .owl-item')).indexOf(active)
            : null
    };
}"""

SCROLL_THROUGH_JS = """async () => {
    for (let y = 0; y < document.body.scrollHeight; y += 300) {
        window.scrollTo(0, y);
        await new Promise(r => setTimeout(r, 100));
    }
    window.scrollTo(0, 0);
}"""

NAVIGATION_TIMING_JS = """() => {
    const nav = performance.getEntriesByType('navigation')[0];
    if (!nav) return null;
    return {
        ttfb: nav.responseStart - nav.requestStart,
        load_ms: nav.loadEventEnd - nav.startTime,
        dcl_ms: nav.domContentLoadedEventEnd - nav.startTime
    };
}"""

IS_VISIBLE_JS = """(sel) => {
    const el = document.querySelector(sel);
    if (!el) return false;
    const rect = el.getBoundingClientRect();
    const style = window.getComputedStyle(el);
    return rect.width > 0 && rect.height > 0 && style.visibility !== 'hidden' && style.display !== 'none';
}"""


# ============================================================================
# PAGE
# ============================================================================

class BrowserPage:
    def __init__(self, page: Page):
        self.page = page

    @property
    def url(self) -> str:
        return self.page.url

    async def goto(self, url: str, timeout: int = DEFAULT_NAVIGATION_TIMEOUT, wait_until: str = "domcontentloaded") -> Optional[int]:
        """Navigate and return the HTTP status (None when unavailable)."""
        response = await self.page.goto(url, wait_until=wait_until, timeout=timeout)
        return response.status if response is not None else None

    async def wait(self, ms: int) -> None:
        await self.page.wait_for_timeout(ms)

    async def content(self) -> str:
        return await self.page.content()

    async def title(self) -> str:
        return await self.page.title()

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if arg is None:
            return await self.page.evaluate(script)
        return await self.page.evaluate(script, arg)

    async def scroll_through(self) -> None:
        """Scroll the full height to trigger lazy content, then back to top."""
        await self.page.evaluate(SCROLL_THROUGH_JS)

    async def screenshot(self, path: str, full_page: bool = True) -> None:
        await self.page.screenshot(path=path, full_page=full_page, type="png")

    async def exists(self, selector: str) -> bool:
        return await self.page.query_selector(selector) is not None

    async def is_visible(self, selector: str) -> bool:
        return bool(await self.page.evaluate(IS_VISIBLE_JS, selector))

    async def click(self, selector: str, timeout: int = CLICK_TIMEOUT) -> None:
        await self.page.click(selector, timeout=timeout)

    async def hover(self, selector: str, timeout: int = CLICK_TIMEOUT) -> None:
        await self.page.hover(selector, timeout=timeout)

    async def trigger(self, selector: str, action: str) -> None:
        if action == "hover":
            await self.hover(selector)
        else:
            await self.click(selector)

    async def capture_state(self, selector: str) -> Optional[ElementState]:
        data = await self.page.evaluate(CAPTURE_STATE_JS, selector)
        if data is None:
            return None
        return ElementState.model_validate(data)

    async def reload(self, timeout: int = RELOAD_TIMEOUT) -> None:
        await self.page.reload(wait_until="domcontentloaded", timeout=timeout)

    async def navigation_timing(self) -> Optional[Dict[str, float]]:
        return await self.page.evaluate(NAVIGATION_TIMING_JS)


# ============================================================================
# DRIVER
# ============================================================================

class BrowserDriver:
    """
    Owns one headless Chromium for the duration of a run.

    Usage:
        async with BrowserDriver() as driver:
            async with driver.open_page(("mobile", 375, 812, 2)) as page:
                await page.goto(url)
    """

    def __init__(self, headless: bool = True):
        self.headless = headless
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None

    async def start(self) -> "BrowserDriver":
        if self.browser is None:
            self.playwright = await async_playwright().start()
            self.browser = await self.playwright.chromium.launch(headless=self.headless, args=BROWSER_ARGS)
        return self

    async def close(self) -> None:
        if self.browser is not None:
            await self.browser.close()
            self.browser = None
        if self.playwright is not None:
            await self.playwright.stop()
            self.playwright = None

    async def __aenter__(self) -> "BrowserDriver":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @contextlib.asynccontextmanager
    async def open_page(self, viewport: Viewport = DESKTOP) -> AsyncIterator[BrowserPage]:
        await self.start()
        _, width, height, scale = viewport
        context = await self.browser.new_context(
            user_agent=CHROME_UA,
            viewport={"width": width, "height": height},
            device_scale_factor=scale,
            ignore_https_errors=True,
        )
        try:
            page = await context.new_page()
            yield BrowserPage(page)
        finally:
            await context.close()
