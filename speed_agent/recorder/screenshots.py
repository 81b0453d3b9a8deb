"""
Screenshot capture - Full-page and above-fold PNGs per (page, viewport).

Contains:
- capture_screenshot: one page at one viewport
- capture_baseline_screenshots: all pages x viewports, bounded concurrency
"""

import asyncio
import os
from typing import List, Optional, Sequence

from speed_agent.core.browser import BrowserDriver, Viewport
from speed_agent.core.schemas import BaselineScreenshot, PageInventory
from speed_agent.core.state import utc_now
from speed_agent.utils.constants import (
    CAPTURE_WORKERS,
    MAX_SCREENSHOT_PAGES,
    PAGE_SETTLE_MS,
    SCREENSHOT_SETTLE_MS,
    SCROLL_SETTLE_MS,
    VIEWPORTS,
)
from speed_agent.utils.helpers import StructuredLogger, safe_path_name


async def capture_screenshot(
    driver: BrowserDriver,
    url: str,
    page_path: str,
    viewport: Viewport,
    output_dir: str,
    prefix: str = "",
) -> BaselineScreenshot:
    """
    Navigate, settle, scroll the full height to trigger lazy content, reset
    the scroll, then write full-page and above-fold PNGs.
    """
    name, width, height, _ = viewport
    stem = f"{prefix}{safe_path_name(page_path)}_{name}"
    full_page_path = os.path.join(output_dir, f"{stem}_full.png")
    above_fold_path = os.path.join(output_dir, f"{stem}_fold.png")

    async with driver.open_page(viewport) as page:
        await page.goto(url)
        await page.wait(PAGE_SETTLE_MS)
        await page.wait(SCREENSHOT_SETTLE_MS)
        await page.scroll_through()
        await page.wait(SCROLL_SETTLE_MS)
        await page.screenshot(full_page_path, full_page=True)
        await page.screenshot(above_fold_path, full_page=False)

    return BaselineScreenshot(
        page=page_path,
        viewport=name,
        width=width,
        height=height,
        full_page_path=full_page_path,
        above_fold_path=above_fold_path,
        captured_at=utc_now(),
    )


async def capture_baseline_screenshots(
    driver: BrowserDriver,
    pages: Sequence[PageInventory],
    output_dir: str,
    log: StructuredLogger,
    viewports: Optional[Sequence[Viewport]] = None,
    workers: int = CAPTURE_WORKERS,
) -> List[BaselineScreenshot]:
    """
    Capture the first MAX_SCREENSHOT_PAGES pages at every viewport.

    Failed captures are logged and left out. Results keep (page, viewport)
    order regardless of completion order.
    """
    os.makedirs(output_dir, exist_ok=True)
    viewports = list(viewports or VIEWPORTS)
    semaphore = asyncio.Semaphore(workers)

    async def capture(page_info: PageInventory, viewport: Viewport) -> Optional[BaselineScreenshot]:
        async with semaphore:
            try:
                return await capture_screenshot(driver, page_info.url, page_info.path, viewport, output_dir)
            except Exception as e:
                log.warning(f"Screenshot failed for {page_info.path} @ {viewport[0]}: {e}")
                return None

    results = await asyncio.gather(*(
        capture(page_info, viewport)
        for page_info in list(pages)[:MAX_SCREENSHOT_PAGES]
        for viewport in viewports
    ))
    return [shot for shot in results if shot is not None]
