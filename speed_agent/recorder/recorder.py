"""
Baseline Recorder - Captures the pre-optimization snapshot of a live site.

Contains:
- BaselineRecorder: crawl, asset inventory, interactive elements,
  screenshots and behavior baselines, returned as one frozen SiteInventory

Crawling is sequential per page. Browser failures are logged and skipped
at the page, viewport or element level; record() never raises for them.
"""

import os
from typing import List, Optional

import httpx

from speed_agent.core.browser import BrowserDriver
from speed_agent.core.schemas import InteractiveElement, PageInventory, SiteInventory
from speed_agent.recorder.behavior import record_baseline_behavior
from speed_agent.recorder.crawl import (
    AssetCatalog,
    analyze_html,
    detect_wordpress,
    discover_page_urls,
    probe_asset_sizes,
)
from speed_agent.recorder.detection import detect_interactive_elements
from speed_agent.recorder.screenshots import capture_baseline_screenshots
from speed_agent.utils.constants import MAX_BEHAVIOR_ELEMENTS, PAGE_SETTLE_MS
from speed_agent.utils.helpers import StructuredLogger


class BaselineRecorder:
    def __init__(
        self,
        driver: BrowserDriver,
        log: Optional[StructuredLogger] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.driver = driver
        self.log = log or StructuredLogger("Recorder")
        self.http_client = http_client

    async def record(self, site_url: str, work_dir: str) -> SiteInventory:
        log = self.log
        screenshots_dir = os.path.join(work_dir, "baseline")
        os.makedirs(screenshots_dir, exist_ok=True)

        log.info("Crawling live site for inventory...")
        pages, catalog, elements = await self._crawl(site_url)

        wordpress = detect_wordpress(catalog.asset_urls)
        sizes = await probe_asset_sizes(catalog.asset_urls, client=self.http_client)
        scripts = catalog.scripts(sizes)
        stylesheets = catalog.stylesheets(sizes)
        jquery_used = any(s.is_jquery for s in scripts)
        jquery_dependent = tuple(s.src for s in scripts if s.is_jquery_plugin)

        if not pages:
            log.warning("No pages could be analyzed")
            return SiteInventory(url=site_url, scripts=scripts, stylesheets=stylesheets, wordpress=wordpress)

        log.info("Capturing baseline screenshots...")
        screenshots = await capture_baseline_screenshots(self.driver, pages, screenshots_dir, log)

        log.info("Recording baseline interactive behavior...")
        candidates = [e for e in elements if e.type != "link"][:MAX_BEHAVIOR_ELEMENTS]
        behavior = await record_baseline_behavior(self.driver, site_url, candidates, log)

        inventory = SiteInventory(
            url=site_url,
            pages=tuple(pages),
            scripts=scripts,
            stylesheets=stylesheets,
            wordpress=wordpress,
            interactive_elements=tuple(elements),
            jquery_used=jquery_used,
            jquery_dependent_scripts=jquery_dependent,
            baseline_screenshots=tuple(screenshots),
            baseline_behavior=tuple(behavior),
        )
        log.success(
            f"Baseline: {inventory.page_count} pages, {len(scripts)} scripts, "
            f"{len(screenshots)} screenshots, {sum(1 for b in behavior if b.passed)} behaviors"
        )
        return inventory

    async def _crawl(self, site_url: str):
        log = self.log
        pages: List[PageInventory] = []
        elements: List[InteractiveElement] = []
        catalog = AssetCatalog()

        async with self.driver.open_page() as page:
            try:
                await page.goto(site_url)
                await page.wait(PAGE_SETTLE_MS)
                page_urls = discover_page_urls(site_url, await page.content())
            except Exception as e:
                log.warning(f"Homepage discovery failed for {site_url}: {e}")
                page_urls = [site_url]

            log.info(f"Discovered {len(page_urls)} pages")

            for page_url in page_urls:
                try:
                    await page.goto(page_url)
                    await page.wait(PAGE_SETTLE_MS)
                    html = await page.content()
                    analysis = analyze_html(html, page_url, title=await page.title())
                except Exception as e:
                    log.warning(f"Failed to analyze {page_url}: {e}")
                    continue

                pages.append(analysis.page)
                catalog.add_page(analysis)
                elements.extend(detect_interactive_elements(html, analysis.page.path))
                log.info(f"Analyzed: {analysis.page.path} ({analysis.page.title})")

        return pages, catalog, elements
