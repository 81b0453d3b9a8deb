"""
Performance measurement - PageSpeed Insights with a local heuristic fallback.

Contains:
- PageSpeedScorer: Scorer backed by the PSI v5 API
- heuristic_score: score from navigation timings
- PerformanceVerifier: per-page measurement, PSI first, heuristic on failure
"""

import math
import time
from typing import Any, Dict, List, Optional, Sequence

import httpx

from speed_agent.core.browser import BrowserDriver
from speed_agent.core.collaborators import Scorer
from speed_agent.core.errors import ScorerUnavailable
from speed_agent.core.schemas import PageInventory, PerformanceResult, ScoreResult
from speed_agent.utils.constants import (
    MAX_VERIFIED_PAGES,
    PAGE_SETTLE_MS,
    PAGESPEED_TIMEOUT_SECONDS,
    PERFORMANCE_NAVIGATION_TIMEOUT,
)
from speed_agent.utils.helpers import StructuredLogger, page_url_on

PSI_ENDPOINT = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"
PERFORMANCE_VIEWPORT = ("performance", 1440, 900, 1)

VITAL_AUDITS = {
    "lcp": "largest-contentful-paint",
    "tbt": "total-blocking-time",
    "cls": "cumulative-layout-shift",
    "fcp": "first-contentful-paint",
    "si": "speed-index",
    "ttfb": "server-response-time",
}


def _round(value: float) -> int:
    return int(math.floor(value + 0.5))


def heuristic_score(ttfb: float, load_ms: float, dcl_ms: Optional[float] = None) -> int:
    """
    Local stand-in for a Lighthouse score.

    Starts at 100 and deducts for slow TTFB (>200ms), load (>1000ms) and
    DOM-ready (>1500ms), each deduction capped. Clamped to 0-100.
    """
    score = 100
    if ttfb > 200:
        score -= min(20, _round((ttfb - 200) / 50))
    if load_ms > 1000:
        score -= min(30, _round((load_ms - 1000) / 100))
    if dcl_ms and dcl_ms > 1500:
        score -= min(20, _round((dcl_ms - 1500) / 100))
    return max(0, min(100, score))


def extract_metrics(data: Dict[str, Any]) -> ScoreResult:
    lighthouse = data.get("lighthouseResult")
    if not lighthouse:
        raise ScorerUnavailable("PageSpeed response has no lighthouseResult")

    audits = lighthouse.get("audits") or {}
    score = (lighthouse.get("categories", {}).get("performance", {}) or {}).get("score") or 0
    vitals = {}
    for name, audit_id in VITAL_AUDITS.items():
        value = (audits.get(audit_id) or {}).get("numericValue") or 0
        vitals[name] = round(value, 3) if name == "cls" else _round(value)
    return ScoreResult(score=_round(score * 100), vitals=vitals)


class PageSpeedScorer:
    def __init__(self, api_key: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self.api_key = api_key
        self.client = client

    async def score(self, url: str, strategy: str = "mobile") -> ScoreResult:
        if not self.api_key:
            raise ScorerUnavailable("PAGESPEED_API_KEY not set")

        params = {"url": url, "strategy": strategy, "category": "performance", "key": self.api_key}
        try:
            if self.client is not None:
                response = await self.client.get(PSI_ENDPOINT, params=params, timeout=PAGESPEED_TIMEOUT_SECONDS)
            else:
                async with httpx.AsyncClient(timeout=PAGESPEED_TIMEOUT_SECONDS) as client:
                    response = await client.get(PSI_ENDPOINT, params=params)
        except httpx.HTTPError as e:
            raise ScorerUnavailable(f"PageSpeed request failed: {e}") from e

        if response.status_code == 429:
            raise ScorerUnavailable("PageSpeed rate limited (429)")
        if response.status_code >= 400:
            raise ScorerUnavailable(f"PageSpeed API error {response.status_code}: {response.text[:200]}")
        try:
            return extract_metrics(response.json())
        except (ValueError, TypeError, AttributeError) as e:
            raise ScorerUnavailable(f"Unreadable PageSpeed response: {e}") from e


class PerformanceVerifier:
    def __init__(
        self,
        driver: BrowserDriver,
        scorer: Optional[Scorer] = None,
        log: Optional[StructuredLogger] = None,
    ):
        self.driver = driver
        self.scorer = scorer
        self.log = log or StructuredLogger("Performance")

    async def measure(self, edge_url: str, pages: Sequence[PageInventory]) -> List[PerformanceResult]:
        results: List[PerformanceResult] = []
        for page_info in list(pages)[:MAX_VERIFIED_PAGES]:
            page_url = page_url_on(edge_url, page_info.path)
            results.append(await self.measure_one(page_url, page_info.path))

        if results:
            avg = sum(r.performance for r in results) / len(results)
            worst = min(r.performance for r in results)
            self.log.info(f"Performance: avg {avg:.0f}, worst {worst}")
        return results

    async def measure_one(self, page_url: str, page_path: str) -> PerformanceResult:
        if self.scorer is not None:
            try:
                scored = await self.scorer.score(page_url, "mobile")
                self.log.info(f"{page_path}: Score {scored.score} (PageSpeed)")
                return PerformanceResult(
                    page=page_path,
                    performance=scored.score,
                    ttfb=scored.vitals.get("ttfb", 0),
                    load_time_ms=scored.vitals.get("lcp", 0),
                    source="pagespeed",
                    vitals=scored.vitals,
                )
            except ScorerUnavailable as e:
                self.log.warning(f"PageSpeed unavailable for {page_path}: {e}; using heuristic")
            except Exception as e:
                self.log.warning(f"PageSpeed failed for {page_path}: {e}; using heuristic")

        return await self.measure_heuristic(page_url, page_path)

    async def measure_heuristic(self, page_url: str, page_path: str) -> PerformanceResult:
        try:
            async with self.driver.open_page(PERFORMANCE_VIEWPORT) as page:
                started = time.monotonic()
                await page.goto(page_url, timeout=PERFORMANCE_NAVIGATION_TIMEOUT)
                await page.wait(PAGE_SETTLE_MS)
                load_ms = (time.monotonic() - started) * 1000
                timing = await page.navigation_timing() or {}
        except Exception as e:
            self.log.warning(f"Performance measurement failed for {page_path}: {e}")
            return PerformanceResult(page=page_path, performance=0, source="error")

        ttfb = timing.get("ttfb")
        if ttfb is None:
            ttfb = load_ms
        score = heuristic_score(ttfb, load_ms, timing.get("dcl_ms"))
        self.log.info(f"{page_path}: Score {score}, TTFB {ttfb:.0f}ms, Load {load_ms:.0f}ms")
        return PerformanceResult(page=page_path, performance=score, ttfb=ttfb, load_time_ms=load_ms)
