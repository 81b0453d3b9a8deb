"""
Link verification - Check every anchor on the deployed pages.

Internal links (same host as the original or the deployment, or relative)
are rewritten onto the deployed origin and checked with one HEAD per URL.
External links are recorded but never fetched.
"""

from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from speed_agent.core.browser import BrowserDriver
from speed_agent.core.schemas import LinkVerificationResult, PageInventory
from speed_agent.utils.constants import (
    CHROME_UA,
    HTTP_CHECK_TIMEOUT_SECONDS,
    MAX_VERIFIED_PAGES,
    PAGE_SETTLE_MS,
    SKIPPED_HREF_PREFIXES,
)
from speed_agent.utils.helpers import StructuredLogger, page_url_on


def extract_links(html: str, base_url: str) -> List[Tuple[str, str, str]]:
    """(href, text, resolved_url) for every checkable anchor."""
    soup = BeautifulSoup(html or "", "html.parser")
    links = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href == "#" or href.lower().startswith(SKIPPED_HREF_PREFIXES):
            continue
        text = anchor.get_text(" ", strip=True)[:80]
        links.append((href, text, urljoin(base_url, href)))
    return links


def rewrite_to_edge(url: str, original_url: str, edge_url: str) -> str:
    """Move a URL on the original host onto the deployed origin."""
    parsed = urlparse(url)
    if parsed.hostname != urlparse(original_url).hostname:
        return url
    edge = urlparse(edge_url)
    return parsed._replace(scheme=edge.scheme, netloc=edge.netloc).geturl()


def is_internal_link(href: str, resolved_url: str, original_url: str, edge_url: str) -> bool:
    parsed_href = urlparse(href)
    if not parsed_href.scheme and not parsed_href.netloc:
        return True
    host = urlparse(resolved_url).hostname
    return host in (urlparse(original_url).hostname, urlparse(edge_url).hostname)


class LinkVerifier:
    def __init__(
        self,
        driver: BrowserDriver,
        client: Optional[httpx.AsyncClient] = None,
        log: Optional[StructuredLogger] = None,
    ):
        self.driver = driver
        self.client = client
        self.log = log or StructuredLogger("Links")

    async def check_url(self, client: httpx.AsyncClient, url: str) -> int:
        """HTTP status of url, retrying with GET when HEAD is not allowed. 0 on network error."""
        try:
            response = await client.head(url)
            if response.status_code == 405:
                response = await client.get(url)
            return response.status_code
        except httpx.HTTPError:
            return 0

    async def verify(
        self,
        original_url: str,
        edge_url: str,
        pages: Sequence[PageInventory],
    ) -> List[LinkVerificationResult]:
        if self.client is not None:
            return await self._verify(self.client, original_url, edge_url, pages)
        async with httpx.AsyncClient(
            timeout=HTTP_CHECK_TIMEOUT_SECONDS,
            follow_redirects=True,
            headers={"User-Agent": CHROME_UA},
        ) as client:
            return await self._verify(client, original_url, edge_url, pages)

    async def _verify(
        self,
        client: httpx.AsyncClient,
        original_url: str,
        edge_url: str,
        pages: Sequence[PageInventory],
    ) -> List[LinkVerificationResult]:
        results: List[LinkVerificationResult] = []
        checked: Dict[str, int] = {}

        for page_info in list(pages)[:MAX_VERIFIED_PAGES]:
            page_url = page_url_on(edge_url, page_info.path)
            try:
                async with self.driver.open_page() as page:
                    await page.goto(page_url)
                    await page.wait(PAGE_SETTLE_MS)
                    html = await page.content()
            except Exception as e:
                self.log.warning(f"Link check failed for {page_info.path}: {e}")
                continue

            for href, text, resolved in extract_links(html, page_url):
                if not is_internal_link(href, resolved, original_url, edge_url):
                    results.append(LinkVerificationResult(
                        page=page_info.path, href=href, resolved_url=resolved, text=text,
                        status=None, passed=True, is_external=True,
                    ))
                    continue

                check_url = rewrite_to_edge(resolved, original_url, edge_url)
                if check_url not in checked:
                    checked[check_url] = await self.check_url(client, check_url)
                status = checked[check_url]

                failure_reason = None
                if status == 0:
                    failure_reason = "Network error"
                elif status >= 400:
                    failure_reason = f"HTTP {status}"

                results.append(LinkVerificationResult(
                    page=page_info.path, href=href, resolved_url=check_url, text=text,
                    status=status, passed=200 <= status < 400, failure_reason=failure_reason,
                ))

        broken = sum(1 for r in results if not r.passed)
        self.log.info(f"Links: {len(results) - broken} valid, {broken} broken")
        return results
