"""
Crawl helpers - Page discovery and per-page asset analysis.

Contains:
- discover_page_urls: same-origin page list from homepage anchors
- analyze_html: title, feature flags and asset references of one page
- classify_script: regex classification of a script URL
- AssetCatalog: first-seen-wins dedup of scripts/stylesheets across pages
- detect_wordpress: WordPress flavor from asset URLs
- probe_asset_sizes: Content-Length of assets via bounded HEAD requests
"""

import asyncio
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from speed_agent.core.schemas import PageInventory, ScriptInventory, StylesheetInventory, WordPressInfo
from speed_agent.utils.constants import (
    ANALYTICS_PATTERN,
    CAPTURE_WORKERS,
    CHROME_UA,
    EXCLUDED_LINK_PATTERN,
    FEATURE_SELECTORS,
    HTTP_CHECK_TIMEOUT_SECONDS,
    JQUERY_MIGRATE_PATTERN,
    JQUERY_PATTERN,
    JQUERY_PLUGIN_PATTERN,
    MAX_DISCOVERED_LINKS,
    MAX_PAGES,
    MIN_JS_SUFFIX_PATTERN,
    WP_BLOAT_PATTERN,
)


def page_path_of(url: str) -> str:
    return urlparse(url).path or "/"


def _same_origin(a: str, b: str) -> bool:
    pa, pb = urlparse(a), urlparse(b)
    return (pa.scheme, pa.netloc.lower()) == (pb.scheme, pb.netloc.lower())


# ============================================================================
# PAGE DISCOVERY
# ============================================================================

def discover_page_urls(site_url: str, homepage_html: str, max_pages: int = MAX_PAGES) -> List[str]:
    """
    Build the crawl list: homepage first, then same-origin links found on it.

    Links with a fragment, admin/login/reply links and duplicate paths are
    skipped. At most MAX_DISCOVERED_LINKS candidates are considered.
    """
    soup = BeautifulSoup(homepage_html or "", "html.parser")
    home_path = page_path_of(site_url)
    seen_paths = {home_path}
    discovered: List[str] = []

    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or "#" in href:
            continue
        resolved = urljoin(site_url, href)
        if not _same_origin(resolved, site_url):
            continue
        if EXCLUDED_LINK_PATTERN.search(resolved):
            continue
        path = page_path_of(resolved)
        if path in seen_paths:
            continue
        seen_paths.add(path)
        discovered.append(resolved)
        if len(discovered) >= MAX_DISCOVERED_LINKS:
            break

    return [site_url] + discovered[: max(0, max_pages - 1)]


# ============================================================================
# PAGE ANALYSIS
# ============================================================================

class ScriptRef(BaseModel):
    src: str
    has_defer: bool = False
    has_async: bool = False


class PageAnalysis(BaseModel):
    page: PageInventory
    scripts: List[ScriptRef] = Field(default_factory=list)
    stylesheets: List[str] = Field(default_factory=list)


def analyze_html(html: str, page_url: str, title: Optional[str] = None) -> PageAnalysis:
    soup = BeautifulSoup(html or "", "html.parser")

    scripts = [
        ScriptRef(
            src=urljoin(page_url, tag["src"]),
            has_defer=tag.has_attr("defer"),
            has_async=tag.has_attr("async"),
        )
        for tag in soup.select("script[src]")
    ]
    stylesheets = [
        urljoin(page_url, tag["href"])
        for tag in soup.select('link[rel="stylesheet"][href]')
    ]

    if title is None:
        title = soup.title.get_text(strip=True) if soup.title else ""

    flags = {name: soup.select_one(selector) is not None for name, selector in FEATURE_SELECTORS.items()}

    page = PageInventory(
        url=page_url,
        path=page_path_of(page_url),
        title=title,
        size_bytes=len(html.encode("utf-8")) if html else 0,
        scripts_count=len(scripts),
        stylesheets_count=len(stylesheets),
        images_count=len(soup.find_all("img")),
        **flags,
    )
    return PageAnalysis(page=page, scripts=scripts, stylesheets=stylesheets)


def classify_script(ref: ScriptRef, page_path: str) -> ScriptInventory:
    src = ref.src
    is_jquery = bool(JQUERY_PATTERN.search(src)) and not JQUERY_MIGRATE_PATTERN.search(src)
    is_plugin = bool(JQUERY_PLUGIN_PATTERN.search(src))
    plugin_name = None
    if is_plugin:
        plugin_name = MIN_JS_SUFFIX_PATTERN.sub("", src.rstrip("/").split("/")[-1]) or None

    return ScriptInventory(
        src=src,
        is_wordpress_bloat=bool(WP_BLOAT_PATTERN.search(src)),
        is_jquery=is_jquery,
        is_jquery_plugin=is_plugin,
        plugin_name=plugin_name,
        is_analytics=bool(ANALYTICS_PATTERN.search(src)),
        is_essential=is_jquery or is_plugin,
        has_defer=ref.has_defer,
        has_async=ref.has_async,
        pages=(page_path,),
    )


# ============================================================================
# ASSET CATALOG
# ============================================================================

class AssetCatalog:
    """
    Collects scripts and stylesheets across pages.

    The first page that references an asset defines its record; later
    pages only append their path.
    """

    def __init__(self):
        self._scripts: Dict[str, ScriptInventory] = {}
        self._script_pages: Dict[str, List[str]] = {}
        self._stylesheet_pages: Dict[str, List[str]] = {}

    def add_page(self, analysis: PageAnalysis) -> None:
        path = analysis.page.path
        for ref in analysis.scripts:
            if ref.src not in self._scripts:
                self._scripts[ref.src] = classify_script(ref, path)
                self._script_pages[ref.src] = [path]
            elif path not in self._script_pages[ref.src]:
                self._script_pages[ref.src].append(path)
        for href in analysis.stylesheets:
            pages = self._stylesheet_pages.setdefault(href, [])
            if path not in pages:
                pages.append(path)

    @property
    def asset_urls(self) -> List[str]:
        return list(self._scripts) + [h for h in self._stylesheet_pages if h not in self._scripts]

    def scripts(self, sizes: Optional[Dict[str, int]] = None) -> Tuple[ScriptInventory, ...]:
        sizes = sizes or {}
        return tuple(
            script.model_copy(update={
                "pages": tuple(self._script_pages[src]),
                "size_bytes": sizes.get(src, 0),
            })
            for src, script in self._scripts.items()
        )

    def stylesheets(self, sizes: Optional[Dict[str, int]] = None) -> Tuple[StylesheetInventory, ...]:
        sizes = sizes or {}
        return tuple(
            StylesheetInventory(href=href, size_bytes=sizes.get(href, 0), pages=tuple(pages))
            for href, pages in self._stylesheet_pages.items()
        )


def detect_wordpress(asset_urls: Iterable[str]) -> WordPressInfo:
    joined = " ".join(asset_urls)
    return WordPressInfo(
        is_elementor="elementor" in joined,
        is_gutenberg="wp-block" in joined or "block-library" in joined,
        is_woocommerce="woocommerce" in joined,
    )


# ============================================================================
# ASSET SIZES
# ============================================================================

async def probe_asset_sizes(
    urls: Iterable[str],
    client: Optional[httpx.AsyncClient] = None,
    workers: int = CAPTURE_WORKERS,
) -> Dict[str, int]:
    """
    HEAD every asset and read Content-Length.

    At most `workers` requests are in flight. Failures and missing headers
    give size 0.
    """
    urls = list(dict.fromkeys(urls))
    if not urls:
        return {}

    semaphore = asyncio.Semaphore(workers)

    async def probe(http: httpx.AsyncClient, url: str) -> int:
        async with semaphore:
            try:
                response = await http.head(url)
                return int(response.headers.get("content-length", 0) or 0)
            except (httpx.HTTPError, ValueError):
                return 0

    async def run(http: httpx.AsyncClient) -> Dict[str, int]:
        sizes = await asyncio.gather(*(probe(http, url) for url in urls))
        return dict(zip(urls, sizes))

    if client is not None:
        return await run(client)
    async with httpx.AsyncClient(
        timeout=HTTP_CHECK_TIMEOUT_SECONDS,
        follow_redirects=True,
        headers={"User-Agent": CHROME_UA},
    ) as http:
        return await run(http)
