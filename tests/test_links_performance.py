import httpx
import pytest

from conftest import FakeDriver, FakePage, make_inventory
from speed_agent.core.errors import ScorerUnavailable
from speed_agent.core.schemas import ScoreResult
from speed_agent.verification.links import LinkVerifier, extract_links, is_internal_link, rewrite_to_edge
from speed_agent.verification.performance import (
    PageSpeedScorer,
    PerformanceVerifier,
    extract_metrics,
    heuristic_score,
)

ORIGINAL = "https://example.com/"
EDGE = "https://speed-example.pages.dev"


# ============================================================================
# LINKS
# ============================================================================

def test_extract_links_skips_non_navigable_hrefs():
    html = """
    <a href="/about">About us</a>
    <a href="#">Top</a>
    <a href="">Empty</a>
    <a href="mailto:a@example.com">Mail</a>
    <a href="tel:123">Call</a>
    <a href="javascript:void(0)">JS</a>
    <a href="https://twitter.com/example">Twitter</a>
    """
    links = extract_links(html, EDGE + "/")

    assert [href for href, _, _ in links] == ["/about", "https://twitter.com/example"]
    assert links[0] == ("/about", "About us", EDGE + "/about")


def test_rewrite_to_edge_moves_original_host_only():
    assert rewrite_to_edge("https://example.com/about?x=1", ORIGINAL, EDGE) == EDGE + "/about?x=1"
    assert rewrite_to_edge("https://twitter.com/x", ORIGINAL, EDGE) == "https://twitter.com/x"


def test_is_internal_link():
    assert is_internal_link("/about", EDGE + "/about", ORIGINAL, EDGE)
    assert is_internal_link("https://example.com/a", "https://example.com/a", ORIGINAL, EDGE)
    assert is_internal_link(EDGE + "/a", EDGE + "/a", ORIGINAL, EDGE)
    assert not is_internal_link("https://twitter.com/x", "https://twitter.com/x", ORIGINAL, EDGE)


@pytest.mark.asyncio
async def test_link_verifier_checks_internal_links_once():
    page = FakePage(html="""
        <a href="/ok">OK</a>
        <a href="/ok">OK again</a>
        <a href="https://example.com/missing">Missing</a>
        <a href="/head-not-allowed">405</a>
        <a href="https://twitter.com/example">External</a>
    """)
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append((request.method, request.url.path))
        if request.url.path == "/missing":
            return httpx.Response(404)
        if request.url.path == "/head-not-allowed" and request.method == "HEAD":
            return httpx.Response(405)
        return httpx.Response(200)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        verifier = LinkVerifier(FakeDriver(page), client=client)
        results = await verifier.verify(ORIGINAL, EDGE, make_inventory().pages)

    by_href = {}
    for r in results:
        by_href.setdefault(r.href, r)

    assert by_href["/ok"].passed and by_href["/ok"].status == 200
    assert by_href["https://example.com/missing"].passed is False
    assert by_href["https://example.com/missing"].failure_reason == "HTTP 404"
    assert by_href["https://example.com/missing"].resolved_url == EDGE + "/missing"
    assert by_href["/head-not-allowed"].status == 200
    assert by_href["https://twitter.com/example"].is_external
    assert by_href["https://twitter.com/example"].status is None
    assert by_href["https://twitter.com/example"].passed is True

    assert requests.count(("HEAD", "/ok")) == 1
    assert ("GET", "/head-not-allowed") in requests
    assert all("twitter" not in path for _, path in requests)


@pytest.mark.asyncio
async def test_link_verifier_network_error_is_broken():
    page = FakePage(html='<a href="/down">Down</a>')

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        results = await LinkVerifier(FakeDriver(page), client=client).verify(ORIGINAL, EDGE, make_inventory().pages)

    assert results[0].status == 0
    assert results[0].failure_reason == "Network error"
    assert results[0].passed is False


# ============================================================================
# PERFORMANCE
# ============================================================================

@pytest.mark.parametrize("ttfb,load_ms,dcl_ms,expected", [
    (100, 800, None, 100),
    (300, 1000, None, 98),
    (5000, 20000, None, 50),
    (5000, 20000, 9000, 30),
    (450, 1500, 1600, 89),
])
def test_heuristic_score(ttfb, load_ms, dcl_ms, expected):
    assert heuristic_score(ttfb, load_ms, dcl_ms) == expected


def test_extract_metrics():
    data = {
        "lighthouseResult": {
            "categories": {"performance": {"score": 0.875}},
            "audits": {
                "largest-contentful-paint": {"numericValue": 2345.6},
                "cumulative-layout-shift": {"numericValue": 0.04567},
                "server-response-time": {"numericValue": 120.4},
            },
        }
    }
    result = extract_metrics(data)

    assert result.score == 88
    assert result.vitals["lcp"] == 2346
    assert result.vitals["cls"] == 0.046
    assert result.vitals["ttfb"] == 120
    assert result.vitals["tbt"] == 0


def test_extract_metrics_requires_lighthouse_result():
    with pytest.raises(ScorerUnavailable):
        extract_metrics({"error": {"code": 500}})


@pytest.mark.asyncio
async def test_pagespeed_scorer_unavailable_cases():
    with pytest.raises(ScorerUnavailable):
        await PageSpeedScorer(api_key=None).score("https://edge.example.dev/")

    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(429))) as client:
        with pytest.raises(ScorerUnavailable, match="429"):
            await PageSpeedScorer(api_key="key", client=client).score("https://edge.example.dev/")


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(200, text="<html>proxy</html>"),
    httpx.Response(200, json={"lighthouseResult": ["not", "a", "dict"]}),
])
async def test_pagespeed_scorer_unreadable_body_is_unavailable(response):
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: response)) as client:
        with pytest.raises(ScorerUnavailable, match="Unreadable"):
            await PageSpeedScorer(api_key="key", client=client).score("https://edge.example.dev/")


@pytest.mark.asyncio
async def test_bad_pagespeed_body_falls_back_per_page():
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>proxy</html>"))) as client:
        verifier = PerformanceVerifier(FakeDriver(), scorer=PageSpeedScorer(api_key="key", client=client))
        results = await verifier.measure(EDGE, make_inventory(paths=("/", "/about")).pages)

    assert [r.page for r in results] == ["/", "/about"]
    assert all(r.source == "heuristic" for r in results)


@pytest.mark.asyncio
async def test_unexpected_scorer_error_falls_back_to_heuristic():
    class Scorer:
        async def score(self, url, strategy="mobile"):
            raise KeyError("categories")

    result = await PerformanceVerifier(FakeDriver(), scorer=Scorer()).measure_one(EDGE + "/", "/")

    assert result.source == "heuristic"


@pytest.mark.asyncio
async def test_performance_prefers_scorer():
    class Scorer:
        async def score(self, url, strategy="mobile"):
            return ScoreResult(score=91, vitals={"ttfb": 80, "lcp": 1900})

    verifier = PerformanceVerifier(FakeDriver(), scorer=Scorer())
    results = await verifier.measure(EDGE, make_inventory().pages)

    assert results[0].performance == 91
    assert results[0].source == "pagespeed"
    assert results[0].load_time_ms == 1900


@pytest.mark.asyncio
async def test_performance_falls_back_to_heuristic():
    class Scorer:
        async def score(self, url, strategy="mobile"):
            raise ScorerUnavailable("rate limited")

    page = FakePage()
    page.navigation_timing.return_value = {"ttfb": 150.0, "load_ms": 700.0, "dcl_ms": 600.0}
    verifier = PerformanceVerifier(FakeDriver(page), scorer=Scorer())

    result = await verifier.measure_one(EDGE + "/", "/")

    assert result.source == "heuristic"
    assert result.ttfb == 150.0
    assert 0 <= result.performance <= 100


@pytest.mark.asyncio
async def test_performance_browser_error_scores_zero():
    page = FakePage()
    page.goto.side_effect = RuntimeError("net::ERR_NAME_NOT_RESOLVED")
    verifier = PerformanceVerifier(FakeDriver(page))

    results = await verifier.measure(EDGE, make_inventory(paths=("/", "/about")).pages)

    assert [r.performance for r in results] == [0, 0]
    assert all(r.source == "error" for r in results)
