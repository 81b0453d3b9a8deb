import contextlib
import os
import sys
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

# Set dummy environment variables to bypass validation
os.environ["GOOGLE_API_KEY"] = "dummy_key"
os.environ["GEMINI_MODEL"] = "dummy_model"

# Ensure we can import speed_agent
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from speed_agent.core.collaborators import BuildStatus, SiteRecord
from speed_agent.core.schemas import (
    BaselineScreenshot,
    BoundingBox,
    ElementState,
    FunctionalBaseline,
    InteractiveElement,
    OptimizationPlan,
    PageInventory,
    ReviewDecision,
    SiteInventory,
)
from speed_agent.verification.suite import VerificationOutcome


# ============================================================================
# BROWSER FAKES
# ============================================================================

class FakePage:
    """Stands in for BrowserPage. Async methods are AsyncMocks so tests can script them."""

    def __init__(self, html: str = "<html></html>", title: str = ""):
        self.html = html
        self.visited: List[str] = []
        self.goto = AsyncMock(side_effect=self._goto)
        self.wait = AsyncMock()
        self.content = AsyncMock(side_effect=lambda: self.html)
        self.title = AsyncMock(return_value=title)
        self.scroll_through = AsyncMock()
        self.screenshot = AsyncMock()
        self.exists = AsyncMock(return_value=True)
        self.is_visible = AsyncMock(return_value=True)
        self.trigger = AsyncMock()
        self.capture_state = AsyncMock(return_value=None)
        self.reload = AsyncMock()
        self.navigation_timing = AsyncMock(return_value={"ttfb": 100.0, "load_ms": 500.0, "dcl_ms": 400.0})

    async def _goto(self, url: str, timeout: int = 0, wait_until: str = "") -> int:
        self.visited.append(url)
        return 200


class FakeDriver:
    """Stands in for BrowserDriver; every open_page() yields the same FakePage unless a factory is given."""

    def __init__(self, page: Optional[FakePage] = None, page_factory=None):
        self.page = page or FakePage()
        self.page_factory = page_factory
        self.viewports: List[Any] = []
        self.close = AsyncMock()

    @contextlib.asynccontextmanager
    async def open_page(self, viewport=None):
        self.viewports.append(viewport)
        yield self.page_factory() if self.page_factory else self.page


# ============================================================================
# DATA BUILDERS
# ============================================================================

def make_element(page: str = "/", type: str = "accordion", selector: str = ".faq-item") -> InteractiveElement:
    return InteractiveElement(page=page, type=type, selector=selector, description=f"{type} on {page}")


def make_state(visible: bool = True, height: float = 40.0, classes=(), text: str = "", slide=None) -> ElementState:
    return ElementState(
        is_visible=visible,
        bounding_box=BoundingBox(x=0, y=0, width=100, height=height),
        class_list=tuple(classes),
        inner_text=text,
        active_slide_index=slide,
    )


def make_baseline(element: Optional[InteractiveElement] = None, before=None, after=None, passed=True) -> FunctionalBaseline:
    return FunctionalBaseline(
        element=element or make_element(),
        baseline_result="recorded" if passed else "element-not-found",
        state_before=before,
        state_after=after,
        passed=passed,
    )


def make_inventory(url: str = "https://example.com/", paths=("/",), screenshots=(), behavior=()) -> SiteInventory:
    return SiteInventory(
        url=url,
        pages=tuple(PageInventory(url=url.rstrip("/") + p, path=p) for p in paths),
        baseline_screenshots=tuple(screenshots),
        baseline_behavior=tuple(behavior),
    )


def make_screenshot(path: str, page: str = "/", viewport: str = "desktop") -> BaselineScreenshot:
    return BaselineScreenshot(
        page=page,
        viewport=viewport,
        width=1920,
        height=1080,
        full_page_path=path,
        above_fold_path=path,
        captured_at="2024-01-01T00:00:00+00:00",
    )


# ============================================================================
# COLLABORATOR FAKES
# ============================================================================

class FakeRecorder:
    def __init__(self, inventory: SiteInventory, on_record=None):
        self.inventory = inventory
        self.on_record = on_record
        self.calls = 0

    async def record(self, site_url: str, work_dir: str) -> SiteInventory:
        self.calls += 1
        if self.on_record is not None:
            self.on_record()
        return self.inventory


class FakeBuildQueue:
    """
    Finishes every build immediately. `outcomes` is consumed one entry per
    enqueued build: "success", "failed" or "no-edge".
    """

    def __init__(self, outcomes: Optional[List[str]] = None, edge_url: str = "https://edge.example.dev"):
        self.outcomes = list(outcomes or [])
        self.edge_url = edge_url
        self.jobs = []
        self.statuses: Dict[str, BuildStatus] = {}

    async def enqueue(self, job) -> None:
        self.jobs.append(job)
        outcome = self.outcomes.pop(0) if self.outcomes else "success"
        if outcome == "failed":
            status = BuildStatus(build_id=job.build_id, status="failed", error_message="optimizer crashed")
        elif outcome == "no-edge":
            status = BuildStatus(build_id=job.build_id, status="success")
        else:
            status = BuildStatus(build_id=job.build_id, status="success", edge_url=self.edge_url)
        self.statuses[job.build_id] = status

    async def get_status(self, build_id: str) -> Optional[BuildStatus]:
        return self.statuses.get(build_id)


class FakeVerifiers:
    def __init__(self, outcomes: List[VerificationOutcome]):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def run(self, original_url, edge_url, inventory, work_dir) -> VerificationOutcome:
        self.calls += 1
        if len(self.outcomes) > 1:
            return self.outcomes.pop(0)
        return self.outcomes[0]


class FakePlanner:
    def __init__(self, settings: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None):
        self.settings = settings or {}
        self.error = error

    async def plan(self, inventory: SiteInventory) -> OptimizationPlan:
        if self.error is not None:
            raise self.error
        return OptimizationPlan(settings=self.settings)


class FakeReviewer:
    def __init__(self, decisions: Optional[List[ReviewDecision]] = None):
        self.decisions = list(decisions or [])
        self.history_lengths: List[int] = []

    async def review(self, iteration_result, history, inventory) -> ReviewDecision:
        self.history_lengths.append(len(history))
        if self.decisions:
            return self.decisions.pop(0)
        return ReviewDecision(overall_verdict="needs-changes", should_rebuild=True)


@pytest.fixture
def site():
    return SiteRecord(site_id="site-1", site_url="https://example.com/", name="Example")
