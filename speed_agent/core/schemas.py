from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from speed_agent.core.settings import OptimizationSettings

ElementType = Literal[
    "dropdown", "hamburger-menu", "slider", "accordion", "tab", "modal", "form", "link"
]
TriggerAction = Literal["click", "hover"]
BaselineResult = Literal["recorded", "element-not-found", "interaction-failed"]
VisualStatus = Literal["identical", "acceptable", "needs-review", "failed"]
Verdict = Literal["pass", "needs-changes", "failed", "incomplete"]
ReviewVerdict = Literal["pass", "needs-changes", "critical-failure"]


class FrozenModel(BaseModel):
    """Immutable record. Collections on subclasses are tuples."""
    model_config = ConfigDict(frozen=True)


# ============================================================================
# SITE INVENTORY (baseline)
# ============================================================================

class PageInventory(FrozenModel):
    url: str
    path: str
    title: str = ""
    size_bytes: int = 0
    scripts_count: int = 0
    stylesheets_count: int = 0
    images_count: int = 0
    has_form: bool = False
    has_slider: bool = False
    has_accordion: bool = False
    has_tabs: bool = False
    has_modal: bool = False
    has_dropdown_menu: bool = False
    has_video: bool = False


class ScriptInventory(FrozenModel):
    src: str
    is_external: bool = True
    size_bytes: int = 0
    is_wordpress_bloat: bool = False
    is_jquery: bool = False
    is_jquery_plugin: bool = False
    plugin_name: Optional[str] = None
    is_analytics: bool = False
    is_essential: bool = True
    has_defer: bool = False
    has_async: bool = False
    pages: Tuple[str, ...] = ()


class StylesheetInventory(FrozenModel):
    href: str
    is_external: bool = True
    size_bytes: int = 0
    pages: Tuple[str, ...] = ()


class WordPressInfo(FrozenModel):
    is_elementor: bool = False
    is_gutenberg: bool = False
    is_woocommerce: bool = False


class InteractiveElement(FrozenModel):
    page: str
    type: ElementType
    selector: str
    description: str = ""
    trigger_action: TriggerAction = "click"
    expected_behavior: str = ""
    depends_on_jquery: bool = False


class BoundingBox(FrozenModel):
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


class ComputedStyle(FrozenModel):
    display: str = ""
    visibility: str = ""
    opacity: str = ""
    height: str = ""


class ElementState(FrozenModel):
    """Snapshot of one element as observed in the browser."""
    is_visible: bool = False
    bounding_box: Optional[BoundingBox] = None
    computed_style: ComputedStyle = Field(default_factory=ComputedStyle)
    class_list: Tuple[str, ...] = ()
    inner_text: str = ""
    active_slide_index: Optional[int] = None


class BaselineScreenshot(FrozenModel):
    page: str
    viewport: str
    width: int
    height: int
    full_page_path: str
    above_fold_path: str
    captured_at: str


class FunctionalBaseline(FrozenModel):
    """
    Recorded behavior of one interactive element on the original site.

    Only entries with passed=True are valid ground truth for comparison.
    """
    element: InteractiveElement
    baseline_result: BaselineResult
    state_before: Optional[ElementState] = None
    state_after: Optional[ElementState] = None
    passed: bool = False
    reason: Optional[str] = None


class SiteInventory(FrozenModel):
    url: str
    pages: Tuple[PageInventory, ...] = ()
    scripts: Tuple[ScriptInventory, ...] = ()
    stylesheets: Tuple[StylesheetInventory, ...] = ()
    wordpress: WordPressInfo = Field(default_factory=WordPressInfo)
    interactive_elements: Tuple[InteractiveElement, ...] = ()
    jquery_used: bool = False
    jquery_dependent_scripts: Tuple[str, ...] = ()
    baseline_screenshots: Tuple[BaselineScreenshot, ...] = ()
    baseline_behavior: Tuple[FunctionalBaseline, ...] = ()

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def total_size_bytes(self) -> int:
        return (
            sum(p.size_bytes for p in self.pages)
            + sum(s.size_bytes for s in self.scripts)
            + sum(s.size_bytes for s in self.stylesheets)
        )


# ============================================================================
# VERIFICATION RESULTS
# ============================================================================

class VisualComparisonResult(BaseModel):
    page: str
    viewport: str
    diff_percent: float = 100.0
    diff_pixels: int = 0
    total_pixels: int = 0
    height_delta: int = 0
    baseline_image_path: str = ""
    optimized_image_path: str = ""
    diff_image_path: str = ""
    status: VisualStatus = "failed"
    error: Optional[str] = None
    ai_review: Optional[str] = None
    ai_regions: List[str] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.status in ("identical", "acceptable")


class FunctionalTestResult(BaseModel):
    element: InteractiveElement
    passed: bool
    failure_reason: Optional[str] = None


class LinkVerificationResult(BaseModel):
    page: str
    href: str
    resolved_url: str
    text: str = ""
    status: Optional[int] = None
    passed: bool = True
    failure_reason: Optional[str] = None
    is_external: bool = False


class PerformanceResult(BaseModel):
    page: str
    performance: int = 0
    ttfb: float = 0.0
    load_time_ms: float = 0.0
    source: Literal["pagespeed", "heuristic", "error"] = "heuristic"
    vitals: Dict[str, Any] = Field(default_factory=dict)


class ScoreResult(BaseModel):
    score: int
    vitals: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# LLM OUTPUTS
# ============================================================================

class OptimizationPlan(BaseModel):
    """Initial settings chosen by the planner."""
    settings: Dict[str, Any] = Field(default_factory=dict, description="Sparse overrides of OptimizationSettings")
    reasoning: Dict[str, str] = Field(default_factory=dict, description="Why each section was configured this way")
    risks: List[str] = Field(default_factory=list)
    expected_performance: Dict[str, Any] = Field(default_factory=dict)


class ReviewDecision(BaseModel):
    """Reviewer judgment of one iteration. Every field tolerates omission."""
    overall_verdict: ReviewVerdict = Field(default="needs-changes")
    setting_changes: Dict[str, Any] = Field(default_factory=dict)
    reasoning: str = ""
    issues_summary: List[str] = Field(default_factory=list)
    remaining_issues: List[str] = Field(default_factory=list)
    should_rebuild: bool = True
    confidence_level: float = 0.0


def run_verdict(review_verdict: Optional[str]) -> Verdict:
    """Map a reviewer verdict onto a run verdict (critical-failure -> failed)."""
    if review_verdict == "critical-failure":
        return "failed"
    if review_verdict in ("pass", "needs-changes"):
        return review_verdict
    return "needs-changes"


class VisualReview(BaseModel):
    """AI judgment of a visual diff."""
    verdict: str = Field(default="needs-review", description="'acceptable', 'needs-review' or 'regression'")
    regions: List[str] = Field(default_factory=list, description="Short notes on the regions that differ")


# ============================================================================
# ITERATIONS & REPORT
# ============================================================================

class IterationResult(BaseModel):
    iteration: int
    settings: OptimizationSettings
    build_id: str
    edge_url: Optional[str] = None
    visual: List[VisualComparisonResult] = Field(default_factory=list)
    functional: List[FunctionalTestResult] = Field(default_factory=list)
    links: List[LinkVerificationResult] = Field(default_factory=list)
    performance: List[PerformanceResult] = Field(default_factory=list)
    degraded_checkers: List[str] = Field(default_factory=list)

    @property
    def avg_performance(self) -> float:
        if not self.performance:
            return 0.0
        return sum(p.performance for p in self.performance) / len(self.performance)

    @property
    def visual_failures(self) -> int:
        return sum(1 for v in self.visual if not v.passed)

    @property
    def functional_failures(self) -> int:
        return sum(1 for t in self.functional if not t.passed)

    @property
    def broken_links(self) -> int:
        return sum(1 for link in self.links if not link.passed)


class IterationSummary(BaseModel):
    iteration: int
    avg_performance: float
    visual_failures: int
    functional_failures: int
    broken_links: int
    degraded_checkers: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: IterationResult) -> "IterationSummary":
        return cls(
            iteration=result.iteration,
            avg_performance=result.avg_performance,
            visual_failures=result.visual_failures,
            functional_failures=result.functional_failures,
            broken_links=result.broken_links,
            degraded_checkers=list(result.degraded_checkers),
        )


class PhaseTiming(BaseModel):
    start: str
    end: Optional[str] = None


class AgentReport(BaseModel):
    site_id: str
    original_url: str
    total_iterations: int
    iterations_attempted: int = 0
    final_verdict: Verdict
    final_settings: Dict[str, Any] = Field(default_factory=dict)
    final_performance: List[PerformanceResult] = Field(default_factory=list)
    visual_results: List[VisualComparisonResult] = Field(default_factory=list)
    functional_results: List[FunctionalTestResult] = Field(default_factory=list)
    link_results: List[LinkVerificationResult] = Field(default_factory=list)
    iteration_history: List[IterationSummary] = Field(default_factory=list)
    phase_timings: Dict[str, PhaseTiming] = Field(default_factory=dict)
    page_count: int = 0
    last_error: Optional[str] = None
