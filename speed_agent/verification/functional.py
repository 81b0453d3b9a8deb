"""
Functional verification - Replay recorded interactions on the deployed site.

Only baselines that were actually recorded (passed=True) are replayed, so an
element that never worked on the original cannot cause a regression.
"""

from typing import Dict, List, Optional, Sequence

from speed_agent.core.browser import BrowserDriver
from speed_agent.core.schemas import ElementState, FunctionalBaseline, FunctionalTestResult
from speed_agent.utils.constants import (
    BOX_TOLERANCE_PX,
    PAGE_SETTLE_MS,
    SCROLL_SETTLE_MS,
    VERIFY_INTERACTION_SETTLE_MS,
)
from speed_agent.utils.helpers import StructuredLogger, page_url_on

MISMATCH_MESSAGES: Dict[str, str] = {
    "dropdown": "Dropdown did not open. JS controlling this element likely removed.",
    "hamburger-menu": "Hamburger menu did not open. Mobile menu JS likely removed.",
    "slider": "Slider did not advance. Slider library (Slick/Owl/Swiper) likely removed or jQuery broken.",
    "accordion": "Accordion did not expand. Accordion JS removed.",
    "tab": "Tab content did not switch. Tab JS removed.",
    "modal": "Modal did not appear. Modal library JS removed.",
}


def describe_mismatch(element_type: str, detail: str) -> str:
    message = MISMATCH_MESSAGES.get(element_type, "Interaction did not produce expected behavior.")
    return f"{message} ({detail})"


def _height(state: ElementState) -> float:
    return state.bounding_box.height if state.bounding_box else 0.0


def _toggled(before: ElementState, after: ElementState) -> bool:
    return (
        before.is_visible != after.is_visible
        or before.computed_style.display != after.computed_style.display
    )


def compare_behavior(
    baseline: FunctionalBaseline,
    before: Optional[ElementState],
    after: Optional[ElementState],
) -> Optional[str]:
    """
    Compare the change observed on the deployed site with the change the
    baseline recorded. Returns a failure detail, or None when they agree.

    Only dimensions that changed on the original are checked.
    """
    base_before, base_after = baseline.state_before, baseline.state_after
    if base_before is None or base_after is None:
        return None
    if before is None or after is None:
        return "element state unavailable"

    if _toggled(base_before, base_after):
        if not _toggled(before, after) or after.is_visible != base_after.is_visible:
            return "visibility did not toggle"

    base_delta = _height(base_after) - _height(base_before)
    if abs(base_delta) > BOX_TOLERANCE_PX:
        delta = _height(after) - _height(before)
        if abs(delta) <= BOX_TOLERANCE_PX or (delta > 0) != (base_delta > 0):
            return f"height changed by {delta:.0f}px, expected {base_delta:.0f}px"

    if (
        base_before.active_slide_index is not None
        and base_after.active_slide_index is not None
        and base_before.active_slide_index != base_after.active_slide_index
    ):
        if after.active_slide_index is None or after.active_slide_index == before.active_slide_index:
            return "active slide did not change"

    added = set(base_after.class_list) - set(base_before.class_list)
    missing = added - set(after.class_list)
    if missing:
        return f"classes not applied: {', '.join(sorted(missing))}"

    if base_before.inner_text != base_after.inner_text and before.inner_text == after.inner_text:
        return "content did not change"

    return None


class FunctionalVerifier:
    def __init__(self, driver: BrowserDriver, log: Optional[StructuredLogger] = None):
        self.driver = driver
        self.log = log or StructuredLogger("Functional")

    async def verify(self, edge_url: str, baselines: Sequence[FunctionalBaseline]) -> List[FunctionalTestResult]:
        eligible = [b for b in baselines if b.passed]
        results: List[FunctionalTestResult] = []

        by_page: Dict[str, List[FunctionalBaseline]] = {}
        for baseline in eligible:
            by_page.setdefault(baseline.element.page, []).append(baseline)

        for page_path, page_baselines in by_page.items():
            for baseline in page_baselines:
                result = await self.verify_one(page_url_on(edge_url, page_path), baseline)
                status = "PASS" if result.passed else "FAIL"
                self.log.info(f"[{baseline.element.type}] {baseline.element.description}: {status}")
                results.append(result)

        failed = sum(1 for r in results if not r.passed)
        self.log.info(f"Functional: {len(results) - failed} passed, {failed} failed")
        return results

    async def verify_one(self, page_url: str, baseline: FunctionalBaseline) -> FunctionalTestResult:
        element = baseline.element
        try:
            async with self.driver.open_page() as page:
                await page.goto(page_url)
                await page.wait(PAGE_SETTLE_MS)
                await page.wait(SCROLL_SETTLE_MS)

                if not await page.exists(element.selector):
                    return FunctionalTestResult(
                        element=element, passed=False,
                        failure_reason=f"Element not found: {element.selector}",
                    )

                was_visible = baseline.state_before is not None and baseline.state_before.is_visible
                if was_visible and not await page.is_visible(element.selector):
                    return FunctionalTestResult(
                        element=element, passed=False,
                        failure_reason="Element exists but not visible (was visible on original)",
                    )

                before = await page.capture_state(element.selector)
                try:
                    await page.trigger(element.selector, element.trigger_action)
                except Exception as e:
                    return FunctionalTestResult(
                        element=element, passed=False, failure_reason=f"Interaction failed: {e}",
                    )
                await page.wait(VERIFY_INTERACTION_SETTLE_MS)
                after = await page.capture_state(element.selector)
        except Exception as e:
            return FunctionalTestResult(element=element, passed=False, failure_reason=f"Test error: {e}")

        detail = compare_behavior(baseline, before, after)
        if detail is None:
            return FunctionalTestResult(element=element, passed=True)
        return FunctionalTestResult(
            element=element, passed=False, failure_reason=describe_mismatch(element.type, detail),
        )
