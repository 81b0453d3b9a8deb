"""Baseline behavior recording for interactive elements."""

from typing import Dict, List, Sequence

from speed_agent.core.browser import BrowserDriver, BrowserPage
from speed_agent.core.schemas import FunctionalBaseline, InteractiveElement
from speed_agent.utils.constants import (
    INTERACTION_SETTLE_MS,
    MAX_BEHAVIOR_ELEMENTS_PER_PAGE,
    PAGE_SETTLE_MS,
)
from speed_agent.utils.helpers import StructuredLogger, page_url_on


def group_by_page(elements: Sequence[InteractiveElement]) -> Dict[str, List[InteractiveElement]]:
    groups: Dict[str, List[InteractiveElement]] = {}
    for element in elements:
        groups.setdefault(element.page, []).append(element)
    return groups


async def record_element(page: BrowserPage, element: InteractiveElement, log: StructuredLogger) -> FunctionalBaseline:
    """
    Observe one element before and after its trigger, then reload the page.

    Click/hover errors are tolerated: the after-state still shows what the
    original site does, which may be nothing. The reload runs whenever the
    trigger was attempted, so the next element starts from a fresh DOM.
    """
    triggered = False
    try:
        if not await page.exists(element.selector):
            return FunctionalBaseline(
                element=element,
                baseline_result="element-not-found",
                passed=False,
                reason=f"{element.selector} not present",
            )

        state_before = await page.capture_state(element.selector)
        triggered = True
        try:
            await page.trigger(element.selector, element.trigger_action)
        except Exception as e:
            log.debug(f"{element.trigger_action} on {element.selector} failed: {e}")
        await page.wait(INTERACTION_SETTLE_MS)
        state_after = await page.capture_state(element.selector)

        return FunctionalBaseline(
            element=element,
            baseline_result="recorded",
            state_before=state_before,
            state_after=state_after,
            passed=True,
        )
    except Exception as e:
        return FunctionalBaseline(
            element=element,
            baseline_result="interaction-failed",
            passed=False,
            reason=str(e),
        )
    finally:
        if triggered:
            await _reset_page(page, element, log)


async def _reset_page(page: BrowserPage, element: InteractiveElement, log: StructuredLogger) -> None:
    try:
        await page.reload()
        await page.wait(INTERACTION_SETTLE_MS)
    except Exception as e:
        log.debug(f"Reload after {element.selector} failed: {e}")


async def record_baseline_behavior(
    driver: BrowserDriver,
    site_url: str,
    elements: Sequence[InteractiveElement],
    log: StructuredLogger,
) -> List[FunctionalBaseline]:
    """Record up to MAX_BEHAVIOR_ELEMENTS_PER_PAGE elements per page, one navigation per page."""
    baselines: List[FunctionalBaseline] = []
    if not elements:
        return baselines

    for page_path, page_elements in group_by_page(elements).items():
        try:
            async with driver.open_page() as page:
                await page.goto(page_url_on(site_url, page_path))
                await page.wait(PAGE_SETTLE_MS)
                for element in page_elements[:MAX_BEHAVIOR_ELEMENTS_PER_PAGE]:
                    baselines.append(await record_element(page, element, log))
        except Exception as e:
            log.warning(f"Baseline recording failed for {page_path}: {e}")

    return baselines
