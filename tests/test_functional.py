import pytest

from conftest import FakeDriver, FakePage, make_baseline, make_element, make_state
from speed_agent.recorder.behavior import group_by_page, record_baseline_behavior, record_element
from speed_agent.utils.helpers import StructuredLogger
from speed_agent.verification.functional import FunctionalVerifier, compare_behavior


# ============================================================================
# BASELINE RECORDING
# ============================================================================

@pytest.mark.asyncio
async def test_record_element_not_found():
    page = FakePage()
    page.exists.return_value = False

    baseline = await record_element(page, make_element(), StructuredLogger("Test"))

    assert baseline.baseline_result == "element-not-found"
    assert baseline.passed is False
    page.trigger.assert_not_awaited()


@pytest.mark.asyncio
async def test_record_element_tolerates_trigger_error():
    page = FakePage()
    before, after = make_state(height=40), make_state(height=40)
    page.capture_state.side_effect = [before, after]
    page.trigger.side_effect = RuntimeError("element detached")

    baseline = await record_element(page, make_element(), StructuredLogger("Test"))

    assert baseline.baseline_result == "recorded"
    assert baseline.passed is True
    assert baseline.state_before == before
    assert baseline.state_after == after
    page.reload.assert_awaited_once()


@pytest.mark.asyncio
async def test_record_element_unexpected_error_is_interaction_failed():
    page = FakePage()
    page.capture_state.side_effect = RuntimeError("target closed")

    baseline = await record_element(page, make_element(), StructuredLogger("Test"))

    assert baseline.baseline_result == "interaction-failed"
    assert baseline.passed is False
    assert "target closed" in baseline.reason
    page.reload.assert_not_awaited()


@pytest.mark.asyncio
async def test_record_element_reloads_even_when_after_state_fails():
    page = FakePage()
    page.capture_state.side_effect = [make_state(), RuntimeError("execution context destroyed")]

    baseline = await record_element(page, make_element(), StructuredLogger("Test"))

    assert baseline.baseline_result == "interaction-failed"
    page.trigger.assert_awaited_once()
    page.reload.assert_awaited_once()


@pytest.mark.asyncio
async def test_record_element_survives_reload_error():
    page = FakePage()
    page.capture_state.return_value = make_state()
    page.reload.side_effect = RuntimeError("navigation timeout")

    baseline = await record_element(page, make_element(), StructuredLogger("Test"))

    assert baseline.baseline_result == "recorded"
    assert baseline.passed is True


@pytest.mark.asyncio
async def test_record_baseline_behavior_navigates_once_per_page():
    page = FakePage()
    page.capture_state.return_value = make_state()
    driver = FakeDriver(page)
    elements = [make_element("/"), make_element("/about"), make_element("/", selector="#tabs")]

    baselines = await record_baseline_behavior(driver, "https://example.com/", elements, StructuredLogger("Test"))

    assert len(baselines) == 3
    assert page.visited == ["https://example.com/", "https://example.com/about"]
    assert list(group_by_page(elements)) == ["/", "/about"]


# ============================================================================
# BEHAVIOR COMPARISON
# ============================================================================

def test_visibility_toggle_must_be_reproduced():
    baseline = make_baseline(before=make_state(visible=False), after=make_state(visible=True))

    assert compare_behavior(baseline, make_state(visible=False), make_state(visible=True)) is None
    assert compare_behavior(baseline, make_state(visible=False), make_state(visible=False)) == "visibility did not toggle"


def test_height_change_direction_must_match():
    baseline = make_baseline(before=make_state(height=40), after=make_state(height=240))

    assert compare_behavior(baseline, make_state(height=40), make_state(height=300)) is None
    # within the 2px tolerance counts as no change
    assert "height changed" in compare_behavior(baseline, make_state(height=40), make_state(height=41))
    assert "height changed" in compare_behavior(baseline, make_state(height=240), make_state(height=40))


def test_slide_index_must_advance():
    baseline = make_baseline(before=make_state(slide=0), after=make_state(slide=1))

    assert compare_behavior(baseline, make_state(slide=0), make_state(slide=1)) is None
    assert compare_behavior(baseline, make_state(slide=0), make_state(slide=0)) == "active slide did not change"


def test_added_classes_must_be_present():
    baseline = make_baseline(before=make_state(classes=("menu",)), after=make_state(classes=("menu", "is-open")))

    assert compare_behavior(baseline, make_state(classes=("menu",)), make_state(classes=("menu", "is-open"))) is None
    assert compare_behavior(baseline, make_state(classes=("menu",)), make_state(classes=("menu",))) == (
        "classes not applied: is-open"
    )


def test_content_change_must_be_reproduced():
    baseline = make_baseline(before=make_state(text="Tab 1"), after=make_state(text="Tab 2"))

    assert compare_behavior(baseline, make_state(text="Tab 1"), make_state(text="Tab 2")) is None
    assert compare_behavior(baseline, make_state(text="Tab 1"), make_state(text="Tab 1")) == "content did not change"


def test_no_change_on_original_means_nothing_to_check():
    baseline = make_baseline(before=make_state(), after=make_state())
    assert compare_behavior(baseline, make_state(height=10), make_state(height=500)) is None


# ============================================================================
# FUNCTIONAL VERIFIER
# ============================================================================

@pytest.mark.asyncio
async def test_verify_only_replays_recorded_baselines():
    page = FakePage()
    page.capture_state.side_effect = [make_state(visible=False), make_state(visible=True)]
    verifier = FunctionalVerifier(FakeDriver(page))
    baselines = [
        make_baseline(before=make_state(visible=False), after=make_state(visible=True)),
        make_baseline(element=make_element(selector=".gone"), passed=False),
    ]

    results = await verifier.verify("https://edge.example.dev", baselines)

    assert len(results) == 1
    assert results[0].passed is True
    assert page.visited == ["https://edge.example.dev/"]


@pytest.mark.asyncio
async def test_verify_reports_missing_and_hidden_elements():
    page = FakePage()
    verifier = FunctionalVerifier(FakeDriver(page))
    baseline = make_baseline(
        element=make_element(type="accordion"),
        before=make_state(visible=True, height=40),
        after=make_state(visible=True, height=200),
    )

    page.exists.return_value = False
    missing = await verifier.verify_one("https://edge.example.dev/", baseline)
    assert missing.failure_reason == "Element not found: .faq-item"

    page.exists.return_value = True
    page.is_visible.return_value = False
    hidden = await verifier.verify_one("https://edge.example.dev/", baseline)
    assert hidden.failure_reason == "Element exists but not visible (was visible on original)"


@pytest.mark.asyncio
async def test_verify_describes_mismatch_by_element_type():
    page = FakePage()
    page.capture_state.side_effect = [make_state(height=40), make_state(height=40)]
    verifier = FunctionalVerifier(FakeDriver(page))
    baseline = make_baseline(before=make_state(height=40), after=make_state(height=200))

    result = await verifier.verify_one("https://edge.example.dev/", baseline)

    assert result.passed is False
    assert result.failure_reason.startswith("Accordion did not expand.")


@pytest.mark.asyncio
async def test_verify_interaction_error_fails_element():
    page = FakePage()
    page.capture_state.return_value = make_state()
    page.trigger.side_effect = RuntimeError("intercepted")
    verifier = FunctionalVerifier(FakeDriver(page))
    baseline = make_baseline(before=make_state(), after=make_state())

    result = await verifier.verify_one("https://edge.example.dev/", baseline)

    assert result.passed is False
    assert result.failure_reason == "Interaction failed: intercepted"
